"""
Model Gateway
Calls the external code-generation API (OpenAI-compatible chat completions)
and normalizes the answer into a file set.

Upstream models do not reliably honor "respond with only JSON", so the
content is parsed in three layers: the whole content as JSON, the first
fenced code block, then the first brace-matched {...} span.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from forgecraft.core.config import settings
from forgecraft.services.pricing import get_model_config

logger = logging.getLogger(__name__)


DEFAULT_SUMMARY = "Code generated successfully"


class ModelGatewayError(Exception):
    """Base class for generation failures raised by the gateway."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidCredentialError(ModelGatewayError):
    """Upstream rejected the API key (401)."""


class RateLimitedError(ModelGatewayError):
    """Upstream rate limit hit (429)."""


class ServiceUnavailableError(ModelGatewayError):
    """Upstream temporarily unavailable (503)."""


class UpstreamError(ModelGatewayError):
    """Any other non-2xx answer, timeout or transport failure."""


class MalformedResponseError(ModelGatewayError):
    """Content could not be parsed as a JSON object by any recovery layer."""


_STATUS_ERRORS = {
    401: (InvalidCredentialError, "Invalid model API credential"),
    429: (RateLimitedError, "Model API rate limit exceeded"),
    503: (ServiceUnavailableError, "Model API unavailable"),
}


@dataclass
class GeneratedOutput:
    """Normalized generation result."""
    files: Dict[str, str] = field(default_factory=dict)
    summary: str = DEFAULT_SUMMARY
    tokens_used: int = 0


# ---------------------------------------------------------------------------
# Response recovery
# ---------------------------------------------------------------------------

_FENCED_BLOCK = re.compile(r"```[\w-]*[ \t]*\n?([\s\S]*?)```")


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _first_brace_span(text: str) -> Optional[str]:
    """First balanced {...} substring, ignoring braces inside JSON strings."""
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_model_content(content: str) -> Dict[str, Any]:
    """
    Parse model output into a dict.

    Raises:
        MalformedResponseError: none of the three layers produced a JSON object
    """
    content = content or ""

    parsed = _load_object(content.strip())
    if parsed is not None:
        return parsed

    fenced = _FENCED_BLOCK.search(content)
    if fenced:
        parsed = _load_object(fenced.group(1).strip())
        if parsed is not None:
            return parsed

    span = _first_brace_span(content)
    if span:
        parsed = _load_object(span)
        if parsed is not None:
            return parsed

    raise MalformedResponseError("Invalid response format from AI: no JSON object found")


def normalize_output(data: Dict[str, Any], tokens_used: int) -> GeneratedOutput:
    """
    Build a GeneratedOutput from parsed model JSON.

    `tokens_used` comes from upstream usage and always wins over any
    tokensUsed value the model wrote into its own JSON.
    """
    raw_files = data.get("files")
    files: Dict[str, str] = {}
    if isinstance(raw_files, dict):
        for path, content in raw_files.items():
            if isinstance(content, str):
                files[str(path)] = content
            else:
                files[str(path)] = json.dumps(content, indent=2)

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary:
        summary = DEFAULT_SUMMARY

    return GeneratedOutput(files=files, summary=summary, tokens_used=int(tokens_used))


# ---------------------------------------------------------------------------
# Offline mock output
# ---------------------------------------------------------------------------

_DISCORD_MOCK_FILES = {
    "src/index.ts": """import { Client, GatewayIntentBits, Events } from 'discord.js';

const client = new Client({
  intents: [
    GatewayIntentBits.Guilds,
    GatewayIntentBits.GuildMessages,
    GatewayIntentBits.MessageContent,
  ],
});

client.once(Events.ClientReady, (c) => {
  console.log(`Ready! Logged in as ${c.user.tag}`);
});

client.login(process.env.DISCORD_TOKEN);""",
    "package.json": json.dumps({
        "name": "discord-bot",
        "version": "1.0.0",
        "main": "dist/index.js",
        "scripts": {"build": "tsc", "start": "node dist/index.js"},
        "dependencies": {"discord.js": "^14.14.0"},
        "devDependencies": {"typescript": "^5.3.0"},
    }, indent=2),
    "tsconfig.json": json.dumps({
        "compilerOptions": {
            "target": "ES2020",
            "module": "commonjs",
            "outDir": "./dist",
            "strict": True,
        },
        "include": ["src/**/*"],
    }, indent=2),
    "Dockerfile": """FROM node:20-alpine
WORKDIR /app
COPY package*.json ./
RUN npm install
COPY . .
RUN npm run build
CMD ["npm", "start"]""",
    "README.md": """# Discord Bot

## Setup
1. Install dependencies: `npm install`
2. Set DISCORD_TOKEN environment variable
3. Build: `npm run build`
4. Run: `npm start`""",
}

_MINECRAFT_MOCK_FILES = {
    "src/main/java/com/example/plugin/MainPlugin.java": """package com.example.plugin;

import org.bukkit.plugin.java.JavaPlugin;

public class MainPlugin extends JavaPlugin {
    @Override
    public void onEnable() {
        getLogger().info("Plugin enabled!");
    }

    @Override
    public void onDisable() {
        getLogger().info("Plugin disabled!");
    }
}""",
    "src/main/resources/plugin.yml": """name: MyPlugin
version: 1.0.0
main: com.example.plugin.MainPlugin
api-version: '1.20'
description: A generated Minecraft plugin""",
    "build.gradle": """plugins {
    id 'java'
}

group = 'com.example'
version = '1.0.0'

repositories {
    mavenCentral()
    maven { url = 'https://repo.papermc.io/repository/maven-public/' }
}

dependencies {
    compileOnly 'io.papermc.paper:paper-api:1.20.4-R0.1-SNAPSHOT'
}

java {
    toolchain.languageVersion.set(JavaLanguageVersion.of(17))
}""",
    "README.md": """# Minecraft Plugin

## Setup
1. Build with: `./gradlew build`
2. Copy jar from build/libs to server plugins folder
3. Restart server""",
}

MOCK_DISCORD_TOKENS = 1500
MOCK_MINECRAFT_TOKENS = 1200


def mock_output(user_prompt: str) -> GeneratedOutput:
    """Deterministic offline result, keyed on whether the prompt mentions Discord."""
    if "discord" in (user_prompt or "").lower():
        return GeneratedOutput(
            files=dict(_DISCORD_MOCK_FILES),
            summary="Generated a basic Discord.js bot with TypeScript",
            tokens_used=MOCK_DISCORD_TOKENS,
        )
    return GeneratedOutput(
        files=dict(_MINECRAFT_MOCK_FILES),
        summary="Generated a basic Paper plugin structure",
        tokens_used=MOCK_MINECRAFT_TOKENS,
    )


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ModelGatewayService:
    """Service for code generation calls against the configured model API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = settings.LLM_API_KEY if api_key is None else api_key
        self.api_url = (api_url or settings.LLM_API_URL).rstrip("/")
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.temperature = settings.LLM_TEMPERATURE
        self.fallback_tokens = settings.LLM_FALLBACK_TOKENS_USED
        self._transport = transport

    def generate(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> GeneratedOutput:
        """
        Generate a file set for the given prompts.

        Args:
            model: Catalog key (e.g. "CLAUDE_SONNET_4_5")
            system_prompt: Platform system prompt
            user_prompt: Composed user prompt
            max_output_tokens: Override for the model's output token cap

        Returns:
            GeneratedOutput with files, summary and upstream token usage

        Raises:
            UnknownModelError, InvalidCredentialError, RateLimitedError,
            ServiceUnavailableError, UpstreamError, MalformedResponseError
        """
        model_config = get_model_config(model)

        if not self.api_key:
            logger.warning("Model API key not configured, returning mock response")
            return mock_output(user_prompt)

        logger.info(f"Generating code with model: {model} ({model_config.id})")

        payload = {
            "model": model_config.id,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_output_tokens or model_config.max_output_tokens,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }
        data = self._post_chat_completion(payload)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponseError("Invalid response format from AI: missing message content")

        parsed = parse_model_content(content)
        output = normalize_output(parsed, self._usage_tokens(data))

        logger.info(f"Model returned {len(output.files)} files, {output.tokens_used} tokens")
        return output

    def _post_chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(f"{self.api_url}/chat/completions", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Model API request timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Model API request failed: {e}") from e

        if not response.is_success:
            raise self._classify_error(response)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError("Invalid response format from AI: body is not JSON") from e

    def _classify_error(self, response: httpx.Response) -> ModelGatewayError:
        status_text = response.reason_phrase or str(response.status_code)
        error_class, label = _STATUS_ERRORS.get(response.status_code, (UpstreamError, "Model API error"))
        logger.error(f"Model API returned {response.status_code} {status_text}")
        return error_class(f"{label}: {status_text}", status_code=response.status_code)

    def _usage_tokens(self, data: Dict[str, Any]) -> int:
        usage = data.get("usage") if isinstance(data, dict) else None
        if isinstance(usage, dict):
            total = usage.get("total_tokens")
            if isinstance(total, (int, float)) and not isinstance(total, bool):
                return int(total)
        return self.fallback_tokens
