"""
Prompt Builder
Composes the system and user prompts for a code generation request.

Everything here is pure: no network access and no database access.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from forgecraft.core.config import settings
from forgecraft.models.project import Platform


# Prompt-injection mitigation. Best-effort only: it removes the obvious
# carriers of injected instructions, it is not a security boundary.
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_TEMPLATE_LITERAL = re.compile(r"\$\{.*?\}")
_SCRIPT_TAG = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_JS_URI = re.compile(r"javascript:", re.IGNORECASE)


def sanitize_prompt(prompt: str, max_length: Optional[int] = None) -> str:
    """Strip code fences, ${...}, <script> blocks and javascript: URIs, then truncate."""
    limit = max_length or settings.PROMPT_MAX_LENGTH
    sanitized = _CODE_BLOCK.sub("", prompt or "")
    sanitized = _TEMPLATE_LITERAL.sub("", sanitized)
    sanitized = _SCRIPT_TAG.sub("", sanitized)
    sanitized = _JS_URI.sub("", sanitized)
    return sanitized.strip()[:limit]


@dataclass
class PromptOptions:
    """Per-project values interpolated into the platform templates."""
    package_name: Optional[str] = None
    api_version: Optional[str] = None
    command_prefix: Optional[str] = None


@dataclass
class GenerationContext:
    """Structured context handed to the prompt builder."""
    existing_files: Dict[str, str] = field(default_factory=dict)
    docs: List[str] = field(default_factory=list)
    api_version: Optional[str] = None
    package_name: Optional[str] = None
    command_prefix: Optional[str] = None

    def options(self) -> PromptOptions:
        return PromptOptions(
            package_name=self.package_name,
            api_version=self.api_version,
            command_prefix=self.command_prefix,
        )


DEFAULT_PLUGIN_PACKAGE = "com.example.plugin"
DEFAULT_MOD_PACKAGE = "com.example.mod"
DEFAULT_API_VERSION = "1.20"
DEFAULT_COMMAND_PREFIX = "!"


def _paper(opts: PromptOptions) -> str:
    return f"""You are an expert Minecraft plugin developer for Paper API.
You must generate complete, working Java code that follows these requirements:
- Use proper package naming ({opts.package_name or DEFAULT_PLUGIN_PACKAGE})
- Include plugin.yml with correct format
- Target API version {opts.api_version or DEFAULT_API_VERSION}
- Use modern Paper API practices
- Include proper command and listener registration
- Add meaningful comments
- Must compile under Gradle with Java 17"""


def _spigot(opts: PromptOptions) -> str:
    return f"""You are an expert Minecraft plugin developer for Spigot API.
You must generate complete, working Java code that follows these requirements:
- Use proper package naming ({opts.package_name or DEFAULT_PLUGIN_PACKAGE})
- Include plugin.yml with correct format
- Target API version {opts.api_version or DEFAULT_API_VERSION}
- Use Spigot API best practices
- Include proper command and event handling
- Must compile under Maven with Java 17"""


def _fabric(opts: PromptOptions) -> str:
    return f"""You are an expert Minecraft mod developer for Fabric.
You must generate complete, working Java code that follows these requirements:
- Use proper package naming ({opts.package_name or DEFAULT_MOD_PACKAGE})
- Include fabric.mod.json with correct format
- Target Minecraft {opts.api_version or DEFAULT_API_VERSION}
- Use Fabric API conventions
- Include proper mod initialization
- Must compile under Gradle"""


def _forge(opts: PromptOptions) -> str:
    return f"""You are an expert Minecraft mod developer for Forge.
You must generate complete, working Java code that follows these requirements:
- Use proper package naming ({opts.package_name or DEFAULT_MOD_PACKAGE})
- Include mods.toml with correct format
- Target Minecraft {opts.api_version or DEFAULT_API_VERSION}
- Use Forge conventions and annotations
- Must compile under Gradle"""


def _discord_node(opts: PromptOptions) -> str:
    return f"""You are an expert Discord bot developer using Discord.js v14.
You must generate complete, working TypeScript code that follows these requirements:
- Use Discord.js v14 with proper intents
- Command prefix: {opts.command_prefix or DEFAULT_COMMAND_PREFIX}
- Include proper slash command registration
- Handle permissions correctly
- Include Dockerfile for deployment
- Use modern async/await patterns
- Include proper error handling"""


def _discord_python(opts: PromptOptions) -> str:
    return f"""You are an expert Discord bot developer using discord.py.
You must generate complete, working Python code that follows these requirements:
- Use discord.py 2.x with proper intents
- Command prefix: {opts.command_prefix or DEFAULT_COMMAND_PREFIX}
- Use cogs for organization
- Include proper slash command support
- Include requirements.txt
- Include Dockerfile for deployment
- Use async/await properly"""


PLATFORM_TEMPLATES: Dict[str, Callable[[PromptOptions], str]] = {
    Platform.MINECRAFT_PAPER: _paper,
    Platform.MINECRAFT_SPIGOT: _spigot,
    Platform.MINECRAFT_FABRIC: _fabric,
    Platform.MINECRAFT_FORGE: _forge,
    Platform.DISCORD_NODE: _discord_node,
    Platform.DISCORD_PYTHON: _discord_python,
}

DEFAULT_PLATFORM = Platform.MINECRAFT_PAPER


USER_PROMPT_HEADER = """Generate the following:

{prompt}

Requirements:
1. Generate a complete folder structure
2. Include all necessary files with full content
3. Include build configuration (build.gradle, package.json, etc.)
4. Include README.md with setup instructions
5. Include example usage
6. Make the code production-ready

"""

OUTPUT_FORMAT_INSTRUCTION = """
Output format - respond with a JSON object containing:
{
  "files": {
    "path/to/file.ext": "file content here",
    ...
  },
  "summary": "Brief description of what was generated"
}"""


def build_system_prompt(platform: str, language: Optional[str], options: PromptOptions) -> str:
    """Platform template; unknown platforms use the Paper template."""
    template = PLATFORM_TEMPLATES.get(platform, PLATFORM_TEMPLATES[DEFAULT_PLATFORM])
    system_prompt = template(options)
    if language:
        system_prompt += f"\n- Project language: {language}"
    return system_prompt


def build_user_prompt(prompt: str, context: GenerationContext) -> str:
    """Instruction block + sanitized prompt + existing files + docs + output format."""
    user_prompt = USER_PROMPT_HEADER.format(prompt=sanitize_prompt(prompt))

    if context.existing_files:
        user_prompt += "\nExisting project files for reference:\n"
        for path, content in context.existing_files.items():
            user_prompt += f"\n--- {path} ---\n{content}\n"

    if context.docs:
        user_prompt += "\nRelevant documentation:\n"
        for doc in context.docs:
            user_prompt += f"\n{doc}\n"

    user_prompt += OUTPUT_FORMAT_INSTRUCTION
    return user_prompt


def build_prompt(
    platform: str,
    language: Optional[str],
    prompt: str,
    context: Optional[GenerationContext] = None,
) -> Tuple[str, str]:
    """
    Build the (system_prompt, user_prompt) pair for a generation.

    Args:
        platform: Project platform identifier (e.g. "MINECRAFT_PAPER")
        language: Project language (e.g. "JAVA"), may be None
        prompt: Raw user prompt; sanitized before embedding
        context: Existing files, docs and template options

    Returns:
        Tuple of system prompt and user prompt
    """
    context = context or GenerationContext()
    system_prompt = build_system_prompt(platform, language, context.options())
    user_prompt = build_user_prompt(prompt, context)
    return system_prompt, user_prompt
