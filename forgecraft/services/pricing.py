"""
Model Catalog & Pricing
Static table of supported code-generation models and their token costs.

Generation cost is billed in platform tokens and derived from LLM token usage:

    cost = base + ceil(llm_tokens / 1000) * per_k_token

There are no fractional platform tokens anywhere in the system.
"""

import math
from dataclasses import dataclass
from typing import Dict


class UnknownModelError(Exception):
    """Selected model key is not in the catalog or pricing table."""

    def __init__(self, model: str):
        super().__init__(f"Unknown model: {model}")
        self.model = model


@dataclass(frozen=True)
class ModelConfig:
    """Vendor model description."""
    id: str
    provider: str
    name: str
    max_output_tokens: int
    context_window: int


@dataclass(frozen=True)
class GenerationPrice:
    """Platform-token price for one generation."""
    base: int
    per_k_token: int


AI_MODELS: Dict[str, ModelConfig] = {
    "CLAUDE_SONNET_4_5": ModelConfig(
        id="claude-sonnet-4-5-20250929",
        provider="ANTHROPIC",
        name="Claude Sonnet 4.5",
        max_output_tokens=8192,
        context_window=200000,
    ),
    "CLAUDE_OPUS_4_5": ModelConfig(
        id="claude-opus-4-5-20251101",
        provider="ANTHROPIC",
        name="Claude Opus 4.5",
        max_output_tokens=8192,
        context_window=200000,
    ),
    "GPT_5": ModelConfig(
        id="gpt-5",
        provider="OPENAI",
        name="GPT-5",
        max_output_tokens=16384,
        context_window=128000,
    ),
    "GEMINI_3_PRO": ModelConfig(
        id="gemini-3-pro-preview",
        provider="GOOGLE",
        name="Gemini 3 Pro",
        max_output_tokens=8192,
        context_window=1000000,
    ),
    "GROK_4_1_FAST": ModelConfig(
        id="grok-4.1-fast-non-reasoning",
        provider="XAI",
        name="Grok 4.1 Fast",
        max_output_tokens=8192,
        context_window=131072,
    ),
}

GENERATION_COSTS: Dict[str, GenerationPrice] = {
    "CLAUDE_SONNET_4_5": GenerationPrice(base=10, per_k_token=5),
    "CLAUDE_OPUS_4_5": GenerationPrice(base=25, per_k_token=15),
    "GPT_5": GenerationPrice(base=15, per_k_token=8),
    "GEMINI_3_PRO": GenerationPrice(base=8, per_k_token=4),
    "GROK_4_1_FAST": GenerationPrice(base=5, per_k_token=2),
}

DEFAULT_PROVIDER = "ANTHROPIC"


def get_model_config(model: str) -> ModelConfig:
    """Look up a model by catalog key."""
    config = AI_MODELS.get(model)
    if config is None:
        raise UnknownModelError(model)
    return config


def provider_for_model(model: str) -> str:
    """Provider recorded on the job row. Unknown keys fall back to the default provider."""
    config = AI_MODELS.get(model)
    return config.provider if config else DEFAULT_PROVIDER


def compute_generation_cost(model: str, tokens_used: int) -> int:
    """
    Platform-token cost of a finished generation.

    Token usage is always rounded UP to the next thousand, so 1000 LLM
    tokens cost one per-k unit and 1001 cost two.
    """
    price = GENERATION_COSTS.get(model)
    if price is None:
        raise UnknownModelError(model)
    usage = max(int(tokens_used), 0)
    return price.base + math.ceil(usage / 1000) * price.per_k_token
