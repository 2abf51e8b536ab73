"""
Generate Schemas
Pydantic models for generation API requests and responses.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ModelKey(str, Enum):
    """Selectable code-generation models."""
    CLAUDE_SONNET_4_5 = "CLAUDE_SONNET_4_5"
    CLAUDE_OPUS_4_5 = "CLAUDE_OPUS_4_5"
    GPT_5 = "GPT_5"
    GEMINI_3_PRO = "GEMINI_3_PRO"
    GROK_4_1_FAST = "GROK_4_1_FAST"


class GenerateContext(BaseModel):
    """Optional submission context."""
    files: List[str] = Field(default_factory=list, description="Restrict existing-file context to these paths")
    docs: List[str] = Field(default_factory=list, description="Extra documentation snippets for the prompt")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Client settings, stored with the job")


class GenerateRequest(BaseModel):
    """Schema for generation request."""
    prompt: str = Field(..., min_length=1, description="What to build or change")
    model: ModelKey = ModelKey.CLAUDE_SONNET_4_5
    context: Optional[GenerateContext] = None

    class Config:
        json_schema_extra = {
            "example": {
                "prompt": "Add a /home command that teleports players to their bed",
                "model": "CLAUDE_SONNET_4_5",
            }
        }


class GenerateResponse(BaseModel):
    """Schema for generation response."""
    job_id: str
    status: str
    message: str
