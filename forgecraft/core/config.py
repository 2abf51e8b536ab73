"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "ForgeCraft API"
    DEBUG: bool = False

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./forgecraft.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379"

    # Code generation endpoint (OpenAI-compatible chat completions)
    # Leave LLM_API_KEY empty to run with deterministic mock output
    LLM_API_KEY: str = ""
    LLM_API_URL: str = "https://api.megallm.com/v1"
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: float = 120.0
    LLM_FALLBACK_TOKENS_USED: int = 1000  # Used when upstream reports no usage

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Worker settings
    JOB_TIMEOUT_GENERATION: int = 300
    JOB_RESULT_TTL: int = 86400
    STALLED_JOB_MAX_AGE_MINUTES: int = 30

    # Prompt / retrieval limits
    PROMPT_MAX_LENGTH: int = 5000
    DOCS_SEARCH_LIMIT: int = 5

    @field_validator('LLM_API_KEY', mode='before')
    @classmethod
    def strip_api_keys(cls, v):
        """Strip whitespace and newlines from API keys loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
