"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class ExtractionMode(str, Enum):
    pattern = "pattern"
    llm = "llm"
    hybrid = "hybrid"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # LLM Providers
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LLM_CHAT_MODEL: str = "openai/gpt-4o"
    LLM_FAST_MODEL: str = "openai/gpt-4o-mini"
    LLM_EMBEDDING_MODEL: str = "text-embedding-3-small"
    LLM_TIMEOUT: float = 30.0
    LLM_MAX_RETRIES: int = 3
    LLM_CHAT_RETRY_WAIT: float = 2.0
    LLM_EMBED_RETRY_WAIT: float = 20.0

    # Quote agent
    QUOTE_EXTRACTION_MODE: ExtractionMode = ExtractionMode.hybrid

    # Geocoding (Radar)
    GEOCODING_API_KEY: str = ""
    GEOCODING_BASE_URL: str = "https://api.radar.io/v1"
    GEOCODING_TIMEOUT: float = 10.0

    # Ticketing
    TICKETING_BASE_URL: str = ""
    TICKETING_API_TOKEN: str = ""
    TICKETING_TIMEOUT: float = 15.0

    # Server-sent events
    SSE_MAX_FRAME_CHARS: int = 16384
    SSE_INCLUDE_DEBUG: bool | None = None

    @property
    def include_debug_events(self) -> bool:
        """Debug events default to on everywhere except production."""
        if self.SSE_INCLUDE_DEBUG is not None:
            return self.SSE_INCLUDE_DEBUG
        return self.ENVIRONMENT != Environment.production

    @property
    def llm_configured(self) -> bool:
        return bool(self.OPENAI_API_KEY or self.ANTHROPIC_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
