"""
Configuration settings for the tutor-core service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///tutorcore.db",
        description="SQLAlchemy connection string for the learner store",
    )

    # ========================================
    # Language Model Service
    # ========================================
    llm_base_url: str | None = Field(
        default=None,
        description="Base URL of the text-generation endpoint (None = template fallback only)",
    )
    llm_api_key: str | None = Field(
        default=None,
        description="Bearer token for the text-generation endpoint",
    )
    llm_model: str = Field(
        default="gemini-2.0-flash",
        description="Model name forwarded to the text-generation endpoint",
    )
    llm_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single generation call (no retries)",
    )

    # ========================================
    # Bayesian Knowledge Tracing Defaults
    # ========================================
    bkt_default_p_l0: float = Field(
        default=0.3,
        description="Prior probability the skill is already known",
    )
    bkt_default_p_t: float = Field(
        default=0.1,
        description="Probability of learning on each practice opportunity",
    )
    bkt_default_p_s: float = Field(
        default=0.1,
        description="Probability of a slip despite mastery (must stay < 0.5)",
    )
    bkt_default_p_g: float = Field(
        default=0.2,
        description="Probability of a lucky guess without mastery (must stay < 0.5)",
    )
    mastery_threshold: float = Field(
        default=0.8,
        description="P(mastery) required before a skill counts as mastered",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def has_llm_configured(self) -> bool:
        """Check if a text-generation endpoint is configured."""
        return bool(self.llm_base_url)

    def get_bkt_defaults(self) -> dict[str, float]:
        """Get default BKT parameters as a dictionary."""
        return {
            "p_l0": self.bkt_default_p_l0,
            "p_t": self.bkt_default_p_t,
            "p_s": self.bkt_default_p_s,
            "p_g": self.bkt_default_p_g,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
