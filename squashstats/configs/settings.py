"""Centralized settings management for the venue enrichment pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    at the project root.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # -------------------------------------------------------------------------
    # DATABASE
    # -------------------------------------------------------------------------
    DATABASE_URL: str = Field(..., min_length=1)

    # -------------------------------------------------------------------------
    # GOOGLE
    # -------------------------------------------------------------------------
    GOOGLE_PLACES_API_KEY: SecretStr | None = None
    GOOGLE_TRANSLATE_API_KEY: SecretStr | None = None
    GOOGLE_CUSTOM_SEARCH_API_KEY: SecretStr | None = None
    GOOGLE_CUSTOM_SEARCH_ENGINE_ID: str | None = None
    GOOGLE_PLACES_TIMEOUT: int = 30

    # -------------------------------------------------------------------------
    # AI SERVICES
    # -------------------------------------------------------------------------
    OPENAI_API_KEY: SecretStr | None = None
    OPENAI_CATEGORIZATION_MODEL: str = "gpt-4o-mini"
    OPENAI_COURT_COUNT_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT: int = 30
    OPENAI_WEB_SEARCH_TIMEOUT: int = 60

    # -------------------------------------------------------------------------
    # SEARCH & SOCIAL
    # -------------------------------------------------------------------------
    SERPAPI_API_KEY: SecretStr | None = None
    TAVILY_API_KEY: SecretStr | None = None
    FACEBOOK_ACCESS_TOKEN: SecretStr | None = None

    # -------------------------------------------------------------------------
    # BATCH BEHAVIOUR
    # -------------------------------------------------------------------------
    BATCH_DELAY_SECONDS: float = 1.0
    SYSTEM_USER_ID: int = 1

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    BASE_DIR: Path = Path(__file__).resolve().parents[2]
    REPORTS_DIR: Path = BASE_DIR / "logs"

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @staticmethod
    def secret(value: SecretStr | None) -> str | None:
        """Unwrap an optional secret, treating blank values as missing."""
        if value is None:
            return None
        raw = value.get_secret_value().strip()
        return raw or None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
