"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Pipedrive CRM
    PIPEDRIVE_DOMAIN: str = ""  # Subdomain only, e.g. "fundprollc" (not fundprollc.pipedrive.com)
    PIPEDRIVE_TOKEN: str = ""

    # Retry policy for Pipedrive calls (429 and network errors only)
    CRM_MAX_RETRIES: int = 3
    CRM_RETRY_BASE_SECONDS: float = 1.0

    # Monitoring
    SENTRY_DSN: str = ""

    def pipedrive_configured(self) -> bool:
        """Return True when both the Pipedrive subdomain and token are set."""
        return bool(self.PIPEDRIVE_DOMAIN and self.PIPEDRIVE_TOKEN)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
