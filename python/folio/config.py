"""Application settings loaded from environment variables.

Environment Configuration:
    FOLIO_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    FOLIO_INTERNAL_SECRET: Internal API secret (required in staging/prod)

Content Configuration:
    EXCERPT_LENGTH: Characters kept when deriving a document excerpt
    READING_CHARS_PER_MINUTE: Reading speed used for snapshot reading_time

Autosave Configuration:
    AUTOSAVE_MAX_PENDING: Maximum number of documents holding unsaved drafts

Publishing Configuration:
    PUBLISH_LOCK_TIMEOUT_S: Seconds a publish waits for the per-slug lock

Note: Deployments use PostgreSQL (postgresql+psycopg://...).
A sqlite:/// URL is accepted for local runs and the test-suite.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - FOLIO_INTERNAL_SECRET is required in staging and prod only
    """

    folio_env: Environment = Field(default=Environment.LOCAL, alias="FOLIO_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    folio_internal_secret: str | None = Field(default=None, alias="FOLIO_INTERNAL_SECRET")

    # Derived document fields
    excerpt_length: int = Field(default=200, ge=1, alias="EXCERPT_LENGTH")
    reading_chars_per_minute: int = Field(default=300, ge=1, alias="READING_CHARS_PER_MINUTE")

    # Coalesced autosave queue
    autosave_max_pending: int = Field(default=1000, ge=1, alias="AUTOSAVE_MAX_PENDING")

    # Seconds a publish waits for the per-slug lock before giving up
    publish_lock_timeout_s: float = Field(default=30.0, gt=0, alias="PUBLISH_LOCK_TIMEOUT_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure the internal secret is set where the header is enforced."""
        if self.folio_env in (Environment.STAGING, Environment.PROD):
            if not self.folio_internal_secret:
                raise ValueError(
                    f"FOLIO_INTERNAL_SECRET is required for FOLIO_ENV={self.folio_env.value}"
                )

        return self

    @property
    def requires_internal_header(self) -> bool:
        """Whether authoring requests must include the internal secret header."""
        return self.folio_env in (Environment.STAGING, Environment.PROD)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
