"""
Configuration management for Support Hub.

This module provides environment-based configuration using Pydantic BaseSettings,
allowing for flexible deployment across development, testing, and production
environments while keeping merchant platform credentials out of the code.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import structlog
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

# Determine project root for resolving .env by default
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
ENV_FILE_OVERRIDE = os.getenv("SUPPORT_HUB_ENV_FILE")
if ENV_FILE_OVERRIDE:
    env_file_candidate = Path(ENV_FILE_OVERRIDE).expanduser()
    if not env_file_candidate.is_absolute():
        env_file_candidate = PROJECT_ROOT / env_file_candidate
    SETTINGS_ENV_FILE = env_file_candidate
else:
    SETTINGS_ENV_FILE = DEFAULT_ENV_FILE


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are automatically loaded with the SUPPORT_HUB_ prefix.
    For example, SUPPORT_HUB_FRANCHISE_API_TIMEOUT overrides
    franchise_api_timeout.

    Fields without prefix (uppercase names):
    - ENVIRONMENT: Deployment environment (dev, staging, prod)
    - LOG_LEVEL: Logging level (uppercase)
    - DATABASE_URL: Ticket database connection string (also accepted as
      SUPPORT_HUB_DATABASE_URI)
    """

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        validation_alias="ENVIRONMENT",
        description="Deployment environment",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (uppercase)",
    )

    app_name: str = Field(default="SupportHub", description="Application name")

    # Merchant platform (franchise/outlet lookup service)
    franchise_api_base_url: str = Field(
        default="https://api.getslurp.com",
        description="Base URL of the merchant platform API",
    )
    franchise_api_email: str = Field(
        default="",
        description="Login email for the merchant platform API",
    )
    franchise_api_password: str = Field(
        default="",
        description="Login password for the merchant platform API",
    )
    franchise_api_timeout: int = Field(
        default=10, description="Merchant platform request timeout in seconds"
    )
    franchise_token_refresh_buffer_seconds: int = Field(
        default=60,
        description="Refresh the API token this many seconds before it expires",
    )

    # Batch resolution
    lookup_max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on concurrent lookups per batch (None = one per distinct key)",
    )
    backfill_drain_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for pending backfill writes before abandoning them",
    )

    # Ticket storage
    database_uri: Optional[str] = Field(
        default=None,
        description="Ticket database URI",
        validation_alias=AliasChoices("DATABASE_URL", "SUPPORT_HUB_DATABASE_URI"),
    )
    tickets_table: str = Field(
        default="support_requests", description="Table holding support tickets"
    )

    def get_database_connection_string(self) -> Optional[str]:
        """Get the ticket database URI.

        Automatically corrects 'postgres://' scheme to 'postgresql://' for
        SQLAlchemy compatibility.
        """
        uri = self.database_uri
        if uri and uri.startswith("postgres://"):
            uri = uri.replace("postgres://", "postgresql://", 1)
        return uri

    @property
    def has_franchise_credentials(self) -> bool:
        return bool(self.franchise_api_email and self.franchise_api_password)

    @model_validator(mode="after")
    def validate_production_database_url(self) -> "Settings":
        """Validate that production environment uses PostgreSQL.

        Raises:
            ValueError: If ENVIRONMENT is 'prod' and a configured database URL
                is not PostgreSQL
        """
        db_url = self.get_database_connection_string()

        if self.ENVIRONMENT == "prod" and db_url and not db_url.startswith(
            "postgresql"
        ):
            db_url_preview = db_url[:20]
            logger.error(
                "configuration.non_postgresql_in_production",
                db_url_preview=db_url_preview,
            )
            raise ValueError(
                "Production environment requires PostgreSQL database. "
                f"Database URL must start with 'postgresql://', "
                f"got: {db_url_preview}..."
            )

        return self

    model_config = SettingsConfigDict(
        env_prefix="SUPPORT_HUB_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded once and reused across
    the application lifecycle.

    Returns:
        Settings instance with loaded configuration
    """
    return Settings()
