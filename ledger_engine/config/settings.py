"""
Configuration Management for the Ledger Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All process-level configuration is centralized here.
This makes it easy to see which storage backend is active and
ensures the configuration is validated at startup.

User-facing preferences (display currency, categories, ...) are NOT
environment configuration; they live in `preferences.py` and are stored
with the ledger data.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ledger_engine.models.ledger import Currency


class StorageSettings(BaseSettings):
    """Which repository backend to use and where it keeps its data."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["memory", "json", "sql"] = Field(
        default="sql",
        description="Repository implementation selected at startup"
    )
    json_path: str = Field(
        default="ledger_data.json",
        description="Key-value document used by the json backend"
    )
    database_url: str = Field(
        default="sqlite:///ledger.db",
        description="SQLAlchemy URL used by the sql backend"
    )
    echo_sql: bool = Field(
        default=False,
        description="Log every SQL statement (debugging only)"
    )

    @field_validator('json_path')
    @classmethod
    def validate_json_path(cls, v: str) -> str:
        """Warn if the parent directory doesn't exist (but don't fail - might be mounted later)."""
        parent = Path(v).expanduser().parent
        if not parent.exists():
            import warnings
            warnings.warn(
                f"Directory for ledger data file not found: {parent}. "
                "Make sure it exists before running the application."
            )
        return v


class EngineSettings(BaseSettings):
    """
    Main engine settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Default account, created when the store has no accounts
    default_account_id: str = Field(
        default="default_cash",
        min_length=1,
        description="Id of the permanent default account (cannot be deleted)"
    )
    default_account_name: str = Field(
        default="Cash",
        min_length=1,
    )
    default_account_currency: Currency = Field(
        default=Currency.TL,
    )

    # Backup
    export_version: str = Field(
        default="3.0",
        description="Version string written into exported backup documents"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()

