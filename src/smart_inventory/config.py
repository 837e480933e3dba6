"""Application configuration objects."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings used to configure the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(
        default="Smart Inventory Service",
        description="Human friendly name for the API.",
    )
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    database_url: str = Field(
        default="sqlite:///./inventory.db",
        description="SQLAlchemy compatible URL of the key-value slot store.",
    )
    echo_sql: bool = Field(
        default=False,
        description="Enable SQL echo logging for debugging.",
    )
    storage_key: str = Field(
        default="inventory-items",
        description="Name of the slot holding the inventory snapshot.",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="Credential for the hosted language model.",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the chat completions provider.",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for every AI task.",
    )
    ai_timeout_seconds: float = Field(default=60.0, gt=0)
    access_control_allow_origin: str = Field(
        default="*",
        description="Allowed CORS origins for the API.",
    )
    log_level: str = Field(default="INFO")

    @field_validator("database_url")
    @classmethod
    def _validate_sqlite_path(cls, value: str) -> str:
        if value.startswith("sqlite") and ":memory:" not in value and "///" not in value:
            raise ValueError("SQLite database URLs should be in the form sqlite:///path/to/db")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level '{value}'")
        return normalized


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


__all__ = ["Settings", "configure_logging", "get_settings"]
