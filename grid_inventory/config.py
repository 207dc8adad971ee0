"""Application configuration objects."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings used to configure the inventory engine and API."""

    model_config = SettingsConfigDict(
        env_prefix="GRID_INVENTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(
        default="Grid Inventory",
        description="Human friendly name for the API.",
    )
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    grid_rows: int = Field(default=10, gt=0, description="Number of grid rows.")
    grid_cols: int = Field(default=6, gt=0, description="Number of grid columns.")
    undo_capacity: int = Field(
        default=20,
        gt=0,
        description="Snapshots kept for undo; the oldest is evicted past this.",
    )
    expiry_red_days: int = Field(
        default=7,
        ge=0,
        description="Days left up to which a product is flagged red.",
    )
    expiry_yellow_days: int = Field(
        default=30,
        ge=0,
        description="Days left up to which a product is flagged yellow.",
    )
    storage_backend: Literal["json", "sql", "memory"] = Field(
        default="json",
        description="Key-value backend used to persist products and events.",
    )
    storage_dir: str = Field(
        default="./data",
        description="Directory holding one JSON file per key for the json backend.",
    )
    database_url: str = Field(
        default="sqlite:///./inventory.db",
        description="SQLAlchemy compatible database URL for the sql backend.",
    )
    events_flush_every: int = Field(
        default=10,
        gt=0,
        description="Persist the event log after this many appended events.",
    )
    export_prefix: str = Field(
        default="inventario",
        description="File name prefix used for JSON exports.",
    )
    log_level: str = Field(default="INFO", description="Root logging level.")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5000)

    @field_validator("database_url")
    @classmethod
    def _validate_sqlite_path(cls, value: str) -> str:
        if value.startswith("sqlite") and ":memory:" not in value and "///" not in value:
            raise ValueError(
                "SQLite database URLs should be in the form sqlite:///path/to/db"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @model_validator(mode="after")
    def _check_expiry_tiers(self) -> "Settings":
        if self.expiry_yellow_days < self.expiry_red_days:
            raise ValueError("expiry_yellow_days must be >= expiry_red_days")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


__all__ = ["Settings", "get_settings"]
