"""Warehouse settings.

All fields can be set through ``WH_*`` environment variables (for example
``WH_DATABASE_URL=postgresql://whadmin@warehouse/postgres``) or a ``.env``
file. ``get_settings()`` returns a cached instance; tests construct
``WarehouseSettings`` directly.

Fields
──────
database_url            : Host warehouse (SQLite path/URL or PostgreSQL URL)
operational_schema      : Namespace holding templates, connections, catalog
public_schema           : Namespace of the cross-tenant aggregate views
owner_role / reader_role: Ownership and read grants applied after creation
pacing_seconds          : Minimum gap between remote extractions
adjacent_refresh_policy : ``before_create`` or ``always``
tenant_tag_column       : Literal column appended per public-view branch
remote_driver           : SQLAlchemy driver for tenant source databases
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AdjacentRefreshPolicy(str, Enum):
    """When an upsert refreshes the preceding day's partition.

    ``BEFORE_CREATE`` refreshes it only when the target partition is new
    (the previous day is then complete and may have late rows). ``ALWAYS``
    refreshes it on every upsert with adjacent refresh enabled.
    """

    BEFORE_CREATE = "before_create"
    ALWAYS = "always"


class WarehouseSettings(BaseSettings):
    """Warehouse configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Host database ────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///data/warehouse.db")
    operational_schema: str = Field(default="_wh")
    public_schema: str = Field(default="public")

    # ── Grants ───────────────────────────────────────────────────
    owner_role: str = Field(default="whadmin")
    reader_role: str = Field(default="PUBLIC")

    # ── Lifecycle ────────────────────────────────────────────────
    pacing_seconds: float = Field(default=1.0, ge=0.0)
    adjacent_refresh_policy: AdjacentRefreshPolicy = Field(
        default=AdjacentRefreshPolicy.BEFORE_CREATE
    )
    tenant_tag_column: str = Field(default="schema_name")

    # ── Remote sources ───────────────────────────────────────────
    remote_driver: str = Field(default="postgresql+psycopg2")
    remote_connect_timeout: int = Field(default=10, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    @field_validator("operational_schema", "public_schema", "tenant_tag_column")
    @classmethod
    def _identifier(cls, value: str) -> str:
        if not value or not value.replace("_", "a").isalnum():
            raise ValueError(f"not a plain SQL identifier: {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value!r}")
        return upper


@lru_cache(maxsize=1)
def get_settings() -> WarehouseSettings:
    """Return the process-wide settings (cached)."""
    return WarehouseSettings()


__all__ = ["AdjacentRefreshPolicy", "WarehouseSettings", "get_settings"]
