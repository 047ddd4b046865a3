"""
Configuration for the subscription registry.

Settings can be given directly or read from the environment:

    BUSREGISTRY_CONNECTION_STRING   SQLite database path (required)
    BUSREGISTRY_ENDPOINT            this registry's publisher endpoint (required)
    BUSREGISTRY_TABLE_NAME          subscription table name
    BUSREGISTRY_AUTO_CREATE_TABLE   "true"/"false"
    BUSREGISTRY_CACHE_TTL_SECONDS   cache time-to-live in seconds
    BUSREGISTRY_TIMEOUT             connection timeout in seconds
"""

from __future__ import annotations

import os
import re
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, Field, field_validator


DEFAULT_TABLE_NAME = "message_bus_subscriptions"
DEFAULT_CACHE_TTL = timedelta(minutes=60)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,127}$")
_TRUE_VALUES = {"1", "true", "yes", "on"}


class RegistryConfig(BaseModel):
    """Settings for one SubscriptionRegistry instance."""

    connection_string: str = Field(..., description="Database the registry stores subscriptions in")
    endpoint: str = Field(..., description="Publisher endpoint this registry manages")
    table_name: str = Field(default=DEFAULT_TABLE_NAME, description="Subscription table name")
    auto_create_table: bool = Field(default=True, description="Create the table on first use")
    cache_ttl: timedelta = Field(default=DEFAULT_CACHE_TTL, description="Maximum age of the cached snapshot")
    timeout: float = Field(default=30.0, gt=0, description="Connection timeout in seconds")

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("connection_string", "endpoint")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Only plain SQL identifiers may reach statement text."""
        if not _IDENTIFIER.match(v):
            raise ValueError(f"invalid table name: {v!r}")
        return v

    @field_validator("cache_ttl")
    @classmethod
    def validate_cache_ttl(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("cache_ttl must be positive")
        return v

    @classmethod
    def from_env(cls, prefix: str = "BUSREGISTRY_", **overrides: Any) -> "RegistryConfig":
        """
        Build a config from environment variables.

        Keyword overrides win over the environment; unset variables fall
        back to the field defaults.
        """
        values: dict[str, Any] = {}

        for field_name in ("connection_string", "endpoint", "table_name"):
            raw = os.getenv(prefix + field_name.upper())
            if raw is not None:
                values[field_name] = raw

        raw = os.getenv(prefix + "AUTO_CREATE_TABLE")
        if raw is not None:
            values["auto_create_table"] = raw.strip().lower() in _TRUE_VALUES

        raw = os.getenv(prefix + "CACHE_TTL_SECONDS")
        if raw is not None:
            values["cache_ttl"] = timedelta(seconds=float(raw))

        raw = os.getenv(prefix + "TIMEOUT")
        if raw is not None:
            values["timeout"] = float(raw)

        values.update(overrides)
        return cls(**values)
