"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from m365mcp.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.observability.buffer_size
    100
    >>> settings.graph.api_version
    'v1.0'

    # Or with environment variables:
    # NODE_ENV=production
    # MCP_LOG_PATH=/var/log/m365-mcp/mcp.log
    # M365_OBS_THROTTLE_THRESHOLD=20
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Self

from pydantic import (
    AliasChoices,
    ByteSize,
    Field,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from m365mcp import __version__

Ratio = Annotated[float, Field(gt=0.0, le=1.0)]


class ObservabilitySettings(BaseSettings):
    """Log buffer, throttling, memory governor and file sink limits."""

    model_config = SettingsConfigDict(
        env_prefix="M365_OBS_",
        extra="ignore",
    )

    buffer_size: PositiveInt = Field(default=100, description="Circular log buffer capacity")
    throttle_threshold: PositiveInt = Field(default=10, description="Errors allowed per category per window")
    throttle_window_ms: PositiveInt = Field(default=1000, description="Throttle window length in milliseconds")
    memory_check_interval: PositiveFloat = Field(default=30.0, description="Seconds between pressure checks")
    emergency_check_interval: PositiveFloat = Field(default=5.0, description="Min seconds between emergency samples")
    memory_warning_ratio: Ratio = 0.85
    memory_emergency_ratio: Ratio = 0.95
    memory_recovery_ratio: Ratio = 0.80
    log_max_bytes: ByteSize = Field(default=ByteSize(2 * 1024 * 1024), description="Rotate file sink at this size")
    log_backup_count: NonNegativeInt = 5
    slow_metric_floor_ms: float = Field(default=10.0, ge=0, description="Drop timing metrics below this value")

    @model_validator(mode="after")
    def _ordered_ratios(self) -> Self:
        if not self.memory_recovery_ratio < self.memory_warning_ratio < self.memory_emergency_ratio:
            raise ValueError("memory ratios must satisfy recovery < warning < emergency")
        return self


class GraphSettings(BaseSettings):
    """Upstream Microsoft Graph client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="M365_GRAPH_",
        extra="ignore",
    )

    base_url: str = "https://graph.microsoft.com"
    api_version: str = "v1.0"
    timeout: PositiveFloat = Field(default=30.0, description="HTTP timeout in seconds")
    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    access_token: SecretStr | None = Field(default=None, description="Static bearer token for local use")


class M365Settings(BaseSettings):
    """Root configuration aggregating all settings.

    The legacy keys NODE_ENV, MCP_LOG_PATH and MCP_SILENT_MODE are honored
    alongside the M365_ prefixed names.
    """

    model_config = SettingsConfigDict(
        env_prefix="M365_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    environment: Literal["development", "production", "test"] = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "M365_ENVIRONMENT", "environment"),
    )
    log_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("MCP_LOG_PATH", "M365_LOG_PATH", "log_path"),
    )
    silent_mode: bool = Field(
        default=False,
        validation_alias=AliasChoices("MCP_SILENT_MODE", "M365_SILENT_MODE", "silent_mode"),
    )
    version: str = __version__
    default_time_zone: str = "UTC"
    request_timeout: PositiveFloat = Field(default=30.0, description="Per-call timeout in seconds")

    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache(maxsize=1)
def get_settings() -> M365Settings:
    """Get cached global settings instance.

    Settings are loaded once from environment and cached.
    Call clear_settings_cache() to reload.
    """
    return M365Settings()


def clear_settings_cache() -> None:
    """Clear cached settings to force reload from environment."""
    get_settings.cache_clear()
