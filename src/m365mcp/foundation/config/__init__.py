"""Configuration loaded from the environment via pydantic-settings."""

from .settings import GraphSettings, M365Settings, ObservabilitySettings, clear_settings_cache, get_settings

__all__ = ["M365Settings", "ObservabilitySettings", "GraphSettings", "get_settings", "clear_settings_cache"]
