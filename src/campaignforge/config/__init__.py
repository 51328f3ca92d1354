"""Runtime configuration."""

from .runtime import FallbackStrategyName, RuntimeSettings, get_settings

__all__ = ["FallbackStrategyName", "RuntimeSettings", "get_settings"]
