"""Pydantic-based runtime settings for the generation pipeline.

Loads from environment variables (with optional .env file).
Invalid values fail fast on first access.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class FallbackStrategyName(str, Enum):
    skip = "skip"
    truncate = "truncate"
    use_fallback = "use_fallback"


class RuntimeSettings(BaseSettings):
    """All configuration for the campaign generation core, validated at startup."""

    model_config = {"env_prefix": "CAMPAIGNFORGE_", "env_file": ".env", "env_file_encoding": "utf-8"}

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Root log level used by the CLI")

    # --- Variable engine limits ---
    max_template_length: int = Field(
        default=50_000, ge=1, description="Maximum pattern length accepted by the variable engine"
    )
    max_template_variables: int = Field(
        default=100, ge=1, description="Maximum distinct placeholders per pattern"
    )

    # --- Rule engine ---
    max_regex_length: int = Field(default=100, ge=1, description="Maximum regex length accepted by the ReDoS check")
    max_condition_depth: int = Field(
        default=10, ge=1, le=100, description="Maximum nesting depth of condition groups"
    )
    rule_case_insensitive: bool = Field(
        default=False, description="Compare strings case-insensitively in rule conditions"
    )

    # --- Platform limits ---
    reddit_headline_limit_key: Literal["headline", "title"] = Field(
        default="headline",
        description="Reddit limit key the ad headline resolves to ('headline'=100, 'title'=300)",
    )

    # --- Transforms ---
    transform_sample_size: int = Field(
        default=10, ge=1, description="Rows sampled when checking that aggregation source fields exist"
    )

    # --- Fallback ---
    default_fallback_strategy: FallbackStrategyName = Field(
        default=FallbackStrategyName.skip,
        description="Strategy used by the pipeline when the caller does not provide one",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a standard logging level, got {v!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    """Return the singleton RuntimeSettings (cached after first call)."""
    return RuntimeSettings()
