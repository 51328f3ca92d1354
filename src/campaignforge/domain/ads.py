"""Ad, sync validation error, and fallback strategy models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import Field

from .base import DomainModel

# Ad fields holding generated content, in the order they are reported.
CONTENT_FIELDS: tuple[str, ...] = (
    "headline",
    "description",
    "display_url",
    "final_url",
    "call_to_action",
)


class Ad(DomainModel):
    """Platform-sync ad produced from one grouped row."""

    id: str = Field(..., description="Ad identifier")
    ad_group_id: str = Field(..., description="Owning ad group identifier")
    order_index: int = Field(default=0, ge=0, description="Position within the ad group")
    headline: str | None = Field(default=None, description="Ad headline")
    description: str | None = Field(default=None, description="Ad body text")
    display_url: str | None = Field(default=None, description="Display URL")
    final_url: str | None = Field(default=None, description="Click-through URL")
    call_to_action: str | None = Field(default=None, description="Call-to-action label")
    status: str = Field(default="active", description="Lifecycle status")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")

    def content_snapshot(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in CONTENT_FIELDS}


class ValidationErrorCode(str, Enum):
    """Sync-time validation error codes."""

    REQUIRED_FIELD = "REQUIRED_FIELD"
    FIELD_TOO_LONG = "FIELD_TOO_LONG"
    INVALID_URL = "INVALID_URL"
    INVALID_ENUM_VALUE = "INVALID_ENUM_VALUE"
    INVALID_FORMAT = "INVALID_FORMAT"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"


class SyncValidationError(DomainModel):
    """A validation failure for one field of one synced entity."""

    entity_type: Literal["campaign", "ad_group", "ad", "keyword"] = Field(default="ad")
    entity_id: str
    entity_name: str = ""
    field: str
    message: str
    code: ValidationErrorCode
    value: str | None = Field(default=None, description="Offending value as text")
    expected: str | None = Field(default=None, description="Expected value or limit as text")


class FallbackAdDefinition(DomainModel):
    """Static replacement content used by the use_fallback strategy."""

    headline: str
    description: str
    display_url: str | None = None
    final_url: str | None = None
    call_to_action: str | None = None


class TruncationConfig(DomainModel):
    """Per-field switches for the truncate strategy."""

    truncate_headline: bool = True
    truncate_description: bool = True
    preserve_word_boundary: bool = True


class StrategyContext(DomainModel):
    """Where the ad lives and which platform it is synced to."""

    campaign_id: str
    ad_group_id: str
    platform: str = "reddit"


class SkippedAdRecord(DomainModel):
    """Audit record for an ad dropped because its content did not fit."""

    ad_id: str
    campaign_id: str
    ad_group_id: str
    reason: str
    fields: list[str]
    overflow: dict[str, int] = Field(default_factory=dict)
    original_ad: dict[str, str | None] = Field(default_factory=dict)
    skipped_at: str


class StrategyResult(DomainModel):
    """Outcome of applying a fallback strategy to one ad."""

    action: Literal["sync", "skip", "fallback"]
    ad: Ad
    skipped_record: SkippedAdRecord | None = None
    was_truncated: bool = False
    used_fallback: bool = False
