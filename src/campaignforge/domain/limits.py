"""Platform character limits and truncation helpers.

The limit table is a value object handed to every consumer (validators,
truncation, fallback engine) so a single table is the source of truth and
new platforms need no engine changes.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import Field

from .ads import Ad, SyncValidationError, ValidationErrorCode
from .base import DomainModel

ELLIPSIS = "..."

DEFAULT_PLATFORM_LIMITS: dict[str, dict[str, int]] = {
    "reddit": {
        "headline": 100,
        "title": 300,
        "text": 500,
        "description": 500,
        "display_url": 25,
    },
    "google": {
        "headline": 30,
        "description": 90,
        "display_url": 30,  # path1 (15) + path2 (15)
    },
    "facebook": {
        "headline": 40,
        "primary_text": 125,
        "description": 30,
    },
}

DEFAULT_FIELD_MAPPING: dict[str, dict[str, str]] = {
    "reddit": {
        "headline": "headline",
        "description": "text",
        "display_url": "display_url",
    },
    "google": {
        "headline": "headline",
        "description": "description",
        "display_url": "display_url",
    },
    "facebook": {
        "headline": "headline",
        "description": "description",
        "primary_text": "primary_text",
    },
}


class FieldLengthResult(DomainModel):
    valid: bool
    length: int
    limit: int | None = None
    overflow: int = 0


class AllFieldsLengthResult(DomainModel):
    all_valid: bool
    fields: dict[str, FieldLengthResult] = Field(default_factory=dict)
    invalid_fields: list[str] = Field(default_factory=list)
    total_overflow: int = 0


class PlatformLimitTable(DomainModel):
    """Character limits per platform plus the ad-field to limit-key mapping."""

    limits: dict[str, dict[str, int]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_PLATFORM_LIMITS.items()}
    )
    field_mapping: dict[str, dict[str, str]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_FIELD_MAPPING.items()}
    )

    @property
    def platforms(self) -> list[str]:
        return list(self.limits)

    def raw_limit(self, platform: str, key: str) -> int | None:
        """Limit for a platform-native key such as reddit 'title'."""
        return self.limits.get(platform, {}).get(key)

    def limit_for(self, platform: str, field: str) -> int | None:
        """Limit for an ad field, resolved through the platform's field mapping."""
        mapping = self.field_mapping.get(platform, {})
        key = mapping.get(field)
        if key is None:
            return None
        return self.raw_limit(platform, key)

    def field_limits(self, platform: str) -> dict[str, int]:
        result: dict[str, int] = {}
        for field in self.field_mapping.get(platform, {}):
            limit = self.limit_for(platform, field)
            if limit is not None:
                result[field] = limit
        return result

    def with_platform(
        self,
        platform: str,
        limits: Mapping[str, int],
        field_mapping: Mapping[str, str] | None = None,
    ) -> PlatformLimitTable:
        """Return a copy with a platform added or replaced."""
        new_limits = {k: dict(v) for k, v in self.limits.items()}
        new_mapping = {k: dict(v) for k, v in self.field_mapping.items()}
        new_limits[platform] = dict(limits)
        new_mapping[platform] = dict(field_mapping) if field_mapping is not None else {k: k for k in limits}
        return PlatformLimitTable(limits=new_limits, field_mapping=new_mapping)


def build_limit_table(settings: Any = None) -> PlatformLimitTable:
    """Default table, with the Reddit headline mapping taken from settings."""
    table = PlatformLimitTable()
    if settings is not None:
        table.field_mapping["reddit"]["headline"] = settings.reddit_headline_limit_key
    return table


def truncate_text(text: str, limit: int) -> str:
    """Hard-cut text to the limit, ending with an ellipsis counted inside it."""
    if not text or len(text) <= limit:
        return text
    if limit < len(ELLIPSIS):
        return text[:limit]
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def truncate_to_word_boundary(text: str, limit: int) -> str:
    """Cut at the last whitespace before the limit and append an ellipsis.

    Falls back to hard truncation when no whitespace is available.
    """
    if not text or len(text) <= limit:
        return text
    if limit < len(ELLIPSIS):
        return text[:limit]
    head = text[: limit - len(ELLIPSIS)]
    if text[len(head)].isspace():
        cut = len(head)
    else:
        cut = max(head.rfind(" "), head.rfind("\t"), head.rfind("\n"))
    if cut <= 0:
        return truncate_text(text, limit)
    trimmed = head[:cut].rstrip()
    if not trimmed:
        return truncate_text(text, limit)
    return trimmed + ELLIPSIS


def check_field_length(
    text: str,
    platform: str,
    field: str,
    table: PlatformLimitTable | None = None,
) -> FieldLengthResult:
    table = table or PlatformLimitTable()
    limit = table.limit_for(platform, field)
    length = len(text or "")
    if limit is None:
        return FieldLengthResult(valid=True, length=length)
    overflow = max(0, length - limit)
    return FieldLengthResult(valid=overflow == 0, length=length, limit=limit, overflow=overflow)


def check_all_field_lengths(
    ad_fields: Mapping[str, Any],
    platform: str,
    table: PlatformLimitTable | None = None,
) -> AllFieldsLengthResult:
    """Check every defined string field of an ad against the platform table."""
    table = table or PlatformLimitTable()
    result = AllFieldsLengthResult(all_valid=True)
    for field, value in ad_fields.items():
        if value is None or not isinstance(value, str):
            continue
        check = check_field_length(value, platform, field, table)
        result.fields[field] = check
        if not check.valid:
            result.all_valid = False
            result.invalid_fields.append(field)
            result.total_overflow += check.overflow
    return result


def field_too_long_errors(
    ad: Ad,
    platform: str,
    table: PlatformLimitTable | None = None,
    entity_name: str = "",
) -> list[SyncValidationError]:
    """FIELD_TOO_LONG errors for every content field of ``ad`` over its limit."""
    table = table or PlatformLimitTable()
    errors: list[SyncValidationError] = []
    for field, value in ad.content_snapshot().items():
        if not value:
            continue
        check = check_field_length(value, platform, field, table)
        if check.valid:
            continue
        errors.append(
            SyncValidationError(
                entity_type="ad",
                entity_id=ad.id,
                entity_name=entity_name,
                field=field,
                message=f"{field} exceeds maximum length of {check.limit} by {check.overflow} characters",
                code=ValidationErrorCode.FIELD_TOO_LONG,
                value=value,
                expected=str(check.limit),
            )
        )
    return errors
