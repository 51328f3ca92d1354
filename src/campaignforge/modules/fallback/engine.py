"""FallbackStrategyEngine: resolve over-long ad content by skip, truncate, or fallback."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from pydantic.alias_generators import to_snake

from ...config.runtime import FallbackStrategyName
from ...domain.ads import (
    Ad,
    FallbackAdDefinition,
    SkippedAdRecord,
    StrategyContext,
    StrategyResult,
    SyncValidationError,
    TruncationConfig,
    ValidationErrorCode,
)
from ...domain.limits import PlatformLimitTable, truncate_text, truncate_to_word_boundary
from ...errors import ConfigurationError
from ...observability import get_logger

# final_url and call_to_action cannot be shortened without changing their meaning.
TRUNCATABLE_FIELDS = frozenset({"headline", "description", "display_url"})

_log = get_logger("fallback")


def get_length_errors(errors: Iterable[SyncValidationError]) -> list[SyncValidationError]:
    return [error for error in errors if error.code == ValidationErrorCode.FIELD_TOO_LONG]


def has_length_errors(errors: Iterable[SyncValidationError]) -> bool:
    return any(error.code == ValidationErrorCode.FIELD_TOO_LONG for error in errors)


def _field_name(error: SyncValidationError) -> str:
    """Ad attribute name for an error field given in snake_case or camelCase."""
    return to_snake(error.field)


def _overflow(error: SyncValidationError) -> int | None:
    if error.value is None or error.expected is None:
        return None
    try:
        limit = int(error.expected)
    except ValueError:
        return None
    return len(error.value) - limit


class FallbackStrategyEngine:
    """Applies the strategy selected at construction to ads with length errors."""

    def __init__(
        self,
        strategy: FallbackStrategyName | str = FallbackStrategyName.skip,
        fallback_ad: FallbackAdDefinition | None = None,
        truncation_config: TruncationConfig | None = None,
        limit_table: PlatformLimitTable | None = None,
    ) -> None:
        try:
            self._strategy = FallbackStrategyName(strategy)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown fallback strategy: {strategy!r}") from exc
        if self._strategy is FallbackStrategyName.use_fallback and fallback_ad is None:
            raise ConfigurationError("Fallback ad is required when using 'use_fallback' strategy")
        self._fallback_ad = fallback_ad
        self._truncation = truncation_config or TruncationConfig()
        self._limits = limit_table or PlatformLimitTable()

    @property
    def strategy(self) -> FallbackStrategyName:
        return self._strategy

    def apply_strategy(
        self,
        ad: Ad,
        errors: Sequence[SyncValidationError],
        context: StrategyContext,
    ) -> StrategyResult:
        length_errors = get_length_errors(errors)
        if not length_errors:
            return StrategyResult(action="sync", ad=ad)
        if self._strategy is FallbackStrategyName.truncate:
            return self._truncate(ad, length_errors, context)
        if self._strategy is FallbackStrategyName.use_fallback:
            return self._use_fallback(ad)
        return self._skip(ad, length_errors, context)

    def _skip(
        self,
        ad: Ad,
        errors: list[SyncValidationError],
        context: StrategyContext,
    ) -> StrategyResult:
        fields: list[str] = []
        overflow: dict[str, int] = {}
        for error in errors:
            name = _field_name(error)
            if name not in fields:
                fields.append(name)
            amount = _overflow(error)
            if amount is not None:
                overflow[name] = amount
        record = SkippedAdRecord(
            ad_id=ad.id,
            campaign_id=context.campaign_id,
            ad_group_id=context.ad_group_id,
            reason=f"Fields exceed platform limits: {', '.join(fields)}",
            fields=fields,
            overflow=overflow,
            original_ad=ad.content_snapshot(),
            skipped_at=datetime.now(timezone.utc).isoformat(),
        )
        _log.warning(
            "ad_skipped",
            extra={"ad_id": ad.id, "campaign_id": context.campaign_id, "fields": fields},
        )
        return StrategyResult(action="skip", ad=ad, skipped_record=record)

    def _truncate(
        self,
        ad: Ad,
        errors: list[SyncValidationError],
        context: StrategyContext,
    ) -> StrategyResult:
        for error in errors:
            name = _field_name(error)
            if name not in TRUNCATABLE_FIELDS:
                return self._skip(ad, errors, context)
            if name == "headline" and not self._truncation.truncate_headline:
                return self._skip(ad, errors, context)
            if name == "description" and not self._truncation.truncate_description:
                return self._skip(ad, errors, context)

        cut = truncate_to_word_boundary if self._truncation.preserve_word_boundary else truncate_text
        updates: dict[str, Any] = {}
        for error in errors:
            name = _field_name(error)
            limit = self._limits.limit_for(context.platform, name)
            value = getattr(ad, name)
            if limit is None or not value:
                continue
            updates[name] = cut(value, limit)
        _log.debug("ad_truncated", extra={"ad_id": ad.id, "fields": list(updates)})
        return StrategyResult(action="sync", ad=ad.model_copy(update=updates), was_truncated=True)

    def _use_fallback(self, ad: Ad) -> StrategyResult:
        fallback = self._fallback_ad
        merged = ad.model_copy(
            update={
                "headline": fallback.headline,
                "description": fallback.description,
                "display_url": fallback.display_url,
                "final_url": fallback.final_url,
                "call_to_action": fallback.call_to_action,
            }
        )
        _log.debug("ad_fallback", extra={"ad_id": ad.id})
        return StrategyResult(action="fallback", ad=merged, used_fallback=True)


def create_strategy_engine(
    strategy: FallbackStrategyName | str,
    fallback_ad: FallbackAdDefinition | None = None,
    truncation_config: TruncationConfig | None = None,
    limit_table: PlatformLimitTable | None = None,
) -> FallbackStrategyEngine:
    return FallbackStrategyEngine(
        strategy=strategy,
        fallback_ad=fallback_ad,
        truncation_config=truncation_config,
        limit_table=limit_table,
    )
