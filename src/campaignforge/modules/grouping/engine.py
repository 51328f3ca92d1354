"""HierarchicalGrouper: fold flat rows into Campaign -> AdGroup -> Ad trees."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from ...domain.grouping import (
    GroupedAd,
    GroupedAdGroup,
    GroupedCampaign,
    GroupingConfig,
    GroupingResult,
    GroupingStats,
    GroupingWarning,
)
from ...errors import ConfigurationError
from ...observability import get_logger
from ..variables.engine import VariableEngine

_OPTIONAL_AD_FIELDS = ("display_url", "final_url", "call_to_action")

_log = get_logger("grouping")


def coerce_grouping_config(config: GroupingConfig | Mapping[str, Any]) -> GroupingConfig:
    """Accept a model or a camelCase/snake_case mapping; reject anything incomplete."""
    if isinstance(config, GroupingConfig):
        return config
    if not isinstance(config, Mapping):
        raise ConfigurationError(f"Grouping config must be a mapping, got {type(config).__name__}")
    try:
        return GroupingConfig.model_validate(config)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid grouping config: {exc}") from exc


class _RowWarnings:
    """Per-run warning sink that deduplicates by (type, row, variable)."""

    def __init__(self) -> None:
        self.items: list[GroupingWarning] = []
        self._seen: set[tuple[str, int, str | None]] = set()
        self.rows_with_missing: set[int] = set()

    def add(self, type_: str, message: str, row_index: int, variable: str | None) -> None:
        key = (type_, row_index, variable)
        if key in self._seen:
            return
        if type_ == "empty_value" and ("missing_variable", row_index, variable) in self._seen:
            return
        self._seen.add(key)
        if type_ == "missing_variable":
            self.rows_with_missing.add(row_index)
        self.items.append(
            GroupingWarning(type=type_, message=message, row_index=row_index, variable_name=variable)
        )


class HierarchicalGrouper:
    """Groups rows by the interpolated values of naming patterns.

    Rows whose campaign pattern renders to the same text share a campaign;
    within a campaign the same applies to the ad-group pattern. Every row
    becomes exactly one ad. Ordering follows first occurrence in the input.
    """

    def __init__(self, variable_engine: VariableEngine | None = None) -> None:
        self._variables = variable_engine or VariableEngine()

    @classmethod
    def from_settings(cls, settings: Any) -> HierarchicalGrouper:
        return cls(VariableEngine.from_settings(settings))

    def group_rows(
        self,
        rows: Sequence[Mapping[str, Any]],
        config: GroupingConfig | Mapping[str, Any],
    ) -> GroupingResult:
        if not isinstance(rows, (list, tuple)):
            raise ConfigurationError(f"Rows must be a list, got {type(rows).__name__}")
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise ConfigurationError(f"Row {index} must be a mapping, got {type(row).__name__}")
        config = coerce_grouping_config(config)
        warnings = _RowWarnings()

        campaign_buckets: dict[str, list[int]] = {}
        for index, row in enumerate(rows):
            key = self._interpolate(config.campaign_name_pattern, row, index, warnings)
            campaign_buckets.setdefault(key, []).append(index)

        campaigns: list[GroupedCampaign] = []
        total_ad_groups = 0
        total_ads = 0
        for campaign_key, indexes in campaign_buckets.items():
            group_buckets: dict[str, list[int]] = {}
            for index in indexes:
                key = self._interpolate(config.ad_group_name_pattern, rows[index], index, warnings)
                group_buckets.setdefault(key, []).append(index)

            ad_groups: list[GroupedAdGroup] = []
            for group_key, group_indexes in group_buckets.items():
                ads = [self._build_ad(config, rows[i], i, warnings) for i in group_indexes]
                self._flag_duplicates(ads, group_key, warnings)
                ad_groups.append(
                    GroupedAdGroup(
                        name=group_key,
                        grouping_key=group_key,
                        source_rows=[dict(rows[i]) for i in group_indexes],
                        ads=ads,
                    )
                )
                total_ads += len(ads)
            total_ad_groups += len(ad_groups)
            campaigns.append(
                GroupedCampaign(
                    name=campaign_key,
                    grouping_key=campaign_key,
                    source_rows=[dict(rows[i]) for i in indexes],
                    ad_groups=ad_groups,
                )
            )

        stats = GroupingStats(
            total_rows=len(rows),
            total_campaigns=len(campaigns),
            total_ad_groups=total_ad_groups,
            total_ads=total_ads,
            rows_with_missing_variables=len(warnings.rows_with_missing),
        )
        _log.debug(
            "grouping_complete",
            extra={
                "total_rows": stats.total_rows,
                "campaigns": stats.total_campaigns,
                "ad_groups": stats.total_ad_groups,
                "warnings": len(warnings.items),
            },
        )
        return GroupingResult(campaigns=campaigns, stats=stats, warnings=warnings.items)

    def group_rows_into_campaigns(
        self,
        rows: Sequence[Mapping[str, Any]],
        config: GroupingConfig | Mapping[str, Any],
    ) -> list[GroupedCampaign]:
        return self.group_rows(rows, config).campaigns

    def _interpolate(
        self,
        pattern: str,
        row: Mapping[str, Any],
        index: int,
        warnings: _RowWarnings,
    ) -> str:
        result = self._variables.substitute(pattern, row)
        for warning in result.warnings:
            if warning.kind == "missing":
                warnings.add("missing_variable", warning.message, index, warning.variable)
            else:
                _log.debug("filter_warning", extra={"row_index": index, "detail": warning.message})
        for error in result.errors:
            _log.warning("pattern_rejected", extra={"row_index": index, "detail": error.message})
        for variable in self._variables.extract(pattern):
            if variable.nested:
                continue
            for name in variable.chain:
                value = row.get(name)
                if value is None:
                    continue
                if value == "":
                    warnings.add(
                        "empty_value",
                        f'Variable "{name}" has an empty value',
                        index,
                        name,
                    )
                break
        return result.text

    def _build_ad(
        self,
        config: GroupingConfig,
        row: Mapping[str, Any],
        index: int,
        warnings: _RowWarnings,
    ) -> GroupedAd:
        mapping = config.ad_mapping
        fields: dict[str, Any] = {
            "headline": self._interpolate(mapping.headline, row, index, warnings),
            "description": self._interpolate(mapping.description, row, index, warnings),
        }
        for name in _OPTIONAL_AD_FIELDS:
            pattern = getattr(mapping, name)
            if pattern is not None:
                fields[name] = self._interpolate(pattern, row, index, warnings)
        return GroupedAd(**fields, source_row=dict(row), row_index=index)

    @staticmethod
    def _flag_duplicates(ads: list[GroupedAd], group_key: str, warnings: _RowWarnings) -> None:
        seen: dict[tuple[str | None, ...], int] = {}
        for ad in ads:
            content = (ad.headline, ad.description, ad.display_url, ad.final_url, ad.call_to_action)
            if content in seen:
                warnings.add(
                    "duplicate_ad",
                    f'Row {ad.row_index} duplicates the ad from row {seen[content]} in ad group "{group_key}"',
                    ad.row_index,
                    None,
                )
            else:
                seen[content] = ad.row_index


def group_rows(
    rows: Sequence[Mapping[str, Any]],
    config: GroupingConfig | Mapping[str, Any],
) -> GroupingResult:
    """Group with a default grouper."""
    return HierarchicalGrouper().group_rows(rows, config)
