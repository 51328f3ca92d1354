"""TransformEngine: group-by plus aggregations over arbitrary rows."""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from ...domain.transforms import (
    FUNCTIONS_REQUIRING_SOURCE,
    AggregationConfig,
    AggregationFunction,
    TransformConfig,
    TransformResult,
    TransformWarning,
)
from ...errors import ConfigurationError, GroupKeyError
from ...observability import get_logger
from ..rules.conditions import resolve_field
from ..variables.engine import format_value
from .aggregations import AggregationExecutor

DEFAULT_SAMPLE_SIZE = 10
DEFAULT_PREVIEW_LIMIT = 10

_log = get_logger("transforms")


def coerce_transform_config(config: TransformConfig | Mapping[str, Any]) -> TransformConfig:
    if isinstance(config, TransformConfig):
        return config
    try:
        return TransformConfig.model_validate(config)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid transform config: {exc}") from exc


def build_group_key(row: Mapping[str, Any], group_by: Sequence[str]) -> str:
    """JSON array of the row's group-by values; keeps "a,b" distinct from "a","b"."""
    parts: list[str] = []
    for field in group_by:
        value = resolve_field(row, field)
        parts.append("" if value is None else format_value(value))
    return json.dumps(parts, ensure_ascii=False)


def decode_group_key(key: str) -> list[str]:
    try:
        parts = json.loads(key)
    except json.JSONDecodeError as exc:
        shown = key[:100] + ("..." if len(key) > 100 else "")
        raise GroupKeyError(f"Failed to parse group key {shown!r}: {exc}") from exc
    if not isinstance(parts, list):
        raise GroupKeyError(f"Group key {key[:100]!r} is not a JSON array")
    return parts


def _field_paths(row: Mapping[str, Any], prefix: str = "") -> set[str]:
    paths: set[str] = set()
    for key, value in row.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        paths.add(path)
        if isinstance(value, Mapping):
            paths |= _field_paths(value, path)
    return paths


class TransformEngine:
    """Groups rows by key fields and emits one aggregated row per group."""

    def __init__(
        self,
        executor: AggregationExecutor | None = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self._executor = executor or AggregationExecutor()
        self._sample_size = sample_size

    def execute(
        self,
        config: TransformConfig | Mapping[str, Any],
        source_rows: Sequence[Mapping[str, Any]],
    ) -> TransformResult:
        config = coerce_transform_config(config)
        if not config.aggregations:
            raise ConfigurationError("NO_AGGREGATIONS: transform config must have at least one aggregation")
        if not source_rows:
            return TransformResult()

        warnings = self._check_sources(config, source_rows)
        groups: dict[str, list[Mapping[str, Any]]] = {}
        for row in source_rows:
            groups.setdefault(build_group_key(row, config.group_by), []).append(row)

        rows = [self._aggregate_group(key, members, config) for key, members in groups.items()]
        _log.debug(
            "transform_complete",
            extra={"source_rows": len(source_rows), "groups": len(groups), "warnings": len(warnings)},
        )
        return TransformResult(
            rows=rows,
            group_count=len(groups),
            source_row_count=len(source_rows),
            warnings=warnings,
        )

    def preview(
        self,
        config: TransformConfig | Mapping[str, Any],
        source_rows: Sequence[Mapping[str, Any]],
        limit: int = DEFAULT_PREVIEW_LIMIT,
    ) -> TransformResult:
        result = self.execute(config, source_rows)
        if len(result.rows) > limit:
            result.rows = result.rows[:limit]
            result.group_count = limit
        return result

    def _check_sources(
        self,
        config: TransformConfig,
        source_rows: Sequence[Mapping[str, Any]],
    ) -> list[TransformWarning]:
        warnings: list[TransformWarning] = []
        for agg in config.aggregations:
            if agg.function in FUNCTIONS_REQUIRING_SOURCE and not agg.source_field:
                warnings.append(
                    TransformWarning(
                        code="MISSING_SOURCE_FIELD",
                        message=f'Aggregation "{agg.function.value}" for output "{agg.output_field}" has no source field',
                        field=agg.output_field,
                    )
                )

        known: set[str] = set()
        for row in source_rows[: self._sample_size]:
            known |= _field_paths(row)
        for agg in config.aggregations:
            if agg.source_field and agg.source_field not in known:
                warnings.append(
                    TransformWarning(
                        code="FIELD_NOT_FOUND",
                        message=f'Source field "{agg.source_field}" not found in data',
                        field=agg.source_field,
                    )
                )
        return warnings

    def _aggregate_group(
        self,
        key: str,
        members: list[Mapping[str, Any]],
        config: TransformConfig,
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if config.include_group_key:
            parts = decode_group_key(key)
            first = members[0]
            for field, part in zip(config.group_by, parts):
                value = resolve_field(first, field)
                result[field] = value if value is not None else part
        for agg in config.aggregations:
            result[config.output_field_prefix + agg.output_field] = self._run(agg, members)
        return result

    def _run(self, agg: AggregationConfig, members: list[Mapping[str, Any]]) -> Any:
        if agg.function is AggregationFunction.COUNT_IF:
            return self._executor.execute(agg.function, members, agg.options)
        if agg.function is AggregationFunction.COUNT and not agg.source_field:
            return len(members)
        if not agg.source_field:
            values: list[Any] = []
        else:
            values = [resolve_field(row, agg.source_field) for row in members]
        return self._executor.execute(agg.function, values, agg.options)
