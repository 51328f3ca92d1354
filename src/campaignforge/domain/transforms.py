"""Group-by + aggregation transform models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from .base import DomainModel
from .rules import Condition


class AggregationFunction(str, Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    FIRST = "FIRST"
    LAST = "LAST"
    CONCAT = "CONCAT"
    COLLECT = "COLLECT"
    DISTINCT_COUNT = "DISTINCT_COUNT"
    COUNT_IF = "COUNT_IF"


# Functions that read a source field; COUNT and COUNT_IF work on whole rows.
FUNCTIONS_REQUIRING_SOURCE: frozenset[AggregationFunction] = frozenset(
    {
        AggregationFunction.SUM,
        AggregationFunction.AVG,
        AggregationFunction.MIN,
        AggregationFunction.MAX,
        AggregationFunction.FIRST,
        AggregationFunction.LAST,
        AggregationFunction.CONCAT,
        AggregationFunction.COLLECT,
        AggregationFunction.DISTINCT_COUNT,
    }
)


class AggregationOptions(DomainModel):
    distinct: bool = False
    separator: str | None = None
    limit: int | None = Field(default=None, ge=0)
    condition: Condition | None = None


class AggregationConfig(DomainModel):
    output_field: str
    function: AggregationFunction
    source_field: str | None = None
    options: AggregationOptions = Field(default_factory=AggregationOptions)


class TransformConfig(DomainModel):
    group_by: list[str] = Field(default_factory=list)
    aggregations: list[AggregationConfig] = Field(default_factory=list)
    include_group_key: bool = True
    output_field_prefix: str = ""

    @field_validator("group_by", mode="before")
    @classmethod
    def _single_field_as_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class TransformWarning(DomainModel):
    code: str
    message: str
    field: str | None = None


class TransformResult(DomainModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    group_count: int = 0
    source_row_count: int = 0
    warnings: list[TransformWarning] = Field(default_factory=list)
