"""AggregationExecutor: one aggregation function over a group's values."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from ...domain.transforms import AggregationFunction, AggregationOptions
from ...errors import ConfigurationError
from ..rules.conditions import ConditionEvaluator, to_number
from ..variables.engine import format_value

Number = int | float


def _normalize(number: float) -> Number:
    return int(number) if number.is_integer() else number


def _present(values: Sequence[Any]) -> list[Any]:
    return [value for value in values if value is not None]


class AggregationExecutor:
    """Null-tolerant aggregation functions.

    COUNT_IF receives whole rows and tests them with the rule condition
    evaluator; every other function receives the source field's values.
    """

    def __init__(self, evaluator: ConditionEvaluator | None = None) -> None:
        self._evaluator = evaluator or ConditionEvaluator()
        self._functions: dict[AggregationFunction, Callable[[Sequence[Any], AggregationOptions], Any]] = {
            AggregationFunction.COUNT: self._count,
            AggregationFunction.SUM: lambda values, options: self._sum(values),
            AggregationFunction.AVG: lambda values, options: self._avg(values),
            AggregationFunction.MIN: lambda values, options: self._extreme(values, min),
            AggregationFunction.MAX: lambda values, options: self._extreme(values, max),
            AggregationFunction.FIRST: lambda values, options: next(iter(_present(values)), None),
            AggregationFunction.LAST: lambda values, options: next(iter(reversed(_present(values))), None),
            AggregationFunction.CONCAT: self._concat,
            AggregationFunction.COLLECT: self._collect,
            AggregationFunction.DISTINCT_COUNT: lambda values, options: self._distinct_count(values),
            AggregationFunction.COUNT_IF: self._count_if,
        }

    def execute(
        self,
        function: AggregationFunction | str,
        values: Sequence[Any],
        options: AggregationOptions | None = None,
    ) -> Any:
        try:
            function = AggregationFunction(function)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown aggregation function: {function!r}") from exc
        return self._functions[function](values, options or AggregationOptions())

    def _count(self, values: Sequence[Any], options: AggregationOptions) -> int:
        if options.distinct:
            return self._distinct_count(values)
        return len(values)

    @staticmethod
    def _numbers(values: Sequence[Any]) -> list[float]:
        return [n for n in (to_number(value) for value in values) if n is not None]

    def _sum(self, values: Sequence[Any]) -> Number:
        return _normalize(float(sum(self._numbers(values))))

    def _avg(self, values: Sequence[Any]) -> Number | None:
        numbers = self._numbers(values)
        if not numbers:
            return None
        return _normalize(sum(numbers) / len(numbers))

    def _extreme(self, values: Sequence[Any], pick: Callable[..., Any]) -> Number | str | None:
        present = _present(values)
        if not present:
            return None
        numbers = self._numbers(present)
        if numbers:
            return _normalize(pick(numbers))
        return pick(format_value(value) for value in present)

    @staticmethod
    def _concat(values: Sequence[Any], options: AggregationOptions) -> str:
        separator = ", " if options.separator is None else options.separator
        return separator.join(format_value(value) for value in _present(values))

    @staticmethod
    def _collect(values: Sequence[Any], options: AggregationOptions) -> list[Any]:
        present = _present(values)
        if options.limit:
            return present[: options.limit]
        return present

    @staticmethod
    def _distinct_count(values: Sequence[Any]) -> int:
        return len({format_value(value) for value in _present(values)})

    def _count_if(self, rows: Sequence[Any], options: AggregationOptions) -> int:
        if options.condition is None:
            return 0
        return sum(
            1
            for row in rows
            if isinstance(row, Mapping) and self._evaluator.evaluate(options.condition, row)
        )
