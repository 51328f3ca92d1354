"""Pure condition evaluation against a row."""

from __future__ import annotations

import re
from typing import Any, Callable, Mapping

from ...domain.rules import Condition, ConditionGroup, Operator
from ...errors import ConfigurationError, UnsafePatternError
from ...observability import get_logger
from ..variables.engine import format_value
from .regex_safety import MAX_PATTERN_LENGTH, compile_safe_pattern

DEFAULT_MAX_DEPTH = 10

_log = get_logger("rules")
_MISSING = object()


def resolve_field(row: Mapping[str, Any], path: str) -> Any:
    """Row value by key, falling back to dot-path access into nested mappings."""
    if path in row:
        return row[path]
    if "." not in path:
        return None
    current: Any = row
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return None
    return current


def to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _coerce_like(value: Any, sample: Any) -> Any:
    """Coerce a row value to the primitive type of a comparison sample."""
    if isinstance(sample, bool):
        if isinstance(value, bool):
            return value
        text = format_value(value).strip().lower()
        if text in ("true", "false"):
            return text == "true"
        return _MISSING
    if isinstance(sample, (int, float)):
        number = to_number(value)
        return _MISSING if number is None else number
    return format_value(value)


def is_empty_value(value: Any) -> bool:
    return value is None or value == ""


class ConditionEvaluator:
    """Evaluates conditions and AND/OR groups; never mutates the row."""

    def __init__(
        self,
        case_insensitive: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_regex_length: int = MAX_PATTERN_LENGTH,
    ) -> None:
        self._case_insensitive = case_insensitive
        self._max_depth = max_depth
        self._max_regex_length = max_regex_length
        self._operators: dict[Operator, Callable[[Any, Any], bool]] = {
            Operator.equals: self._equals,
            Operator.not_equals: lambda field, value: not self._equals(field, value),
            Operator.contains: lambda field, value: self._text(value) in self._text(field),
            Operator.not_contains: lambda field, value: self._text(value) not in self._text(field),
            Operator.starts_with: lambda field, value: self._text(field).startswith(self._text(value)),
            Operator.ends_with: lambda field, value: self._text(field).endswith(self._text(value)),
            Operator.greater_than: lambda field, value: self._compare(field, value) > 0,
            Operator.greater_than_or_equal: lambda field, value: self._compare(field, value) >= 0,
            Operator.less_than: lambda field, value: self._compare(field, value) < 0,
            Operator.less_than_or_equal: lambda field, value: self._compare(field, value) <= 0,
            Operator.regex: self._regex,
            Operator.in_: self._member,
            Operator.not_in: lambda field, value: not self._member(field, value),
            Operator.is_empty: lambda field, value: is_empty_value(field),
            Operator.is_not_empty: lambda field, value: not is_empty_value(field),
        }

    @classmethod
    def from_settings(cls, settings: Any) -> ConditionEvaluator:
        return cls(
            case_insensitive=settings.rule_case_insensitive,
            max_depth=settings.max_condition_depth,
            max_regex_length=settings.max_regex_length,
        )

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def evaluate(self, condition: Condition, row: Mapping[str, Any]) -> bool:
        handler = self._operators.get(condition.operator)
        if handler is None:
            _log.warning("unknown_operator", extra={"operator": str(condition.operator)})
            return False
        field_value = resolve_field(row, condition.field)
        if field_value is None and condition.operator in _ORDERING_OPERATORS:
            return False
        return handler(field_value, condition.value)

    def evaluate_group(self, group: ConditionGroup, row: Mapping[str, Any], depth: int = 1) -> bool:
        if depth > self._max_depth:
            raise ConfigurationError(
                f"Condition group {group.id!r} exceeds maximum nesting depth of {self._max_depth}"
            )
        results = (
            self.evaluate_group(item, row, depth + 1)
            if isinstance(item, ConditionGroup)
            else self.evaluate(item, row)
            for item in group.conditions
        )
        if group.logic == "OR":
            return any(results)
        return all(results)

    def check_depth(self, group: ConditionGroup) -> None:
        if group.depth() > self._max_depth:
            raise ConfigurationError(
                f"Condition group {group.id!r} exceeds maximum nesting depth of {self._max_depth}"
            )

    # --- Operators ---

    def _text(self, value: Any) -> str:
        text = format_value(value)
        return text.lower() if self._case_insensitive else text

    def _equals(self, field: Any, value: Any) -> bool:
        left, right = to_number(field), to_number(value)
        if left is not None and right is not None:
            return left == right
        return self._text(field) == self._text(value)

    def _compare(self, field: Any, value: Any) -> int:
        left, right = to_number(field), to_number(value)
        if left is None or right is None:
            left_text, right_text = self._text(field), self._text(value)
            return (left_text > right_text) - (left_text < right_text)
        return (left > right) - (left < right)

    def _regex(self, field: Any, value: Any) -> bool:
        pattern = format_value(value)
        flags = re.IGNORECASE if self._case_insensitive else 0
        try:
            compiled = compile_safe_pattern(pattern, flags, self._max_regex_length)
        except UnsafePatternError as exc:
            _log.warning("regex_rejected", extra={"pattern": pattern, "reason": exc.reason})
            return False
        return compiled.search(format_value(field)) is not None

    def _member(self, field: Any, value: Any) -> bool:
        candidates = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
        for candidate in candidates:
            coerced = _coerce_like(field, candidate)
            if coerced is _MISSING:
                continue
            if isinstance(candidate, str):
                if self._text(coerced) == self._text(candidate):
                    return True
            elif coerced == candidate:
                return True
        return False


_ORDERING_OPERATORS = frozenset(
    {
        Operator.greater_than,
        Operator.greater_than_or_equal,
        Operator.less_than,
        Operator.less_than_or_equal,
    }
)
