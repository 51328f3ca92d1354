"""Generic per-row validation: required, type, length, pattern, custom checks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Literal, Mapping, Sequence
from urllib.parse import urlparse

from ..variables.engine import format_value

RowValueType = Literal["string", "number", "boolean", "url", "email", "date"]
CustomCheck = Callable[[Any, Mapping[str, Any]], "bool | str"]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class RowValidationRule:
    field: str
    required: bool = False
    type: RowValueType | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    custom: CustomCheck | None = None
    message: str | None = None


@dataclass(frozen=True)
class RowError:
    row: int
    field: str
    message: str
    value: Any = None


class RowValidationResult:
    """Result of validating a batch of rows."""

    def __init__(self, total_rows: int, errors: list[RowError] | None = None):
        self.total_rows = total_rows
        self.errors = errors or []

    @property
    def invalid_rows(self) -> int:
        return len({error.row for error in self.errors})

    @property
    def valid_rows(self) -> int:
        return self.total_rows - self.invalid_rows

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def errors_by_field(self) -> dict[str, list[RowError]]:
        grouped: dict[str, list[RowError]] = {}
        for error in self.errors:
            grouped.setdefault(error.field, []).append(error)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "valid": self.valid,
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "invalidRows": self.invalid_rows,
            "errors": [
                {"row": e.row, "field": e.field, "message": e.message, "value": e.value}
                for e in self.errors
            ],
        }


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_date(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    if not isinstance(value, str):
        return False
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def _is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "url": _is_url,
    "email": lambda v: isinstance(v, str) and _EMAIL_RE.match(v) is not None,
    "date": _is_date,
}


def _check(rule: RowValidationRule, value: Any, row: Mapping[str, Any]) -> str | None:
    if _is_blank(value):
        if rule.required:
            return rule.message or f"{rule.field} is required"
        return None
    if rule.type is not None and not _TYPE_CHECKS[rule.type](value):
        return rule.message or f"{rule.field} must be a valid {rule.type}"
    text = format_value(value)
    if rule.min_length is not None and len(text) < rule.min_length:
        return rule.message or f"{rule.field} must be at least {rule.min_length} characters"
    if rule.max_length is not None and len(text) > rule.max_length:
        return rule.message or f"{rule.field} must be at most {rule.max_length} characters"
    if rule.pattern is not None and re.search(rule.pattern, text) is None:
        return rule.message or f"{rule.field} does not match pattern {rule.pattern}"
    if rule.custom is not None:
        outcome = rule.custom(value, row)
        if isinstance(outcome, str):
            return outcome
        if not outcome:
            return rule.message or f"{rule.field} failed custom validation"
    return None


def validate_row(row: Mapping[str, Any], index: int, rules: Sequence[RowValidationRule]) -> list[RowError]:
    errors: list[RowError] = []
    for rule in rules:
        value = row.get(rule.field)
        message = _check(rule, value, row)
        if message is not None:
            errors.append(RowError(row=index, field=rule.field, message=message, value=value))
    return errors


def validate_rows(rows: Sequence[Mapping[str, Any]], rules: Sequence[RowValidationRule]) -> RowValidationResult:
    errors: list[RowError] = []
    for index, row in enumerate(rows):
        errors.extend(validate_row(row, index, rules))
    return RowValidationResult(total_rows=len(rows), errors=errors)
