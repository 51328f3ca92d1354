"""VariableEngine: `{field}` placeholder substitution with filters and fallbacks.

Pattern syntax:

- ``{name}``                   value of ``row["name"]``
- ``{name|upper ...}``         filters, optionally with ``:``-separated args
- ``{sale_price|price}``       fallback chain: first non-null value wins
- ``{category.{lang}}``        nested lookup, innermost resolved first
- ``{{`` / ``}}``              literal braces

A ``|`` segment is a filter when it names a registered filter or carries
arguments; otherwise it is a fallback variable name.

Missing values never raise: they render as ``""`` and produce a warning.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Literal, Mapping

from ...observability import get_logger

FilterFunction = Callable[..., str]

MAX_TEMPLATE_LENGTH = 50_000
MAX_VARIABLES = 100
MAX_NESTING_DEPTH = 5

_INNER_VAR_RE = re.compile(r"\{([^{}]+)\}")
_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DASH_RE = re.compile(r"-+")

_CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "INR": "₹"}
_ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}
# Filters whose single argument may itself contain ":".
_SINGLE_ARG_FILTERS = frozenset({"format", "default"})

_log = get_logger("variables")


@dataclass(frozen=True)
class VariableFilter:
    name: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractedVariable:
    """One placeholder found in a pattern."""

    name: str
    raw: str
    filters: tuple[VariableFilter, ...] = ()
    fallbacks: tuple[str, ...] = ()
    nested: bool = False

    @property
    def chain(self) -> tuple[str, ...]:
        return (self.name, *self.fallbacks)


@dataclass(frozen=True)
class SubstitutionWarning:
    variable: str
    message: str
    kind: Literal["missing", "filter"] = "missing"


@dataclass(frozen=True)
class SubstitutionError:
    variable: str
    message: str


@dataclass
class SubstitutionResult:
    text: str
    success: bool = True
    warnings: list[SubstitutionWarning] = field(default_factory=list)
    errors: list[SubstitutionError] = field(default_factory=list)


@dataclass(frozen=True)
class SubstitutionDetail:
    variable: str
    original_value: str
    transformed_value: str
    filters: tuple[str, ...] = ()


@dataclass
class PreviewResult(SubstitutionResult):
    substitutions: list[SubstitutionDetail] = field(default_factory=list)


@dataclass(frozen=True)
class PatternValidation:
    valid: bool
    missing_variables: list[str]


def format_value(value: Any) -> str:
    """Render a row value as text, independent of locale."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def _parse_number(value: str) -> float | None:
    try:
        return float(value.strip())
    except (TypeError, ValueError):
        return None


def _parse_datetime(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# --- Built-in filters ---


def _titlecase(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split(" "))


def _truncate(value: str, length: str = "", suffix: str | None = None) -> str:
    try:
        max_length = int(length)
    except ValueError:
        return value
    if len(value) <= max_length:
        return value
    return value[:max_length].rstrip() + ("..." if suffix is None else suffix)


def _currency(value: str, code: str = "USD") -> str:
    num = _parse_number(value)
    if num is None:
        return value
    code = code.upper()
    decimals = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    sign = "-" if num < 0 else ""
    amount = f"{abs(num):,.{decimals}f}"
    symbol = _CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {amount}"
    return f"{sign}{symbol}{amount}"


def _number(value: str, decimals: str | None = None) -> str:
    num = _parse_number(value)
    if num is None:
        return value
    if decimals is not None:
        try:
            places = int(decimals)
        except ValueError:
            places = -1
        if places >= 0:
            return f"{num:,.{places}f}"
    text = f"{num:,.3f}".rstrip("0").rstrip(".")
    return text


def _percent(value: str) -> str:
    num = _parse_number(value)
    if num is None:
        return value
    return f"{num * 100:.1f}%"


def _format_date(value: str, pattern: str = "YYYY-MM-DD") -> str:
    parsed = _parse_datetime(value)
    if parsed is None:
        return value
    result = pattern
    result = result.replace("YYYY", f"{parsed.year:04d}")
    result = result.replace("MM", f"{parsed.month:02d}")
    result = result.replace("DD", f"{parsed.day:02d}")
    result = result.replace("HH", f"{parsed.hour:02d}")
    result = result.replace("mm", f"{parsed.minute:02d}")
    result = result.replace("ss", f"{parsed.second:02d}")
    return result


def _slug(value: str) -> str:
    text = _SLUG_STRIP_RE.sub("", value.lower())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip()


def _replace(value: str, search: str = "", replacement: str = "") -> str:
    if not search:
        return value
    return value.replace(search, replacement)


def _default(value: str, default_value: str = "") -> str:
    return default_value if value == "" else value


BUILTIN_FILTERS: dict[str, FilterFunction] = {
    "uppercase": str.upper,
    "lowercase": str.lower,
    "capitalize": str.capitalize,
    "titlecase": _titlecase,
    "trim": str.strip,
    "truncate": _truncate,
    "currency": _currency,
    "number": _number,
    "percent": _percent,
    "format": _format_date,
    "slug": _slug,
    "replace": _replace,
    "default": _default,
}


class VariableEngine:
    """Parse patterns and substitute row values into them."""

    def __init__(
        self,
        max_template_length: int = MAX_TEMPLATE_LENGTH,
        max_variables: int = MAX_VARIABLES,
    ) -> None:
        self._max_template_length = max_template_length
        self._max_variables = max_variables
        self._filters: dict[str, FilterFunction] = dict(BUILTIN_FILTERS)

    @classmethod
    def from_settings(cls, settings: Any) -> VariableEngine:
        return cls(
            max_template_length=settings.max_template_length,
            max_variables=settings.max_template_variables,
        )

    def register_filter(self, name: str, fn: FilterFunction) -> None:
        """Register a custom filter on this engine instance."""
        self._filters[name] = fn

    def is_builtin_filter(self, name: str) -> bool:
        return name in BUILTIN_FILTERS

    def is_filter(self, name: str) -> bool:
        return name in self._filters

    # --- Parsing ---

    def parse(self, pattern: str) -> list[str | ExtractedVariable]:
        """Split a pattern into literal text and placeholder segments."""
        segments: list[str | ExtractedVariable] = []
        literal: list[str] = []
        i = 0
        n = len(pattern)
        while i < n:
            ch = pattern[i]
            if pattern.startswith("{{", i):
                literal.append("{")
                i += 2
                continue
            if pattern.startswith("}}", i):
                literal.append("}")
                i += 2
                continue
            if ch != "{":
                literal.append(ch)
                i += 1
                continue
            end = self._matching_brace(pattern, i)
            if end is None or end == i + 1:
                literal.append(ch)
                i += 1
                continue
            raw = pattern[i : end + 1]
            if literal:
                segments.append("".join(literal))
                literal = []
            segments.append(self._parse_token(raw))
            i = end + 1
        if literal:
            segments.append("".join(literal))
        return segments

    @staticmethod
    def _matching_brace(pattern: str, start: int) -> int | None:
        depth = 0
        for j in range(start, len(pattern)):
            if pattern[j] == "{":
                depth += 1
            elif pattern[j] == "}":
                depth -= 1
                if depth == 0:
                    return j
        return None

    def _parse_token(self, raw: str) -> ExtractedVariable:
        content = raw[1:-1]
        if "{" in content:
            return ExtractedVariable(name=content.strip(), raw=raw, nested=True)
        parts = [part.strip() for part in content.split("|")]
        name = parts[0]
        filters: list[VariableFilter] = []
        fallbacks: list[str] = []
        for part in parts[1:]:
            if not part:
                continue
            filter_name, *args = part.split(":")
            if args and filter_name in _SINGLE_ARG_FILTERS:
                args = [":".join(args)]
            if args or self.is_filter(filter_name):
                filters.append(VariableFilter(name=filter_name, args=tuple(args)))
            else:
                fallbacks.append(filter_name)
        return ExtractedVariable(
            name=name,
            raw=raw,
            filters=tuple(filters),
            fallbacks=tuple(fallbacks),
        )

    def extract(self, pattern: str) -> list[ExtractedVariable]:
        """Placeholders in a pattern, deduplicated by their raw text."""
        seen: set[str] = set()
        result: list[ExtractedVariable] = []
        for segment in self.parse(pattern or ""):
            if isinstance(segment, ExtractedVariable) and segment.raw not in seen:
                seen.add(segment.raw)
                result.append(segment)
        return result

    def extract_variables(self, pattern: str) -> list[str]:
        """Variable names a pattern needs, in order of first appearance.

        Fallback chains contribute every name in the chain; nested
        placeholders contribute their inner variable names.
        """
        names: list[str] = []
        for variable in self.extract(pattern):
            if variable.nested:
                candidates: tuple[str, ...] = tuple(
                    m.strip() for m in _INNER_VAR_RE.findall(variable.name)
                )
            else:
                candidates = variable.chain
            for name in candidates:
                if name and name not in names:
                    names.append(name)
        return names

    # --- Substitution ---

    def substitute(self, pattern: str, row: Mapping[str, Any]) -> SubstitutionResult:
        """Replace every placeholder in ``pattern`` with values from ``row``."""
        return self._render(pattern, row, details=None)

    def preview(self, pattern: str, row: Mapping[str, Any]) -> PreviewResult:
        """Substitute and report how each placeholder was resolved."""
        details: list[SubstitutionDetail] = []
        result = self._render(pattern, row, details=details)
        return PreviewResult(
            text=result.text,
            success=result.success,
            warnings=result.warnings,
            errors=result.errors,
            substitutions=details,
        )

    def validate(self, pattern: str, row: Mapping[str, Any]) -> PatternValidation:
        missing: list[str] = []
        for variable in self.extract(pattern):
            if variable.nested:
                warnings: list[SubstitutionWarning] = []
                self._resolve_nested(variable, row, warnings)
                missing.extend(w.variable for w in warnings if w.variable not in missing)
                continue
            if self._lookup_chain(variable, row) is None and variable.name not in missing:
                missing.append(variable.name)
        return PatternValidation(valid=not missing, missing_variables=missing)

    def _render(
        self,
        pattern: str,
        row: Mapping[str, Any],
        details: list[SubstitutionDetail] | None,
    ) -> SubstitutionResult:
        if not pattern:
            return SubstitutionResult(text="")
        if len(pattern) > self._max_template_length:
            return SubstitutionResult(
                text=pattern,
                success=False,
                errors=[
                    SubstitutionError(
                        variable="_template",
                        message=f"Template exceeds maximum length of {self._max_template_length} characters",
                    )
                ],
            )
        segments = self.parse(pattern)
        distinct = {s.raw for s in segments if isinstance(s, ExtractedVariable)}
        if len(distinct) > self._max_variables:
            return SubstitutionResult(
                text=pattern,
                success=False,
                errors=[
                    SubstitutionError(
                        variable="_template",
                        message=f"Template exceeds maximum variable count of {self._max_variables}",
                    )
                ],
            )

        warnings: list[SubstitutionWarning] = []
        resolved: dict[str, str] = {}
        out: list[str] = []
        for segment in segments:
            if isinstance(segment, str):
                out.append(segment)
                continue
            if segment.raw not in resolved:
                resolved[segment.raw] = self._resolve(segment, row, warnings, details)
            out.append(resolved[segment.raw])
        return SubstitutionResult(text="".join(out), warnings=warnings)

    def _lookup_chain(self, variable: ExtractedVariable, row: Mapping[str, Any]) -> Any:
        for name in variable.chain:
            value = row.get(name)
            if value is not None:
                return value
        return None

    def _resolve(
        self,
        variable: ExtractedVariable,
        row: Mapping[str, Any],
        warnings: list[SubstitutionWarning],
        details: list[SubstitutionDetail] | None,
    ) -> str:
        if variable.nested:
            return self._resolve_nested(variable, row, warnings)

        value = self._lookup_chain(variable, row)
        if value is None:
            if variable.fallbacks:
                chain = ", ".join(f'"{name}"' for name in variable.fallbacks)
                message = f'Variable "{variable.name}" is missing and fallback {chain} is also missing'
            else:
                message = f'Variable "{variable.name}" is missing from data'
            warnings.append(SubstitutionWarning(variable=variable.name, message=message))
        text = format_value(value)
        original = format_value(row.get(variable.name))
        for var_filter in variable.filters:
            text = self._apply_filter(text, var_filter, warnings)
        if details is not None:
            details.append(
                SubstitutionDetail(
                    variable=variable.name,
                    original_value=original,
                    transformed_value=text,
                    filters=tuple(f.name for f in variable.filters),
                )
            )
        return text

    def _resolve_nested(
        self,
        variable: ExtractedVariable,
        row: Mapping[str, Any],
        warnings: list[SubstitutionWarning],
    ) -> str:
        content = variable.name
        iterations = 0
        while "{" in content and iterations < MAX_NESTING_DEPTH:
            match = _INNER_VAR_RE.search(content)
            if match is None:
                break
            inner = match.group(1).strip()
            value = row.get(inner)
            if value is None:
                warnings.append(
                    SubstitutionWarning(variable=inner, message=f'Variable "{inner}" is missing from data')
                )
                return ""
            content = content[: match.start()] + format_value(value) + content[match.end() :]
            iterations += 1
        value = row.get(content)
        if value is None:
            warnings.append(
                SubstitutionWarning(variable=content, message=f'Variable "{content}" is missing from data')
            )
            return ""
        return format_value(value)

    def _apply_filter(
        self,
        value: str,
        var_filter: VariableFilter,
        warnings: list[SubstitutionWarning],
    ) -> str:
        fn = self._filters.get(var_filter.name)
        if fn is None:
            warnings.append(
                SubstitutionWarning(
                    variable=f"filter:{var_filter.name}",
                    message=f'Unknown filter "{var_filter.name}" - value returned unchanged',
                    kind="filter",
                )
            )
            return value
        try:
            return fn(value, *var_filter.args)
        except Exception as exc:  # custom filters are caller code
            _log.debug("filter_failed", extra={"filter": var_filter.name, "error": str(exc)})
            warnings.append(
                SubstitutionWarning(
                    variable=f"filter:{var_filter.name}",
                    message=f'Filter "{var_filter.name}" failed: {exc} - original value returned',
                    kind="filter",
                )
            )
            return value


def substitute(pattern: str, row: Mapping[str, Any]) -> SubstitutionResult:
    """Substitute with a default engine."""
    return VariableEngine().substitute(pattern, row)


def extract_variables(pattern: str) -> list[str]:
    """Required variable names with a default engine."""
    return VariableEngine().extract_variables(pattern)
