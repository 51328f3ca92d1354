"""Rejects regex shapes prone to catastrophic backtracking."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ...errors import UnsafePatternError

MAX_PATTERN_LENGTH = 100

# (a+)+  (a*)*  (a+)?
_NESTED_QUANTIFIERS = re.compile(r"\([^)]*[+*][^)]*\)[+*?]")
# (a|a)+  (a|ab)*
_OVERLAPPING_ALTERNATION = re.compile(r"\([^|)]*\|[^|)]*\)[+*]")
# (a?)+
_OPTIONAL_REPETITION = re.compile(r"\([^)]*\?\)[+*]")
# a++  a**
_QUANTIFIER_CHAIN = re.compile(r"[+*]{2,}")

_DANGEROUS_SHAPES: tuple[tuple[re.Pattern[str], str], ...] = (
    (_NESTED_QUANTIFIERS, "nested quantifiers"),
    (_OVERLAPPING_ALTERNATION, "quantified alternation"),
    (_OPTIONAL_REPETITION, "repeated optional group"),
    (_QUANTIFIER_CHAIN, "chained quantifiers"),
)


@dataclass(frozen=True)
class RegexCheck:
    safe: bool
    reason: str | None = None


def check_regex_safety(pattern: str, max_length: int = MAX_PATTERN_LENGTH) -> RegexCheck:
    if len(pattern) > max_length:
        return RegexCheck(False, f"pattern longer than {max_length} characters")
    for shape, label in _DANGEROUS_SHAPES:
        if shape.search(pattern):
            return RegexCheck(False, f"pattern contains {label}, which can cause catastrophic backtracking")
    try:
        re.compile(pattern)
    except re.error as exc:
        return RegexCheck(False, f"invalid regex: {exc}")
    return RegexCheck(True)


def compile_safe_pattern(
    pattern: str,
    flags: int = 0,
    max_length: int = MAX_PATTERN_LENGTH,
) -> re.Pattern[str]:
    """Compile ``pattern`` or raise UnsafePatternError naming it."""
    check = check_regex_safety(pattern, max_length)
    if not check.safe:
        raise UnsafePatternError(pattern, check.reason or "unsafe")
    return re.compile(pattern, flags)
