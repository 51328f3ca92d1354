"""Inline `[[a|b]]` variation expansion for ad templates."""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .engine import SubstitutionWarning, VariableEngine

_BLOCK_RE = re.compile(r"\[\[([^\[\]]+)\]\]")

# Fields that may carry inline variation blocks.
VARIATION_FIELDS: tuple[str, ...] = ("headline", "description", "call_to_action")


@dataclass
class VariationResult:
    variations: list[dict[str, str]] = field(default_factory=list)
    total_possible_variations: int = 0
    duplicates_removed: int = 0
    was_limited: bool = False
    warnings: list[SubstitutionWarning] = field(default_factory=list)


def has_inline_variations(text: str | None) -> bool:
    return bool(text) and _BLOCK_RE.search(text) is not None


def expand_inline(text: str) -> list[str]:
    """Every combination of the `[[...]]` blocks in ``text``, in block order."""
    blocks = list(_BLOCK_RE.finditer(text))
    if not blocks:
        return [text]
    options_per_block = []
    for block in blocks:
        options = [opt.strip() for opt in block.group(1).split("|")]
        options_per_block.append([opt for opt in options if opt] or [""])
    expansions: list[str] = []
    for choice in itertools.product(*options_per_block):
        parts: list[str] = []
        last = 0
        for block, option in zip(blocks, choice):
            parts.append(text[last : block.start()])
            parts.append(option)
            last = block.end()
        parts.append(text[last:])
        expansions.append("".join(parts))
    return expansions


def count_variations(text: str | None) -> int:
    if not text:
        return 1
    total = 1
    for block in _BLOCK_RE.finditer(text):
        total *= max(1, len([opt for opt in block.group(1).split("|") if opt.strip()]))
    return total


class InlineVariationGenerator:
    """Expand a template's inline blocks into concrete ad variations."""

    def __init__(self, variable_engine: VariableEngine | None = None) -> None:
        self._variables = variable_engine or VariableEngine()

    def generate(
        self,
        template: Mapping[str, Any],
        row: Mapping[str, Any],
        max_variations: int | None = None,
        deduplicate_by: Iterable[str] | None = None,
    ) -> VariationResult:
        result = VariationResult()
        rendered: dict[str, str] = {}
        for name, pattern in template.items():
            if pattern is None:
                continue
            substitution = self._variables.substitute(str(pattern), row)
            result.warnings.extend(substitution.warnings)
            rendered[name] = substitution.text

        expanded_fields = [name for name in VARIATION_FIELDS if name in rendered]
        expansions = [expand_inline(rendered[name]) for name in expanded_fields]
        total = 1
        for options in expansions:
            total *= len(options)
        result.total_possible_variations = total

        dedup_fields = list(deduplicate_by) if deduplicate_by else list(rendered)
        seen: set[tuple[str | None, ...]] = set()
        for combo in itertools.product(*expansions):
            if max_variations is not None and len(result.variations) >= max_variations:
                result.was_limited = True
                break
            variation = dict(rendered)
            variation.update(zip(expanded_fields, combo))
            key = tuple(variation.get(name) for name in dedup_fields)
            if key in seen:
                result.duplicates_removed += 1
                continue
            seen.add(key)
            result.variations.append(variation)
        return result
