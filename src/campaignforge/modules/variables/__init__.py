from .engine import (
    BUILTIN_FILTERS,
    ExtractedVariable,
    PatternValidation,
    PreviewResult,
    SubstitutionDetail,
    SubstitutionError,
    SubstitutionResult,
    SubstitutionWarning,
    VariableEngine,
    VariableFilter,
    extract_variables,
    format_value,
    substitute,
)
from .variations import InlineVariationGenerator, VariationResult, expand_inline, has_inline_variations

__all__ = [
    "BUILTIN_FILTERS",
    "ExtractedVariable",
    "InlineVariationGenerator",
    "PatternValidation",
    "PreviewResult",
    "SubstitutionDetail",
    "SubstitutionError",
    "SubstitutionResult",
    "SubstitutionWarning",
    "VariableEngine",
    "VariableFilter",
    "VariationResult",
    "expand_inline",
    "extract_variables",
    "format_value",
    "has_inline_variations",
    "substitute",
]
