from .reddit import REDDIT_CTAS, AdValidationResult, RedditAdValidator
from .rows import RowError, RowValidationResult, RowValidationRule, validate_row, validate_rows
from .targeting import (
    TargetingValidationResult,
    restriction_score,
    validate_audience_target,
    validate_audience_targets,
    validate_demographic_target,
    validate_device_target,
    validate_location_target,
    validate_location_targets,
    validate_placement_target,
    validate_targeting_config,
)

__all__ = [
    "REDDIT_CTAS",
    "AdValidationResult",
    "RedditAdValidator",
    "RowError",
    "RowValidationResult",
    "RowValidationRule",
    "TargetingValidationResult",
    "restriction_score",
    "validate_audience_target",
    "validate_audience_targets",
    "validate_demographic_target",
    "validate_device_target",
    "validate_location_target",
    "validate_location_targets",
    "validate_placement_target",
    "validate_row",
    "validate_rows",
    "validate_targeting_config",
]
