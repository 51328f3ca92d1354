"""Domain layer for campaignforge."""

from .ads import (
    CONTENT_FIELDS,
    Ad,
    FallbackAdDefinition,
    SkippedAdRecord,
    StrategyContext,
    StrategyResult,
    SyncValidationError,
    TruncationConfig,
    ValidationErrorCode,
)
from .grouping import (
    AdFieldMapping,
    GroupedAd,
    GroupedAdGroup,
    GroupedCampaign,
    GroupingConfig,
    GroupingResult,
    GroupingStats,
    GroupingWarning,
)
from .limits import (
    PlatformLimitTable,
    build_limit_table,
    check_all_field_lengths,
    check_field_length,
    field_too_long_errors,
    truncate_text,
    truncate_to_word_boundary,
)
from .pipeline import (
    PipelineAdGroup,
    PipelineCampaign,
    PipelineResult,
    PipelineStats,
    StrategyEngineConfig,
    TargetingIssue,
)
from .rules import (
    Action,
    AddTagAction,
    AddToGroupAction,
    Condition,
    ConditionGroup,
    ModifyFieldAction,
    Operator,
    ProcessedRow,
    RemoveFromGroupAction,
    Rule,
    SetFieldAction,
    SetTargetingAction,
    SkipAction,
)
from .transforms import (
    AggregationConfig,
    AggregationFunction,
    AggregationOptions,
    TransformConfig,
    TransformResult,
    TransformWarning,
)

__all__ = [
    "CONTENT_FIELDS",
    "Action",
    "Ad",
    "AdFieldMapping",
    "AddTagAction",
    "AddToGroupAction",
    "AggregationConfig",
    "AggregationFunction",
    "AggregationOptions",
    "Condition",
    "ConditionGroup",
    "FallbackAdDefinition",
    "GroupedAd",
    "GroupedAdGroup",
    "GroupedCampaign",
    "GroupingConfig",
    "GroupingResult",
    "GroupingStats",
    "GroupingWarning",
    "ModifyFieldAction",
    "Operator",
    "PlatformLimitTable",
    "PipelineAdGroup",
    "PipelineCampaign",
    "PipelineResult",
    "PipelineStats",
    "ProcessedRow",
    "RemoveFromGroupAction",
    "Rule",
    "SetFieldAction",
    "SetTargetingAction",
    "SkipAction",
    "SkippedAdRecord",
    "StrategyContext",
    "StrategyEngineConfig",
    "StrategyResult",
    "TargetingIssue",
    "SyncValidationError",
    "TransformConfig",
    "TransformResult",
    "TransformWarning",
    "TruncationConfig",
    "ValidationErrorCode",
    "build_limit_table",
    "check_all_field_lengths",
    "check_field_length",
    "field_too_long_errors",
    "truncate_text",
    "truncate_to_word_boundary",
]
