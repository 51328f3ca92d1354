"""Pipeline configuration and output models."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from ..config.runtime import FallbackStrategyName
from .ads import Ad, FallbackAdDefinition, SkippedAdRecord, TruncationConfig
from .base import DomainModel
from .grouping import GroupingStats, GroupingWarning


class StrategyEngineConfig(DomainModel):
    """Fallback strategy selection plus its strategy-specific settings."""

    strategy: FallbackStrategyName = FallbackStrategyName.skip
    fallback_ad: FallbackAdDefinition | None = None
    truncation_config: TruncationConfig = Field(default_factory=TruncationConfig)

    @model_validator(mode="after")
    def _fallback_ad_present(self) -> StrategyEngineConfig:
        if self.strategy is FallbackStrategyName.use_fallback and self.fallback_ad is None:
            raise ValueError("fallback_ad is required when strategy is 'use_fallback'")
        return self


class TargetingIssue(DomainModel):
    """Targeting problems found on one input row after rules ran."""

    row_index: int
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PipelineAdGroup(DomainModel):
    id: str
    name: str
    ads: list[Ad] = Field(default_factory=list)


class PipelineCampaign(DomainModel):
    id: str
    name: str
    ad_groups: list[PipelineAdGroup] = Field(default_factory=list)


class PipelineStats(DomainModel):
    input_rows: int = 0
    rows_skipped_by_rules: int = 0
    grouping: GroupingStats = Field(default_factory=GroupingStats)
    ads_synced: int = 0
    ads_skipped: int = 0
    truncated_count: int = 0
    fallback_count: int = 0
    stage_ms: dict[str, float] = Field(default_factory=dict)


class PipelineResult(DomainModel):
    campaigns: list[PipelineCampaign] = Field(default_factory=list)
    skipped_ads: list[SkippedAdRecord] = Field(default_factory=list)
    truncated_count: int = 0
    fallback_count: int = 0
    grouping_warnings: list[GroupingWarning] = Field(default_factory=list)
    targeting_issues: list[TargetingIssue] = Field(default_factory=list)
    stats: PipelineStats = Field(default_factory=PipelineStats)

    def summary(self) -> dict[str, Any]:
        return {
            "campaigns": len(self.campaigns),
            "ads": self.stats.ads_synced,
            "skipped": len(self.skipped_ads),
            "truncated": self.truncated_count,
            "fallback": self.fallback_count,
            "warnings": len(self.grouping_warnings),
            "targeting_issues": len(self.targeting_issues),
        }
