"""CampaignPipelineService: rows in, validated campaign tree out."""

from __future__ import annotations

import time
from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError

from ..config.runtime import RuntimeSettings, get_settings
from ..domain.ads import Ad, StrategyContext
from ..domain.grouping import GroupingConfig
from ..domain.limits import PlatformLimitTable, build_limit_table, field_too_long_errors
from ..domain.pipeline import (
    PipelineAdGroup,
    PipelineCampaign,
    PipelineResult,
    PipelineStats,
    StrategyEngineConfig,
    TargetingIssue,
)
from ..domain.rules import ProcessedRow, Rule
from ..errors import ConfigurationError
from ..modules.fallback.engine import FallbackStrategyEngine
from ..modules.grouping.engine import HierarchicalGrouper
from ..modules.rules.engine import RuleEngine
from ..modules.validation.targeting import validate_targeting_config
from ..observability import log_stage


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def coerce_strategy_config(
    config: StrategyEngineConfig | Mapping[str, Any] | None,
    settings: RuntimeSettings,
) -> StrategyEngineConfig:
    if config is None:
        config = {}
    if isinstance(config, StrategyEngineConfig):
        return config
    if "strategy" not in config:
        config = {**config, "strategy": settings.default_fallback_strategy}
    try:
        return StrategyEngineConfig.model_validate(config)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid strategy config: {exc}") from exc


def _targeting_issues(processed: Sequence[ProcessedRow]) -> list[TargetingIssue]:
    """Validate the targeting each kept row collected from set_targeting actions."""
    issues: list[TargetingIssue] = []
    for index, row in enumerate(processed):
        if row.should_skip or not row.targeting:
            continue
        check = validate_targeting_config(row.targeting)
        if check.errors or check.warnings:
            issues.append(TargetingIssue(row_index=index, errors=check.errors, warnings=check.warnings))
    return issues


class CampaignPipelineService:
    """Orchestrates rules -> grouping -> length validation -> fallback."""

    def __init__(
        self,
        settings: RuntimeSettings | None = None,
        rule_engine: RuleEngine | None = None,
        grouper: HierarchicalGrouper | None = None,
        limit_table: PlatformLimitTable | None = None,
        logger: Any = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rules = rule_engine or RuleEngine.from_settings(self._settings)
        self._grouper = grouper or HierarchicalGrouper.from_settings(self._settings)
        self._limits = limit_table or build_limit_table(self._settings)
        self._logger = logger

    @property
    def limit_table(self) -> PlatformLimitTable:
        return self._limits

    def run(
        self,
        rows: Sequence[Mapping[str, Any]],
        grouping_config: GroupingConfig | Mapping[str, Any],
        rules: Iterable[Rule | Mapping[str, Any]] | None = None,
        platform: str = "reddit",
        strategy_config: StrategyEngineConfig | Mapping[str, Any] | None = None,
    ) -> PipelineResult:
        if platform not in self._limits.platforms:
            raise ConfigurationError(
                f"Unknown platform {platform!r}; expected one of {', '.join(self._limits.platforms)}"
            )
        strategy = coerce_strategy_config(strategy_config, self._settings)
        engine = FallbackStrategyEngine(
            strategy=strategy.strategy,
            fallback_ad=strategy.fallback_ad,
            truncation_config=strategy.truncation_config,
            limit_table=self._limits,
        )
        stats = PipelineStats(input_rows=len(rows))
        if self._logger:
            self._logger.info(
                "pipeline_start",
                extra={"rows": len(rows), "platform": platform, "strategy": strategy.strategy.value},
            )

        start = time.perf_counter()
        kept = list(rows)
        rule_list = list(rules or [])
        targeting_issues: list[TargetingIssue] = []
        if rule_list:
            processed = self._rules.process_dataset(rule_list, kept)
            kept = [p.modified_row for p in processed if not p.should_skip]
            stats.rows_skipped_by_rules = len(processed) - len(kept)
            targeting_issues = _targeting_issues(processed)
        stats.stage_ms["rules"] = round(_elapsed_ms(start), 2)
        log_stage("rules", stats.stage_ms["rules"], rules=len(rule_list), skipped=stats.rows_skipped_by_rules)

        start = time.perf_counter()
        grouping = self._grouper.group_rows(kept, grouping_config)
        stats.grouping = grouping.stats
        stats.stage_ms["grouping"] = round(_elapsed_ms(start), 2)
        log_stage(
            "grouping",
            stats.stage_ms["grouping"],
            campaigns=grouping.stats.total_campaigns,
            warnings=len(grouping.warnings),
        )

        start = time.perf_counter()
        result = PipelineResult(
            grouping_warnings=grouping.warnings,
            targeting_issues=targeting_issues,
            stats=stats,
        )
        for ci, grouped_campaign in enumerate(grouping.campaigns):
            campaign = PipelineCampaign(id=f"c{ci}", name=grouped_campaign.name)
            for gi, grouped_group in enumerate(grouped_campaign.ad_groups):
                ad_group = PipelineAdGroup(id=f"c{ci}-g{gi}", name=grouped_group.name)
                context = StrategyContext(campaign_id=campaign.id, ad_group_id=ad_group.id, platform=platform)
                for ai, grouped_ad in enumerate(grouped_group.ads):
                    ad = Ad(
                        id=f"{ad_group.id}-a{ai}",
                        ad_group_id=ad_group.id,
                        order_index=ai,
                        headline=grouped_ad.headline,
                        description=grouped_ad.description,
                        display_url=grouped_ad.display_url,
                        final_url=grouped_ad.final_url,
                        call_to_action=grouped_ad.call_to_action,
                    )
                    errors = field_too_long_errors(ad, platform, self._limits, entity_name=grouped_group.name)
                    outcome = engine.apply_strategy(ad, errors, context)
                    if outcome.action == "skip":
                        result.skipped_ads.append(outcome.skipped_record)
                        continue
                    if outcome.was_truncated:
                        result.truncated_count += 1
                    if outcome.used_fallback:
                        result.fallback_count += 1
                    ad_group.ads.append(outcome.ad)
                campaign.ad_groups.append(ad_group)
            result.campaigns.append(campaign)
        stats.stage_ms["fallback"] = round(_elapsed_ms(start), 2)

        stats.ads_skipped = len(result.skipped_ads)
        stats.ads_synced = sum(len(g.ads) for c in result.campaigns for g in c.ad_groups)
        stats.truncated_count = result.truncated_count
        stats.fallback_count = result.fallback_count
        log_stage(
            "fallback",
            stats.stage_ms["fallback"],
            synced=stats.ads_synced,
            skipped=stats.ads_skipped,
            truncated=stats.truncated_count,
        )
        if self._logger:
            self._logger.info("pipeline_done", extra=result.summary())
        return result
