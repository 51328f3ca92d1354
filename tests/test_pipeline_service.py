"""CampaignPipelineService tests: rules, grouping, and fallback end to end."""

import logging

import pytest

from campaignforge.config import RuntimeSettings
from campaignforge.domain.pipeline import StrategyEngineConfig
from campaignforge.errors import ConfigurationError
from campaignforge.services.pipeline_service import CampaignPipelineService

_ROWS = [
    {"brand": "Nike", "product": "Air Max", "price": 120, "status": "active"},
    {"brand": "Nike", "product": "Pegasus", "price": 100, "status": "discontinued"},
    {"brand": "Adidas", "product": "Ultraboost", "price": 180, "status": "active"},
]

_CONFIG = {
    "campaignNamePattern": "{brand}-performance",
    "adGroupNamePattern": "{product}",
    "adMapping": {
        "headline": "{brand} {product}",
        "description": "Only ${price}",
        "finalUrl": "https://shop.test/{product|slug}",
    },
}

_SKIP_DISCONTINUED = {
    "name": "Drop discontinued",
    "conditionGroup": {
        "logic": "AND",
        "conditions": [{"field": "status", "operator": "equals", "value": "discontinued"}],
    },
    "actions": [{"type": "skip"}],
}

_LONG_CONFIG = {
    "campaignNamePattern": "{brand}",
    "adGroupNamePattern": "{product}",
    "adMapping": {
        "headline": "{brand} {product} running shoes built for everyday miles",
        "description": "Fast",
    },
}


def _make_service(**settings_overrides) -> CampaignPipelineService:
    return CampaignPipelineService(settings=RuntimeSettings(**settings_overrides))


class TestPipelineRun:
    """Happy path over the brand/product scenario."""

    def test_builds_tree_with_ids(self):
        result = _make_service().run(_ROWS, _CONFIG)
        assert [c.name for c in result.campaigns] == ["Nike-performance", "Adidas-performance"]
        nike = result.campaigns[0]
        assert nike.id == "c0"
        assert [g.id for g in nike.ad_groups] == ["c0-g0", "c0-g1"]
        ad = nike.ad_groups[0].ads[0]
        assert ad.id == "c0-g0-a0"
        assert ad.ad_group_id == "c0-g0"
        assert ad.headline == "Nike Air Max"
        assert ad.final_url == "https://shop.test/air-max"
        assert result.stats.input_rows == 3
        assert result.stats.ads_synced == 3
        assert set(result.stats.stage_ms) == {"rules", "grouping", "fallback"}

    def test_rules_skip_rows(self):
        result = _make_service().run(_ROWS, _CONFIG, rules=[_SKIP_DISCONTINUED])
        assert result.stats.rows_skipped_by_rules == 1
        assert [g.name for g in result.campaigns[0].ad_groups] == ["Air Max"]
        assert result.stats.grouping.total_rows == 2

    def test_unknown_platform(self):
        with pytest.raises(ConfigurationError):
            _make_service().run(_ROWS, _CONFIG, platform="myspace")

    def test_summary(self):
        summary = _make_service().run(_ROWS, _CONFIG).summary()
        assert summary["campaigns"] == 2
        assert summary["ads"] == 3
        assert summary["skipped"] == 0

    def test_targeting_issues_reported_per_row(self):
        narrow = {
            "name": "Teen targeting",
            "conditionGroup": {
                "logic": "AND",
                "conditions": [{"field": "brand", "operator": "equals", "value": "Adidas"}],
            },
            "actions": [{"type": "set_targeting", "targeting": {"demographics": {"ageMin": 10, "ageMax": 12}}}],
        }
        result = _make_service().run(_ROWS, _CONFIG, rules=[narrow])
        assert result.stats.ads_synced == 3
        assert len(result.targeting_issues) == 1
        issue = result.targeting_issues[0]
        assert issue.row_index == 2
        assert issue.errors == ["Minimum age must be at least 13"]
        assert issue.warnings[0].startswith("Age range is very narrow (2 years)")
        assert result.summary()["targeting_issues"] == 1

    def test_valid_targeting_has_no_issues(self):
        broad = {
            "name": "Adults",
            "conditionGroup": {"logic": "AND", "conditions": []},
            "actions": [{"type": "set_targeting", "targeting": {"demographics": {"ageMin": 18, "ageMax": 65}}}],
        }
        assert _make_service().run(_ROWS, _CONFIG, rules=[broad]).targeting_issues == []

    def test_service_logger(self):
        logger = logging.getLogger("test.pipeline")
        result = CampaignPipelineService(settings=RuntimeSettings(), logger=logger).run(_ROWS, _CONFIG)
        assert result.stats.ads_synced == 3


class TestPipelineStrategies:
    """Over-long Google headlines resolved by each strategy."""

    def test_skip(self):
        result = _make_service().run(_ROWS, _LONG_CONFIG, platform="google")
        assert result.stats.ads_synced == 0
        assert len(result.skipped_ads) == 3
        assert result.skipped_ads[0].fields == ["headline"]
        assert result.skipped_ads[0].campaign_id == "c0"
        assert result.campaigns[0].ad_groups[0].ads == []

    def test_truncate(self):
        result = _make_service().run(_ROWS, _LONG_CONFIG, platform="google", strategy_config={"strategy": "truncate"})
        assert result.truncated_count == 3
        assert result.skipped_ads == []
        for campaign in result.campaigns:
            for group in campaign.ad_groups:
                for ad in group.ads:
                    assert len(ad.headline) <= 30
                    assert ad.headline.endswith("...")

    def test_use_fallback(self):
        config = {"strategy": "use_fallback", "fallbackAd": {"headline": "Shop shoes", "description": "Deals"}}
        result = _make_service().run(_ROWS, _LONG_CONFIG, platform="google", strategy_config=config)
        assert result.fallback_count == 3
        assert {ad.headline for c in result.campaigns for g in c.ad_groups for ad in g.ads} == {"Shop shoes"}

    def test_use_fallback_without_ad(self):
        with pytest.raises(ConfigurationError):
            _make_service().run(_ROWS, _LONG_CONFIG, strategy_config={"strategy": "use_fallback"})

    def test_settings_default_strategy(self):
        result = _make_service(default_fallback_strategy="truncate").run(_ROWS, _LONG_CONFIG, platform="google")
        assert result.truncated_count == 3

    def test_partial_config_uses_settings_strategy(self):
        config = {"truncationConfig": {"preserveWordBoundary": False}}
        result = _make_service(default_fallback_strategy="truncate").run(
            _ROWS, _LONG_CONFIG, platform="google", strategy_config=config
        )
        assert result.campaigns[0].ad_groups[0].ads[0].headline == "Nike Air Max running shoes ..."

    def test_model_config(self):
        config = StrategyEngineConfig(strategy="truncate")
        result = _make_service().run(_ROWS, _LONG_CONFIG, platform="google", strategy_config=config)
        assert result.truncated_count == 3

    def test_reddit_fits(self):
        result = _make_service().run(_ROWS, _LONG_CONFIG)
        assert result.stats.ads_synced == 3
