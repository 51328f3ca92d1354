"""Grouping configuration and the Campaign -> AdGroup -> Ad result tree."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from .base import DomainModel


class AdFieldMapping(DomainModel):
    """Patterns used to build each ad field from a row."""

    headline: str = Field(..., description="Headline pattern (required, may be empty)")
    description: str = Field(..., description="Description pattern (required, may be empty)")
    display_url: str | None = Field(default=None, description="Display URL pattern")
    final_url: str | None = Field(default=None, description="Final URL pattern")
    call_to_action: str | None = Field(default=None, description="Call-to-action pattern")


class GroupingConfig(DomainModel):
    """How flat rows are folded into campaigns, ad groups, and ads."""

    campaign_name_pattern: str = Field(..., description="Pattern for campaign names, e.g. '{brand}-performance'")
    ad_group_name_pattern: str = Field(..., description="Pattern for ad group names, e.g. '{product}'")
    ad_mapping: AdFieldMapping = Field(..., description="Ad field patterns")


class GroupedAd(DomainModel):
    """One ad built from exactly one source row."""

    headline: str
    description: str
    display_url: str | None = None
    final_url: str | None = None
    call_to_action: str | None = None
    source_row: dict[str, Any] = Field(default_factory=dict)
    row_index: int = Field(default=0, ge=0, description="Index of the source row in the input")


class GroupedAdGroup(DomainModel):
    name: str
    grouping_key: str
    source_rows: list[dict[str, Any]] = Field(default_factory=list)
    ads: list[GroupedAd] = Field(default_factory=list)


class GroupedCampaign(DomainModel):
    name: str
    grouping_key: str
    source_rows: list[dict[str, Any]] = Field(default_factory=list)
    ad_groups: list[GroupedAdGroup] = Field(default_factory=list)

    def iter_ads(self):
        for ad_group in self.ad_groups:
            yield from ad_group.ads


class GroupingWarning(DomainModel):
    """Non-fatal data-quality issue found while grouping."""

    type: Literal["missing_variable", "empty_value", "duplicate_ad"]
    message: str
    row_index: int | None = None
    variable_name: str | None = None


class GroupingStats(DomainModel):
    total_rows: int = 0
    total_campaigns: int = 0
    total_ad_groups: int = 0
    total_ads: int = 0
    rows_with_missing_variables: int = 0


class GroupingResult(DomainModel):
    campaigns: list[GroupedCampaign] = Field(default_factory=list)
    stats: GroupingStats = Field(default_factory=GroupingStats)
    warnings: list[GroupingWarning] = Field(default_factory=list)

    def flatten_rows(self) -> list[dict[str, Any]]:
        """Source rows in campaign/ad-group/ad order."""
        rows: list[dict[str, Any]] = []
        for campaign in self.campaigns:
            for ad in campaign.iter_ads():
                rows.append(ad.source_row)
        return rows
