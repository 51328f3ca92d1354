"""Exceptions raised for caller contract violations.

Data-quality issues (missing variables, over-long fields, unmatched rules)
are never raised; they are returned as warnings or structured results.
"""

from __future__ import annotations


class CampaignForgeError(Exception):
    """Base class for all campaignforge errors."""


class ConfigurationError(CampaignForgeError, ValueError):
    """Malformed input configuration or arguments."""


class UnsafePatternError(CampaignForgeError, ValueError):
    """Regex pattern rejected by the catastrophic-backtracking check."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Regex pattern {pattern!r} rejected: {reason}")


class GroupKeyError(CampaignForgeError):
    """A self-generated group key could not be decoded."""
