"""Reddit ad content validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlparse

from ...domain.ads import Ad, SyncValidationError, ValidationErrorCode
from ...domain.limits import PlatformLimitTable, build_limit_table
from ..variables.engine import VariableEngine

PLATFORM = "reddit"

REDDIT_CTAS: tuple[str, ...] = (
    "Shop Now",
    "Learn More",
    "Sign Up",
    "Download",
    "Install",
    "Get Quote",
    "Contact Us",
    "Book Now",
    "Apply Now",
    "Watch More",
)

_TEMPLATE_FIELDS = ("headline", "description", "display_url", "final_url", "call_to_action")


@dataclass(frozen=True)
class AdFieldError:
    field: str
    message: str
    code: str
    value: str | None = None
    limit: int | None = None


@dataclass(frozen=True)
class AdFieldWarning:
    field: str
    message: str


@dataclass
class AdValidationResult:
    valid: bool = True
    errors: list[AdFieldError] = field(default_factory=list)
    warnings: list[AdFieldWarning] = field(default_factory=list)

    def add_error(self, error: AdFieldError) -> AdValidationResult:
        self.errors.append(error)
        self.valid = False
        return self


class RedditAdValidator:
    """Checks ad content against Reddit's field rules.

    Length limits come from the injected limit table so the validator and
    the fallback engine agree on every Reddit limit.
    """

    def __init__(
        self,
        limit_table: PlatformLimitTable | None = None,
        variable_engine: VariableEngine | None = None,
    ) -> None:
        self._limits = limit_table or PlatformLimitTable()
        self._variables = variable_engine or VariableEngine()

    @classmethod
    def from_settings(cls, settings: Any) -> RedditAdValidator:
        """Validator using the settings-driven limit table and template limits."""
        return cls(build_limit_table(settings), VariableEngine.from_settings(settings))

    def limit(self, field_name: str) -> int | None:
        return self._limits.limit_for(PLATFORM, field_name)

    def validate(self, ad: Mapping[str, Any]) -> AdValidationResult:
        result = AdValidationResult()
        headline = ad.get("headline")
        if not headline or not str(headline).strip():
            result.add_error(AdFieldError("headline", "Headline is required", "REQUIRED"))
        else:
            self._check_length(result, "headline", "Headline", str(headline))

        for name, label in (("description", "Description"), ("display_url", "Display URL")):
            value = ad.get(name)
            if value:
                self._check_length(result, name, label, str(value))

        cta = ad.get("call_to_action")
        if cta and cta not in REDDIT_CTAS:
            result.add_error(
                AdFieldError(
                    "call_to_action",
                    f"Call to action must be one of: {', '.join(REDDIT_CTAS)}",
                    "INVALID_VALUE",
                    value=str(cta),
                )
            )

        final_url = ad.get("final_url")
        if final_url:
            parsed = urlparse(str(final_url))
            if not parsed.scheme or not parsed.netloc:
                result.add_error(AdFieldError("final_url", "Final URL must be a valid URL", "INVALID_FORMAT", str(final_url)))
            elif parsed.scheme != "https":
                result.add_error(AdFieldError("final_url", "Final URL must use HTTPS", "INVALID_FORMAT", str(final_url)))
        return result

    def validate_with_variables(
        self,
        template: Mapping[str, Any],
        sample_row: Mapping[str, Any],
    ) -> AdValidationResult:
        """Substitute sample data into each template field, then validate."""
        rendered: dict[str, Any] = {}
        warnings: list[AdFieldWarning] = []
        for name in _TEMPLATE_FIELDS:
            pattern = template.get(name)
            if pattern is None:
                continue
            substitution = self._variables.substitute(str(pattern), sample_row)
            rendered[name] = substitution.text
            warnings.extend(AdFieldWarning(name, w.message) for w in substitution.warnings)
        result = self.validate(rendered)
        result.warnings.extend(warnings)
        return result

    def extract_required_variables(self, template: Mapping[str, Any]) -> list[str]:
        names: list[str] = []
        for name in _TEMPLATE_FIELDS:
            pattern = template.get(name)
            if pattern is None:
                continue
            for variable in self._variables.extract_variables(str(pattern)):
                if variable not in names:
                    names.append(variable)
        return names

    def get_character_count(self, ad: Mapping[str, Any]) -> dict[str, dict[str, int | None]]:
        counts: dict[str, dict[str, int | None]] = {}
        for name in ("headline", "description", "display_url"):
            value = ad.get(name)
            counts[name] = {"count": len(str(value)) if value else 0, "limit": self.limit(name)}
        return counts

    def to_sync_errors(self, ad: Ad, entity_name: str = "") -> list[SyncValidationError]:
        """Validator findings as sync-level errors the fallback engine understands."""
        codes = {
            "REQUIRED": ValidationErrorCode.REQUIRED_FIELD,
            "MAX_LENGTH": ValidationErrorCode.FIELD_TOO_LONG,
            "INVALID_VALUE": ValidationErrorCode.INVALID_ENUM_VALUE,
            "INVALID_FORMAT": ValidationErrorCode.INVALID_URL,
        }
        return [
            SyncValidationError(
                entity_type="ad",
                entity_id=ad.id,
                entity_name=entity_name,
                field=error.field,
                message=error.message,
                code=codes[error.code],
                value=error.value,
                expected=str(error.limit) if error.limit is not None else None,
            )
            for error in self.validate(ad.content_snapshot()).errors
        ]

    def _check_length(self, result: AdValidationResult, name: str, label: str, value: str) -> None:
        limit = self.limit(name)
        if limit is not None and len(value) > limit:
            result.add_error(
                AdFieldError(
                    name,
                    f"{label} must be {limit} characters or less (currently {len(value)})",
                    "MAX_LENGTH",
                    value=value,
                    limit=limit,
                )
            )
