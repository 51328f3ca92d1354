"""Targeting validation: locations, demographics, devices, audiences, placements.

Targeting arrives as plain mappings (rule ``set_targeting`` payloads or
JSON config), with keys in either snake_case or camelCase. Unknown enum
values are reported as errors instead of being rejected up front.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence
from urllib.parse import urlparse

from pydantic.alias_generators import to_camel

LOCATION_TYPES = ("country", "region", "city", "postal", "radius")
GENDERS = ("male", "female", "other")
DEVICE_TYPES = ("desktop", "mobile", "tablet")
OPERATING_SYSTEMS = ("windows", "macos", "linux", "ios", "android", "chrome_os")
BROWSERS = ("chrome", "firefox", "safari", "edge", "opera")
AUDIENCE_TYPES = ("custom", "lookalike", "saved", "retargeting")

MIN_AGE = 13
MAX_AGE = 120
NARROW_AGE_RANGE = 5
MAX_RADIUS_KM = 500
SMALL_AUDIENCE = 1000
NARROW_TARGETING_SCORE = 5

_LANGUAGE_RE = re.compile(r"^[a-z]{2}$", re.IGNORECASE)


class TargetingValidationResult:
    """Errors block a targeting config; warnings only flag reduced reach."""

    def __init__(self, errors: list[str] | None = None, warnings: list[str] | None = None):
        self.errors = errors or []
        self.warnings = warnings or []

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, error: str) -> TargetingValidationResult:
        self.errors.append(error)
        return self

    def add_warning(self, warning: str) -> TargetingValidationResult:
        self.warnings.append(warning)
        return self

    def merge(self, other: TargetingValidationResult, prefix: str = "") -> TargetingValidationResult:
        self.errors.extend(prefix + e for e in other.errors)
        self.warnings.extend(prefix + w for w in other.warnings)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {"valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def _get(target: Mapping[str, Any], name: str) -> Any:
    if name in target:
        return target[name]
    return target.get(to_camel(name))


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _optional_number(target: Mapping[str, Any], name: str) -> float | None:
    raw = _get(target, name)
    return None if raw is None else _number(raw)


def _check_members(
    result: TargetingValidationResult,
    values: Sequence[Any] | None,
    allowed: Sequence[str],
    label: str,
) -> None:
    for value in values or ():
        if value not in allowed:
            result.add_error(f"Invalid {label}: {value}. Must be one of: {', '.join(allowed)}")


# --- Locations ---


def _check_coordinates(result: TargetingValidationResult, value: str) -> None:
    coords = [part.strip() for part in value.split(",")]
    lat = _number(coords[0]) if len(coords) == 2 else None
    lng = _number(coords[1]) if len(coords) == 2 else None
    if lat is None or lng is None:
        result.add_error("Radius targeting requires valid coordinates in format 'lat,lng'")
        return
    if not -90 <= lat <= 90:
        result.add_error("Latitude must be between -90 and 90")
    if not -180 <= lng <= 180:
        result.add_error("Longitude must be between -180 and 180")


def validate_location_target(target: Mapping[str, Any]) -> TargetingValidationResult:
    result = TargetingValidationResult()
    location_type = _get(target, "type")
    value = _get(target, "value")
    if location_type not in LOCATION_TYPES:
        result.add_error(f"Invalid location type: {location_type}. Must be one of: {', '.join(LOCATION_TYPES)}")
    if _blank(value):
        result.add_error("Location value is required")
    if _blank(_get(target, "name")):
        result.add_error("Location name is required")

    if location_type == "radius":
        radius = _get(target, "radius")
        if radius is None:
            result.add_error("Radius is required for radius targeting")
        else:
            km = _number(radius)
            if km is None or km <= 0:
                result.add_error("Radius must be a positive number")
            elif km > MAX_RADIUS_KM:
                result.add_error(f"Radius cannot exceed {MAX_RADIUS_KM} kilometers")
        if not _blank(value):
            _check_coordinates(result, str(value))
    return result


def validate_location_targets(targets: Sequence[Mapping[str, Any]]) -> TargetingValidationResult:
    """Validate each location and warn when one is both included and excluded."""
    result = TargetingValidationResult()
    for i, target in enumerate(targets, start=1):
        result.merge(validate_location_target(target), prefix=f"Location {i}: ")

    seen: dict[str, bool] = {}
    for target in targets:
        key = f"{_get(target, 'type')}:{_get(target, 'value')}"
        include = bool(_get(target, "include"))
        if key in seen and seen[key] != include:
            result.add_warning(
                f'Location "{_get(target, "name")}" is both included and excluded, '
                "which may cause unexpected behavior"
            )
        seen[key] = include
    return result


# --- Demographics ---


def _age(result: TargetingValidationResult, target: Mapping[str, Any], name: str, label: str) -> float | None:
    raw = _get(target, name)
    if raw is None:
        return None
    age = _number(raw)
    if age is None:
        result.add_error(f"{label} must be a number")
    return age


def validate_demographic_target(target: Mapping[str, Any]) -> TargetingValidationResult:
    result = TargetingValidationResult()
    age_min = _age(result, target, "age_min", "Minimum age")
    age_max = _age(result, target, "age_max", "Maximum age")
    if age_min is not None and age_min < MIN_AGE:
        result.add_error(f"Minimum age must be at least {MIN_AGE}")
    if age_max is not None and age_max > MAX_AGE:
        result.add_error(f"Maximum age cannot exceed {MAX_AGE}")
    if age_min is not None and age_max is not None:
        if age_min > age_max:
            result.add_error("Minimum age cannot exceed maximum age")
        if age_max - age_min < NARROW_AGE_RANGE:
            result.add_warning(
                f"Age range is very narrow ({age_max - age_min:g} years). Consider broadening for better reach."
            )

    _check_members(result, _get(target, "genders"), GENDERS, "gender")
    for language in _get(target, "languages") or ():
        if not isinstance(language, str) or not _LANGUAGE_RE.match(language):
            result.add_error(f"Invalid language code: {language}. Must be a 2-letter ISO 639-1 code")
    return result


# --- Devices ---


def validate_device_target(target: Mapping[str, Any]) -> TargetingValidationResult:
    result = TargetingValidationResult()
    types = _get(target, "types")
    systems = _get(target, "operating_systems")
    browsers = _get(target, "browsers")
    _check_members(result, types, DEVICE_TYPES, "device type")
    _check_members(result, systems, OPERATING_SYSTEMS, "operating system")
    _check_members(result, browsers, BROWSERS, "browser")
    if all(values is not None and len(values) == 1 for values in (types, systems, browsers)):
        result.add_warning("Device targeting is very restrictive. This may significantly limit reach.")
    return result


# --- Audiences ---


def validate_audience_target(target: Mapping[str, Any]) -> TargetingValidationResult:
    result = TargetingValidationResult()
    if _blank(_get(target, "id")):
        result.add_error("Audience ID is required")
    if _blank(_get(target, "name")):
        result.add_error("Audience name is required")
    audience_type = _get(target, "type")
    if audience_type not in AUDIENCE_TYPES:
        result.add_error(f"Invalid audience type: {audience_type}. Must be one of: {', '.join(AUDIENCE_TYPES)}")
    size = _optional_number(target, "size")
    if size is not None and 0 < size < SMALL_AUDIENCE:
        result.add_warning(
            f"Audience size ({size:g}) is very small. Consider using a larger audience for better results."
        )
    return result


def validate_audience_targets(targets: Sequence[Mapping[str, Any]]) -> TargetingValidationResult:
    result = TargetingValidationResult()
    for i, target in enumerate(targets, start=1):
        result.merge(validate_audience_target(target), prefix=f"Audience {i}: ")
    return result


# --- Placements ---


def _is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def validate_placement_target(target: Mapping[str, Any]) -> TargetingValidationResult:
    result = TargetingValidationResult()
    for url in _get(target, "urls") or ():
        if not _is_url(url):
            result.add_error(f"Invalid URL: {url}. Must be a valid URL")
    for url in _get(target, "excluded_urls") or ():
        if not _is_url(url):
            result.add_error(f"Invalid excluded URL: {url}. Must be a valid URL")
    platforms = _get(target, "platforms") or []
    if 0 < len(platforms) < 3:
        result.add_warning(
            f"Limiting placements to {len(platforms)} platform(s) may reduce reach. Consider adding more placements."
        )
    return result


# --- Combined ---


def restriction_score(config: Mapping[str, Any]) -> int:
    """How narrow a targeting config is; higher means fewer people reached."""
    score = 0
    included = [loc for loc in _get(config, "locations") or () if _get(loc, "include")]
    if included:
        narrow = any(_get(loc, "type") in ("city", "postal") for loc in included)
        score += 2 if narrow else 1

    demographics = _get(config, "demographics")
    if demographics:
        age_min = _optional_number(demographics, "age_min")
        age_max = _optional_number(demographics, "age_max")
        if age_min is not None and age_max is not None:
            spread = age_max - age_min
            if spread < 10:
                score += 2
            elif spread < 20:
                score += 1
        if len(_get(demographics, "genders") or ()) == 1:
            score += 1
        if 0 < len(_get(demographics, "languages") or ()) < 3:
            score += 1

    devices = _get(config, "devices")
    if devices:
        for name in ("types", "operating_systems", "browsers"):
            if len(_get(devices, name) or ()) == 1:
                score += 1

    placements = _get(config, "placements")
    if placements and len(_get(placements, "platforms") or ()) == 1:
        score += 1
    return score


def validate_targeting_config(config: Mapping[str, Any]) -> TargetingValidationResult:
    """Validate every targeting section present in ``config``."""
    result = TargetingValidationResult()
    locations = _get(config, "locations")
    if locations:
        result.merge(validate_location_targets(locations))
    demographics = _get(config, "demographics")
    if demographics:
        result.merge(validate_demographic_target(demographics))
    devices = _get(config, "devices")
    if devices:
        result.merge(validate_device_target(devices))
    audiences = _get(config, "audiences")
    if audiences:
        result.merge(validate_audience_targets(audiences))
    placements = _get(config, "placements")
    if placements:
        result.merge(validate_placement_target(placements))

    if restriction_score(config) >= NARROW_TARGETING_SCORE:
        result.add_warning("Targeting may be too narrow. Consider broadening your audience.")
    return result
