"""Observability: structured stage logs (stage, duration_ms, counts)."""

from __future__ import annotations

import logging
from typing import Any

_LOGGER = logging.getLogger("campaignforge")


def get_logger(area: str | None = None) -> logging.Logger:
    if not area:
        return _LOGGER
    return _LOGGER.getChild(area)


def log_stage(stage: str, duration_ms: float, **extra: Any) -> None:
    """Emit one structured record for a completed pipeline stage."""
    payload: dict[str, Any] = {
        "stage": stage,
        "duration_ms": round(duration_ms, 2),
    }
    payload.update(extra)
    get_logger("pipeline").info("stage_complete", extra=payload)


def configure_logging(level: str = "INFO") -> None:
    """Basic stderr logging for CLI runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
