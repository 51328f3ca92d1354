from .engine import (
    TRUNCATABLE_FIELDS,
    FallbackStrategyEngine,
    create_strategy_engine,
    get_length_errors,
    has_length_errors,
)

__all__ = [
    "TRUNCATABLE_FIELDS",
    "FallbackStrategyEngine",
    "create_strategy_engine",
    "get_length_errors",
    "has_length_errors",
]
