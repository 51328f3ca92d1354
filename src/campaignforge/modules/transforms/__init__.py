from .aggregations import AggregationExecutor
from .engine import TransformEngine, build_group_key, decode_group_key

__all__ = ["AggregationExecutor", "TransformEngine", "build_group_key", "decode_group_key"]
