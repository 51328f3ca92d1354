from .engine import HierarchicalGrouper, coerce_grouping_config, group_rows

__all__ = ["HierarchicalGrouper", "coerce_grouping_config", "group_rows"]
