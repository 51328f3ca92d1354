from .actions import (
    ActionExecutor,
    add_tag_action,
    add_to_group_action,
    modify_field_action,
    remove_from_group_action,
    set_field_action,
    set_targeting_action,
    skip_action,
    substitute_simple,
)
from .conditions import ConditionEvaluator, resolve_field
from .engine import RuleEngine, sort_rules
from .regex_safety import RegexCheck, check_regex_safety, compile_safe_pattern

__all__ = [
    "ActionExecutor",
    "ConditionEvaluator",
    "RegexCheck",
    "RuleEngine",
    "add_tag_action",
    "add_to_group_action",
    "check_regex_safety",
    "compile_safe_pattern",
    "modify_field_action",
    "remove_from_group_action",
    "resolve_field",
    "set_field_action",
    "set_targeting_action",
    "skip_action",
    "sort_rules",
    "substitute_simple",
]
