"""Rule, condition tree, and action models for row transformation."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Discriminator, Field, Tag

from .base import DomainModel


def new_id() -> str:
    return uuid.uuid4().hex[:12]


class Operator(str, Enum):
    """Supported condition operators."""

    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"
    not_contains = "not_contains"
    starts_with = "starts_with"
    ends_with = "ends_with"
    greater_than = "greater_than"
    greater_than_or_equal = "greater_than_or_equal"
    less_than = "less_than"
    less_than_or_equal = "less_than_or_equal"
    regex = "regex"
    in_ = "in"
    not_in = "not_in"
    is_empty = "is_empty"
    is_not_empty = "is_not_empty"


class Condition(DomainModel):
    """A single field test against a row."""

    id: str = Field(default_factory=new_id)
    field: str = Field(..., description="Row field name")
    operator: Operator = Field(..., description="Comparison operator")
    value: Any = Field(default=None, description="Comparison value (list for in/not_in)")


def _condition_item_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "group" if "conditions" in value else "condition"
    return "group" if isinstance(value, ConditionGroup) else "condition"


ConditionItem = Annotated[
    Union[
        Annotated[Condition, Tag("condition")],
        Annotated["ConditionGroup", Tag("group")],
    ],
    Discriminator(_condition_item_kind),
]


class ConditionGroup(DomainModel):
    """AND/OR combination of conditions and nested groups."""

    id: str = Field(default_factory=new_id)
    logic: Literal["AND", "OR"] = "AND"
    conditions: list[ConditionItem] = Field(default_factory=list)

    def depth(self) -> int:
        nested = [item.depth() for item in self.conditions if isinstance(item, ConditionGroup)]
        return 1 + max(nested, default=0)


ConditionGroup.model_rebuild()


# --- Actions ---


class SkipAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["skip"] = "skip"


class SetFieldAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["set_field"] = "set_field"
    field: str
    value: str = ""


class ModifyFieldAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["modify_field"] = "modify_field"
    field: str
    operation: Literal["append", "prepend", "replace"]
    value: str = ""
    pattern: str | None = Field(default=None, description="Regex for operation=replace")


class AddToGroupAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["add_to_group"] = "add_to_group"
    group_name: str


class RemoveFromGroupAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["remove_from_group"] = "remove_from_group"
    group_name: str


class SetTargetingAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["set_targeting"] = "set_targeting"
    targeting: dict[str, Any] = Field(default_factory=dict)


class AddTagAction(DomainModel):
    id: str = Field(default_factory=new_id)
    type: Literal["add_tag"] = "add_tag"
    tag: str


Action = Annotated[
    Union[
        SkipAction,
        SetFieldAction,
        ModifyFieldAction,
        AddToGroupAction,
        RemoveFromGroupAction,
        SetTargetingAction,
        AddTagAction,
    ],
    Field(discriminator="type"),
]


class Rule(DomainModel):
    """Condition tree plus the actions applied to matching rows."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    enabled: bool = True
    priority: int = Field(default=0, description="Lower numbers are evaluated first")
    condition_group: ConditionGroup = Field(default_factory=ConditionGroup)
    actions: list[Action] = Field(default_factory=list)


# --- Results ---


class AppliedAction(DomainModel):
    action_id: str
    type: str
    success: bool
    error: str | None = None
    modified_row: dict[str, Any] | None = None
    should_skip: bool = False
    group: str | None = None
    remove_group: str | None = None
    tag: str | None = None
    targeting: dict[str, Any] | None = None


class ExecutionResult(DomainModel):
    success: bool
    actions: list[AppliedAction] = Field(default_factory=list)
    final_row: dict[str, Any] = Field(default_factory=dict)
    should_skip: bool = False
    groups: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    targeting: dict[str, Any] = Field(default_factory=dict)


class ProcessedRow(DomainModel):
    original_row: dict[str, Any]
    modified_row: dict[str, Any]
    should_skip: bool = False
    applied_rule_ids: list[str] = Field(default_factory=list)
    actions: list[AppliedAction] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    targeting: dict[str, Any] = Field(default_factory=dict)

    @property
    def matched_rule_ids(self) -> list[str]:
        """Every rule whose conditions matched; each matching rule is applied."""
        return list(self.applied_rule_ids)


class RuleTestRow(DomainModel):
    row: dict[str, Any]
    matched: bool
    actions: list[AppliedAction] = Field(default_factory=list)
    modified_row: dict[str, Any] = Field(default_factory=dict)


class RuleTestResult(DomainModel):
    total_rows: int
    matched_rows: int
    results: list[RuleTestRow] = Field(default_factory=list)
