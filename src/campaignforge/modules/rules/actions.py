"""ActionExecutor: apply rule actions to a copy of a row."""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Mapping

from pydantic import TypeAdapter, ValidationError

from ...domain.rules import (
    Action,
    AddTagAction,
    AddToGroupAction,
    AppliedAction,
    ExecutionResult,
    ModifyFieldAction,
    RemoveFromGroupAction,
    SetFieldAction,
    SetTargetingAction,
    SkipAction,
)
from ...errors import ConfigurationError
from ...observability import get_logger
from ..variables.engine import format_value
from .regex_safety import MAX_PATTERN_LENGTH, check_regex_safety

_ACTION_ADAPTER: TypeAdapter[Action] = TypeAdapter(Action)
_TOKEN_RE = re.compile(r"\{([^{}]+)\}")

_log = get_logger("rules")


def substitute_simple(value: str, row: Mapping[str, Any]) -> str:
    """Single-pass `{field}` substitution; missing fields become empty text."""
    return _TOKEN_RE.sub(lambda m: format_value(row.get(m.group(1).strip())), value)


def coerce_action(action: Any) -> Any:
    if isinstance(action, Mapping):
        try:
            return _ACTION_ADAPTER.validate_python(action)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid action {action.get('type')!r}: {exc}") from exc
    return action


class ActionExecutor:
    """Executes actions left to right, folding each row change into the next."""

    def __init__(self, max_regex_length: int = MAX_PATTERN_LENGTH) -> None:
        self._max_regex_length = max_regex_length
        self._handlers: dict[str, Callable[[Any, dict[str, Any]], AppliedAction]] = {
            "skip": self._skip,
            "set_field": self._set_field,
            "modify_field": self._modify_field,
            "add_to_group": self._add_to_group,
            "remove_from_group": self._remove_from_group,
            "set_targeting": self._set_targeting,
            "add_tag": self._add_tag,
        }

    def execute(self, action: Action | Mapping[str, Any], row: Mapping[str, Any]) -> AppliedAction:
        action = coerce_action(action)
        handler = self._handlers.get(getattr(action, "type", None))
        if handler is None:
            raise ConfigurationError(f"Unknown action type: {getattr(action, 'type', action)!r}")
        return handler(action, dict(row))

    def execute_all(
        self,
        actions: Iterable[Action | Mapping[str, Any]],
        row: Mapping[str, Any],
    ) -> ExecutionResult:
        current = dict(row)
        result = ExecutionResult(success=True, final_row=current)
        for action in actions:
            applied = self.execute(action, current)
            result.actions.append(applied)
            if not applied.success:
                result.success = False
                _log.warning(
                    "action_failed",
                    extra={"action_id": applied.action_id, "type": applied.type, "error": applied.error},
                )
                continue
            if applied.modified_row is not None:
                current = applied.modified_row
            if applied.should_skip:
                result.should_skip = True
            if applied.group and applied.group not in result.groups:
                result.groups.append(applied.group)
            if applied.remove_group and applied.remove_group in result.groups:
                result.groups.remove(applied.remove_group)
            if applied.tag and applied.tag not in result.tags:
                result.tags.append(applied.tag)
            if applied.targeting:
                result.targeting.update(applied.targeting)
        result.final_row = current
        return result

    # --- Handlers ---

    def _skip(self, action: SkipAction, row: dict[str, Any]) -> AppliedAction:
        return AppliedAction(action_id=action.id, type=action.type, success=True, should_skip=True)

    def _set_field(self, action: SetFieldAction, row: dict[str, Any]) -> AppliedAction:
        row[action.field] = substitute_simple(action.value, row)
        return AppliedAction(action_id=action.id, type=action.type, success=True, modified_row=row)

    def _modify_field(self, action: ModifyFieldAction, row: dict[str, Any]) -> AppliedAction:
        current = format_value(row.get(action.field))
        value = substitute_simple(action.value, row)
        if action.operation == "append":
            row[action.field] = current + value
        elif action.operation == "prepend":
            row[action.field] = value + current
        elif action.pattern:
            check = check_regex_safety(action.pattern, self._max_regex_length)
            if not check.safe:
                return AppliedAction(
                    action_id=action.id,
                    type=action.type,
                    success=False,
                    error=f"Unsafe regex pattern {action.pattern!r}: {check.reason}",
                )
            try:
                row[action.field] = re.sub(action.pattern, lambda _match: value, current)
            except re.error as exc:
                return AppliedAction(
                    action_id=action.id,
                    type=action.type,
                    success=False,
                    error=f"Regex replacement failed for {action.pattern!r}: {exc}",
                )
        else:
            row[action.field] = value
        return AppliedAction(action_id=action.id, type=action.type, success=True, modified_row=row)

    def _add_to_group(self, action: AddToGroupAction, row: dict[str, Any]) -> AppliedAction:
        group = substitute_simple(action.group_name, row)
        return AppliedAction(action_id=action.id, type=action.type, success=True, group=group)

    def _remove_from_group(self, action: RemoveFromGroupAction, row: dict[str, Any]) -> AppliedAction:
        group = substitute_simple(action.group_name, row)
        return AppliedAction(action_id=action.id, type=action.type, success=True, remove_group=group)

    def _set_targeting(self, action: SetTargetingAction, row: dict[str, Any]) -> AppliedAction:
        return AppliedAction(
            action_id=action.id,
            type=action.type,
            success=True,
            targeting=dict(action.targeting),
        )

    def _add_tag(self, action: AddTagAction, row: dict[str, Any]) -> AppliedAction:
        tag = substitute_simple(action.tag, row)
        return AppliedAction(action_id=action.id, type=action.type, success=True, tag=tag)


# --- Factories ---


def skip_action() -> SkipAction:
    return SkipAction()


def set_field_action(field: str, value: str) -> SetFieldAction:
    return SetFieldAction(field=field, value=value)


def modify_field_action(
    field: str,
    operation: str,
    value: str = "",
    pattern: str | None = None,
) -> ModifyFieldAction:
    return ModifyFieldAction(field=field, operation=operation, value=value, pattern=pattern)


def add_to_group_action(group_name: str) -> AddToGroupAction:
    return AddToGroupAction(group_name=group_name)


def remove_from_group_action(group_name: str) -> RemoveFromGroupAction:
    return RemoveFromGroupAction(group_name=group_name)


def set_targeting_action(targeting: dict[str, Any]) -> SetTargetingAction:
    return SetTargetingAction(targeting=targeting)


def add_tag_action(tag: str) -> AddTagAction:
    return AddTagAction(tag=tag)
