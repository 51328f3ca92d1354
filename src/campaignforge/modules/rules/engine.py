"""RuleEngine: priority-ordered rule evaluation over rows and datasets."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError

from ...domain.rules import (
    Condition,
    ConditionGroup,
    ProcessedRow,
    Rule,
    RuleTestResult,
    RuleTestRow,
)
from ...errors import ConfigurationError
from ...observability import get_logger
from .actions import ActionExecutor
from .conditions import ConditionEvaluator

_log = get_logger("rules")


def coerce_rules(rules: Iterable[Rule | Mapping[str, Any]]) -> list[Rule]:
    result: list[Rule] = []
    for rule in rules:
        if isinstance(rule, Rule):
            result.append(rule)
            continue
        try:
            result.append(Rule.model_validate(rule))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid rule: {exc}") from exc
    return result


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Ascending priority (lower number first); ties keep input order."""
    return sorted(rules, key=lambda rule: rule.priority)


class RuleEngine:
    """Evaluates rules against rows and applies the actions of matching rules."""

    def __init__(
        self,
        evaluator: ConditionEvaluator | None = None,
        executor: ActionExecutor | None = None,
    ) -> None:
        self._evaluator = evaluator or ConditionEvaluator()
        self._executor = executor or ActionExecutor()

    @classmethod
    def from_settings(cls, settings: Any) -> RuleEngine:
        return cls(
            evaluator=ConditionEvaluator.from_settings(settings),
            executor=ActionExecutor(max_regex_length=settings.max_regex_length),
        )

    def evaluate_condition(self, condition: Condition | Mapping[str, Any], row: Mapping[str, Any]) -> bool:
        if not isinstance(condition, Condition):
            try:
                condition = Condition.model_validate(condition)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid condition: {exc}") from exc
        return self._evaluator.evaluate(condition, row)

    def evaluate_condition_group(
        self,
        group: ConditionGroup | Mapping[str, Any],
        row: Mapping[str, Any],
    ) -> bool:
        if not isinstance(group, ConditionGroup):
            try:
                group = ConditionGroup.model_validate(group)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid condition group: {exc}") from exc
        return self._evaluator.evaluate_group(group, row)

    def evaluate_rules(
        self,
        rules: Iterable[Rule | Mapping[str, Any]],
        row: Mapping[str, Any],
    ) -> list[Rule]:
        """Enabled rules matching ``row``, in evaluation order."""
        return [
            rule
            for rule in self._prepare(rules)
            if self._evaluator.evaluate_group(rule.condition_group, row)
        ]

    def process_row(
        self,
        rules: Iterable[Rule | Mapping[str, Any]],
        row: Mapping[str, Any],
    ) -> ProcessedRow:
        return self._process_row(self._prepare(rules), row)

    def process_dataset(
        self,
        rules: Iterable[Rule | Mapping[str, Any]],
        rows: Sequence[Mapping[str, Any]],
    ) -> list[ProcessedRow]:
        prepared = self._prepare(rules)
        processed = [self._process_row(prepared, row) for row in rows]
        _log.debug(
            "dataset_processed",
            extra={
                "rows": len(processed),
                "rules": len(prepared),
                "skipped": sum(1 for p in processed if p.should_skip),
            },
        )
        return processed

    def filter_dataset(
        self,
        rules: Iterable[Rule | Mapping[str, Any]],
        rows: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Modified rows that no rule marked as skipped."""
        return [p.modified_row for p in self.process_dataset(rules, rows) if not p.should_skip]

    def count_matches(self, group: ConditionGroup | Mapping[str, Any], rows: Sequence[Mapping[str, Any]]) -> int:
        return sum(1 for row in rows if self.evaluate_condition_group(group, row))

    def test_rule(self, rule: Rule | Mapping[str, Any], rows: Sequence[Mapping[str, Any]]) -> RuleTestResult:
        """Preview a rule (enabled or not) against sample rows."""
        (rule,) = coerce_rules([rule])
        self._evaluator.check_depth(rule.condition_group)
        results: list[RuleTestRow] = []
        for row in rows:
            matched = self._evaluator.evaluate_group(rule.condition_group, row)
            if matched:
                execution = self._executor.execute_all(rule.actions, row)
                results.append(
                    RuleTestRow(
                        row=dict(row),
                        matched=True,
                        actions=execution.actions,
                        modified_row=execution.final_row,
                    )
                )
            else:
                results.append(RuleTestRow(row=dict(row), matched=False, modified_row=dict(row)))
        return RuleTestResult(
            total_rows=len(results),
            matched_rows=sum(1 for r in results if r.matched),
            results=results,
        )

    def _prepare(self, rules: Iterable[Rule | Mapping[str, Any]]) -> list[Rule]:
        prepared = [rule for rule in sort_rules(coerce_rules(rules)) if rule.enabled]
        for rule in prepared:
            self._evaluator.check_depth(rule.condition_group)
        return prepared

    def _process_row(self, rules: list[Rule], row: Mapping[str, Any]) -> ProcessedRow:
        """Match every rule against the input row, then fold actions in order."""
        matched = [rule for rule in rules if self._evaluator.evaluate_group(rule.condition_group, row)]
        processed = ProcessedRow(original_row=dict(row), modified_row=dict(row))
        current = dict(row)
        for rule in matched:
            execution = self._executor.execute_all(rule.actions, current)
            current = execution.final_row
            processed.applied_rule_ids.append(rule.id)
            processed.actions.extend(execution.actions)
            for action in execution.actions:
                if not action.success:
                    continue
                if action.should_skip:
                    processed.should_skip = True
                if action.group and action.group not in processed.groups:
                    processed.groups.append(action.group)
                if action.remove_group and action.remove_group in processed.groups:
                    processed.groups.remove(action.remove_group)
                if action.tag and action.tag not in processed.tags:
                    processed.tags.append(action.tag)
                if action.targeting:
                    processed.targeting.update(action.targeting)
        processed.modified_row = current
        return processed
