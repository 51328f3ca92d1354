"""RuleEngine and ConditionEvaluator tests: operators, groups, priority, datasets."""

import pytest

from campaignforge.domain.rules import (
    AddTagAction,
    AddToGroupAction,
    Condition,
    ConditionGroup,
    RemoveFromGroupAction,
    Rule,
    SetFieldAction,
    SkipAction,
)
from campaignforge.errors import ConfigurationError
from campaignforge.modules.rules import ConditionEvaluator, RuleEngine, sort_rules


def _cond(field: str, operator: str, value=None) -> Condition:
    return Condition(field=field, operator=operator, value=value)


def _make_rule(conditions, actions, *, priority: int = 0, logic: str = "AND", enabled: bool = True, rule_id=None) -> Rule:
    kwargs = {}
    if rule_id:
        kwargs["id"] = rule_id
    return Rule(
        name="test rule",
        priority=priority,
        enabled=enabled,
        condition_group=ConditionGroup(logic=logic, conditions=conditions),
        actions=actions,
        **kwargs,
    )


@pytest.fixture
def engine() -> RuleEngine:
    return RuleEngine()


class TestConditionOperators:
    """Single-condition semantics and coercion."""

    @pytest.mark.parametrize(
        "row, condition, expected",
        [
            ({"n": "5"}, _cond("n", "equals", 5), True),
            ({"n": "5.0"}, _cond("n", "equals", 5), True),
            ({"s": "Nike"}, _cond("s", "equals", "nike"), False),
            ({"s": "Nike"}, _cond("s", "not_equals", "Adidas"), True),
            ({"s": "Nike Air"}, _cond("s", "contains", "Air"), True),
            ({"s": "Nike Air"}, _cond("s", "contains", "air"), False),
            ({"s": "Nike Air"}, _cond("s", "not_contains", "Boost"), True),
            ({"s": "Nike Air"}, _cond("s", "starts_with", "Nike"), True),
            ({"s": "Nike Air"}, _cond("s", "ends_with", "Air"), True),
            ({"n": "10"}, _cond("n", "greater_than", "9"), True),
            ({"n": 10}, _cond("n", "less_than_or_equal", 10), True),
            ({"n": 10}, _cond("n", "greater_than_or_equal", 11), False),
            ({"s": "b"}, _cond("s", "greater_than", "a"), True),
            ({"s": "apple"}, _cond("s", "less_than", "banana"), True),
            ({}, _cond("n", "greater_than", 0), False),
            ({"n": "5"}, _cond("n", "in", [5, 6]), True),
            ({"n": "7"}, _cond("n", "in", [5, 6]), False),
            ({"s": "red"}, _cond("s", "in", ["red", "blue"]), True),
            ({"b": "true"}, _cond("b", "in", [True]), True),
            ({"s": "green"}, _cond("s", "not_in", ["red", "blue"]), True),
            ({"s": ""}, _cond("s", "is_empty"), True),
            ({"s": None}, _cond("s", "is_empty"), True),
            ({}, _cond("s", "is_empty"), True),
            ({"s": "x"}, _cond("s", "is_not_empty"), True),
            ({"s": "Nike Air"}, _cond("s", "regex", "^Nike\\s"), True),
            ({"meta": {"tier": "gold"}}, _cond("meta.tier", "equals", "gold"), True),
        ],
    )
    def test_operator(self, engine, row, condition, expected):
        assert engine.evaluate_condition(condition, row) is expected

    def test_unsafe_regex_evaluates_false(self, engine):
        assert engine.evaluate_condition(_cond("s", "regex", "(a+)+$"), {"s": "aaaa"}) is False

    def test_case_insensitive_opt_in(self):
        evaluator = ConditionEvaluator(case_insensitive=True)
        assert evaluator.evaluate(_cond("s", "contains", "air"), {"s": "Nike Air"}) is True
        assert evaluator.evaluate(_cond("s", "equals", "NIKE"), {"s": "nike"}) is True

    def test_accepts_condition_dict(self, engine):
        assert engine.evaluate_condition({"field": "s", "operator": "is_empty"}, {}) is True

    @pytest.mark.parametrize(
        "method,payload",
        [
            ("evaluate_condition", {"field": "s", "operator": "sounds_like"}),
            ("evaluate_condition_group", {"logic": "XOR", "conditions": []}),
        ],
    )
    def test_invalid_dict_raises_configuration_error(self, engine, method, payload):
        with pytest.raises(ConfigurationError):
            getattr(engine, method)(payload, {})


class TestConditionGroups:
    """AND/OR recursion, empty groups, and depth limits."""

    def test_empty_and_is_true(self, engine):
        assert engine.evaluate_condition_group(ConditionGroup(logic="AND"), {}) is True

    def test_empty_or_is_false(self, engine):
        assert engine.evaluate_condition_group(ConditionGroup(logic="OR"), {}) is False

    def test_nested_groups(self, engine):
        group = ConditionGroup(
            logic="OR",
            conditions=[
                _cond("brand", "equals", "Adidas"),
                ConditionGroup(
                    logic="AND",
                    conditions=[_cond("brand", "equals", "Nike"), _cond("price", "greater_than", 100)],
                ),
            ],
        )
        assert engine.evaluate_condition_group(group, {"brand": "Nike", "price": 150}) is True
        assert engine.evaluate_condition_group(group, {"brand": "Nike", "price": 50}) is False

    def test_group_from_dict(self, engine):
        group = {
            "logic": "AND",
            "conditions": [
                {"field": "a", "operator": "equals", "value": "1"},
                {"logic": "OR", "conditions": [{"field": "b", "operator": "is_empty"}]},
            ],
        }
        assert engine.evaluate_condition_group(group, {"a": 1}) is True

    def test_depth_limit(self):
        deep = ConditionGroup(conditions=[ConditionGroup(conditions=[ConditionGroup()])])
        engine = RuleEngine(evaluator=ConditionEvaluator(max_depth=2))
        with pytest.raises(ConfigurationError):
            engine.evaluate_condition_group(deep, {})
        with pytest.raises(ConfigurationError):
            engine.process_dataset([_make_rule([deep], [SkipAction()])], [{}])


class TestDatasetProcessing:
    """Priority ordering, sticky skip, and per-row results."""

    def test_is_empty_skip_scenario(self, engine):
        rule = _make_rule([_cond("name", "is_empty")], [SkipAction()])
        processed = engine.process_dataset([rule], [{"name": ""}])
        assert processed[0].should_skip is True

    def test_priority_is_ascending(self, engine):
        later = _make_rule([], [SetFieldAction(field="label", value="second")], priority=2, rule_id="later")
        earlier = _make_rule([], [SetFieldAction(field="label", value="first")], priority=1, rule_id="earlier")
        processed = engine.process_row([later, earlier], {})
        assert processed.applied_rule_ids == ["earlier", "later"]
        assert processed.modified_row["label"] == "second"

    def test_sort_is_stable(self):
        a = _make_rule([], [], priority=1, rule_id="a")
        b = _make_rule([], [], priority=1, rule_id="b")
        assert [r.id for r in sort_rules([a, b])] == ["a", "b"]

    def test_disabled_rule_ignored(self, engine):
        rule = _make_rule([], [SkipAction()], enabled=False)
        assert engine.process_row([rule], {}).should_skip is False

    def test_skip_is_sticky_and_does_not_halt(self, engine):
        skip = _make_rule([], [SkipAction()], priority=0)
        tag = _make_rule([], [SetFieldAction(field="seen", value="yes")], priority=1)
        processed = engine.process_row([skip, tag], {"x": 1})
        assert processed.should_skip is True
        assert processed.modified_row["seen"] == "yes"

    def test_conditions_match_input_row(self, engine):
        mark = _make_rule([], [SetFieldAction(field="category", value="sale")], priority=0)
        react = _make_rule([_cond("category", "equals", "sale")], [AddTagAction(tag="hit")], priority=1)
        processed = engine.process_row([mark, react], {"category": "full"})
        assert processed.modified_row["category"] == "sale"
        assert processed.tags == []
        assert processed.applied_rule_ids == [mark.id]

    def test_actions_see_earlier_rule_changes(self, engine):
        mark = _make_rule([], [SetFieldAction(field="category", value="sale")], priority=0)
        badge = _make_rule([], [SetFieldAction(field="badge", value="{category}!")], priority=1)
        processed = engine.process_row([mark, badge], {})
        assert processed.modified_row["badge"] == "sale!"

    def test_group_changes_follow_action_order(self, engine):
        rule = _make_rule([], [RemoveFromGroupAction(group_name="Y"), AddToGroupAction(group_name="Y")])
        assert engine.process_row([rule], {}).groups == ["Y"]

    def test_group_removed_by_later_rule(self, engine):
        add = _make_rule([], [AddToGroupAction(group_name="Y"), AddToGroupAction(group_name="Z")], priority=0)
        remove = _make_rule([], [RemoveFromGroupAction(group_name="Y")], priority=1)
        assert engine.process_row([add, remove], {}).groups == ["Z"]

    def test_original_row_preserved(self, engine):
        row = {"name": "Nike"}
        rule = _make_rule([], [SetFieldAction(field="name", value="Adidas")])
        processed = engine.process_row([rule], row)
        assert processed.original_row == {"name": "Nike"}
        assert row == {"name": "Nike"}
        assert processed.modified_row == {"name": "Adidas"}

    def test_filter_dataset(self, engine):
        rule = _make_rule([_cond("name", "is_empty")], [SkipAction()])
        kept = engine.filter_dataset([rule], [{"name": ""}, {"name": "x"}])
        assert kept == [{"name": "x"}]

    def test_rules_from_dicts(self, engine):
        rules = [
            {
                "id": "r1",
                "name": "skip blanks",
                "conditionGroup": {"logic": "AND", "conditions": [{"field": "name", "operator": "is_empty"}]},
                "actions": [{"type": "skip"}],
            }
        ]
        processed = engine.process_dataset(rules, [{"name": None}])
        assert processed[0].should_skip is True
        assert processed[0].matched_rule_ids == ["r1"]

    def test_invalid_rule_dict(self, engine):
        with pytest.raises(ConfigurationError):
            engine.process_dataset([{"conditionGroup": {"logic": "XOR"}}], [{}])

    def test_evaluate_rules_returns_matches(self, engine):
        hit = _make_rule([_cond("a", "equals", 1)], [], rule_id="hit")
        miss = _make_rule([_cond("a", "equals", 2)], [], rule_id="miss")
        assert [r.id for r in engine.evaluate_rules([hit, miss], {"a": 1})] == ["hit"]


class TestPreviewHelpers:
    """count_matches and test_rule."""

    def test_count_matches(self, engine):
        group = ConditionGroup(conditions=[_cond("price", "greater_than", 10)])
        assert engine.count_matches(group, [{"price": 5}, {"price": 15}, {"price": 20}]) == 2

    def test_test_rule(self, engine):
        rule = _make_rule([_cond("price", "greater_than", 10)], [SetFieldAction(field="tier", value="premium")])
        result = engine.test_rule(rule, [{"price": 5}, {"price": 15}])
        assert result.total_rows == 2
        assert result.matched_rows == 1
        assert result.results[1].modified_row["tier"] == "premium"
        assert result.results[0].matched is False

    def test_test_rule_ignores_enabled_flag(self, engine):
        rule = _make_rule([], [SkipAction()], enabled=False)
        assert engine.test_rule(rule, [{}]).matched_rows == 1
