"""AggregationExecutor tests: null handling per function."""

import pytest

from campaignforge.domain.rules import Condition
from campaignforge.domain.transforms import AggregationOptions
from campaignforge.errors import ConfigurationError
from campaignforge.modules.transforms import AggregationExecutor


@pytest.fixture
def executor() -> AggregationExecutor:
    return AggregationExecutor()


class TestCounting:
    def test_count(self, executor):
        assert executor.execute("COUNT", [1, None, 2]) == 3

    def test_count_distinct(self, executor):
        assert executor.execute("COUNT", ["a", "a", "b"], AggregationOptions(distinct=True)) == 2

    def test_distinct_count_stringifies(self, executor):
        assert executor.execute("DISTINCT_COUNT", [1, "1", 2, None]) == 2

    def test_count_if_uses_condition(self, executor):
        rows = [{"status": "active"}, {"status": "paused"}, {"status": "active"}]
        options = AggregationOptions(condition=Condition(field="status", operator="equals", value="active"))
        assert executor.execute("COUNT_IF", rows, options) == 2

    def test_count_if_without_condition(self, executor):
        assert executor.execute("COUNT_IF", [{"a": 1}]) == 0


class TestNumeric:
    def test_sum_skips_non_numeric(self, executor):
        assert executor.execute("SUM", [1, "2", "x", None]) == 3

    def test_sum_empty(self, executor):
        assert executor.execute("SUM", []) == 0

    def test_avg(self, executor):
        assert executor.execute("AVG", [1, 2, "x"]) == 1.5

    def test_avg_without_numbers(self, executor):
        assert executor.execute("AVG", ["x", None]) is None

    def test_min_max_numeric(self, executor):
        assert executor.execute("MIN", [3, "10", 1]) == 1
        assert executor.execute("MAX", [3, "10", 1]) == 10

    def test_min_max_lexicographic(self, executor):
        assert executor.execute("MIN", ["b", "a", "c"]) == "a"
        assert executor.execute("MAX", ["b", "a", "c"]) == "c"

    def test_min_all_null(self, executor):
        assert executor.execute("MIN", [None, None]) is None


class TestPositionalAndCollections:
    def test_first_last_skip_nulls(self, executor):
        values = [None, "a", "b", None]
        assert executor.execute("FIRST", values) == "a"
        assert executor.execute("LAST", values) == "b"

    def test_concat(self, executor):
        assert executor.execute("CONCAT", ["a", None, "b"]) == "a, b"
        assert executor.execute("CONCAT", ["a", "b"], AggregationOptions(separator="|")) == "a|b"

    def test_collect_with_limit(self, executor):
        assert executor.execute("COLLECT", [1, None, 2, 3], AggregationOptions(limit=2)) == [1, 2]
        assert executor.execute("COLLECT", [1, None, 2]) == [1, 2]


def test_unknown_function(executor):
    with pytest.raises(ConfigurationError):
        executor.execute("MEDIAN", [1])
