"""VariableEngine tests: substitution, fallbacks, filters, and limits."""

from datetime import datetime

import pytest

from campaignforge.modules.variables import VariableEngine, extract_variables, format_value, substitute


@pytest.fixture
def engine() -> VariableEngine:
    return VariableEngine()


class TestPlainSubstitution:
    """`{field}` lookup and missing-value warnings."""

    @pytest.mark.parametrize("pattern", ["", "plain text", "no tokens here!", "[[a|b]] only"])
    def test_pattern_without_tokens_is_unchanged(self, engine, pattern):
        result = engine.substitute(pattern, {"brand": "Nike"})
        assert result.text == pattern
        assert result.warnings == []

    def test_substitutes_row_value(self, engine):
        result = engine.substitute("{brand} shoes", {"brand": "Nike"})
        assert result.text == "Nike shoes"
        assert result.success is True

    def test_missing_variable_warns_and_renders_empty(self, engine):
        result = engine.substitute("Buy {brand} now", {})
        assert result.text == "Buy  now"
        assert len(result.warnings) == 1
        assert result.warnings[0].variable == "brand"
        assert "brand" in result.warnings[0].message

    def test_none_value_counts_as_missing(self, engine):
        result = engine.substitute("{brand}", {"brand": None})
        assert result.text == ""
        assert [w.variable for w in result.warnings] == ["brand"]

    def test_repeated_token_warns_once(self, engine):
        result = engine.substitute("{x} and {x}", {})
        assert len(result.warnings) == 1

    def test_substituted_values_are_not_rescanned(self, engine):
        result = engine.substitute("{a}", {"a": "{b}", "b": "boom"})
        assert result.text == "{b}"

    def test_unmatched_brace_is_literal(self, engine):
        assert engine.substitute("{oops", {}).text == "{oops"
        assert engine.substitute("{}", {}).text == "{}"

    def test_whitespace_inside_braces_is_trimmed(self, engine):
        assert engine.substitute("{ brand }", {"brand": "Nike"}).text == "Nike"


class TestValueRendering:
    """Non-string values render in a stable, locale-independent form."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (10.0, "10"),
            (9.99, "9.99"),
            (42, "42"),
            (True, "true"),
            (False, "false"),
            (None, ""),
            (["a", "b"], '["a","b"]'),
            ({"k": 1}, '{"k":1}'),
            (datetime(2024, 1, 15, 10, 30), "2024-01-15T10:30:00"),
        ],
    )
    def test_format_value(self, value, expected):
        assert format_value(value) == expected

    def test_number_in_pattern(self, engine):
        assert engine.substitute("Only ${price}", {"price": 19.0}).text == "Only $19"


class TestFallbackChains:
    """`{a|b}` uses the first non-null variable in the chain."""

    def test_uses_first_present_value(self, engine):
        result = engine.substitute("{sale_price|price}", {"price": 20})
        assert result.text == "20"
        assert result.warnings == []

    def test_prefers_primary_value(self, engine):
        assert engine.substitute("{sale_price|price}", {"sale_price": 15, "price": 20}).text == "15"

    def test_three_level_chain(self, engine):
        assert engine.substitute("{a|b|c}", {"c": "last"}).text == "last"

    def test_all_missing_warns_with_chain(self, engine):
        result = engine.substitute("{sale_price|price}", {})
        assert result.text == ""
        assert len(result.warnings) == 1
        assert "sale_price" in result.warnings[0].message
        assert "price" in result.warnings[0].message


class TestFilters:
    """Built-in and custom filters."""

    @pytest.mark.parametrize(
        "pattern, row, expected",
        [
            ("{name|uppercase}", {"name": "nike"}, "NIKE"),
            ("{name|lowercase}", {"name": "NIKE"}, "nike"),
            ("{name|capitalize}", {"name": "nIKE"}, "Nike"),
            ("{name|titlecase}", {"name": "hello wORLD"}, "Hello World"),
            ("{name|trim}", {"name": "  x "}, "x"),
            ("{title|truncate:5}", {"title": "Hello World"}, "Hello..."),
            ("{title|truncate:5:!}", {"title": "Hello World"}, "Hello!"),
            ("{title|truncate:50}", {"title": "Hello"}, "Hello"),
            ("{price|currency}", {"price": 1234.5}, "$1,234.50"),
            ("{price|currency:EUR}", {"price": 1234.5}, "€1,234.50"),
            ("{n|number:2}", {"n": 1234.567}, "1,234.57"),
            ("{n|number}", {"n": 1234.5678}, "1,234.568"),
            ("{r|percent}", {"r": 0.256}, "25.6%"),
            ("{d|format:DD/MM/YYYY}", {"d": "2024-03-05T12:00:00Z"}, "05/03/2024"),
            ("{d|format:YYYY-MM-DD HH:mm}", {"d": "2024-03-05T12:07:00Z"}, "2024-03-05 12:07"),
            ("{t|slug}", {"t": "Hello World! 2024"}, "hello-world-2024"),
            ("{t|replace:foo:bar}", {"t": "foo foo"}, "bar bar"),
            ("{t|default:N/A}", {"t": ""}, "N/A"),
            ("{name|trim|uppercase}", {"name": " nike "}, "NIKE"),
        ],
    )
    def test_builtin_filters(self, engine, pattern, row, expected):
        assert engine.substitute(pattern, row).text == expected

    def test_non_numeric_value_passes_through_number_filters(self, engine):
        assert engine.substitute("{p|currency}", {"p": "free"}).text == "free"

    def test_default_filter_on_missing_still_warns(self, engine):
        result = engine.substitute("{t|default:N/A}", {})
        assert result.text == "N/A"
        assert [w.variable for w in result.warnings] == ["t"]

    def test_unknown_filter_with_args_warns(self, engine):
        result = engine.substitute("{name|bogus:1}", {"name": "Nike"})
        assert result.text == "Nike"
        assert result.warnings[0].variable == "filter:bogus"
        assert result.warnings[0].kind == "filter"

    def test_unregistered_name_is_a_fallback(self, engine):
        result = engine.substitute("{name|other}", {"other": "x"})
        assert result.text == "x"

    def test_custom_filter(self, engine):
        engine.register_filter("reverse", lambda value: value[::-1])
        assert engine.substitute("{name|reverse}", {"name": "abc"}).text == "cba"

    def test_custom_filter_is_scoped_to_instance(self, engine):
        engine.register_filter("reverse", lambda value: value[::-1])
        assert VariableEngine().substitute("{name|reverse}", {"name": "abc", "reverse": "r"}).text == "abc"

    def test_failing_filter_returns_original_value(self, engine):
        def boom(value: str) -> str:
            raise ValueError("bad input")

        engine.register_filter("boom", boom)
        result = engine.substitute("{name|boom}", {"name": "Nike"})
        assert result.text == "Nike"
        assert "failed" in result.warnings[0].message


class TestNestingAndEscapes:
    """Nested lookups and literal braces."""

    def test_nested_variable(self, engine):
        row = {"lang": "en", "category.en": "Shoes"}
        assert engine.substitute("{category.{lang}}", row).text == "Shoes"

    def test_nested_missing_inner_warns(self, engine):
        result = engine.substitute("{category.{lang}}", {})
        assert result.text == ""
        assert result.warnings[0].variable == "lang"

    def test_escaped_braces(self, engine):
        result = engine.substitute("{{literal}}", {"literal": "x"})
        assert result.text == "{literal}"
        assert result.warnings == []

    def test_escaped_braces_around_variable(self, engine):
        assert engine.substitute("{{{name}}}", {"name": "Nike"}).text == "{Nike}"


class TestLimits:
    """Oversized templates are rejected without substitution."""

    def test_template_too_long(self):
        engine = VariableEngine(max_template_length=10)
        result = engine.substitute("x" * 11, {})
        assert result.success is False
        assert result.text == "x" * 11
        assert result.errors[0].variable == "_template"

    def test_too_many_variables(self):
        engine = VariableEngine(max_variables=2)
        result = engine.substitute("{a}{b}{c}", {"a": 1, "b": 2, "c": 3})
        assert result.success is False
        assert result.text == "{a}{b}{c}"

    def test_from_settings(self):
        from campaignforge.config import RuntimeSettings

        engine = VariableEngine.from_settings(RuntimeSettings(max_template_length=5))
        assert engine.substitute("{abcd}", {}).success is False


class TestExtractionAndPreview:
    """Variable extraction, validation, and preview details."""

    def test_extract_variables_dedupes_in_order(self, engine):
        assert engine.extract_variables("{a} {b|c} {a} {d|uppercase}") == ["a", "b", "c", "d"]

    def test_extract_nested_returns_inner_names(self, engine):
        assert engine.extract_variables("{x.{y}}") == ["y"]

    def test_extract_ignores_escapes(self, engine):
        assert engine.extract_variables("{{a}} {b}") == ["b"]

    def test_validate_reports_missing(self, engine):
        result = engine.validate("{a} {b}", {"a": 1})
        assert result.valid is False
        assert result.missing_variables == ["b"]

    def test_validate_accepts_fallback(self, engine):
        assert engine.validate("{a|b}", {"b": 1}).valid is True

    def test_preview_details(self, engine):
        result = engine.preview("{name|uppercase}", {"name": "nike"})
        assert result.text == "NIKE"
        detail = result.substitutions[0]
        assert detail.variable == "name"
        assert detail.original_value == "nike"
        assert detail.transformed_value == "NIKE"
        assert detail.filters == ("uppercase",)

    def test_module_level_helpers(self):
        assert substitute("{a}", {"a": "x"}).text == "x"
        assert extract_variables("{a|b}") == ["a", "b"]
