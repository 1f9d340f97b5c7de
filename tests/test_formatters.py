"""Tests for built-in formatters, aggregations and the registry."""

from datetime import datetime, timedelta

import pytest

from wordtemplate.engine import formatters as fmt
from wordtemplate.engine.aggregations import AGGREGATIONS
from wordtemplate.engine.formatters import BUILTIN_FORMATTERS, FormatterRegistry


class TestSeq:
    """Tests for list labels built from a zero-based index."""

    @pytest.mark.parametrize("index,style,expected", [
        (0, "1", "1"),
        (4, 1, "5"),
        (0, "a", "a"),
        (25, "a", "z"),
        (26, "a", "aa"),
        (2, "A", "C"),
        (0, "i", "i"),
        (3, "i", "iv"),
        (8, "I", "IX"),
        (2, "?", "3"),
    ])
    def test_styles(self, index, style, expected):
        """Sequence styles render letters, roman numerals and numbers."""
        assert fmt.fmt_seq(index, style) == expected

    def test_non_numeric_is_empty(self):
        """A non-numeric index renders nothing."""
        assert fmt.fmt_seq("abc", "1") == ""


class TestDates:
    """Tests for date formatting."""

    def test_default_pattern(self):
        """Dates default to YYYY-MM-DD."""
        assert fmt.fmt_date("2024-03-05T10:30:00") == "2024-03-05"

    def test_tokens(self):
        """Day, month and year tokens are replaced."""
        assert fmt.fmt_date("2024-03-05", "DD MMMM YYYY") == "05 March 2024"
        assert fmt.fmt_date("2024-03-05", "D MMM YY") == "5 Mar 24"
        assert fmt.fmt_date("2024-03-05", "dddd") == "Tuesday"

    def test_time_tokens(self):
        """Twelve-hour time tokens use AM/PM."""
        assert fmt.fmt_date("2024-03-05T15:07:09", "hh:mm:ss A") == "03:07:09 PM"

    def test_literal_brackets(self):
        """Bracketed text is copied literally."""
        assert fmt.fmt_date("2024-03-05", "[Year] YYYY") == "Year 2024"

    def test_unparseable_is_returned(self):
        """Text that is not a date comes back unchanged."""
        assert fmt.fmt_date("not a date") == "not a date"

    def test_blank(self):
        """A missing date renders empty."""
        assert fmt.fmt_date(None) == ""

    def test_add_days(self):
        """Adding days crosses month boundaries."""
        assert fmt.fmt_add_days("2024-02-28", 2) == "2024-03-01"


class TestRelativeTime:
    """Tests for relative time descriptions."""

    @pytest.mark.parametrize("later,expected", [
        (datetime(2024, 1, 1, 0, 0, 30), "a few seconds"),
        (datetime(2024, 1, 1, 0, 10), "10 minutes"),
        (datetime(2024, 1, 1, 1, 0), "an hour"),
        (datetime(2024, 1, 1, 5, 0), "5 hours"),
        (datetime(2024, 1, 2), "a day"),
        (datetime(2024, 1, 11), "10 days"),
        (datetime(2024, 1, 31), "a month"),
        (datetime(2024, 3, 1), "2 months"),
        (datetime(2025, 2, 4), "a year"),
        (datetime(2027, 1, 1), "3 years"),
    ])
    def test_describe_span(self, later, expected):
        """Spans round to the nearest unit with dayjs thresholds."""
        start = datetime(2024, 1, 1)
        assert fmt.describe_span(start, later) == expected
        assert fmt.describe_span(later, start) == expected

    def test_past(self):
        """Past moments read as ago."""
        assert fmt.fmt_relative_time((datetime.now() - timedelta(days=3)).isoformat()) == "3 days ago"
        assert fmt.fmt_relative_time((datetime.now() - timedelta(hours=2)).isoformat()) == "2 hours ago"

    def test_future(self):
        """Future moments read as in."""
        assert fmt.fmt_relative_time((datetime.now() + timedelta(days=5)).isoformat()) == "in 5 days"

    def test_blank(self):
        """A missing date renders empty."""
        assert fmt.fmt_relative_time(None) == ""

    def test_unparseable_is_returned(self):
        """Text that is not a date comes back unchanged."""
        assert fmt.fmt_relative_time("not a date") == "not a date"

    def test_registered(self):
        """relativeTime is available as a built-in formatter."""
        assert BUILTIN_FORMATTERS["relativeTime"] is fmt.fmt_relative_time


class TestNumbers:
    """Tests for numeric formatters."""

    def test_number(self):
        """Numbers are fixed to the requested decimals."""
        assert fmt.fmt_number(3.14159) == "3.14"
        assert fmt.fmt_number("2", 1) == "2.0"

    def test_currency(self):
        """Currency uses the symbol and two decimals."""
        assert fmt.fmt_currency(1234.5) == "$1,234.50"
        assert fmt.fmt_currency(1234.5, "€") == "€1,234.50"

    def test_percentage(self):
        """Percentages scale and append a sign."""
        assert fmt.fmt_percentage(0.256) == "26%"
        assert fmt.fmt_percentage(0.256, 1) == "25.6%"

    def test_thousands(self):
        """Large numbers get thousands separators."""
        assert fmt.fmt_thousands(1234567) == "1,234,567"
        assert fmt.fmt_thousands(-1234.5, ".") == "-1.234.5"

    def test_non_numeric_unchanged(self):
        """Numeric formatters leave text alone."""
        assert fmt.fmt_currency("n/a") == "n/a"


class TestText:
    """Tests for text formatters."""

    def test_case(self):
        """Case formatters change letter case."""
        assert fmt.fmt_upper("abc") == "ABC"
        assert fmt.fmt_lower("ABC") == "abc"
        assert fmt.fmt_capitalize("hELLO") == "Hello"
        assert fmt.fmt_title_case("hello big world") == "Hello Big World"

    def test_truncate(self):
        """Long text is cut with an ellipsis."""
        assert fmt.fmt_truncate("abcdefgh", 3) == "abc..."
        assert fmt.fmt_truncate("abc", 10) == "abc"

    def test_replace(self):
        """Every occurrence is replaced."""
        assert fmt.fmt_replace("a-b-c", "-") == "abc"


class TestUtility:
    """Tests for fallback and collection helpers."""

    def test_default(self):
        """Only null and undefined fall back to the default."""
        assert fmt.fmt_default(None, "N/A") == "N/A"
        assert fmt.fmt_default(0, "N/A") == 0

    def test_if_empty(self):
        """Blank text falls back to the replacement."""
        assert fmt.fmt_if_empty("   ", "-") == "-"
        assert fmt.fmt_if_empty("x", "-") == "x"

    def test_join_and_length(self):
        """Lists join with a separator and report their length."""
        assert fmt.fmt_join(["a", "b"]) == "a, b"
        assert fmt.fmt_join(["a", "b"], "/") == "a/b"
        assert fmt.fmt_length([1, 2, 3]) == 3

    def test_at(self):
        """Negative indexes count from the end."""
        assert fmt.fmt_at(["a", "b", "c"], -1) == "c"


class TestAggregations:
    """Tests for list aggregations."""

    ITEMS = [
        {"name": "b", "price": 2, "group": "x"},
        {"name": "a", "price": 5, "group": "y"},
        {"name": "c", "price": 3, "group": "x"},
    ]

    def test_sum_and_avg(self):
        """Sum and average read numbers or a field."""
        assert AGGREGATIONS["sum"](self.ITEMS, "price") == 10
        assert AGGREGATIONS["avg"]([2, 4]) == 3

    def test_count(self):
        """Count reports the list length."""
        assert AGGREGATIONS["count"](self.ITEMS) == 3

    def test_pluck(self):
        """Pluck collects one field from each item."""
        assert AGGREGATIONS["pluck"](self.ITEMS, "name") == ["b", "a", "c"]

    def test_sort(self):
        """Sort orders items by a field."""
        names = [item["name"] for item in AGGREGATIONS["sort"](self.ITEMS, "name")]
        assert names == ["a", "b", "c"]

    def test_group_by(self):
        """groupBy buckets items by a field value."""
        groups = AGGREGATIONS["groupBy"](self.ITEMS, "group")
        assert sorted(groups) == ["x", "y"]
        assert len(groups["x"]) == 2


class TestRegistry:
    """Tests for formatter registration and lookup."""

    def test_builtin_lookup(self):
        """The registry exposes formatters and aggregations."""
        registry = FormatterRegistry(BUILTIN_FORMATTERS, AGGREGATIONS)
        assert "upper" in registry
        assert "sum" in registry
        assert registry.get("upper") is fmt.fmt_upper
        assert {"upper", "sum"} <= set(registry.names())

    def test_apply_unknown(self):
        """Applying an unknown name reports it was not found."""
        registry = FormatterRegistry(BUILTIN_FORMATTERS)
        assert registry.apply("x", "nope") == ("x", False)

    def test_aggregation_on_non_list_passes_through(self):
        """Aggregations leave non-list values alone."""
        registry = FormatterRegistry({}, AGGREGATIONS)
        assert registry.apply(5, "sum") == (5, True)

    def test_register_before_freeze(self):
        """Custom formatters can be added before freezing."""
        registry = FormatterRegistry()
        registry.register("shout", lambda value: f"{value}!")
        assert registry.apply("hi", "shout") == ("hi!", True)

    def test_register_after_freeze(self):
        """A frozen registry refuses new formatters."""
        registry = FormatterRegistry()
        registry.freeze()
        with pytest.raises(RuntimeError):
            registry.register("late", lambda value: value)
        registry.register("late", lambda value: value, allow_late=True)
        assert "late" in registry
