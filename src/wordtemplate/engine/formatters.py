"""Formatter registry.

Formatters are plain functions ``fn(value, *args) -> value`` looked up by the
name used after a pipe: ``${loan.amount|currency:$}``. The registry is
process-wide and read-mostly: built-ins are installed at import time, callers
may add their own before the first render, after which the registry is frozen.
"""

from __future__ import annotations

import json
import logging
import math
import re
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from wordtemplate.engine.aggregations import AGGREGATIONS
from wordtemplate.engine.values import (
    UNDEFINED,
    format_number,
    is_blank,
    is_number,
    js_truthy,
    strict_equals,
    to_number,
    to_text,
)

logger = logging.getLogger(__name__)

FormatterFunction = Callable[..., Any]

_DATE_TOKEN_RE = re.compile(
    r"\[([^\]]*)\]|YYYY|YY|MMMM|MMM|MM|M|Do|DD|D|dddd|ddd|HH|H|hh|h|mm|m|ss|s|A|a"
)
_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_ROMAN = [
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"),
    (100, "C"), (90, "XC"), (50, "L"), (40, "XL"),
    (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"),
]


# ============= helpers =============


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if is_number(value):
        # Numbers are epoch milliseconds.
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value)
        except ValueError:
            pass
        try:
            return date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
    return None


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_datetime(moment: datetime, pattern: str) -> str:
    """Format ``moment`` with dayjs-style tokens (``DD MMMM YYYY``)."""

    def _token(match: re.Match) -> str:
        if match.group(1) is not None:
            return match.group(1)
        token = match.group(0)
        hour12 = moment.hour % 12 or 12
        return {
            "YYYY": f"{moment.year:04d}",
            "YY": f"{moment.year % 100:02d}",
            "MMMM": _MONTHS[moment.month - 1],
            "MMM": _MONTHS[moment.month - 1][:3],
            "MM": f"{moment.month:02d}",
            "M": str(moment.month),
            "Do": _ordinal(moment.day),
            "DD": f"{moment.day:02d}",
            "D": str(moment.day),
            "dddd": _WEEKDAYS[moment.weekday()],
            "ddd": _WEEKDAYS[moment.weekday()][:3],
            "HH": f"{moment.hour:02d}",
            "H": str(moment.hour),
            "hh": f"{hour12:02d}",
            "h": str(hour12),
            "mm": f"{moment.minute:02d}",
            "m": str(moment.minute),
            "ss": f"{moment.second:02d}",
            "s": str(moment.second),
            "A": "PM" if moment.hour >= 12 else "AM",
            "a": "pm" if moment.hour >= 12 else "am",
        }[token]

    return _DATE_TOKEN_RE.sub(_token, pattern)


def _count(value: Any, default: int) -> int:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return default
    return max(0, int(number))


def _decimals(value: Any, default: int) -> int:
    return min(20, _count(value, default))


def _group_thousands(text: str, separator: str) -> str:
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    integer, dot, fraction = text.partition(".")
    groups = []
    while len(integer) > 3:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    groups.insert(0, integer)
    return sign + separator.join(groups) + dot + fraction


def to_roman(number: int) -> str:
    if number <= 0:
        return str(number)
    parts = []
    for value, numeral in _ROMAN:
        while number >= value:
            parts.append(numeral)
            number -= value
    return "".join(parts)


def to_alpha(index: int) -> str:
    """0 → a, 25 → z, 26 → aa."""
    if index < 0:
        return str(index)
    letters = []
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters.insert(0, chr(ord("a") + remainder))
    return "".join(letters)


# ============= date formatters =============


def fmt_date(value: Any, pattern: Any = "YYYY-MM-DD") -> Any:
    if is_blank(value):
        return ""
    moment = _to_datetime(value)
    if moment is None:
        return to_text(value)
    return format_datetime(moment, to_text(pattern) or "YYYY-MM-DD")


def fmt_add_days(value: Any, days: Any = 0) -> Any:
    if is_blank(value):
        return ""
    moment = _to_datetime(value)
    offset = to_number(days)
    if moment is None or math.isnan(offset) or math.isinf(offset):
        return to_text(value)
    try:
        return format_datetime(moment + timedelta(days=offset), "YYYY-MM-DD")
    except OverflowError:
        return to_text(value)


def _now(moment: datetime) -> datetime:
    return datetime.now(moment.tzinfo) if moment.tzinfo else datetime.now()


def _unit(count: int, one: str, unit: str) -> str:
    return one if count <= 1 else f"{count} {unit}s"


def describe_span(moment: datetime, now: datetime) -> str:
    """Human span between two moments, rounded the way dayjs does (``3 days``)."""
    later, earlier = (now, moment) if now >= moment else (moment, now)
    seconds = (later - earlier).total_seconds()
    minutes = round(seconds / 60)
    hours = round(seconds / 3600)
    days = round(seconds / 86400)

    if seconds < 45:
        return "a few seconds"
    if seconds < 90:
        return "a minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if minutes < 90:
        return "an hour"
    if hours < 22:
        return f"{hours} hours"
    if hours < 36:
        return "a day"
    if days < 26:
        return f"{days} days"
    if days < 46:
        return "a month"

    span = relativedelta(later, earlier)
    months = span.years * 12 + span.months + (1 if span.days >= 15 else 0)
    if months < 11:
        return _unit(months, "a month", "month")
    if months < 18:
        return "a year"
    return _unit(round(months / 12), "a year", "year")


def fmt_relative_time(value: Any) -> Any:
    if is_blank(value):
        return ""
    moment = _to_datetime(value)
    if moment is None:
        return to_text(value)
    now = _now(moment)
    span = describe_span(moment, now)
    return f"{span} ago" if moment <= now else f"in {span}"


# ============= number formatters =============


def fmt_number(value: Any, decimals: Any = 2) -> Any:
    number = to_number(value)
    if math.isnan(number) or is_blank(value):
        return to_text(value)
    return f"{number:.{_decimals(decimals, 2)}f}"


def fmt_currency(value: Any, symbol: Any = "$") -> Any:
    number = to_number(value)
    if math.isnan(number) or is_blank(value):
        return to_text(value)
    return f"{to_text(symbol)}{number:,.2f}"


def fmt_percentage(value: Any, decimals: Any = 0) -> Any:
    number = to_number(value)
    if math.isnan(number) or is_blank(value):
        return to_text(value)
    return f"{number * 100:.{_decimals(decimals, 0)}f}%"


def fmt_thousands(value: Any, separator: Any = ",") -> Any:
    number = to_number(value)
    if math.isnan(number) or is_blank(value):
        return to_text(value)
    return _group_thousands(format_number(number), to_text(separator))


def fmt_seq(value: Any, style: Any = "1") -> str:
    """Turn a zero-based ``$index`` into a list label.

    ``1`` → 1, 2, 3 · ``a``/``A`` → a, b, c · ``i``/``I`` → i, ii, iii
    """
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return ""
    index = int(number)
    style = to_text(style) or "1"
    if style == "a":
        return to_alpha(index)
    if style == "A":
        return to_alpha(index).upper()
    if style == "i":
        return to_roman(index + 1).lower()
    if style == "I":
        return to_roman(index + 1)
    return str(index + 1)


# ============= text formatters =============


def fmt_upper(value: Any) -> str:
    return to_text(value).upper()


def fmt_lower(value: Any) -> str:
    return to_text(value).lower()


def fmt_capitalize(value: Any) -> str:
    text = to_text(value)
    return text[:1].upper() + text[1:].lower()


def fmt_title_case(value: Any) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), to_text(value).lower())


def fmt_truncate(value: Any, length: Any = 50, suffix: Any = "...") -> str:
    text = to_text(value)
    limit = _count(length, 50)
    if len(text) <= limit:
        return text
    return text[:limit] + to_text(suffix)


def fmt_trim(value: Any) -> str:
    return to_text(value).strip()


def fmt_replace(value: Any, search: Any = "", replacement: Any = "") -> str:
    text = to_text(value)
    search = to_text(search)
    if not search:
        return text
    return text.replace(search, to_text(replacement))


# ============= utility formatters =============


def fmt_default(value: Any, fallback: Any = "") -> Any:
    if is_blank(value):
        return fallback
    return value


def fmt_if_empty(value: Any, replacement: Any = "") -> Any:
    if not js_truthy(value) or (isinstance(value, str) and not value.strip()):
        return replacement
    return value


def fmt_if_equal(value: Any, compare: Any = UNDEFINED, true_value: Any = "", false_value: Any = "") -> Any:
    if strict_equals(value, compare) or to_text(value) == to_text(compare):
        return true_value
    return false_value


def fmt_if_true(value: Any, true_value: Any = "", false_value: Any = "") -> Any:
    return true_value if js_truthy(value) else false_value


def fmt_length(value: Any) -> int:
    if isinstance(value, (list, tuple, str, dict)):
        return len(value)
    return 0


def fmt_join(value: Any, separator: Any = ", ") -> str:
    if not isinstance(value, (list, tuple)):
        return to_text(value)
    return to_text(separator).join(to_text(item) for item in value)


def fmt_at(value: Any, index: Any = 0) -> Any:
    if not isinstance(value, (list, tuple)):
        return value
    position = to_number(index)
    if math.isnan(position):
        return UNDEFINED
    position = int(position)
    if position < 0:
        position += len(value)
    if 0 <= position < len(value):
        return value[position]
    return UNDEFINED


def fmt_json(value: Any) -> str:
    if value is UNDEFINED:
        return ""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


BUILTIN_FORMATTERS: Dict[str, FormatterFunction] = {
    "date": fmt_date,
    "formatDate": fmt_date,
    "addDays": fmt_add_days,
    "relativeTime": fmt_relative_time,
    "number": fmt_number,
    "formatNumber": fmt_number,
    "currency": fmt_currency,
    "percentage": fmt_percentage,
    "thousands": fmt_thousands,
    "seq": fmt_seq,
    "upper": fmt_upper,
    "upperCase": fmt_upper,
    "lower": fmt_lower,
    "lowerCase": fmt_lower,
    "capitalize": fmt_capitalize,
    "titleCase": fmt_title_case,
    "truncate": fmt_truncate,
    "trim": fmt_trim,
    "replace": fmt_replace,
    "default": fmt_default,
    "ifEmpty": fmt_if_empty,
    "ifEqual": fmt_if_equal,
    "ifTrue": fmt_if_true,
    "length": fmt_length,
    "join": fmt_join,
    "at": fmt_at,
    "json": fmt_json,
}


class FormatterRegistry:
    """Name → formatter table, frozen once rendering starts."""

    def __init__(
        self,
        formatters: Optional[Dict[str, FormatterFunction]] = None,
        aggregations: Optional[Dict[str, FormatterFunction]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._formatters: Dict[str, FormatterFunction] = dict(formatters or {})
        self._aggregations: Dict[str, FormatterFunction] = dict(aggregations or {})
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, name: str, fn: FormatterFunction, allow_late: bool = False) -> None:
        if not name or not callable(fn):
            raise ValueError(f"Invalid formatter registration: {name!r}")
        with self._lock:
            if self._frozen and not allow_late:
                raise RuntimeError(
                    f"Cannot register formatter '{name}': registry is frozen after first use"
                )
            self._formatters[name] = fn
        logger.debug(f"Registered formatter '{name}'")

    def register_aggregation(self, name: str, fn: FormatterFunction, allow_late: bool = False) -> None:
        with self._lock:
            if self._frozen and not allow_late:
                raise RuntimeError(
                    f"Cannot register aggregation '{name}': registry is frozen after first use"
                )
            self._aggregations[name] = fn

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def get(self, name: str) -> Optional[FormatterFunction]:
        return self._formatters.get(name)

    def names(self) -> List[str]:
        return sorted(set(self._formatters) | set(self._aggregations))

    def __contains__(self, name: str) -> bool:
        return name in self._formatters or name in self._aggregations

    def apply(self, value: Any, name: str, args: Iterable[Any] = ()) -> Tuple[Any, bool]:
        """Run formatter ``name``; returns ``(value, known)``.

        Unknown names pass the value through unchanged.
        """
        fn = self._formatters.get(name)
        if fn is not None:
            return fn(value, *args), True

        aggregate = self._aggregations.get(name)
        if aggregate is not None:
            if isinstance(value, (list, tuple)):
                return aggregate(list(value), *args), True
            return value, True

        return value, False


registry = FormatterRegistry(BUILTIN_FORMATTERS, AGGREGATIONS)


def register_formatter(name: str, fn: FormatterFunction, allow_late: bool = False) -> None:
    """Add a formatter to the process-wide registry."""
    registry.register(name, fn, allow_late=allow_late)


def get_formatter(name: str) -> Optional[FormatterFunction]:
    return registry.get(name)
