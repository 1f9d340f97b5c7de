"""Aggregation formatters over lists, e.g. ``${items|sum:amount}``.

Each takes the list and an optional field path evaluated per item.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, List, Optional

from wordtemplate.engine.scope import get_value_by_path
from wordtemplate.engine.values import UNDEFINED, strict_equals, to_number, to_text

AggregationFunction = Callable[..., Any]


def _field(item: Any, field: Optional[str]) -> Any:
    if not field:
        return item
    return get_value_by_path(item, str(field))


def _numbers(items: List[Any], field: Optional[str]) -> List[float]:
    values = (to_number(_field(item, field)) for item in items)
    return [value for value in values if not math.isnan(value)]


def agg_sum(items: List[Any], field: Optional[str] = None) -> float:
    return sum(_numbers(items, field))


def agg_count(items: List[Any], field: Optional[str] = None) -> int:
    return len(items)


def agg_avg(items: List[Any], field: Optional[str] = None) -> float:
    numbers = _numbers(items, field)
    if not numbers:
        return 0
    return sum(numbers) / len(numbers)


def agg_min(items: List[Any], field: Optional[str] = None) -> Optional[float]:
    numbers = _numbers(items, field)
    return min(numbers) if numbers else None


def agg_max(items: List[Any], field: Optional[str] = None) -> Optional[float]:
    numbers = _numbers(items, field)
    return max(numbers) if numbers else None


def agg_first(items: List[Any], field: Optional[str] = None) -> Any:
    return _field(items[0], field) if items else None


def agg_last(items: List[Any], field: Optional[str] = None) -> Any:
    return _field(items[-1], field) if items else None


def agg_unique(items: List[Any], field: Optional[str] = None) -> List[Any]:
    unique: List[Any] = []
    for item in items:
        value = _field(item, field)
        if not any(strict_equals(value, seen) for seen in unique):
            unique.append(value)
    return unique


def agg_pluck(items: List[Any], field: Optional[str] = None) -> List[Any]:
    if not field:
        return list(items)
    return [_field(item, field) for item in items]


def agg_filter(items: List[Any], field: Optional[str] = None, value: Any = UNDEFINED) -> List[Any]:
    if not field:
        return list(items)
    if value is UNDEFINED:
        # ``filter:active`` keeps items whose field is set
        return [item for item in items if _field(item, field)]
    return [item for item in items if strict_equals(_field(item, field), value)]


def agg_sort(items: List[Any], field: Optional[str] = None, order: Any = "asc") -> List[Any]:
    def _key(item: Any):
        value = _field(item, field)
        if value is None or value is UNDEFINED:
            return (2, 0, "")
        number = to_number(value)
        if not isinstance(value, str) and not math.isnan(number):
            return (0, number, "")
        return (1, 0, to_text(value))

    ordered = sorted(items, key=_key)
    if str(order).lower() == "desc":
        present = [item for item in ordered if _key(item)[0] < 2]
        missing = [item for item in ordered if _key(item)[0] == 2]
        ordered = list(reversed(present)) + missing
    return ordered


def agg_group_by(items: List[Any], field: Optional[str] = None) -> Dict[str, List[Any]]:
    if not field:
        return {"default": list(items)}
    groups: Dict[str, List[Any]] = {}
    for item in items:
        value = _field(item, field)
        key = "undefined" if value is UNDEFINED else to_text(value) if value is not None else "null"
        groups.setdefault(key, []).append(item)
    return groups


AGGREGATIONS: Dict[str, AggregationFunction] = {
    "sum": agg_sum,
    "count": agg_count,
    "avg": agg_avg,
    "min": agg_min,
    "max": agg_max,
    "first": agg_first,
    "last": agg_last,
    "unique": agg_unique,
    "pluck": agg_pluck,
    "filter": agg_filter,
    "sort": agg_sort,
    "groupBy": agg_group_by,
}
