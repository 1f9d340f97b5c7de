"""Value semantics for template data.

Template data arrives as JSON, so values follow JSON/JavaScript rules:
a missing key is ``UNDEFINED`` (distinct from an explicit ``None``),
truthiness treats empty containers as true, and numeric coercion
yields NaN instead of raising.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

_DECIMAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")


class _Undefined:
    """Marker for a path that does not resolve to anything."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


def is_blank(value: Any) -> bool:
    """True for undefined, null and the empty string."""
    return value is UNDEFINED or value is None or value == ""


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def js_truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    # Empty lists and dicts are truthy, as in JavaScript.
    return True


def to_number(value: Any) -> float:
    """Loose numeric coercion; anything non-numeric becomes NaN."""
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if _DECIMAL_RE.match(text):
            return float(text)
        if _HEX_RE.match(text):
            return float(int(text, 16))
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        return math.nan
    if isinstance(value, (list, tuple)) and not value:
        return 0.0
    return math.nan


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without type coercion."""
    if left is UNDEFINED or right is UNDEFINED:
        return left is right
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def to_text(value: Any) -> str:
    """Render a resolved value the way it appears in the document."""
    if value is UNDEFINED or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)
