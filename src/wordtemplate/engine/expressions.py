"""Parse and evaluate the payload of a single ``${...}`` placeholder.

Supported payloads:
- ``user.name``, ``items[0].name``, ``this``, ``this.name``, ``../name``, ``$index``
- ``value|formatter`` and ``value|formatter:arg|other`` (one argument each)
- ``#each items`` / ``/each``
- ``#if expr`` / ``#elseif expr`` / ``#else`` / ``/if``
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional

from wordtemplate.engine.formatters import FormatterRegistry, registry as default_registry
from wordtemplate.engine.scope import ScopeManager
from wordtemplate.engine.values import js_truthy, strict_equals, to_number, to_text
from wordtemplate.utils import normalize_quotes

ExpressionKind = Literal[
    "variable",
    "loop_start",
    "loop_end",
    "condition_start",
    "condition_else_if",
    "condition_else",
    "condition_end",
]
Operator = Literal["truthy", "eq", "neq", "gt", "lt", "gte", "lte"]

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")

# Longest operators first so ">" never matches inside ">=".
_CONDITION_PATTERNS = [
    ("eq", re.compile(r"^(.+?)\s*==\s*(.+)$", re.S)),
    ("neq", re.compile(r"^(.+?)\s*!=\s*(.+)$", re.S)),
    ("gte", re.compile(r"^(.+?)\s*>=\s*(.+)$", re.S)),
    ("lte", re.compile(r"^(.+?)\s*<=\s*(.+)$", re.S)),
    ("gt", re.compile(r"^(.+?)\s*>\s*(.+)$", re.S)),
    ("lt", re.compile(r"^(.+?)\s*<\s*(.+)$", re.S)),
]


@dataclass
class Condition:
    operator: Operator
    left: str
    right: Optional[str] = None


@dataclass
class FormatterCall:
    name: str
    args: List[Any] = field(default_factory=list)


@dataclass
class ParsedExpression:
    kind: ExpressionKind
    raw: str
    path: str = ""
    formatters: List[FormatterCall] = field(default_factory=list)
    condition: Optional[Condition] = None

    @property
    def is_block_marker(self) -> bool:
        return self.kind != "variable"


def parse_literal(text: str) -> Any:
    """Parse a right-hand literal: quoted string, boolean, number, null or bare word."""
    text = normalize_quotes(text).strip()

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if text == "true":
        return True
    if text == "false":
        return False
    if _NUMBER_RE.match(text):
        return float(text) if "." in text else int(text)
    if text == "null":
        return None
    return text


def parse_formatter_argument(text: str) -> Any:
    text = normalize_quotes(text).strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if _NUMBER_RE.match(text):
        return float(text) if "." in text else int(text)
    return text


def split_pipes(text: str) -> List[str]:
    """Split on ``|`` outside of quoted substrings."""
    parts: List[str] = []
    current: List[str] = []
    quote = ""

    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = ""
        elif char in ("'", '"'):
            quote = char
            current.append(char)
        elif char == "|":
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    if current:
        parts.append("".join(current))
    return parts


def parse_formatter_call(text: str) -> Optional[FormatterCall]:
    text = text.strip()
    if not text:
        return None
    name, colon, argument = text.partition(":")
    if not colon:
        return FormatterCall(name=name.strip())
    return FormatterCall(name=name.strip(), args=[parse_formatter_argument(argument)])


def parse_condition(expr: str) -> Condition:
    expr = expr.strip()
    for operator, pattern in _CONDITION_PATTERNS:
        match = pattern.match(expr)
        if match:
            return Condition(operator=operator, left=match.group(1).strip(), right=match.group(2).strip())
    return Condition(operator="truthy", left=expr)


class ExpressionEvaluator:
    """Turns placeholder payloads into instructions and values."""

    def __init__(self, formatters: Optional[FormatterRegistry] = None) -> None:
        self.formatters = formatters or default_registry

    def parse(self, raw: str) -> ParsedExpression:
        text = raw.strip()

        if text == "/each":
            return ParsedExpression(kind="loop_end", raw=raw)
        if text == "/if":
            return ParsedExpression(kind="condition_end", raw=raw)
        if text == "#else":
            return ParsedExpression(kind="condition_else", raw=raw)
        if text.startswith("#each "):
            return ParsedExpression(kind="loop_start", raw=raw, path=text[6:].strip())
        if text.startswith("#elseif "):
            condition = parse_condition(text[8:])
            return ParsedExpression(kind="condition_else_if", raw=raw, path=condition.left, condition=condition)
        if text.startswith("#if "):
            condition = parse_condition(text[4:])
            return ParsedExpression(kind="condition_start", raw=raw, path=condition.left, condition=condition)

        parts = split_pipes(text)
        path = parts[0].strip() if parts else ""
        calls = [call for call in (parse_formatter_call(part) for part in parts[1:]) if call]
        return ParsedExpression(kind="variable", raw=raw, path=path, formatters=calls)

    def evaluate_value(self, expression: ParsedExpression | str, scope: ScopeManager) -> Any:
        """Resolve the path and run the formatter chain left to right.

        Returns ``UNDEFINED`` when nothing resolves and no formatter supplied
        a value. Block markers evaluate to ``None``.
        """
        parsed = self.parse(expression) if isinstance(expression, str) else expression
        if parsed.kind != "variable":
            return None

        value = scope.resolve(parsed.path)
        for call in parsed.formatters:
            value, _known = self.formatters.apply(value, call.name, call.args)
        return value

    def evaluate(self, expression: ParsedExpression | str, scope: ScopeManager) -> str:
        return to_text(self.evaluate_value(expression, scope))

    def evaluate_condition(self, condition: Condition, scope: ScopeManager) -> bool:
        left = scope.resolve(condition.left)

        if condition.operator == "truthy":
            return js_truthy(left)

        right = parse_literal(condition.right or "")
        if condition.operator == "eq":
            return strict_equals(left, right)
        if condition.operator == "neq":
            return not strict_equals(left, right)

        left_number = to_number(left)
        right_number = to_number(right)
        if math.isnan(left_number) or math.isnan(right_number):
            return False
        if condition.operator == "gt":
            return left_number > right_number
        if condition.operator == "lt":
            return left_number < right_number
        if condition.operator == "gte":
            return left_number >= right_number
        if condition.operator == "lte":
            return left_number <= right_number
        return js_truthy(left)

    def unknown_formatters(self, parsed: ParsedExpression) -> List[str]:
        return [call.name for call in parsed.formatters if call.name not in self.formatters]
