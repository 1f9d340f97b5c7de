"""Data operations applied before template expansion: computed fields and block flags."""

from __future__ import annotations

import ast
import copy
import json
import logging
import math
import operator
import re
from typing import Any, Callable, Dict

from wordtemplate.engine.scope import get_value_by_path
from wordtemplate.engine.values import UNDEFINED, format_number, is_number
from wordtemplate.schemas import OperationsInput, coerce_operations

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"\$\{([^}]+)\}")
# Only plain arithmetic is evaluated; anything else is kept as text.
_ARITHMETIC_RE = re.compile(r"^[\d\s+\-*/().]+$")


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left)
    return left / right


_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _divide,
}
_UNARY_OPERATORS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def evaluate_arithmetic(text: str) -> Any:
    """Evaluate ``+ - * /`` over numeric literals by walking the parsed tree.

    Raises ``ValueError`` for any other construct and ``SyntaxError`` for
    text that does not parse.
    """
    tree = ast.parse(text.strip(), mode="eval")

    def _eval(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and is_number(node.value):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
            return _BINARY_OPERATORS[type(node.op)](_eval(node.left), _eval(node.right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
            return _UNARY_OPERATORS[type(node.op)](_eval(node.operand))
        raise ValueError(f"Unsupported expression element: {type(node).__name__}")

    return _eval(tree)


def _literal(value: Any) -> str:
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return f'"{value}"'
    if value is UNDEFINED:
        return "undefined"
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def evaluate_computed(expression: str, data: Dict[str, Any]) -> Any:
    """Fill ``${path}`` references from ``data`` and evaluate the arithmetic.

    ``"${price} * ${qty}"`` gives a number; an expression that is not plain
    arithmetic after substitution is returned as the substituted text.
    """
    text = _FIELD_RE.sub(lambda match: _literal(get_value_by_path(data, match.group(1).strip())), expression)
    if not _ARITHMETIC_RE.match(text):
        return text
    try:
        return evaluate_arithmetic(text)
    except (SyntaxError, ValueError, OverflowError) as e:
        logger.debug(f"Computed expression kept as written: {expression} ({e})")
        return expression


def set_value_by_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """Assign along a dotted path, replacing non-dict members on the way."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


class FieldOperations:
    """Adds computed fields and ``_show_<block>`` flags to a copy of the data."""

    def apply(self, data: Dict[str, Any], config: OperationsInput = None) -> Dict[str, Any]:
        config = coerce_operations(config)
        if not config.computed and not config.conditional_blocks:
            return data

        result = copy.deepcopy(data)
        for name, expression in config.computed.items():
            # Computed fields read the caller's data, never each other.
            value = evaluate_computed(expression, data)
            set_value_by_path(result, name, value)
            logger.debug(f"Computed field {name} = {value!r}")

        for block, visible in config.conditional_blocks.items():
            set_value_by_path(result, f"_show_{block}", visible)

        return result
