"""Template engine - placeholder parsing, scope resolution and block expansion."""

from .expressions import ExpressionEvaluator, ParsedExpression, Condition, FormatterCall
from .formatters import FormatterRegistry, registry, register_formatter, get_formatter
from .processor import TemplateProcessor, ProcessResult
from .repair import XmlRepair
from .scope import ScopeManager, LoopMeta, get_value_by_path
from .tokens import tokenize, match_blocks
from .values import UNDEFINED

__all__ = [
    "ExpressionEvaluator",
    "ParsedExpression",
    "Condition",
    "FormatterCall",
    "FormatterRegistry",
    "registry",
    "register_formatter",
    "get_formatter",
    "TemplateProcessor",
    "ProcessResult",
    "XmlRepair",
    "ScopeManager",
    "LoopMeta",
    "get_value_by_path",
    "tokenize",
    "match_blocks",
    "UNDEFINED",
]
