"""Operations applied around template expansion: data preparation and table pagination."""

from .fields import FieldOperations, evaluate_arithmetic, evaluate_computed
from .tables import TablePageBreaker, TableDescriptor, find_tables, PAGE_BREAK_XML

__all__ = [
    "FieldOperations",
    "evaluate_arithmetic",
    "evaluate_computed",
    "TablePageBreaker",
    "TableDescriptor",
    "find_tables",
    "PAGE_BREAK_XML",
]
