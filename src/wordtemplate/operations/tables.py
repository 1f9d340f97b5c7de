"""Table pagination: page breaks before tables, row keep-together, header repetition."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from wordtemplate.config import settings
from wordtemplate.engine.edits import EditList
from wordtemplate.schemas import OperationsConfig, OperationsInput, coerce_operations

logger = logging.getLogger(__name__)

PAGE_BREAK_XML = '<w:p><w:r><w:br w:type="page"/></w:r></w:p>'

# <w:tbl> and <w:tr> only; the lookahead keeps out <w:tblPr>, <w:trPr> and friends.
_TABLE_TAG_RE = re.compile(r"<(/?)w:(tbl|tr)(?=[\s>/])[^>]*>")
_TBL_PR_EX_RE = re.compile(r"\s*<w:tblPrEx(?:\s[^>]*)?(?:/>|(?<!/)>.*?</w:tblPrEx>)", re.S)
_TR_PR_EMPTY_RE = re.compile(r"\s*<w:trPr(?:\s[^>]*)?/>")
_TR_PR_RE = re.compile(r"\s*<w:trPr(?:\s[^>]*)?(?<!/)>(.*?)</w:trPr>", re.S)

_HEADER_SELF_CLOSING_RE = re.compile(r"<w:tblHeader(?:\s[^>]*)?/>")
_HEADER_PAIRED_RE = re.compile(r"<w:tblHeader(?:\s[^>]*)?(?<!/)>.*?</w:tblHeader>", re.S)

@dataclass
class RowSpan:
    start: int
    open_end: int
    end: int


@dataclass
class TableDescriptor:
    """A top-level ``<w:tbl>`` located by character offsets into the markup."""

    start: int
    end: int
    row_count: int
    rows: List[RowSpan] = field(default_factory=list)

    def is_long(self, threshold: int) -> bool:
        return self.row_count > threshold


def find_tables(xml: str) -> List[TableDescriptor]:
    """Locate top-level tables and their direct rows.

    Tables nested in a cell belong to their parent table and are not
    reported; their rows are not counted toward the parent.
    """
    tables: List[TableDescriptor] = []
    depth = 0
    table_start = 0
    rows: List[RowSpan] = []
    row_start: Optional[int] = None
    row_open_end = 0

    for match in _TABLE_TAG_RE.finditer(xml):
        if match.group(0).endswith("/>"):
            continue
        closing = match.group(1) == "/"
        name = match.group(2)

        if name == "tbl":
            if not closing:
                depth += 1
                if depth == 1:
                    table_start = match.start()
                    rows = []
                    row_start = None
            elif depth > 0:
                depth -= 1
                if depth == 0:
                    tables.append(
                        TableDescriptor(start=table_start, end=match.end(), row_count=len(rows), rows=rows)
                    )
        elif depth == 1:
            if not closing:
                row_start = match.start()
                row_open_end = match.end()
            elif row_start is not None:
                rows.append(RowSpan(start=row_start, open_end=row_open_end, end=match.end()))
                row_start = None

    return tables


class TablePageBreaker:
    """Applies table operations to ``word/document.xml``."""

    def __init__(self, long_table_threshold: Optional[int] = None) -> None:
        self.long_table_threshold = long_table_threshold or settings.long_table_threshold

    def process_document(self, xml: str, config: OperationsInput = None) -> str:
        config = coerce_operations(config)
        tables = find_tables(xml)

        if not tables:
            logger.debug("No tables found in document")
            return xml

        logger.info(f"Found {len(tables)} table(s) in document")
        result = xml

        if config.table_page_breaking:
            edits = EditList()
            for table in tables:
                if self.should_add_page_break(table, config):
                    logger.debug(
                        f"Adding page break before table at offset {table.start} ({table.row_count} rows)"
                    )
                    edits.insert(table.start, PAGE_BREAK_XML)
                    self._keep_rows_together(xml, table, edits)
                else:
                    logger.debug(
                        f"Skipping page break for long table at offset {table.start} ({table.row_count} rows)"
                    )
            result = edits.apply(xml)

        if not config.repeat_table_header:
            result = self.remove_header_repetition(result)

        return result

    def should_add_page_break(self, table: TableDescriptor, config: OperationsConfig) -> bool:
        # A break before a table that splits across pages anyway gains nothing.
        if config.long_table_split:
            return True
        return not table.is_long(self.long_table_threshold)

    def _keep_rows_together(self, xml: str, table: TableDescriptor, edits: EditList) -> None:
        """Add ``cantSplit`` to every row and ``keepNext`` to all rows but the last."""
        last = len(table.rows) - 1
        for position, row in enumerate(table.rows):
            cursor = row.open_end
            prop_ex = _TBL_PR_EX_RE.match(xml, cursor, row.end)
            if prop_ex:
                cursor = prop_ex.end()

            empty_props = _TR_PR_EMPTY_RE.match(xml, cursor, row.end)
            existing = _TR_PR_RE.match(xml, cursor, row.end) if not empty_props else None
            current = existing.group(1) if existing else ""

            additions = ""
            if "<w:cantSplit" not in current:
                additions += "<w:cantSplit/>"
            if position != last and "<w:keepNext" not in current:
                additions += "<w:keepNext/>"
            if not additions:
                continue

            if empty_props:
                edits.replace(empty_props.start(), empty_props.end(), f"<w:trPr>{additions}</w:trPr>")
            elif existing:
                edits.insert(existing.start(1), additions)
            else:
                edits.insert(cursor, f"<w:trPr>{additions}</w:trPr>")

    def remove_header_repetition(self, xml: str) -> str:
        """Strip every ``<w:tblHeader>`` marker, self-closing or paired."""
        result = _HEADER_SELF_CLOSING_RE.sub("", xml)
        result = _HEADER_PAIRED_RE.sub("", result)
        removed = len(xml) - len(result)
        if removed:
            logger.info(f"Removed table header repetition markers ({removed} characters)")
        return result
