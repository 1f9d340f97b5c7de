"""Merge placeholders that Word split across several runs.

Word often stores one placeholder in more than one ``<w:t>``::

    <w:r><w:t>${user.</w:t></w:r><w:r><w:rPr><w:b/></w:rPr><w:t>name}</w:t></w:r>

Such paragraphs are rebuilt as a single run carrying the paragraph
properties, the first run's properties and the joined text. Paragraphs
without a split placeholder are returned byte for byte.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from wordtemplate.utils import escape_xml, strip_tags, unescape_xml

logger = logging.getLogger(__name__)

# Innermost paragraphs only: text boxes nest paragraphs inside runs.
_PARAGRAPH_RE = re.compile(
    r"(<w:p(?:\s[^>]*)?(?<!/)>)((?:(?!<w:p[\s>/]).)*?)</w:p>",
    re.S,
)
_TEXT_RE = re.compile(r"<w:t(?:\s[^>]*)?(?<!/)>([^<]*)</w:t>")
_PPR_RE = re.compile(r"<w:pPr(?:\s[^>]*)?/>|<w:pPr(?:\s[^>]*)?(?<!/)>.*?</w:pPr>", re.S)
_RUN_RE = re.compile(r"<w:r(?:\s[^>]*)?(?<!/)>(.*?)</w:r>", re.S)
_RPR_RE = re.compile(r"<w:rPr(?:\s[^>]*)?/>|<w:rPr(?:\s[^>]*)?(?<!/)>.*?</w:rPr>", re.S)

# A placeholder whose text still crosses tags inside one paragraph.
_SPANNING_RE = re.compile(
    r"\$\{[^}<]*</w:t>(?:(?!</w:p>)[^}])*?<w:t(?:\s[^>]*)?(?<!/)>[^}<]*\}",
    re.S,
)
_MAX_SPANNING_PASSES = 50


def has_split_placeholder(parts: List[str]) -> bool:
    """True if a ``${`` is still open at the boundary between two text parts."""
    boundaries = set()
    offset = 0
    for part in parts[:-1]:
        offset += len(part)
        boundaries.add(offset)

    text = "".join(parts)
    depth = 0
    i = 0
    while i < len(text):
        if i in boundaries and depth > 0:
            return True
        if text.startswith("${", i):
            if i + 1 in boundaries:
                return True
            depth += 1
            i += 2
            continue
        if text[i] == "}" and depth > 0:
            depth -= 1
        i += 1
    return False


class XmlRepair:
    """Repairs split placeholders in one markup part."""

    def repair(self, markup: str) -> str:
        if "$" not in markup:
            return markup

        result = _PARAGRAPH_RE.sub(self._repair_paragraph, markup)
        return self._merge_spanning_placeholders(result)

    def _repair_paragraph(self, match: re.Match) -> str:
        content = match.group(2)
        parts = _TEXT_RE.findall(content)
        if len(parts) < 2 or not has_split_placeholder(parts):
            return match.group(0)

        text = escape_xml(unescape_xml("".join(parts)))
        logger.debug(f"Merging {len(parts)} text runs for split placeholder in: {text[:60]}")
        return self._rebuild_paragraph(match.group(1), content, text)

    def _rebuild_paragraph(self, open_tag: str, content: str, text: str) -> str:
        ppr_match = _PPR_RE.search(content)
        paragraph_props = ppr_match.group(0) if ppr_match else ""

        # Skip the paragraph properties so their run-mark rPr is not mistaken for the first run's.
        runs_area = content[ppr_match.end():] if ppr_match else content
        run_props = self._first_run_properties(runs_area) or ""

        return (
            f"{open_tag}{paragraph_props}"
            f"<w:r>{run_props}<w:t xml:space=\"preserve\">{text}</w:t></w:r>"
            "</w:p>"
        )

    @staticmethod
    def _first_run_properties(content: str) -> Optional[str]:
        first_props = None
        for run in _RUN_RE.finditer(content):
            run_body = run.group(1)
            props = _RPR_RE.match(run_body.lstrip())
            if _TEXT_RE.search(run_body):
                return props.group(0) if props else None
            if first_props is None and props:
                first_props = props.group(0)
        return first_props

    def _merge_spanning_placeholders(self, markup: str) -> str:
        result = markup
        for _ in range(_MAX_SPANNING_PASSES):
            merged = _SPANNING_RE.sub(lambda m: strip_tags(m.group(0)), result)
            if merged == result:
                break
            result = merged
        return result
