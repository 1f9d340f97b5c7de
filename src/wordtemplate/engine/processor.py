"""Template processor: repair, block expansion and substitution for one markup part."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from wordtemplate.config import settings
from wordtemplate.engine.edits import EditList
from wordtemplate.engine.expressions import ExpressionEvaluator
from wordtemplate.engine.formatters import FormatterRegistry, registry as default_registry
from wordtemplate.engine.repair import XmlRepair
from wordtemplate.engine.scope import LoopMeta, ScopeManager
from wordtemplate.engine.tokens import (
    PLACEHOLDER_RE,
    BlockSpan,
    MatchResult,
    match_blocks,
    tokenize,
    unclosed_message,
)
from wordtemplate.engine.values import UNDEFINED, to_text
from wordtemplate.utils import escape_xml, strip_tags, unescape_xml

logger = logging.getLogger(__name__)

# Marks where block output was spliced in; never valid in XML, removed before returning.
MARK = "\x00"

_ROW_RE = re.compile(r"<w:tr(?:\s[^>]*)?(?<!/)>(?:(?!<w:tr[\s>/]).)*?</w:tr>", re.S)


@dataclass
class ProcessResult:
    content: str
    warnings: List[str] = field(default_factory=list)


class TemplateProcessor:
    """Expands one markup part against a data tree.

    A processor keeps per-render state (scope stack, warnings), so each
    render, and each thread, should use its own instance.
    """

    def __init__(
        self,
        formatters: Optional[FormatterRegistry] = None,
        max_block_passes: Optional[int] = None,
    ) -> None:
        self.formatters = formatters or default_registry
        self.evaluator = ExpressionEvaluator(self.formatters)
        self.scope = ScopeManager()
        self.xml_repair = XmlRepair()
        self.max_block_passes = max_block_passes or settings.max_block_passes
        self.warnings: List[str] = []

    def process(self, markup: str, data: Any) -> ProcessResult:
        self.formatters.freeze()
        self.warnings = []
        self.scope.initialize(data if data is not None else {})

        result = self.xml_repair.repair(markup)
        result = self._expand_blocks(result)
        result = self._remove_empty_rows(result)
        result = self._substitute(result)
        result = result.replace(MARK, "")

        if self.warnings:
            logger.debug(f"Processed part with {len(self.warnings)} warnings")
        return ProcessResult(content=result, warnings=list(self.warnings))

    # ============= blocks =============

    def _expand_blocks(self, text: str) -> str:
        """Expand outermost blocks until none are left to expand."""
        for _ in range(self.max_block_passes):
            matched = match_blocks(tokenize(text, self.evaluator))
            self._report(matched)
            edits = EditList()
            for block in matched.outermost():
                edits.replace(block.start, block.end, self._expand_block(block, text))

            if not edits:
                return text
            text = edits.apply(text)

        self._warn(
            f"Block expansion stopped after {self.max_block_passes} passes; "
            "the template may contain unbalanced blocks"
        )
        return text

    def _expand_block(self, block: BlockSpan, text: str) -> str:
        if block.kind == "loop":
            return self._expand_loop(block, text)
        return self._expand_condition(block, text)

    def _expand_loop(self, block: BlockSpan, text: str) -> str:
        path = block.opener.expression.path
        body = text[block.opener.end:block.closer.start]

        try:
            items = self.evaluator.evaluate_value(self.evaluator.parse(path), self.scope)
        except Exception as e:
            self._warn(f"Error evaluating: {path} - {e}")
            return MARK

        if items is UNDEFINED or items is None:
            return MARK
        if not isinstance(items, (list, tuple)):
            self._warn(f"Expected array for loop: {path}")
            return MARK

        count = len(items)
        rendered = []
        for index, item in enumerate(items):
            meta = LoopMeta(index=index, is_first=index == 0, is_last=index == count - 1, count=count)
            self.scope.push_scope(item, meta)
            try:
                rendered.append(self._render_fragment(body))
            finally:
                self.scope.pop_scope()

        logger.debug(f"Expanded loop over '{path}' with {count} items")
        return MARK + MARK.join(rendered) + MARK

    def _expand_condition(self, block: BlockSpan, text: str) -> str:
        # The first true branch wins; the others are dropped without being evaluated.
        for marker, body_start, body_end in block.sections():
            expression = marker.expression
            if expression.kind == "condition_else" or self.evaluator.evaluate_condition(
                expression.condition, self.scope
            ):
                return MARK + self._expand_blocks(text[body_start:body_end]) + MARK
        return MARK

    def _render_fragment(self, body: str) -> str:
        return self._substitute(self._expand_blocks(body))

    def _report(self, matched: MatchResult) -> None:
        for problem in matched.problems:
            self._warn(problem)
        for token in matched.unclosed:
            self._warn(unclosed_message(token))

    # ============= rows =============

    def _remove_empty_rows(self, text: str) -> str:
        """Drop table rows left without any text by block expansion."""
        if MARK not in text:
            return text

        def _keep_or_drop(match: re.Match) -> str:
            row = match.group(0)
            if MARK in row and not strip_tags(row).replace(MARK, "").strip():
                return ""
            return row

        return _ROW_RE.sub(_keep_or_drop, text)

    # ============= leaves =============

    def _substitute(self, text: str) -> str:
        return PLACEHOLDER_RE.sub(self._replace_placeholder, text)

    def _replace_placeholder(self, match: re.Match) -> str:
        expression = unescape_xml(match.group(1))
        try:
            parsed = self.evaluator.parse(expression)
            if parsed.is_block_marker:
                # Unmatched markers stay visible; they were reported during block expansion.
                return match.group(0)
            for name in self.evaluator.unknown_formatters(parsed):
                self._warn(f"Unknown formatter '{name}' in: {expression}")
            value = self.evaluator.evaluate_value(parsed, self.scope)
        except Exception as e:
            self._warn(f"Error evaluating: {expression} - {e}")
            return ""

        if value is UNDEFINED:
            self._warn(f"Undefined value for: {expression}")
            return ""

        rendered = to_text(value)
        if not rendered:
            return ""
        # Data must never introduce new placeholders.
        return escape_xml(rendered).replace("${", "&#36;{")

    def _warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)
            logger.debug(f"Template warning: {message}")
