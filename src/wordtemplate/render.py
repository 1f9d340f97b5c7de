"""Render orchestration: prepare a package, expand every markup part, repackage."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lxml import etree
from pydantic import ValidationError

from wordtemplate.config import settings
from wordtemplate.conversion.service import NormalizationResult, Normalizer
from wordtemplate.docx_package.loader import DOCUMENT_PART, TemplatePackage, load_template
from wordtemplate.docx_package.source import SourceDetectionResult, SourceDetector
from wordtemplate.engine.expressions import ExpressionEvaluator
from wordtemplate.engine.formatters import FormatterFunction, FormatterRegistry, registry as default_registry
from wordtemplate.engine.processor import TemplateProcessor
from wordtemplate.engine.tokens import PLACEHOLDER_RE, match_blocks, tokenize, unclosed_message
from wordtemplate.exceptions import AppError, TemplateRenderError, TemplateValidationError
from wordtemplate.operations.fields import FieldOperations
from wordtemplate.operations.tables import TablePageBreaker
from wordtemplate.schemas import OperationsInput, coerce_operations
from wordtemplate.utils import unescape_xml

logger = logging.getLogger(__name__)


@dataclass
class PreparedTemplate:
    package: TemplatePackage
    detection: SourceDetectionResult
    normalization: NormalizationResult


@dataclass
class RenderResult:
    content: bytes
    warnings: List[str] = field(default_factory=list)
    parts: List[str] = field(default_factory=list)


class TemplateEngine:
    """Entry point used by the CLI and by library callers.

    The engine holds no per-render state; each render works on a copy of
    the package with a fresh processor per part.
    """

    def __init__(
        self,
        formatters: Optional[FormatterRegistry] = None,
        detector: Optional[SourceDetector] = None,
        normalizer: Optional[Normalizer] = None,
        table_breaker: Optional[TablePageBreaker] = None,
        field_operations: Optional[FieldOperations] = None,
    ) -> None:
        self.formatters = formatters or default_registry
        self.detector = detector or SourceDetector()
        self.normalizer = normalizer or Normalizer()
        self.table_breaker = table_breaker or TablePageBreaker()
        self.field_operations = field_operations or FieldOperations()

    def register_formatter(self, name: str, fn: FormatterFunction, allow_late: bool = False) -> None:
        self.formatters.register(name, fn, allow_late=allow_late)

    def prepare(self, data: bytes, filename: str = "template.docx") -> PreparedTemplate:
        """Load, classify and, when needed, normalize an uploaded template."""
        package = load_template(data, filename)
        detection = self.detector.detect(package)
        normalization = self.normalizer.normalize_if_needed(data, detection)
        if normalization.normalized:
            package = load_template(normalization.data, filename)
        return PreparedTemplate(package=package, detection=detection, normalization=normalization)

    def render(
        self,
        package: TemplatePackage,
        data: Optional[Dict[str, Any]],
        operations: OperationsInput = None,
    ) -> RenderResult:
        try:
            config = coerce_operations(operations)
        except ValidationError as exc:
            raise TemplateValidationError(
                "Invalid operations configuration",
                details={"errors": exc.errors(include_url=False)},
            ) from exc

        output = package.copy()
        warnings: List[str] = []
        parts = output.markup_parts()
        logger.debug(f"Rendering {package.filename}: {', '.join(parts)}")

        try:
            data = self.field_operations.apply(data or {}, config)
            for name in parts:
                processor = TemplateProcessor(formatters=self.formatters)
                result = processor.process(output.read_text(name), data)
                content = result.content

                # Header markers are stripped by default, so this runs without a config too.
                if name == DOCUMENT_PART:
                    content = self.table_breaker.process_document(content, config)

                if settings.verify_output_xml:
                    self._verify_xml(name, content)

                output.write_text(name, content)
                warnings.extend(result.warnings)
                logger.debug(f"Processed {name} with {len(result.warnings)} warnings")

            rendered = output.to_bytes()
        except AppError:
            raise
        except Exception as exc:
            logger.exception(f"Template rendering failed for {package.filename}")
            raise TemplateRenderError(
                "Unexpected error during rendering",
                details={"filename": package.filename, "error": str(exc)},
            ) from exc

        logger.info(f"Rendered {package.filename} ({len(parts)} parts, {len(warnings)} warnings)")
        return RenderResult(content=rendered, warnings=warnings, parts=parts)

    @staticmethod
    def _verify_xml(name: str, content: str) -> None:
        try:
            etree.fromstring(content.encode("utf-8"))
        except etree.XMLSyntaxError as exc:
            raise TemplateRenderError(
                f"Rendered {name} is not well-formed XML: {exc}",
                details={"part": name},
            ) from exc

    def parse_template(self, package: TemplatePackage) -> List[str]:
        """Every ``${...}`` payload in the markup parts, in document order."""
        expressions: List[str] = []
        for name in package.markup_parts():
            content = package.read_text(name)
            expressions.extend(unescape_xml(match.group(1)) for match in PLACEHOLDER_RE.finditer(content))
        return expressions

    def validate_template(self, package: TemplatePackage, strict: bool = False) -> Tuple[bool, List[str]]:
        """Check block balance and formatter names without rendering.

        With ``strict`` set, an invalid template raises ``TemplateValidationError``.
        """
        evaluator = ExpressionEvaluator(self.formatters)
        issues: List[str] = []

        for name in package.markup_parts():
            tokens = tokenize(package.read_text(name), evaluator)
            matched = match_blocks(tokens)
            part_issues = list(matched.problems)
            part_issues.extend(unclosed_message(token) for token in matched.unclosed)
            for token in tokens:
                for formatter in evaluator.unknown_formatters(token.expression):
                    part_issues.append(f"Unknown formatter '{formatter}' in: {token.source}")
            issues.extend(f"{name}: {issue}" for issue in part_issues)

        valid = not issues
        if strict and not valid:
            raise TemplateValidationError(
                f"Template {package.filename} has {len(issues)} issue(s)",
                details={"issues": issues},
            )
        return valid, issues
