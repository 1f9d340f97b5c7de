"""DOCX package handling - loading, repackaging and source classification."""

from .loader import TemplatePackage, load_template, load_template_file, MARKUP_PART_RE
from .source import SourceDetector, SourceDetectionResult, check_template_markers

__all__ = [
    "TemplatePackage",
    "load_template",
    "load_template_file",
    "MARKUP_PART_RE",
    "SourceDetector",
    "SourceDetectionResult",
    "check_template_markers",
]
