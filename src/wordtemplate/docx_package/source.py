"""Classify which application produced a template.

Word keeps a placeholder typed in one go inside a single run most of the
time; LibreOffice and Google Docs exports split runs far more eagerly.
Anything not recognisably Word is therefore normalized before templating.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Literal, Optional

from lxml import etree

from wordtemplate.docx_package.loader import DOCUMENT_PART, TemplatePackage
from wordtemplate.exceptions import TemplateLoadError

logger = logging.getLogger(__name__)

TemplateSource = Literal["microsoft-word", "libreoffice", "google-docs", "unknown"]
Confidence = Literal["high", "medium", "low"]

APP_PART = "docProps/app.xml"
CORE_PART = "docProps/core.xml"

_APP_FIELDS = {"Application": "application", "AppVersion": "app_version", "Company": "company"}
_CORE_FIELDS = {"creator": "creator", "lastModifiedBy": "last_modified_by"}

_LIBREOFFICE_NAMES = ("libreoffice", "libre office", "openoffice", "open office")
_OTHER_EDITORS = ("onlyoffice", "wps office", "wps-office")

_SPLIT_MARKER_RE = re.compile(
    r"<w:t(?:\s[^>]*)?>[^<]*\$\{[^}<]*</w:t>(?:(?!</w:p>).)*?<w:t(?:\s[^>]*)?>[^{<]*\}", re.S
)


@dataclass
class SourceDetectionResult:
    source: TemplateSource
    confidence: Confidence
    needs_normalization: bool
    application: Optional[str] = None
    version: Optional[str] = None
    details: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def _read_metadata(package: TemplatePackage, part: str, fields: Dict[str, str]) -> Dict[str, str]:
    data = package.read_optional(part)
    if not data:
        return {}
    try:
        root = etree.fromstring(data)
    except etree.XMLSyntaxError as exc:
        logger.warning(f"Ignoring malformed {part} in {package.filename}: {exc}")
        return {}

    result: Dict[str, str] = {}
    for child in root:
        if not isinstance(child.tag, str):
            continue
        key = fields.get(etree.QName(child).localname)
        if key and key not in result:
            result[key] = (child.text or "").strip()
    return result


class SourceDetector:
    """Reads ``docProps`` metadata and decides whether normalization is needed."""

    def detect(self, package: TemplatePackage) -> SourceDetectionResult:
        app_info = _read_metadata(package, APP_PART, _APP_FIELDS)
        core_info = _read_metadata(package, CORE_PART, _CORE_FIELDS)
        details = {**app_info, **core_info}

        application = app_info.get("application") or None
        version = app_info.get("app_version") or None
        app_name = (application or "").lower()
        creator = core_info.get("creator", "").lower()

        if "google" in creator or "google" in app_name:
            logger.info("Detected Google Docs template")
            return SourceDetectionResult(
                source="google-docs",
                confidence="high",
                needs_normalization=True,
                application="Google Docs",
                details=details,
            )

        if any(name in app_name for name in _LIBREOFFICE_NAMES):
            logger.info(f"Detected LibreOffice template: {application}")
            return SourceDetectionResult(
                source="libreoffice",
                confidence="high",
                needs_normalization=True,
                application=application,
                version=version,
                details=details,
            )

        if any(name in app_name for name in _OTHER_EDITORS):
            logger.info(f"Detected non-Word editor: {application}")
            return SourceDetectionResult(
                source="unknown",
                confidence="high",
                needs_normalization=True,
                application=application,
                version=version,
                details=details,
            )

        if "microsoft" in app_name or "word" in app_name:
            logger.info(f"Detected Microsoft Word template: {application}")
            return SourceDetectionResult(
                source="microsoft-word",
                confidence="high",
                needs_normalization=False,
                application=application,
                version=version,
                details=details,
            )

        if not application and not version:
            # Google Docs exports ship without application metadata.
            logger.info("No application metadata, treating as Google Docs export")
            return SourceDetectionResult(
                source="google-docs",
                confidence="medium",
                needs_normalization=True,
                application=None,
                details=details,
            )

        logger.warning(f"Could not determine template source: {application}")
        return SourceDetectionResult(
            source="unknown",
            confidence="low",
            needs_normalization=True,
            application=application,
            version=version,
            details=details,
        )


def check_template_markers(package: TemplatePackage) -> List[str]:
    """Report placeholders split across text runs and unbalanced braces in the body."""
    issues: List[str] = []
    try:
        document = package.read_text(DOCUMENT_PART)
    except TemplateLoadError as exc:
        return [f"Unable to read {DOCUMENT_PART}: {exc}"]

    split_count = len(_SPLIT_MARKER_RE.findall(document))
    if split_count:
        issues.append(f"Found {split_count} potentially split template markers")

    opening = document.count("${")
    closing = document.count("}")
    if opening > closing:
        issues.append(f"Unbalanced braces: {opening} open, {closing} close")

    return issues
