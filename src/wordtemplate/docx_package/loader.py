"""Load, inspect and rewrite .docx packages."""

from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from wordtemplate.config import settings
from wordtemplate.exceptions import TemplateLoadError

logger = logging.getLogger(__name__)

CONTENT_TYPES = "[Content_Types].xml"
DOCUMENT_PART = "word/document.xml"
REQUIRED_PARTS = (CONTENT_TYPES, DOCUMENT_PART)

# Parts that may carry placeholders.
MARKUP_PART_RE = re.compile(r"^word/(document|header\d*|footer\d*)\.xml$")


@dataclass
class TemplatePackage:
    """In-memory copy of a .docx archive.

    ``order`` keeps the member order of the source archive so the rewritten
    package lists its parts the way the authoring tool wrote them.
    """

    filename: str
    parts: Dict[str, bytes] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    def copy(self) -> "TemplatePackage":
        return TemplatePackage(filename=self.filename, parts=dict(self.parts), order=list(self.order))

    def file_list(self) -> List[str]:
        return list(self.order)

    def markup_parts(self) -> List[str]:
        return [name for name in self.order if MARKUP_PART_RE.match(name)]

    def read_text(self, name: str) -> str:
        data = self.parts.get(name)
        if data is None:
            raise TemplateLoadError(f"Part not found in {self.filename}: {name}", details={"part": name})
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TemplateLoadError(
                f"Part is not valid UTF-8 in {self.filename}: {name}",
                details={"part": name, "error": str(exc)},
            ) from exc

    def read_optional(self, name: str) -> Optional[bytes]:
        return self.parts.get(name)

    def write_text(self, name: str, text: str) -> None:
        if name not in self.parts:
            self.order.append(name)
        self.parts[name] = text.encode("utf-8")

    def to_bytes(self) -> bytes:
        names = list(self.order)
        if CONTENT_TYPES in names:
            names.remove(CONTENT_TYPES)
            names.insert(0, CONTENT_TYPES)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name in names:
                zf.writestr(name, self.parts[name])
        return buffer.getvalue()


def load_template(data: bytes, filename: str = "template.docx") -> TemplatePackage:
    """Validate ``data`` as a .docx archive and read every member into memory."""
    logger.debug(f"Loading template from buffer: {filename} ({len(data)} bytes)")

    if len(data) < 4:
        raise TemplateLoadError(
            f"Invalid template file: {filename} - file too small",
            details={"filename": filename, "size": len(data)},
        )
    if len(data) > settings.max_template_bytes:
        raise TemplateLoadError(
            f"Invalid template file: {filename} - exceeds {settings.max_template_bytes} bytes",
            status_code=413,
            details={"filename": filename, "size": len(data)},
        )
    if data[:2] != b"PK":
        raise TemplateLoadError(
            f"Invalid template file: {filename} - not a valid DOCX/ZIP file",
            details={"filename": filename},
        )

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            package = TemplatePackage(filename=filename)
            for info in zf.infolist():
                if info.is_dir():
                    continue
                package.parts[info.filename] = zf.read(info)
                package.order.append(info.filename)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, ValueError) as exc:
        raise TemplateLoadError(
            f"Failed to parse template: {filename}",
            details={"filename": filename, "error": str(exc)},
        ) from exc

    for required in REQUIRED_PARTS:
        if required not in package.parts:
            raise TemplateLoadError(
                f"Invalid DOCX structure: {filename} - missing {required}",
                details={"filename": filename, "missing_file": required},
            )

    return package


def load_template_file(path: Union[str, Path]) -> TemplatePackage:
    path = Path(path)
    logger.debug(f"Loading template from file: {path}")
    try:
        data = path.read_bytes()
    except FileNotFoundError as exc:
        raise TemplateLoadError(f"Template file not found: {path}", details={"path": str(path)}) from exc
    except OSError as exc:
        raise TemplateLoadError(
            f"Failed to load template from file: {path}",
            details={"path": str(path), "error": str(exc)},
        ) from exc
    return load_template(data, path.name)
