"""Normalization policy: decide whether a template is re-saved before templating."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from wordtemplate.config import settings
from wordtemplate.conversion.utils import normalize_bytes
from wordtemplate.docx_package.source import SourceDetectionResult

logger = logging.getLogger(__name__)

NormalizeFunction = Callable[[bytes], bytes]


@dataclass
class NormalizationResult:
    normalized: bool
    data: bytes
    reason: str


class Normalizer:
    """Runs the external normalizer only when the detected source calls for it."""

    def __init__(self, normalize: Optional[NormalizeFunction] = None, enabled: Optional[bool] = None) -> None:
        self._normalize = normalize or normalize_bytes
        self.enabled = settings.enable_normalization if enabled is None else enabled

    def normalize_if_needed(self, data: bytes, detection: SourceDetectionResult) -> NormalizationResult:
        if not self.enabled:
            logger.debug("Normalization disabled in settings")
            return NormalizationResult(normalized=False, data=data, reason="disabled")

        if not detection.needs_normalization:
            logger.debug("Template does not need normalization")
            return NormalizationResult(normalized=False, data=data, reason="not-needed")

        logger.info(f"Normalizing template from {detection.source}")
        normalized = self._normalize(data)
        logger.debug(f"Normalization complete: {len(data)} -> {len(normalized)} bytes")
        return NormalizationResult(
            normalized=True,
            data=normalized,
            reason=f"normalized-from-{detection.source}",
        )
