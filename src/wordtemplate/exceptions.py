"""Shared exceptions.

Only structural problems (a broken package, a failed external conversion) are
raised. Template problems such as undefined variables are reported as warnings
alongside the rendered output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class AppError(Exception):
    message: str
    status_code: int = 400
    code: str = "app_error"
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class TemplateLoadError(AppError):
    status_code: int = 400
    code: str = "template_load_error"


@dataclass
class TemplateRenderError(AppError):
    status_code: int = 500
    code: str = "template_render_error"


@dataclass
class TemplateValidationError(AppError):
    status_code: int = 422
    code: str = "template_validation_error"


@dataclass
class ExternalServiceError(AppError):
    status_code: int = 502
    code: str = "external_service_error"


@dataclass
class NormalizationError(ExternalServiceError):
    code: str = "normalization_error"


@dataclass
class ConversionError(ExternalServiceError):
    code: str = "conversion_error"
