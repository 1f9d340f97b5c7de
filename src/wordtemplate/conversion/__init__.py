"""External document conversion (headless soffice) and the normalization policy."""

from .service import Normalizer, NormalizationResult
from .utils import convert_bytes, normalize_bytes, check_availability

__all__ = [
    "Normalizer",
    "NormalizationResult",
    "convert_bytes",
    "normalize_bytes",
    "check_availability",
]
