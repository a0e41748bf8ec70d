"""Structure detection and tree views over sections."""

from .detector import DetectionResult, build_document_sections, detect_sections, fallback_section
from .tree import SectionTree

__all__ = [
    "DetectionResult",
    "SectionTree",
    "build_document_sections",
    "detect_sections",
    "fallback_section",
]
