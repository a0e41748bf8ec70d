"""Typed models shared across the application."""

from .document import DocumentPage, DocumentRecord, DocumentSummary, ProcessingStatistics
from .orm import Base, Document, DocumentSection
from .section import SectionPage, SectionRecord
from .section_type import SectionType
from .status import ProcessingStatus

__all__ = [
    "Base",
    "Document",
    "DocumentPage",
    "DocumentRecord",
    "DocumentSection",
    "DocumentSummary",
    "ProcessingStatistics",
    "ProcessingStatus",
    "SectionPage",
    "SectionRecord",
    "SectionType",
]
