"""Error taxonomy for document processing."""

from __future__ import annotations

from typing import Optional
from uuid import UUID


class DocStructError(Exception):
    """Base class for every error raised by docstruct."""


class DocumentNotFound(DocStructError, LookupError):
    """Raised when a document id does not exist in the store."""

    def __init__(self, document_id: UUID) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class SectionNotFound(DocStructError, LookupError):
    """Raised when a section id does not exist in the store."""

    def __init__(self, section_id: UUID) -> None:
        super().__init__(f"Section not found: {section_id}")
        self.section_id = section_id


class ExtractionError(DocStructError, RuntimeError):
    """Raised when no usable text can be extracted from a stored file."""

    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    NO_TEXT_EXTRACTED = "NO_TEXT_EXTRACTED"
    TEXT_EXTRACTION_ERROR = "TEXT_EXTRACTION_ERROR"

    def __init__(self, code: str, message: str, document_id: Optional[UUID] = None) -> None:
        super().__init__(message)
        self.code = code
        self.document_id = document_id


class InvalidStateTransition(DocStructError, ValueError):
    """Raised when a lifecycle move is not allowed from the current status."""

    def __init__(self, message: str, document_id: Optional[UUID] = None, current=None, target=None) -> None:
        super().__init__(message)
        self.document_id = document_id
        self.current = current
        self.target = target


class PersistenceError(DocStructError, RuntimeError):
    """Raised when a write is rejected or rolled back by the store."""


class HierarchyError(DocStructError, ValueError):
    """Raised for structural violations of a section tree (cycles, leaf parents)."""
