"""Text extraction, lifecycle transitions and the processing orchestrator."""

from .extraction import FileTextExtractor, TextExtractor
from .orchestrator import DocumentProcessor

__all__ = ["DocumentProcessor", "FileTextExtractor", "TextExtractor"]
