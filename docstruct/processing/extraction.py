"""Turn stored upload files into plain text for structure detection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Protocol

import docx
import fitz

from docstruct.exceptions import ExtractionError

logger = logging.getLogger(__name__)

PLAIN_TEXT_SUFFIXES = frozenset({".txt", ".text", ".md"})


class TextExtractor(Protocol):
    def extract_text(self, path: Path) -> str:
        """Return the trimmed text of ``path`` or raise ExtractionError."""


def normalize_block_text(text: str) -> str:
    parts = [line.strip() for line in text.splitlines() if line.strip()]
    return " ".join(parts)


def iter_page_blocks(page: fitz.Page) -> Iterable[str]:
    """Yield text blocks of a PDF page in reading order, one line per block."""
    blocks = page.get_text("blocks")
    for block in sorted(blocks, key=lambda b: (b[1], b[0])):
        text = normalize_block_text(block[4])
        if text:
            yield text


def read_pdf(path: Path) -> str:
    lines = []
    with fitz.open(path) as doc:
        for page in doc:
            lines.extend(iter_page_blocks(page))
    return "\n".join(lines)


def read_docx(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs if paragraph.text.strip())


def read_plain_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


class FileTextExtractor:
    """Dispatches on file suffix: plain text, PDF (PyMuPDF) or DOCX (python-docx)."""

    def __init__(self) -> None:
        self.readers = {".pdf": read_pdf, ".docx": read_docx}
        for suffix in PLAIN_TEXT_SUFFIXES:
            self.readers[suffix] = read_plain_text

    def extract_text(self, path: Path) -> str:
        path = Path(path)
        if not path.is_file():
            raise ExtractionError(ExtractionError.FILE_NOT_FOUND, f"Document file not found: {path}")
        reader = self.readers.get(path.suffix.lower())
        if reader is None:
            raise ExtractionError(
                ExtractionError.UNSUPPORTED_FORMAT,
                f"No text extractor for {path.suffix or 'extensionless'} files: {path.name}",
            )
        try:
            text = reader(path)
        except Exception as exc:  # parser libraries raise their own hierarchies
            raise ExtractionError(
                ExtractionError.TEXT_EXTRACTION_ERROR,
                f"Failed to extract text from {path.name}: {exc}",
            ) from exc
        if not text or not text.strip():
            raise ExtractionError(
                ExtractionError.NO_TEXT_EXTRACTED,
                f"No text content could be extracted from {path.name}",
            )
        logger.debug("Extracted %s characters from %s", len(text), path)
        return text.strip()
