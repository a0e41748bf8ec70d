"""Detect chapter/section structure in extracted plain text.

The scan is a single left-to-right pass over the lines of the text. Three
line patterns are tried in a fixed priority order:

1. chapter markers (``Chapter 3: Results``, ``chapter 4 - Methods``),
2. numbered section markers (``2. Background``),
3. anything else, which is content for the section currently open.

All scan state lives in a :class:`_ScanCursor`, so :func:`detect_sections` is
a pure function of its input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from docstruct.models.section import SectionRecord
from docstruct.models.section_type import SectionType

logger = logging.getLogger(__name__)

# (?!\d) keeps "Chapter 12" from being read as chapter 1 titled "2".
CHAPTER_PATTERN = re.compile(r"^\s*Chapter\s+(?P<num>\d+)(?!\d)\s*[:\-]?\s*(?P<title>.+)$", re.IGNORECASE)
SECTION_PATTERN = re.compile(r"^\s*(?P<num>\d+)\.\s*(?P<title>.+)$")

FALLBACK_TITLE = "Document Content"
FALLBACK_PATH = "1"
DEFAULT_PAGE = 1


class DetectionResult(BaseModel):
    """Sections found in one text, in ``section_order``."""

    document_id: UUID
    sections: List[SectionRecord] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when any section was produced; zero sections is not an error."""
        return bool(self.sections)

    def __len__(self) -> int:
        return len(self.sections)


@dataclass
class _ScanCursor:
    document_id: UUID
    current_chapter: Optional[SectionRecord] = None
    current_section: Optional[SectionRecord] = None
    chapter_number: int = 0
    section_number: int = 0
    next_order: int = 1
    buffer: List[str] = field(default_factory=list)
    emitted: List[SectionRecord] = field(default_factory=list)
    pending: Optional[SectionRecord] = None

    def new_section(self, **fields) -> SectionRecord:
        record = SectionRecord(
            document_id=self.document_id,
            section_order=self.next_order,
            page_start=DEFAULT_PAGE,
            page_end=DEFAULT_PAGE,
            **fields,
        )
        self.next_order += 1
        return record

    def emit(self, record: SectionRecord) -> None:
        self.emitted.append(record)

    def flush(self) -> None:
        """Move buffered lines into the open section and emit it if still unseen."""
        if not self.buffer or self.current_section is None:
            return
        self.current_section.set_content("\n".join(self.buffer))
        self.buffer.clear()
        if self.pending is self.current_section:
            self.emit(self.pending)
            self.pending = None


def _open_chapter(cursor: _ScanCursor, match: re.Match) -> None:
    cursor.flush()
    cursor.chapter_number += 1
    cursor.section_number = 0
    chapter = cursor.new_section(
        section_type=SectionType.CHAPTER,
        title=f"Chapter {match.group('num')}: {match.group('title').strip()}",
        hierarchy_path=str(cursor.chapter_number),
        hierarchy_level=0,
    )
    cursor.emit(chapter)
    cursor.current_chapter = chapter
    cursor.current_section = None


def _open_section(cursor: _ScanCursor, match: re.Match) -> None:
    cursor.flush()
    cursor.section_number += 1
    chapter = cursor.current_chapter
    if chapter is not None:
        path = f"{chapter.hierarchy_path}.{cursor.section_number}"
        level = chapter.hierarchy_level + 1
        parent_id = chapter.id
    else:
        path = str(cursor.section_number)
        level = 0
        parent_id = None
    section = cursor.new_section(
        section_type=SectionType.SECTION,
        title=f"{match.group('num')}. {match.group('title').strip()}",
        hierarchy_path=path,
        hierarchy_level=level,
        parent_section_id=parent_id,
    )
    if not section.section_type.can_be_child_of(chapter.section_type if chapter else None):
        logger.debug("Section %r nests outside the type lattice", section.title)
    cursor.emit(section)
    cursor.current_section = section


def _append_content(cursor: _ScanCursor, line: str) -> None:
    if cursor.current_section is None:
        # Emitted on its first flush so its order sits before whatever marker closes it.
        fallback = cursor.new_section(
            section_type=SectionType.CONTENT,
            title=FALLBACK_TITLE,
            hierarchy_path=FALLBACK_PATH,
            hierarchy_level=0,
        )
        cursor.current_section = fallback
        cursor.pending = fallback
    cursor.buffer.append(line)


def detect_sections(document_id: UUID, text: Optional[str]) -> DetectionResult:
    """Scan ``text`` and return the sections it is made of."""
    cursor = _ScanCursor(document_id=document_id)
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        chapter_match = CHAPTER_PATTERN.match(line)
        if chapter_match:
            _open_chapter(cursor, chapter_match)
            continue
        section_match = SECTION_PATTERN.match(line)
        if section_match:
            _open_section(cursor, section_match)
            continue
        _append_content(cursor, line)
    cursor.flush()

    sections = sorted(cursor.emitted, key=lambda record: record.section_order)
    logger.debug("Detected %s sections for document %s", len(sections), document_id)
    return DetectionResult(document_id=document_id, sections=sections)


def fallback_section(document_id: UUID, text: str) -> SectionRecord:
    """Single CONTENT section holding the whole text verbatim."""
    return SectionRecord(
        document_id=document_id,
        section_type=SectionType.CONTENT,
        title=FALLBACK_TITLE,
        content=text,
        hierarchy_path=FALLBACK_PATH,
        hierarchy_level=0,
        section_order=1,
        page_start=DEFAULT_PAGE,
        page_end=DEFAULT_PAGE,
    )


def build_document_sections(document_id: UUID, text: Optional[str]) -> List[SectionRecord]:
    """Detect sections, falling back to one whole-text section when none are found."""
    result = detect_sections(document_id, text)
    if result.success:
        return result.sections
    logger.debug("No structure detected for document %s; using a single content section", document_id)
    return [fallback_section(document_id, text or "")]
