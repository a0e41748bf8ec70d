"""Section-level data models shared by the detector, the tree and the store."""

from __future__ import annotations

import math
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docstruct.utils.text_stats import content_stats

from .section_type import SectionType


class SectionDisplayMixin:
    """Derived views available on both unsaved records and persisted rows."""

    @property
    def display_label(self) -> str:
        """Title, or the type code for untitled sections."""
        return self.title or SectionType(self.section_type).code

    def page_range(self) -> Optional[str]:
        start, end = self.page_start, self.page_end
        if start is None and end is None:
            return None
        if start is not None and end is not None:
            return str(start) if start == end else f"{start}-{end}"
        return str(start if start is not None else end)

    def is_content(self) -> bool:
        return SectionType(self.section_type).is_content()

    def can_have_children(self) -> bool:
        return SectionType(self.section_type).can_have_children()

    def recompute_counts(self) -> None:
        self.word_count, self.char_count = content_stats(self.content)


class SectionRecord(SectionDisplayMixin, BaseModel):
    """A detected section that has not been persisted yet."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    document_id: UUID
    section_type: SectionType
    title: Optional[str] = None
    content: str = ""
    hierarchy_path: Optional[str] = None
    hierarchy_level: int = Field(default=0, ge=0)
    section_order: int = Field(default=0, ge=0)
    word_count: int = 0
    char_count: int = 0
    page_start: Optional[int] = Field(default=None, ge=0)
    page_end: Optional[int] = Field(default=None, ge=0)
    parent_section_id: Optional[UUID] = None
    index_ref: Optional[str] = None

    @model_validator(mode="after")
    def _sync_counts(self) -> "SectionRecord":
        self.recompute_counts()
        return self

    def set_content(self, content: str) -> None:
        self.content = content
        self.recompute_counts()


class SectionPage(BaseModel):
    """One page of a section listing."""

    items: List[SectionRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 20

    @property
    def pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total / self.size)
