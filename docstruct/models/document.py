"""Document-level summary models."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .status import ProcessingStatus


class DocumentRecord(BaseModel):
    """Read-only view of a stored document."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    filename: str
    original_filename: str
    file_size: int = 0
    mime_type: str
    processing_status: ProcessingStatus
    uploaded_at: datetime
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class DocumentSummary(DocumentRecord):
    """A document together with totals over its sections."""

    section_count: int = 0
    total_word_count: int = 0
    total_char_count: int = 0


class DocumentPage(BaseModel):
    items: List[DocumentRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 20

    @property
    def pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total / self.size)


class ProcessingStatistics(BaseModel):
    """Counts of documents per processing status plus stored sections."""

    status_counts: Dict[ProcessingStatus, int] = Field(default_factory=dict)
    total_documents: int = 0
    total_sections: int = 0

    def count(self, status: ProcessingStatus) -> int:
        return self.status_counts.get(status, 0)
