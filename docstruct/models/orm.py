"""SQLAlchemy models for documents and their section trees."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, Uuid, event
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from docstruct.utils.text_stats import content_stats

from .section import SectionDisplayMixin
from .section_type import SectionType
from .status import ProcessingStatus, is_final, is_successful


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Base(DeclarativeBase):
    pass


class Document(Base):
    """An uploaded file and its processing lifecycle."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    filename: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False, default="text/plain")

    processing_status: Mapped[ProcessingStatus] = mapped_column(
        SAEnum(ProcessingStatus, name="processing_status", native_enum=False, length=20),
        nullable=False,
        default=ProcessingStatus.PENDING,
        index=True,
    )
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    processing_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # 'metadata' is reserved on declarative classes
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    sections: Mapped[List["DocumentSection"]] = relationship(
        "DocumentSection",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentSection.section_order",
    )

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("processing_status", ProcessingStatus.PENDING)
        kwargs.setdefault("uploaded_at", utcnow())
        kwargs.setdefault("meta", {})
        super().__init__(**kwargs)

    def add_metadata(self, key: str, value: Any) -> None:
        # reassign so the JSON column is flagged dirty
        self.meta = {**(self.meta or {}), key: value}

    def get_metadata_value(self, key: str) -> Any:
        return (self.meta or {}).get(key)

    def remove_metadata(self, key: str) -> None:
        if self.meta and key in self.meta:
            self.meta = {k: v for k, v in self.meta.items() if k != key}

    @property
    def is_processing_complete(self) -> bool:
        return is_final(self.processing_status)

    @property
    def is_processing_successful(self) -> bool:
        return is_successful(self.processing_status)

    def processing_duration(self) -> Optional[timedelta]:
        if self.processing_started_at is None or self.processing_completed_at is None:
            return None
        return as_utc(self.processing_completed_at) - as_utc(self.processing_started_at)

    def __repr__(self) -> str:
        return f"<Document {self.original_filename!r} [{self.processing_status}]>"


class DocumentSection(SectionDisplayMixin, Base):
    """A persisted node of a document's section tree.

    Children are not mapped; they are computed from ``parent_section_id`` by
    :class:`docstruct.hierarchy.tree.SectionTree`. Deleting a section removes
    its subtree through the ``ON DELETE CASCADE`` foreign key.
    """

    __tablename__ = "document_sections"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_section_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("document_sections.id", ondelete="CASCADE"), nullable=True, index=True
    )
    section_type: Mapped[SectionType] = mapped_column(
        SAEnum(SectionType, name="section_type", native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    hierarchy_path: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    hierarchy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    section_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    char_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_start: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    page_end: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    index_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    document: Mapped[Document] = relationship("Document", back_populates="sections")
    parent_section: Mapped[Optional["DocumentSection"]] = relationship(
        "DocumentSection", remote_side=[id]
    )

    __mapper_args__ = {"version_id_col": version}

    @validates("content")
    def _validate_content(self, key: str, value: Optional[str]) -> str:
        value = value or ""
        self.word_count, self.char_count = content_stats(value)
        return value

    @validates("document_id")
    def _validate_document_id(self, key: str, value: uuid.UUID) -> uuid.UUID:
        current = self.__dict__.get("document_id")
        if current is not None and current != value:
            raise ValueError("A section cannot be moved to another document")
        return value

    def set_content(self, content: str) -> None:
        self.content = content

    def __repr__(self) -> str:
        return f"<DocumentSection {self.section_type} path={self.hierarchy_path} order={self.section_order}>"


@event.listens_for(DocumentSection, "before_insert")
@event.listens_for(DocumentSection, "before_update")
def _recompute_counts_before_write(mapper, connection, target: DocumentSection) -> None:
    target.recompute_counts()
