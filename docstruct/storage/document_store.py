"""SQLAlchemy-backed storage for documents and their sections.

Every public method runs in its own transaction and hands back detached
objects. Writes of a document are checked against its ``version`` column, so
a caller holding an outdated copy gets a PersistenceError instead of
silently overwriting a concurrent change.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from docstruct.config import settings
from docstruct.exceptions import DocumentNotFound, HierarchyError, PersistenceError, SectionNotFound
from docstruct.hierarchy.tree import SectionTree
from docstruct.models.document import DocumentPage, DocumentRecord, DocumentSummary, ProcessingStatistics
from docstruct.models.orm import Document, DocumentSection
from docstruct.models.section import SectionPage, SectionRecord
from docstruct.models.section_type import SectionType
from docstruct.models.status import ProcessingStatus

from .database import create_engine_from_settings, create_session_factory, init_db

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


class DocumentStore:
    """Wrapper around a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        upload_dir: Optional[Path] = None,
    ) -> None:
        if session_factory is None:
            engine = create_engine_from_settings()
            init_db(engine)
            session_factory = create_session_factory(engine)
        self._session_factory = session_factory
        self.upload_dir = Path(upload_dir or settings.upload_dir_path)

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except StaleDataError as exc:
            raise PersistenceError(f"Write rejected, record was modified concurrently: {exc}") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Database write failed: {exc}") from exc
        finally:
            session.close()

    @staticmethod
    def _require_document(session: Session, document_id: UUID) -> Document:
        document = session.get(Document, document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    @staticmethod
    def _delete_document_sections(session: Session, document_id: UUID) -> int:
        # SQLite leaves rows removed by ON DELETE CASCADE out of rowcount, so count first.
        condition = DocumentSection.document_id == document_id
        existing = session.scalar(select(func.count()).select_from(DocumentSection).where(condition)) or 0
        session.execute(delete(DocumentSection).where(condition))
        return existing

    # -- documents ---------------------------------------------------------

    def create_document(
        self,
        filename: str,
        original_filename: Optional[str] = None,
        file_size: int = 0,
        mime_type: str = "text/plain",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Document:
        """Register an already stored file as a PENDING document."""
        document = Document(
            filename=filename,
            original_filename=original_filename or filename,
            file_size=file_size,
            mime_type=mime_type,
            meta=dict(metadata or {}),
        )
        with self._transaction() as session:
            session.add(document)
        logger.info("Registered document %s (%s)", document.id, document.original_filename)
        return document

    def load_document(self, document_id: UUID) -> Document:
        with self._transaction() as session:
            return self._require_document(session, document_id)

    def document_exists(self, document_id: UUID) -> bool:
        with self._transaction() as session:
            return session.get(Document, document_id) is not None

    def save_document(self, document: Document, discard_sections: bool = False) -> Document:
        """Write ``document`` back; optionally drop its sections in the same transaction."""
        with self._transaction() as session:
            self._require_document(session, document.id)
            merged = session.merge(document)
            if discard_sections:
                self._delete_document_sections(session, document.id)
            session.flush()
        logger.debug(
            "Saved document %s status=%s version=%s", merged.id, merged.processing_status.value, merged.version
        )
        return merged

    def delete_document(self, document_id: UUID) -> None:
        """Delete a document, its sections and, best effort, its stored file."""
        with self._transaction() as session:
            document = self._require_document(session, document_id)
            filename = document.filename
            session.delete(document)
        try:
            (self.upload_dir / filename).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete stored file %s: %s", filename, exc)
        logger.info("Deleted document %s", document_id)

    def documents_for_processing(self, limit: Optional[int] = None) -> List[Document]:
        stmt = (
            select(Document)
            .where(Document.processing_status == ProcessingStatus.PENDING)
            .order_by(Document.uploaded_at, Document.id)
            .limit(limit or settings.pending_batch_size)
        )
        with self._transaction() as session:
            return list(session.scalars(stmt))

    def find_documents_by_status(self, status: ProcessingStatus) -> List[Document]:
        stmt = select(Document).where(Document.processing_status == status).order_by(Document.uploaded_at)
        with self._transaction() as session:
            return list(session.scalars(stmt))

    def count_by_status(self, status: ProcessingStatus) -> int:
        stmt = select(func.count()).select_from(Document).where(Document.processing_status == status)
        with self._transaction() as session:
            return session.scalar(stmt) or 0

    def processing_statistics(self) -> ProcessingStatistics:
        with self._transaction() as session:
            rows = session.execute(
                select(Document.processing_status, func.count()).group_by(Document.processing_status)
            ).all()
            total_sections = session.scalar(select(func.count()).select_from(DocumentSection)) or 0
        counts = {status: 0 for status in ProcessingStatus}
        counts.update({status: count for status, count in rows})
        return ProcessingStatistics(
            status_counts=counts,
            total_documents=sum(counts.values()),
            total_sections=total_sections,
        )

    def document_summary(self, document_id: UUID) -> DocumentSummary:
        """The document with its section count and word/char totals."""
        stmt = select(
            func.count(DocumentSection.id),
            func.coalesce(func.sum(DocumentSection.word_count), 0),
            func.coalesce(func.sum(DocumentSection.char_count), 0),
        ).where(DocumentSection.document_id == document_id)
        with self._transaction() as session:
            document = self._require_document(session, document_id)
            section_count, words, chars = session.execute(stmt).one()
            record = DocumentRecord.model_validate(document)
        return DocumentSummary(
            **record.model_dump(),
            section_count=section_count,
            total_word_count=words,
            total_char_count=chars,
        )

    def page_documents(
        self,
        status: Optional[ProcessingStatus] = None,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> DocumentPage:
        """Documents newest upload first, optionally restricted to one status."""
        stmt = select(Document)
        if status is not None:
            stmt = stmt.where(Document.processing_status == status)
        return self._document_page(stmt, page, size)

    def search_documents(self, term: str, page: int = 0, size: int = DEFAULT_PAGE_SIZE) -> DocumentPage:
        """Case-insensitive substring match on the original filename."""
        if not term or not term.strip():
            raise ValueError("Search term must not be blank")
        stmt = select(Document).where(
            func.lower(Document.original_filename).contains(term.strip().lower(), autoescape=True)
        )
        return self._document_page(stmt, page, size)

    def _document_page(self, stmt: Select, page: int, size: int) -> DocumentPage:
        stmt = stmt.order_by(Document.uploaded_at.desc(), Document.id)
        with self._transaction() as session:
            total, rows = self._fetch_page(session, stmt, page, size)
            items = [DocumentRecord.model_validate(row) for row in rows]
        return DocumentPage(items=items, total=total, page=page, size=size)

    @staticmethod
    def _fetch_page(session: Session, stmt: Select, page: int, size: int) -> Tuple[int, List[Any]]:
        if page < 0 or size <= 0:
            raise ValueError(f"Invalid page request page={page} size={size}")
        total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
        rows = session.scalars(stmt.offset(page * size).limit(size)).all()
        return total, list(rows)

    # -- sections ----------------------------------------------------------

    def save_sections(self, document_id: UUID, records: Iterable[SectionRecord]) -> List[DocumentSection]:
        """Replace every section of a document with ``records`` in one transaction."""
        records = sorted(records, key=lambda record: record.section_order)
        rows: Dict[UUID, DocumentSection] = {}
        for record in records:
            if record.document_id != document_id:
                raise ValueError(f"Section {record.id} belongs to document {record.document_id}, not {document_id}")
            rows[record.id] = DocumentSection(
                id=record.id,
                document_id=document_id,
                section_type=record.section_type,
                title=record.title,
                content=record.content,
                hierarchy_path=record.hierarchy_path,
                hierarchy_level=record.hierarchy_level,
                section_order=record.section_order,
                page_start=record.page_start,
                page_end=record.page_end,
                index_ref=record.index_ref,
            )
        for record in records:
            if record.parent_section_id is None:
                continue
            parent = rows.get(record.parent_section_id)
            if parent is None:
                raise HierarchyError(f"Parent {record.parent_section_id} of section {record.id} is not in the batch")
            rows[record.id].parent_section = parent

        with self._transaction() as session:
            self._require_document(session, document_id)
            replaced = self._delete_document_sections(session, document_id)
            session.add_all(rows.values())
            session.flush()
        logger.debug("Stored %s sections for document %s (replaced %s)", len(rows), document_id, replaced)
        return list(rows.values())

    def delete_sections(self, document_id: UUID) -> int:
        with self._transaction() as session:
            self._require_document(session, document_id)
            return self._delete_document_sections(session, document_id)

    def load_section(self, section_id: UUID) -> DocumentSection:
        with self._transaction() as session:
            section = session.get(DocumentSection, section_id)
            if section is None:
                raise SectionNotFound(section_id)
            return section

    def list_sections(self, document_id: UUID) -> List[DocumentSection]:
        stmt = (
            select(DocumentSection)
            .where(DocumentSection.document_id == document_id)
            .order_by(DocumentSection.section_order)
        )
        with self._transaction() as session:
            self._require_document(session, document_id)
            return list(session.scalars(stmt))

    def document_hierarchy(self, document_id: UUID) -> SectionTree:
        return SectionTree(self.list_sections(document_id))

    def root_sections(self, document_id: UUID) -> List[DocumentSection]:
        stmt = (
            select(DocumentSection)
            .where(DocumentSection.document_id == document_id, DocumentSection.parent_section_id.is_(None))
            .order_by(DocumentSection.section_order)
        )
        with self._transaction() as session:
            self._require_document(session, document_id)
            return list(session.scalars(stmt))

    def page_sections(self, document_id: UUID, page: int = 0, size: int = DEFAULT_PAGE_SIZE) -> SectionPage:
        stmt = select(DocumentSection).where(DocumentSection.document_id == document_id)
        return self._page(stmt, page, size, document_id=document_id)

    def child_sections(self, section_id: UUID, page: int = 0, size: int = DEFAULT_PAGE_SIZE) -> SectionPage:
        self.load_section(section_id)
        stmt = select(DocumentSection).where(DocumentSection.parent_section_id == section_id)
        return self._page(stmt, page, size)

    def sections_by_level(
        self, document_id: UUID, level: int, page: int = 0, size: int = DEFAULT_PAGE_SIZE
    ) -> SectionPage:
        stmt = select(DocumentSection).where(
            DocumentSection.document_id == document_id, DocumentSection.hierarchy_level == level
        )
        return self._page(stmt, page, size, document_id=document_id)

    def sections_by_type(
        self, document_id: UUID, section_type: SectionType, page: int = 0, size: int = DEFAULT_PAGE_SIZE
    ) -> SectionPage:
        stmt = select(DocumentSection).where(
            DocumentSection.document_id == document_id, DocumentSection.section_type == section_type
        )
        return self._page(stmt, page, size, document_id=document_id)

    def search_sections(
        self,
        term: str,
        document_id: Optional[UUID] = None,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> SectionPage:
        """Case-insensitive substring search over titles and content, largest first."""
        if not term or not term.strip():
            raise ValueError("Search term must not be blank")
        term = term.strip()
        stmt = select(DocumentSection).where(
            or_(
                func.lower(DocumentSection.content).contains(term.lower(), autoescape=True),
                func.lower(DocumentSection.title).contains(term.lower(), autoescape=True),
            )
        )
        if document_id is not None:
            stmt = stmt.where(DocumentSection.document_id == document_id)
        stmt = stmt.order_by(DocumentSection.word_count.desc(), DocumentSection.section_order)
        return self._page(stmt, page, size, document_id=document_id, ordered=True)

    def find_sections_needing_indexing(
        self, document_id: Optional[UUID] = None, limit: int = 100
    ) -> List[DocumentSection]:
        """Sections with content that no downstream indexer has claimed yet."""
        stmt = select(DocumentSection).where(
            DocumentSection.index_ref.is_(None),
            func.length(func.trim(DocumentSection.content)) > 0,
        )
        if document_id is not None:
            stmt = stmt.where(DocumentSection.document_id == document_id)
        stmt = stmt.order_by(DocumentSection.created_at, DocumentSection.section_order).limit(limit)
        with self._transaction() as session:
            if document_id is not None:
                self._require_document(session, document_id)
            return list(session.scalars(stmt))

    def _page(
        self,
        stmt: Select,
        page: int,
        size: int,
        document_id: Optional[UUID] = None,
        ordered: bool = False,
    ) -> SectionPage:
        if not ordered:
            stmt = stmt.order_by(DocumentSection.section_order)
        with self._transaction() as session:
            if document_id is not None:
                self._require_document(session, document_id)
            total, rows = self._fetch_page(session, stmt, page, size)
            items = [SectionRecord.model_validate(row) for row in rows]
        return SectionPage(items=items, total=total, page=page, size=size)
