"""Drive a document from PENDING to a final status.

A run loads the document, marks it PROCESSING, extracts its text, detects
sections and stores them, then marks it COMPLETED. Failures after the start
are recorded on the document once and re-raised. A cancellation that lands
while a run is in flight wins: the run drops its sections and returns the
cancelled document.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from docstruct.config import Settings, settings as default_settings
from docstruct.exceptions import ExtractionError, HierarchyError
from docstruct.hierarchy import SectionTree, build_document_sections
from docstruct.models.orm import Document
from docstruct.models.section import SectionRecord
from docstruct.models.status import ProcessingStatus, is_active
from docstruct.storage import DocumentStore

from .extraction import FileTextExtractor, TextExtractor
from .lifecycle import cancel_processing, complete_processing, fail_processing, reset_for_retry, start_processing

logger = logging.getLogger(__name__)


class DocumentProcessor:
    def __init__(
        self,
        store: DocumentStore,
        extractor: Optional[TextExtractor] = None,
        settings: Settings = default_settings,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.store = store
        self.extractor = extractor or FileTextExtractor()
        self.settings = settings
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.worker_count,
            thread_name_prefix="doc-process",
        )

    def process(self, document_id: UUID) -> Document:
        """Run the full pipeline for one document and return its final state."""
        document = self.store.load_document(document_id)
        start_processing(document)
        document = self.store.save_document(document)
        logger.info("Processing document %s (%s)", document.id, document.original_filename)
        try:
            return self._run(document)
        except Exception as exc:
            logger.exception("Processing failed for document %s", document_id)
            cancelled = self._record_failure(document_id, exc)
            if cancelled is not None:
                return cancelled
            raise
        finally:
            self.cleanup_processing_artifacts(document_id)

    def _run(self, document: Document) -> Document:
        text = self.extract_text(document)
        sections = self.create_document_sections(document.id, text)

        current = self.store.load_document(document.id)
        if current.processing_status is ProcessingStatus.CANCELLED:
            logger.warning(
                "Document %s was cancelled during processing; discarding %s sections", document.id, len(sections)
            )
            return current

        self.store.save_sections(document.id, sections)
        complete_processing(document)
        document = self.store.save_document(document)
        logger.info(
            "Completed document %s: %s sections in %s",
            document.id,
            len(sections),
            document.processing_duration(),
        )
        return document

    def _record_failure(self, document_id: UUID, exc: Exception) -> Optional[Document]:
        """Mark the document FAILED; returns it instead when it was cancelled meanwhile."""
        current = self.store.load_document(document_id)
        if current.processing_status is ProcessingStatus.CANCELLED:
            removed = self.store.delete_sections(document_id)
            logger.warning("Document %s was cancelled; dropped %s partial sections", document_id, removed)
            return current
        if is_active(current.processing_status):
            fail_processing(current, str(exc) or type(exc).__name__)
            self.store.save_document(current, discard_sections=True)
        return None

    def process_async(self, document_id: UUID) -> Future:
        future = self.executor.submit(self.process, document_id)
        future.add_done_callback(partial(_log_outcome, document_id))
        return future

    def retry(self, document_id: UUID) -> Document:
        """Reset a FAILED document to PENDING and process it again."""
        document = self.store.load_document(document_id)
        previous_error = document.error_message
        reset_for_retry(document)
        self.store.save_document(document)
        logger.info("Retrying document %s (previous error: %s)", document_id, previous_error)
        return self.process(document_id)

    def cancel(self, document_id: UUID) -> Document:
        document = self.store.load_document(document_id)
        cancel_processing(document)
        document = self.store.save_document(document)
        logger.warning("Cancelled processing of document %s", document_id)
        return document

    def extract_text(self, document: Document) -> str:
        path = self.store.upload_dir / document.filename
        try:
            return self.extractor.extract_text(path)
        except ExtractionError as exc:
            if exc.document_id is None:
                exc.document_id = document.id
            raise

    def create_document_sections(self, document_id: UUID, text: str) -> List[SectionRecord]:
        sections = build_document_sections(document_id, text)
        tree = SectionTree(sections, max_depth=self.settings.max_hierarchy_depth)
        problems = tree.validate(strict_nesting=self.settings.strict_nesting)
        if problems:
            raise HierarchyError("; ".join(problems))
        logger.debug("Built %s sections for document %s", len(sections), document_id)
        return sections

    def cleanup_processing_artifacts(self, document_id: UUID) -> None:
        temp_dir = self.temp_dir_for(document_id)
        if not temp_dir.exists():
            return
        try:
            shutil.rmtree(temp_dir)
            logger.debug("Removed temporary files for document %s", document_id)
        except OSError as exc:
            logger.warning("Failed to clean up %s: %s", temp_dir, exc)

    def temp_dir_for(self, document_id: UUID) -> Path:
        return self.store.upload_dir / self.settings.temp_dir_name / str(document_id)

    def process_pending(self, limit: Optional[int] = None) -> List[Future]:
        """Submit up to ``limit`` PENDING documents, oldest upload first."""
        documents = self.store.documents_for_processing(limit or self.settings.pending_batch_size)
        logger.info("Submitting %s pending documents", len(documents))
        return [self.process_async(document.id) for document in documents]

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)


def _log_outcome(document_id: UUID, future: Future) -> None:
    if future.cancelled():
        logger.warning("Processing of document %s was cancelled before it started", document_id)
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Processing of document %s failed: %s", document_id, exc)
        return
    logger.info("Document %s finished as %s", document_id, future.result().processing_status.value)
