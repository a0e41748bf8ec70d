"""End-to-end tests for DocumentProcessor against a SQLite store."""
from __future__ import annotations

from pathlib import Path
from uuid import uuid4

import pytest

from docstruct.config import Settings
from docstruct.exceptions import (
    DocumentNotFound,
    ExtractionError,
    HierarchyError,
    InvalidStateTransition,
    PersistenceError,
)
from docstruct.models.section_type import SectionType
from docstruct.models.status import ProcessingStatus
from docstruct.processing import DocumentProcessor
from docstruct.processing.lifecycle import fail_processing, start_processing
from docstruct.processing.process_pending import main as process_pending_main
from docstruct.storage import DocumentStore

SCENARIO_TEXT = "Chapter 1: Intro\nHello world.\n1. Background\nSome text here."


def _mark_failed(store: DocumentStore, document_id, message: str = "X") -> None:
    document = store.load_document(document_id)
    start_processing(document)
    fail_processing(document, message)
    store.save_document(document)


class TestProcess:
    def test_successful_run(self, processor: DocumentProcessor, store: DocumentStore, upload) -> None:
        document = upload(SCENARIO_TEXT)
        result = processor.process(document.id)

        assert result.processing_status is ProcessingStatus.COMPLETED
        assert result.error_message is None
        assert result.processing_started_at is not None
        assert result.processing_completed_at is not None
        assert result.processing_duration() is not None

        rows = store.list_sections(document.id)
        assert [row.section_type for row in rows] == [
            SectionType.CHAPTER,
            SectionType.CONTENT,
            SectionType.SECTION,
        ]
        tree = store.document_hierarchy(document.id)
        assert tree.full_path(rows[2].id) == "Chapter 1: Intro > 1. Background"

    def test_unstructured_text_falls_back_to_one_section(
        self, processor: DocumentProcessor, store: DocumentStore, upload
    ) -> None:
        document = upload("  just some words\nwithout markers  ")
        processor.process(document.id)
        (row,) = store.list_sections(document.id)
        assert row.section_type is SectionType.CONTENT
        assert row.content == "just some words\nwithout markers"
        assert row.word_count == 5

    def test_missing_file_marks_document_failed(
        self, processor: DocumentProcessor, store: DocumentStore
    ) -> None:
        document = store.create_document("never-written.txt")
        with pytest.raises(ExtractionError) as excinfo:
            processor.process(document.id)
        assert excinfo.value.code == ExtractionError.FILE_NOT_FOUND
        assert excinfo.value.document_id == document.id

        failed = store.load_document(document.id)
        assert failed.processing_status is ProcessingStatus.FAILED
        assert "not found" in failed.error_message
        assert failed.processing_completed_at is not None
        assert store.list_sections(document.id) == []

    def test_unknown_document(self, processor: DocumentProcessor) -> None:
        with pytest.raises(DocumentNotFound):
            processor.process(uuid4())

    def test_processing_document_is_rejected(
        self, processor: DocumentProcessor, store: DocumentStore, upload
    ) -> None:
        document = upload(SCENARIO_TEXT)
        busy = store.load_document(document.id)
        start_processing(busy)
        store.save_document(busy)

        with pytest.raises(InvalidStateTransition, match="already processing"):
            processor.process(document.id)
        assert store.load_document(document.id).processing_status is ProcessingStatus.PROCESSING

    def test_completed_document_is_rejected(self, processor: DocumentProcessor, upload) -> None:
        document = upload(SCENARIO_TEXT)
        processor.process(document.id)
        with pytest.raises(InvalidStateTransition, match="already completed"):
            processor.process(document.id)

    def test_failed_document_needs_retry(self, processor: DocumentProcessor, store: DocumentStore, upload) -> None:
        document = upload(SCENARIO_TEXT)
        _mark_failed(store, document.id)
        with pytest.raises(InvalidStateTransition):
            processor.process(document.id)

    def test_cleanup_removes_temp_artifacts(
        self, processor: DocumentProcessor, store: DocumentStore, upload
    ) -> None:
        document = upload(SCENARIO_TEXT)
        temp_dir = processor.temp_dir_for(document.id)
        temp_dir.mkdir(parents=True)
        (temp_dir / "page-1.png").write_bytes(b"data")

        processor.process(document.id)
        assert not temp_dir.exists()

    def test_strict_nesting_rejects_loose_sections(
        self, store: DocumentStore, upload, upload_dir: Path
    ) -> None:
        strict = Settings(upload_dir=str(upload_dir), worker_count=1, strict_nesting=True)
        processor = DocumentProcessor(store, settings=strict)
        try:
            document = upload("1. Scope\nApplies everywhere.")
            with pytest.raises(HierarchyError):
                processor.process(document.id)
        finally:
            processor.shutdown()
        assert store.load_document(document.id).processing_status is ProcessingStatus.FAILED


class TestRetry:
    def test_retry_clears_error_and_reruns(self, processor: DocumentProcessor, store: DocumentStore, upload) -> None:
        document = upload(SCENARIO_TEXT)
        _mark_failed(store, document.id, "X")

        result = processor.retry(document.id)

        assert result.processing_status is ProcessingStatus.COMPLETED
        assert result.error_message is None
        assert len(store.list_sections(document.id)) == 3

    def test_retry_after_fixing_the_file(
        self, processor: DocumentProcessor, store: DocumentStore, upload_dir: Path
    ) -> None:
        document = store.create_document("late.txt")
        with pytest.raises(ExtractionError):
            processor.process(document.id)

        (upload_dir / "late.txt").write_text(SCENARIO_TEXT, encoding="utf-8")
        assert processor.retry(document.id).processing_status is ProcessingStatus.COMPLETED

    @pytest.mark.parametrize("status", [ProcessingStatus.PENDING, ProcessingStatus.COMPLETED])
    def test_retry_requires_failed(
        self, processor: DocumentProcessor, store: DocumentStore, upload, status: ProcessingStatus
    ) -> None:
        document = upload(SCENARIO_TEXT)
        if status is ProcessingStatus.COMPLETED:
            processor.process(document.id)
        with pytest.raises(InvalidStateTransition, match="FAILED status to retry"):
            processor.retry(document.id)
        assert store.load_document(document.id).processing_status is status


class TestCancel:
    def test_cancel_pending(self, processor: DocumentProcessor, store: DocumentStore, upload) -> None:
        document = upload(SCENARIO_TEXT)
        cancelled = processor.cancel(document.id)
        assert cancelled.processing_status is ProcessingStatus.CANCELLED
        with pytest.raises(InvalidStateTransition, match="was cancelled"):
            processor.process(document.id)

    def test_cancel_while_running_discards_sections(
        self, store: DocumentStore, test_settings: Settings, upload, make_extractor
    ) -> None:
        document = upload(SCENARIO_TEXT)
        holder = {}
        extractor = make_extractor(
            texts={document.filename: SCENARIO_TEXT},
            on_extract=lambda path: holder["processor"].cancel(document.id),
        )
        processor = DocumentProcessor(store, extractor=extractor, settings=test_settings)
        holder["processor"] = processor
        try:
            result = processor.process(document.id)
        finally:
            processor.shutdown()

        assert result.processing_status is ProcessingStatus.CANCELLED
        assert store.list_sections(document.id) == []

    def test_cancel_then_failure_is_not_recorded_as_failed(
        self, store: DocumentStore, test_settings: Settings, upload, make_extractor
    ) -> None:
        document = upload(SCENARIO_TEXT)
        holder = {}
        extractor = make_extractor(
            error=ExtractionError(ExtractionError.NO_TEXT_EXTRACTED, "empty"),
            on_extract=lambda path: holder["processor"].cancel(document.id),
        )
        processor = DocumentProcessor(store, extractor=extractor, settings=test_settings)
        holder["processor"] = processor
        try:
            result = processor.process(document.id)
        finally:
            processor.shutdown()

        assert result.processing_status is ProcessingStatus.CANCELLED
        assert result.error_message is None

    def test_completed_cannot_be_cancelled(self, processor: DocumentProcessor, upload) -> None:
        document = upload(SCENARIO_TEXT)
        processor.process(document.id)
        with pytest.raises(InvalidStateTransition):
            processor.cancel(document.id)


class TestConcurrentWrites:
    def test_stale_completion_is_recorded_as_failure(
        self, store: DocumentStore, test_settings: Settings, upload, make_extractor
    ) -> None:
        document = upload(SCENARIO_TEXT)

        def touch(path) -> None:
            other = store.load_document(document.id)
            other.add_metadata("touched", True)
            store.save_document(other)

        extractor = make_extractor(texts={document.filename: SCENARIO_TEXT}, on_extract=touch)
        processor = DocumentProcessor(store, extractor=extractor, settings=test_settings)
        try:
            with pytest.raises(PersistenceError):
                processor.process(document.id)
        finally:
            processor.shutdown()

        failed = store.load_document(document.id)
        assert failed.processing_status is ProcessingStatus.FAILED
        assert failed.get_metadata_value("touched") is True
        assert store.list_sections(document.id) == []


class TestAsync:
    def test_process_async_returns_future(self, processor: DocumentProcessor, upload) -> None:
        document = upload(SCENARIO_TEXT)
        future = processor.process_async(document.id)
        assert future.result(timeout=30).processing_status is ProcessingStatus.COMPLETED

    def test_async_failure_is_carried_by_future(self, processor: DocumentProcessor, store: DocumentStore) -> None:
        document = store.create_document("missing.txt")
        future = processor.process_async(document.id)
        assert isinstance(future.exception(timeout=30), ExtractionError)
        assert store.load_document(document.id).processing_status is ProcessingStatus.FAILED

    def test_process_pending(self, processor: DocumentProcessor, store: DocumentStore, upload) -> None:
        documents = [upload(SCENARIO_TEXT, filename=f"doc-{n}.txt") for n in range(3)]
        futures = processor.process_pending(limit=2)
        assert len(futures) == 2
        for future in futures:
            future.result(timeout=30)
        assert store.count_by_status(ProcessingStatus.COMPLETED) == 2
        assert store.load_document(documents[2].id).processing_status is ProcessingStatus.PENDING


def test_process_pending_entry_point(monkeypatch, tmp_path: Path) -> None:
    cli_settings = Settings(database_url=f"sqlite:///{tmp_path / 'cli.db'}", upload_dir=str(tmp_path / "uploads"))
    monkeypatch.setattr("docstruct.processing.process_pending.settings", cli_settings)
    monkeypatch.setattr("docstruct.storage.database.settings", cli_settings)
    assert process_pending_main(["--limit", "3"]) == 0
