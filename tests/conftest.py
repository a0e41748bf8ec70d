from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from docstruct.config import Settings
from docstruct.models.orm import Document
from docstruct.processing import DocumentProcessor
from docstruct.storage import DocumentStore, create_engine_from_settings, create_session_factory, init_db


@pytest.fixture
def engine(tmp_path: Path):
    engine = create_engine_from_settings(f"sqlite:///{tmp_path / 'docstruct.db'}", echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def store(session_factory, upload_dir: Path) -> DocumentStore:
    return DocumentStore(session_factory, upload_dir=upload_dir)


@pytest.fixture
def test_settings(upload_dir: Path) -> Settings:
    return Settings(upload_dir=str(upload_dir), worker_count=2, strict_nesting=False)


@pytest.fixture
def upload(store: DocumentStore, upload_dir: Path) -> Callable[..., Document]:
    """Write a file into the upload directory and register it as a document."""

    def _upload(text: str, filename: str = "notes.txt", **kwargs) -> Document:
        path = upload_dir / filename
        path.write_text(text, encoding="utf-8")
        return store.create_document(filename=filename, file_size=path.stat().st_size, **kwargs)

    return _upload


class FakeExtractor:
    """Serves canned text per filename and can run a hook mid-extraction."""

    def __init__(
        self,
        texts: Optional[Dict[str, str]] = None,
        error: Optional[Exception] = None,
        on_extract: Optional[Callable[[Path], None]] = None,
    ) -> None:
        self.texts = texts or {}
        self.error = error
        self.on_extract = on_extract
        self.calls: List[Path] = []

    def extract_text(self, path: Path) -> str:
        self.calls.append(path)
        if self.on_extract is not None:
            self.on_extract(path)
        if self.error is not None:
            raise self.error
        return self.texts[path.name]


@pytest.fixture
def make_extractor() -> Callable[..., FakeExtractor]:
    return FakeExtractor


@pytest.fixture
def processor(store: DocumentStore, test_settings: Settings):
    processor = DocumentProcessor(store, settings=test_settings)
    yield processor
    processor.shutdown()
