"""Database engine setup and the document store."""

from .database import create_engine_from_settings, create_session_factory, init_db
from .document_store import DocumentStore

__all__ = ["DocumentStore", "create_engine_from_settings", "create_session_factory", "init_db"]
