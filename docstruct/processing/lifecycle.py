"""Status transitions applied to a Document.

Each function checks ``ensure_transition`` before touching the document, so
a rejected move leaves every field unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from docstruct.models.orm import Document, utcnow
from docstruct.models.status import ProcessingStatus, ensure_transition

logger = logging.getLogger(__name__)


def start_processing(document: Document, now: Optional[datetime] = None) -> Document:
    """PENDING -> PROCESSING; stamps the start time and clears any old error."""
    ensure_transition(document.processing_status, ProcessingStatus.PROCESSING, document.id)
    document.processing_status = ProcessingStatus.PROCESSING
    document.processing_started_at = now or utcnow()
    document.processing_completed_at = None
    document.error_message = None
    return document


def complete_processing(document: Document, now: Optional[datetime] = None) -> Document:
    ensure_transition(document.processing_status, ProcessingStatus.COMPLETED, document.id)
    document.processing_status = ProcessingStatus.COMPLETED
    document.processing_completed_at = now or utcnow()
    return document


def fail_processing(document: Document, error_message: str, now: Optional[datetime] = None) -> Document:
    if not error_message or not error_message.strip():
        raise ValueError("A failure needs an error message")
    ensure_transition(document.processing_status, ProcessingStatus.FAILED, document.id)
    document.processing_status = ProcessingStatus.FAILED
    document.processing_completed_at = now or utcnow()
    document.error_message = error_message
    return document


def cancel_processing(document: Document, now: Optional[datetime] = None) -> Document:
    ensure_transition(document.processing_status, ProcessingStatus.CANCELLED, document.id)
    document.processing_status = ProcessingStatus.CANCELLED
    document.processing_completed_at = now or utcnow()
    return document


def reset_for_retry(document: Document) -> Document:
    """FAILED -> PENDING with the error and both processing timestamps cleared."""
    ensure_transition(document.processing_status, ProcessingStatus.PENDING, document.id)
    logger.debug("Resetting document %s for retry (last error: %s)", document.id, document.error_message)
    document.processing_status = ProcessingStatus.PENDING
    document.error_message = None
    document.processing_started_at = None
    document.processing_completed_at = None
    return document


def processing_duration(document: Document) -> Optional[timedelta]:
    return document.processing_duration()
