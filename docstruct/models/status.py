"""Processing status values and the transition table between them."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from docstruct.exceptions import InvalidStateTransition


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS: Dict[ProcessingStatus, str] = {
    ProcessingStatus.PENDING: "Document is queued for processing",
    ProcessingStatus.PROCESSING: "Document is currently being processed",
    ProcessingStatus.COMPLETED: "Document processing completed successfully",
    ProcessingStatus.FAILED: "Document processing failed",
    ProcessingStatus.CANCELLED: "Document processing was cancelled",
}

ACTIVE_STATUSES: FrozenSet[ProcessingStatus] = frozenset(
    {ProcessingStatus.PENDING, ProcessingStatus.PROCESSING}
)
FINAL_STATUSES: FrozenSet[ProcessingStatus] = frozenset(
    {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED, ProcessingStatus.CANCELLED}
)

# FAILED -> PENDING is the retry reset; final statuses are otherwise frozen.
ALLOWED_TRANSITIONS: Dict[ProcessingStatus, FrozenSet[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset(
        {ProcessingStatus.PROCESSING, ProcessingStatus.FAILED, ProcessingStatus.CANCELLED}
    ),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED, ProcessingStatus.CANCELLED}
    ),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.CANCELLED: frozenset(),
}

_REJECTION_REASONS: Dict[ProcessingStatus, str] = {
    ProcessingStatus.PROCESSING: "is already processing",
    ProcessingStatus.COMPLETED: "is already completed",
    ProcessingStatus.FAILED: "failed previously; retry it instead",
    ProcessingStatus.CANCELLED: "was cancelled",
}


def is_active(status: ProcessingStatus) -> bool:
    return status in ACTIVE_STATUSES


def is_final(status: ProcessingStatus) -> bool:
    return status in FINAL_STATUSES


def is_successful(status: ProcessingStatus) -> bool:
    return status is ProcessingStatus.COMPLETED


def is_failed(status: ProcessingStatus) -> bool:
    return status in (ProcessingStatus.FAILED, ProcessingStatus.CANCELLED)


def can_transition(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(
    current: ProcessingStatus,
    target: ProcessingStatus,
    document_id: Optional[UUID] = None,
) -> None:
    """Raise InvalidStateTransition unless ``current -> target`` is in the table."""
    if can_transition(current, target):
        return
    subject = f"Document {document_id}" if document_id is not None else "Document"
    if target is ProcessingStatus.PROCESSING and current in _REJECTION_REASONS:
        message = f"{subject} {_REJECTION_REASONS[current]}"
    elif target is ProcessingStatus.PENDING:
        message = f"{subject} must be in FAILED status to retry processing (is {current.value})"
    else:
        message = f"{subject} cannot move from {current.value} to {target.value}"
    raise InvalidStateTransition(message, document_id=document_id, current=current, target=target)
