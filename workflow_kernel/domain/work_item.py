"""
Work item domain types (``workflow_kernel.domain.work_item``).

Responsibility
--------------
The work item lifecycle table and the work item / version DTOs.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Submission is only possible from ``draft`` or ``rework``.
* ``archived`` and ``cancelled`` are terminal.
* Every non-terminal status except ``archived`` may be cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from workflow_kernel.domain.lifecycle import Lifecycle, Transition


class WorkItemStatus(str, Enum):
    """Work item lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    REWORK = "rework"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class WorkItemEvent(str, Enum):
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    SEND_TO_REWORK = "send_to_rework"
    ARCHIVE = "archive"
    CANCEL = "cancel"


_CANCELLABLE = (
    WorkItemStatus.DRAFT,
    WorkItemStatus.SUBMITTED,
    WorkItemStatus.IN_REVIEW,
    WorkItemStatus.REWORK,
    WorkItemStatus.APPROVED,
    WorkItemStatus.REJECTED,
)

WORK_ITEM_LIFECYCLE: Lifecycle[WorkItemStatus, WorkItemEvent] = Lifecycle(
    name="WorkItem",
    states=tuple(WorkItemStatus),
    initial=WorkItemStatus.DRAFT,
    transitions=(
        Transition(WorkItemStatus.DRAFT, WorkItemEvent.SUBMIT, WorkItemStatus.SUBMITTED),
        Transition(WorkItemStatus.REWORK, WorkItemEvent.SUBMIT, WorkItemStatus.SUBMITTED),
        Transition(WorkItemStatus.SUBMITTED, WorkItemEvent.START_REVIEW, WorkItemStatus.IN_REVIEW),
        Transition(WorkItemStatus.IN_REVIEW, WorkItemEvent.APPROVE, WorkItemStatus.APPROVED),
        Transition(WorkItemStatus.IN_REVIEW, WorkItemEvent.REJECT, WorkItemStatus.REJECTED),
        Transition(WorkItemStatus.IN_REVIEW, WorkItemEvent.SEND_TO_REWORK, WorkItemStatus.REWORK),
        Transition(WorkItemStatus.APPROVED, WorkItemEvent.ARCHIVE, WorkItemStatus.ARCHIVED),
        Transition(WorkItemStatus.REJECTED, WorkItemEvent.ARCHIVE, WorkItemStatus.ARCHIVED),
    ) + tuple(
        Transition(source, WorkItemEvent.CANCEL, WorkItemStatus.CANCELLED)
        for source in _CANCELLABLE
    ),
)

TERMINAL_WORK_ITEM_STATUSES: frozenset[WorkItemStatus] = WORK_ITEM_LIFECYCLE.terminal


@dataclass(frozen=True)
class WorkItemVersion:
    """Immutable snapshot of a work item's content at submission."""

    version_id: UUID
    work_item_id: UUID
    version: int
    content_ref: str
    submitted_by: str
    submitted_at: datetime


@dataclass(frozen=True)
class WorkItem:
    work_item_id: UUID
    item_type: str
    status: WorkItemStatus
    current_version: int
    created_by: str
    created_at: datetime
    title: str | None = None
    content_ref: str | None = None
