"""
workflow_kernel.services.work_item_lifecycle -- Work item lifecycle.

Responsibility:
    Creates work items and drives them through submit, start_review,
    approve, reject, send_to_rework, archive and cancel.  Submission writes
    an immutable WorkItemVersion at the item's current version counter.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Transitions only through ``WORK_ITEM_LIFECYCLE``; guards check the
      source status only.
    - A version snapshot is written for every submission; sending to
      rework increments ``current_version`` so the next submission writes
      the following version.

Failure modes:
    - WorkItemNotFoundError for an unknown work item id.
    - InvalidTransitionError when the item is not in a permitted status.
    - InvalidArgumentError for a blank content reference on submit.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.work_item import (
    WORK_ITEM_LIFECYCLE,
    WorkItem,
    WorkItemEvent,
    WorkItemStatus,
    WorkItemVersion,
)
from workflow_kernel.exceptions import InvalidArgumentError, WorkItemNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.audit_event import AuditAction
from workflow_kernel.models.work_item import WorkItemModel, WorkItemVersionModel
from workflow_kernel.services.base import BaseService

logger = get_logger("services.work_item_lifecycle")

_ACTIONS: dict[WorkItemEvent, AuditAction] = {
    WorkItemEvent.SUBMIT: AuditAction.WORK_ITEM_SUBMITTED,
    WorkItemEvent.START_REVIEW: AuditAction.WORK_ITEM_REVIEW_STARTED,
    WorkItemEvent.APPROVE: AuditAction.WORK_ITEM_APPROVED,
    WorkItemEvent.REJECT: AuditAction.WORK_ITEM_REJECTED,
    WorkItemEvent.SEND_TO_REWORK: AuditAction.WORK_ITEM_SENT_TO_REWORK,
    WorkItemEvent.ARCHIVE: AuditAction.WORK_ITEM_ARCHIVED,
    WorkItemEvent.CANCEL: AuditAction.WORK_ITEM_CANCELLED,
}


class WorkItemLifecycleService(BaseService):
    """Drives work items through WORK_ITEM_LIFECYCLE."""

    ENTITY_TYPE = "WorkItem"

    def _load(self, work_item_id: UUID, lock: bool = True) -> WorkItemModel:
        return self._fetch(WorkItemModel, work_item_id, WorkItemNotFoundError, lock)

    def get(self, work_item_id: UUID) -> WorkItem:
        return self._load(work_item_id, lock=False).to_dto()

    def versions(self, work_item_id: UUID) -> list[WorkItemVersion]:
        """Submitted versions of a work item, oldest first."""
        self._load(work_item_id, lock=False)
        rows = self._session.execute(
            select(WorkItemVersionModel)
            .where(WorkItemVersionModel.work_item_id == work_item_id)
            .order_by(WorkItemVersionModel.version)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def create(
        self,
        item_type: str,
        actor: str,
        title: str | None = None,
        content_ref: str | None = None,
    ) -> WorkItem:
        """Create a draft work item at version 1."""
        if not item_type or not item_type.strip():
            raise InvalidArgumentError("Work item type must be non-empty")
        item = WorkItemModel(
            item_type=item_type,
            title=title,
            status=WORK_ITEM_LIFECYCLE.initial.value,
            current_version=1,
            content_ref=content_ref,
            created_by=actor,
            created_at=self._clock.now(),
        )
        self._session.add(item)
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, item.id, AuditAction.WORK_ITEM_CREATED, actor,
            to_status=WorkItemStatus.DRAFT, item_type=item_type,
        )
        logger.info(
            "work_item_created",
            extra={"work_item_id": str(item.id), "item_type": item_type},
        )
        return item.to_dto()

    def _transition(
        self,
        item: WorkItemModel,
        event: WorkItemEvent,
        actor: str,
        **details,
    ) -> WorkItem:
        source = WorkItemStatus(item.status)
        target = WORK_ITEM_LIFECYCLE.fire(item.id, source, event, entity=item)
        item.status = target.value
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, item.id, _ACTIONS[event], actor,
            from_status=source, to_status=target,
            current_version=item.current_version, **details,
        )
        logger.info(
            f"work_item_{target.value}",
            extra={"work_item_id": str(item.id), "current_version": item.current_version},
        )
        return item.to_dto()

    def submit(self, work_item_id: UUID, content_ref: str, actor: str) -> WorkItem:
        """draft | rework -> submitted; snapshots the content at the current version."""
        if not content_ref or not content_ref.strip():
            raise InvalidArgumentError("Content reference must be non-empty")
        item = self._load(work_item_id)
        # Check the transition before writing the version row.
        WORK_ITEM_LIFECYCLE.fire(
            item.id, WorkItemStatus(item.status), WorkItemEvent.SUBMIT, entity=item,
        )
        self._session.add(WorkItemVersionModel(
            work_item_id=item.id,
            version=item.current_version,
            content_ref=content_ref,
            submitted_by=actor,
            submitted_at=self._clock.now(),
        ))
        item.content_ref = content_ref
        return self._transition(
            item, WorkItemEvent.SUBMIT, actor, content_ref=content_ref,
        )

    def start_review(self, work_item_id: UUID, actor: str) -> WorkItem:
        """submitted -> in_review."""
        return self._transition(self._load(work_item_id), WorkItemEvent.START_REVIEW, actor)

    def approve(self, work_item_id: UUID, actor: str) -> WorkItem:
        """in_review -> approved."""
        return self._transition(self._load(work_item_id), WorkItemEvent.APPROVE, actor)

    def reject(self, work_item_id: UUID, actor: str) -> WorkItem:
        """in_review -> rejected."""
        return self._transition(self._load(work_item_id), WorkItemEvent.REJECT, actor)

    def send_to_rework(self, work_item_id: UUID, actor: str) -> WorkItem:
        """in_review -> rework; the next submission writes the following version."""
        item = self._load(work_item_id)
        WORK_ITEM_LIFECYCLE.fire(
            item.id, WorkItemStatus(item.status), WorkItemEvent.SEND_TO_REWORK, entity=item,
        )
        item.current_version += 1
        return self._transition(item, WorkItemEvent.SEND_TO_REWORK, actor)

    def archive(self, work_item_id: UUID, actor: str) -> WorkItem:
        """approved | rejected -> archived."""
        return self._transition(self._load(work_item_id), WorkItemEvent.ARCHIVE, actor)

    def cancel(self, work_item_id: UUID, actor: str) -> WorkItem:
        """Any status except archived/cancelled -> cancelled."""
        return self._transition(self._load(work_item_id), WorkItemEvent.CANCEL, actor)
