"""
workflow_kernel.services.task_lifecycle -- Approval task lifecycle.

Responsibility:
    Owns every status change of an approval task: approve, reject,
    delegate, accept delegation, reassign, expire and cancel.  Records the
    side effects that go with them (decision row, audit comment, acted_at
    timestamp, audit event).

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Transitions only through ``TASK_LIFECYCLE``; a task leaves
      ``pending`` via approve/reject at most once and then carries exactly
      one ApprovalDecision.
    - Delegation acceptance only by the current delegate.
    - The task row is locked FOR UPDATE before its status is checked, so
      two callers cannot both decide the same task.

Failure modes:
    - TaskNotFoundError for an unknown task id.
    - InvalidTransitionError when the event is not allowed from the task's
      status; TransitionGuardFailedError for a wrong accepting actor.
      State is unchanged in both cases.
    - InvalidArgumentError for a blank delegate / reassignment target.
    - ``expire`` on a non-pending task is a logged no-op, not an error.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.approval import (
    COMMENT_PREFIXES,
    DECISION_EVENTS,
    REASSIGN_COMMENT_PREFIX,
    TASK_LIFECYCLE,
    ApprovalTask,
    DecisionType,
    TaskEvent,
    TaskStatus,
)
from workflow_kernel.exceptions import InvalidArgumentError, TaskNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.approval import (
    ApprovalCommentModel,
    ApprovalDecisionModel,
    ApprovalTaskModel,
)
from workflow_kernel.models.audit_event import AuditAction
from workflow_kernel.services.base import BaseService

logger = get_logger("services.task_lifecycle")

SYSTEM_ACTOR = "system"

_DECISION_ACTIONS: dict[DecisionType, AuditAction] = {
    DecisionType.APPROVED: AuditAction.TASK_APPROVED,
    DecisionType.REJECTED: AuditAction.TASK_REJECTED,
}


class TaskLifecycleService(BaseService):
    """Drives approval tasks through TASK_LIFECYCLE."""

    ENTITY_TYPE = "ApprovalTask"

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, task_id: UUID, lock: bool = True) -> ApprovalTaskModel:
        return self._fetch(ApprovalTaskModel, task_id, TaskNotFoundError, lock)

    def get(self, task_id: UUID) -> ApprovalTask:
        """Return the task DTO without locking."""
        return self._load(task_id, lock=False).to_dto()

    def _fire(
        self,
        task: ApprovalTaskModel,
        event: TaskEvent,
        **params,
    ) -> tuple[TaskStatus, TaskStatus]:
        source = TaskStatus(task.status)
        target = TASK_LIFECYCLE.fire(task.id, source, event, entity=task, **params)
        return source, target

    def _add_comment(self, task_id: UUID, text: str, actor: str, at: datetime) -> None:
        self._session.add(ApprovalCommentModel(
            task_id=task_id,
            comment=text,
            commented_by=actor,
            commented_at=at,
        ))

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def approve(self, task_id: UUID, actor: str, comment: str | None = None) -> ApprovalTask:
        """pending -> approved; records an approved decision."""
        return self.decide(task_id, actor, DecisionType.APPROVED, comment)

    def reject(self, task_id: UUID, actor: str, comment: str | None = None) -> ApprovalTask:
        """pending -> rejected; records a rejected decision."""
        return self.decide(task_id, actor, DecisionType.REJECTED, comment)

    def decide(
        self,
        task_id: UUID,
        actor: str,
        decision: DecisionType,
        comment: str | None = None,
    ) -> ApprovalTask:
        """Apply a terminal decision to a pending task.

        Creates exactly one ApprovalDecision, an optional prefixed audit
        comment, and stamps ``acted_at``.
        """
        task = self._load(task_id)
        source, target = self._fire(task, DECISION_EVENTS[decision], actor=actor)
        now = self._clock.now()

        self._session.add(ApprovalDecisionModel(
            task_id=task.id,
            decision=decision.value,
            decided_by=actor,
            decided_at=now,
            comment=comment,
        ))
        if comment and comment.strip():
            self._add_comment(task.id, COMMENT_PREFIXES[decision] + comment, actor, now)

        task.status = target.value
        task.acted_at = now
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, task.id, _DECISION_ACTIONS[decision], actor,
            from_status=source, to_status=target,
            step_instance_id=task.step_instance_id,
        )
        logger.info(
            "task_decided",
            extra={
                "task_id": str(task.id),
                "step_instance_id": str(task.step_instance_id),
                "decision": decision.value,
                "actor": actor,
            },
        )
        return task.to_dto()

    # ------------------------------------------------------------------
    # Delegation and reassignment
    # ------------------------------------------------------------------

    def delegate(self, task_id: UUID, from_actor: str, to_actor: str) -> ApprovalTask:
        """pending -> delegated; the approver becomes ``to_actor``.

        Does not advance the owning step.
        """
        if not to_actor or not to_actor.strip():
            raise InvalidArgumentError("Delegate target must be a non-empty user id")
        task = self._load(task_id)
        source, target = self._fire(task, TaskEvent.DELEGATE, actor=from_actor)
        previous = task.approver_id

        task.approver_id = to_actor
        task.status = target.value
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, task.id, AuditAction.TASK_DELEGATED, from_actor,
            from_status=source, to_status=target,
            from_approver=previous, to_approver=to_actor,
        )
        logger.info(
            "task_delegated",
            extra={"task_id": str(task.id), "from_approver": previous, "to_approver": to_actor},
        )
        return task.to_dto()

    def accept_delegation(self, task_id: UUID, actor: str) -> ApprovalTask:
        """delegated -> pending, allowed only for the current delegate."""
        task = self._load(task_id)
        source, target = self._fire(task, TaskEvent.ACCEPT_DELEGATION, actor=actor)

        task.status = target.value
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, task.id, AuditAction.TASK_DELEGATION_ACCEPTED, actor,
            from_status=source, to_status=target,
        )
        logger.info("task_delegation_accepted", extra={"task_id": str(task.id), "actor": actor})
        return task.to_dto()

    def reassign(
        self,
        task_id: UUID,
        actor: str,
        new_approver_id: str,
        reason: str | None = None,
    ) -> ApprovalTask:
        """pending | delegated -> pending with a new approver.

        A non-empty ``reason`` is kept as a "Task reassigned: " comment.
        """
        if not new_approver_id or not new_approver_id.strip():
            raise InvalidArgumentError("New approver must be a non-empty user id")
        task = self._load(task_id)
        source, target = self._fire(task, TaskEvent.REASSIGN, actor=actor)
        previous = task.approver_id

        task.approver_id = new_approver_id
        task.status = target.value
        if reason and reason.strip():
            self._add_comment(task.id, REASSIGN_COMMENT_PREFIX + reason, actor, self._clock.now())
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, task.id, AuditAction.TASK_REASSIGNED, actor,
            from_status=source, to_status=target,
            from_approver=previous, to_approver=new_approver_id,
        )
        logger.info(
            "task_reassigned",
            extra={"task_id": str(task.id), "from_approver": previous, "to_approver": new_approver_id},
        )
        return task.to_dto()

    # ------------------------------------------------------------------
    # Expiry and cancellation
    # ------------------------------------------------------------------

    def expire(self, task_id: UUID, actor: str = SYSTEM_ACTOR) -> ApprovalTask:
        """pending -> expired on an externally detected deadline breach.

        Expiring a task that is no longer pending is ignored.
        """
        task = self._load(task_id)
        if not TASK_LIFECYCLE.can_fire(TaskStatus(task.status), TaskEvent.EXPIRE):
            logger.info(
                "task_expire_ignored",
                extra={"task_id": str(task.id), "status": task.status},
            )
            return task.to_dto()

        source, target = self._fire(task, TaskEvent.EXPIRE)
        task.status = target.value
        task.acted_at = self._clock.now()
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, task.id, AuditAction.TASK_EXPIRED, actor,
            from_status=source, to_status=target, due_at=task.due_at,
        )
        logger.info("task_expired", extra={"task_id": str(task.id)})
        return task.to_dto()

    def expire_overdue(self, as_of: datetime, actor: str = SYSTEM_ACTOR) -> list[UUID]:
        """Expire every pending task whose due time is before ``as_of``.

        Invoked by an external scheduler; the core runs no timers.
        """
        overdue_ids = self._session.execute(
            select(ApprovalTaskModel.id)
            .where(
                ApprovalTaskModel.status == TaskStatus.PENDING.value,
                ApprovalTaskModel.due_at.is_not(None),
                ApprovalTaskModel.due_at < as_of,
            )
            .order_by(ApprovalTaskModel.due_at, ApprovalTaskModel.id)
        ).scalars().all()

        expired = [
            task.task_id
            for task in (self.expire(task_id, actor) for task_id in overdue_ids)
            if task.status == TaskStatus.EXPIRED
        ]
        logger.info(
            "overdue_tasks_expired",
            extra={"as_of": as_of, "expired_count": len(expired)},
        )
        return expired

    def cancel_all_for_step(self, step_instance_id: UUID, actor: str = SYSTEM_ACTOR) -> list[UUID]:
        """Cancel every pending task of a step.

        Delegated, decided, expired and cancelled tasks are left untouched.
        Returns the ids of the tasks that were cancelled.
        """
        tasks = self._session.execute(
            select(ApprovalTaskModel)
            .where(
                ApprovalTaskModel.step_instance_id == step_instance_id,
                ApprovalTaskModel.status == TaskStatus.PENDING.value,
            )
            .order_by(ApprovalTaskModel.created_at, ApprovalTaskModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        cancelled: list[UUID] = []
        for task in tasks:
            source, target = self._fire(task, TaskEvent.CANCEL)
            task.status = target.value
            self._auditor.record_transition(
                self.ENTITY_TYPE, task.id, AuditAction.TASK_CANCELLED, actor,
                from_status=source, to_status=target,
                step_instance_id=step_instance_id,
            )
            cancelled.append(task.id)
        self._session.flush()

        if cancelled:
            logger.info(
                "step_tasks_cancelled",
                extra={"step_instance_id": str(step_instance_id), "cancelled_count": len(cancelled)},
            )
        return cancelled
