"""
Module: workflow_kernel.models.approval
Responsibility: ORM persistence for approval tasks, their decisions and
    their audit comments.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - Task status values are limited by a check constraint; the service
      layer enforces transitions via TASK_LIFECYCLE.
    - One decision per task: UNIQUE(task_id) on approval_decisions.
    - Decisions and comments are append-only (ORM listeners).

Failure modes:
    - IntegrityError on a second decision for the same task.
    - ImmutabilityViolationError on decision/comment UPDATE or DELETE.

Audit relevance:
    Decisions and comments are the approver-facing audit trail; status
    changes are additionally recorded via AuditorService.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, TZDateTime, UUIDString
from workflow_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from workflow_kernel.domain.approval import (
        ApprovalCommentRecord,
        ApprovalDecisionRecord,
        ApprovalTask,
    )


class ApprovalTaskModel(Base):
    """Persistent approval task.

    Contract:
        ``status`` only changes through TaskLifecycleService.
        ``approver_id`` changes on delegate and reassign.
    """

    __tablename__ = "approval_tasks"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'delegated', "
            "'expired', 'cancelled')",
            name="ck_approval_tasks_valid_status",
        ),
        Index("ix_approval_tasks_step_status", "step_instance_id", "status"),
        Index("ix_approval_tasks_approver_status", "approver_id", "status"),
        Index("ix_approval_tasks_due", "status", "due_at"),
    )

    step_instance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_step_instances.id"),
        nullable=False,
    )
    approver_id: Mapped[str] = mapped_column(String(200), nullable=False)
    approver_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    due_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True)
    acted_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovalTask {self.id} step={self.step_instance_id} "
            f"approver={self.approver_id} status={self.status}>"
        )

    def to_dto(self) -> ApprovalTask:
        """Convert ORM model to frozen domain DTO."""
        from workflow_kernel.domain.approval import (
            ApprovalTask as ApprovalTaskDTO,
            ApproverType,
            TaskStatus,
        )

        return ApprovalTaskDTO(
            task_id=self.id,
            step_instance_id=self.step_instance_id,
            approver_id=self.approver_id,
            approver_type=ApproverType(self.approver_type),
            status=TaskStatus(self.status),
            created_at=self.created_at,
            due_at=self.due_at,
            acted_at=self.acted_at,
        )


class ApprovalDecisionModel(Base):
    """Persistent approval decision. Append-only.

    Guarantees:
        - UNIQUE(task_id): a task carries at most one decision.
    """

    __tablename__ = "approval_decisions"

    __table_args__ = (
        UniqueConstraint("task_id", name="uq_approval_decisions_task"),
        CheckConstraint(
            "decision IN ('approved', 'rejected')",
            name="ck_approval_decisions_valid_decision",
        ),
    )

    task_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_tasks.id"),
        nullable=False,
    )
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    decided_by: Mapped[str] = mapped_column(String(200), nullable=False)
    decided_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ApprovalDecision {self.id} task={self.task_id} decision={self.decision}>"

    def to_dto(self) -> ApprovalDecisionRecord:
        from workflow_kernel.domain.approval import (
            ApprovalDecisionRecord as DecisionDTO,
            DecisionType,
        )

        return DecisionDTO(
            decision_id=self.id,
            task_id=self.task_id,
            decision=DecisionType(self.decision),
            decided_by=self.decided_by,
            decided_at=self.decided_at,
            comment=self.comment,
        )


class ApprovalCommentModel(Base):
    """Audit comment attached to a task. Append-only."""

    __tablename__ = "approval_comments"

    __table_args__ = (
        Index("ix_approval_comments_task", "task_id", "commented_at"),
    )

    task_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_tasks.id"),
        nullable=False,
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    commented_by: Mapped[str] = mapped_column(String(200), nullable=False)
    commented_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)

    def to_dto(self) -> ApprovalCommentRecord:
        from workflow_kernel.domain.approval import ApprovalCommentRecord

        return ApprovalCommentRecord(
            comment_id=self.id,
            task_id=self.task_id,
            comment=self.comment,
            commented_by=self.commented_by,
            commented_at=self.commented_at,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(ApprovalDecisionModel, "before_update")
def prevent_decision_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalDecision",
        entity_id=str(target.id),
        reason="Approval decisions are immutable -- cannot modify",
    )


@event.listens_for(ApprovalDecisionModel, "before_delete")
def prevent_decision_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalDecision",
        entity_id=str(target.id),
        reason="Approval decisions are immutable -- cannot delete",
    )


@event.listens_for(ApprovalCommentModel, "before_update")
def prevent_comment_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalComment",
        entity_id=str(target.id),
        reason="Approval comments are append-only -- cannot modify",
    )


@event.listens_for(ApprovalCommentModel, "before_delete")
def prevent_comment_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalComment",
        entity_id=str(target.id),
        reason="Approval comments are append-only -- cannot delete",
    )
