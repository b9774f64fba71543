"""
Module: workflow_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain and
    the locked counter rows that number it.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listeners).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash),
      computed and validated by AuditorService.
    - seq is strictly increasing, allocated by SequenceService from a
      SequenceCounter row locked FOR UPDATE.

Audit relevance:
    AuditEvent IS the audit trail.  Every lifecycle transition of a task,
    step instance, workflow instance or work item produces one row.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, TZDateTime, UUIDString
from workflow_kernel.exceptions import ImmutabilityViolationError


class AuditAction(str, Enum):
    """Types of auditable actions.

    Contract: one member per lifecycle event that must be recorded.
    """

    # Approval task lifecycle
    TASK_CREATED = "task_created"
    TASK_APPROVED = "task_approved"
    TASK_REJECTED = "task_rejected"
    TASK_DELEGATED = "task_delegated"
    TASK_DELEGATION_ACCEPTED = "task_delegation_accepted"
    TASK_REASSIGNED = "task_reassigned"
    TASK_EXPIRED = "task_expired"
    TASK_CANCELLED = "task_cancelled"

    # Step instance lifecycle
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"

    # Workflow instance lifecycle
    WORKFLOW_CREATED = "workflow_created"
    WORKFLOW_STARTED = "workflow_started"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_CANCELLED = "workflow_cancelled"

    # Work item lifecycle
    WORK_ITEM_CREATED = "work_item_created"
    WORK_ITEM_SUBMITTED = "work_item_submitted"
    WORK_ITEM_REVIEW_STARTED = "work_item_review_started"
    WORK_ITEM_APPROVED = "work_item_approved"
    WORK_ITEM_REJECTED = "work_item_rejected"
    WORK_ITEM_SENT_TO_REWORK = "work_item_sent_to_rework"
    WORK_ITEM_ARCHIVED = "work_item_archived"
    WORK_ITEM_CANCELLED = "work_item_cancelled"

    # Definitions
    DEFINITION_INSTALLED = "definition_installed"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Contract:
        Append-only.  Each row's hash includes the previous row's hash.

    Non-goals:
        - This model does NOT compute hashes; AuditorService does.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(200), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None


class SequenceCounter(Base):
    """
    Named monotonic counter.

    Each row holds the last value handed out for one sequence; row-level
    locking keeps allocation strictly increasing under concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


@event.listens_for(AuditEvent, "before_update")
def prevent_audit_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are append-only -- cannot modify",
    )


@event.listens_for(AuditEvent, "before_delete")
def prevent_audit_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are append-only -- cannot delete",
    )
