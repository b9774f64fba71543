"""
Module: workflow_kernel.models.workflow
Responsibility: ORM persistence for workflow definitions (workflow, step,
    approver) and their runtime instances (workflow instance, step instance).

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(name, version) on workflow definitions.
    - UNIQUE(workflow_id, step_order) on step definitions.
    - UNIQUE(workflow_instance_id, step_definition_id) on step instances:
      one runtime step per definition step.
    - workflow_version on an instance is the definition version at
      creation; nothing writes it afterwards.

Failure modes:
    - IntegrityError on duplicate definition (name, version) or step order.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workflow_kernel.db.base import Base, TZDateTime, UUIDString

if TYPE_CHECKING:
    from workflow_kernel.domain.workflow import (
        StepApproverSnapshot,
        StepDefinitionSnapshot,
        StepInstance,
        WorkflowDefinitionSnapshot,
        WorkflowInstance,
    )


# =============================================================================
# Definitions
# =============================================================================


class WorkflowDefinitionModel(Base):
    """A named, versioned workflow template."""

    __tablename__ = "workflow_definitions"

    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_workflow_definitions_name_version"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)

    steps: Mapped[list["WorkflowStepDefinitionModel"]] = relationship(
        "WorkflowStepDefinitionModel",
        back_populates="workflow",
        order_by="WorkflowStepDefinitionModel.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowDefinition {self.name} v{self.version}>"

    def to_dto(self) -> WorkflowDefinitionSnapshot:
        from workflow_kernel.domain.workflow import WorkflowDefinitionSnapshot

        return WorkflowDefinitionSnapshot(
            definition_id=self.id,
            name=self.name,
            version=self.version,
            steps=tuple(step.to_dto() for step in self.steps),
            is_active=self.is_active,
        )


class WorkflowStepDefinitionModel(Base):
    """One ordered step of a workflow definition."""

    __tablename__ = "workflow_step_definitions"

    __table_args__ = (
        UniqueConstraint("workflow_id", "step_order", name="uq_step_definitions_order"),
        CheckConstraint(
            "approval_type IN ('ALL', 'ANY', 'N_OF_M')",
            name="ck_step_definitions_approval_type",
        ),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id"),
        nullable=False,
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    step_name: Mapped[str] = mapped_column(String(200), nullable=False)
    approval_type: Mapped[str] = mapped_column(String(20), nullable=False)
    min_approvals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sla_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    workflow: Mapped["WorkflowDefinitionModel"] = relationship(
        "WorkflowDefinitionModel", back_populates="steps",
    )
    approvers: Mapped[list["WorkflowStepApproverModel"]] = relationship(
        "WorkflowStepApproverModel",
        back_populates="step",
        order_by="WorkflowStepApproverModel.position",
        lazy="selectin",
    )

    def to_dto(self) -> StepDefinitionSnapshot:
        from workflow_kernel.domain.approval import ApprovalType
        from workflow_kernel.domain.workflow import StepDefinitionSnapshot

        return StepDefinitionSnapshot(
            step_definition_id=self.id,
            workflow_definition_id=self.workflow_id,
            step_order=self.step_order,
            step_name=self.step_name,
            approval_type=ApprovalType(self.approval_type),
            min_approvals=self.min_approvals,
            sla_hours=self.sla_hours,
        )


class WorkflowStepApproverModel(Base):
    """An approver reference (user id, role name, or manager-of user id)."""

    __tablename__ = "workflow_step_approvers"

    step_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_step_definitions.id"),
        nullable=False,
    )
    approver_type: Mapped[str] = mapped_column(String(20), nullable=False)
    approver_value: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    step: Mapped["WorkflowStepDefinitionModel"] = relationship(
        "WorkflowStepDefinitionModel", back_populates="approvers",
    )

    def to_dto(self) -> StepApproverSnapshot:
        from workflow_kernel.domain.approval import ApproverType
        from workflow_kernel.domain.workflow import StepApproverSnapshot

        return StepApproverSnapshot(
            approver_type=ApproverType(self.approver_type),
            approver_value=self.approver_value,
        )


# =============================================================================
# Instances
# =============================================================================


class WorkflowInstanceModel(Base):
    """A running (or finished) execution of a pinned workflow definition."""

    __tablename__ = "workflow_instances"

    __table_args__ = (
        CheckConstraint(
            "status IN ('not_started', 'in_progress', 'completed', 'failed', 'cancelled')",
            name="ck_workflow_instances_valid_status",
        ),
        Index("ix_workflow_instances_work_item", "work_item_id", "started_at"),
    )

    workflow_definition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id"),
        nullable=False,
    )
    workflow_version: Mapped[int] = mapped_column(Integer, nullable=False)
    work_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_items.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    created_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    steps: Mapped[list["WorkflowStepInstanceModel"]] = relationship(
        "WorkflowStepInstanceModel",
        back_populates="workflow_instance",
        order_by="WorkflowStepInstanceModel.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowInstance {self.id} status={self.status}>"

    def to_dto(self) -> WorkflowInstance:
        from workflow_kernel.domain.workflow import (
            WorkflowInstance as WorkflowInstanceDTO,
            WorkflowStatus,
        )

        return WorkflowInstanceDTO(
            workflow_instance_id=self.id,
            workflow_definition_id=self.workflow_definition_id,
            workflow_version=self.workflow_version,
            work_item_id=self.work_item_id,
            status=WorkflowStatus(self.status),
            started_at=self.started_at,
            completed_at=self.completed_at,
            failure_reason=self.failure_reason,
            steps=tuple(step.to_dto() for step in self.steps),
        )


class WorkflowStepInstanceModel(Base):
    """Runtime execution of one step definition within a workflow instance."""

    __tablename__ = "workflow_step_instances"

    __table_args__ = (
        CheckConstraint(
            "status IN ('not_started', 'in_progress', 'completed', 'failed')",
            name="ck_step_instances_valid_status",
        ),
        UniqueConstraint(
            "workflow_instance_id", "step_definition_id",
            name="uq_step_instances_definition",
        ),
    )

    workflow_instance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_instances.id"),
        nullable=False,
    )
    step_definition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_step_definitions.id"),
        nullable=False,
    )
    # Copied from the definition at creation; instance ordering never
    # depends on later definition edits.
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    started_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    workflow_instance: Mapped["WorkflowInstanceModel"] = relationship(
        "WorkflowInstanceModel", back_populates="steps",
    )

    def __repr__(self) -> str:
        return (
            f"<StepInstance {self.id} order={self.step_order} status={self.status}>"
        )

    def to_dto(self) -> StepInstance:
        from workflow_kernel.domain.workflow import (
            StepInstance as StepInstanceDTO,
            StepStatus,
        )

        return StepInstanceDTO(
            step_instance_id=self.id,
            workflow_instance_id=self.workflow_instance_id,
            step_definition_id=self.step_definition_id,
            step_order=self.step_order,
            status=StepStatus(self.status),
            started_at=self.started_at,
            completed_at=self.completed_at,
            failure_reason=self.failure_reason,
        )
