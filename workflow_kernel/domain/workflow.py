"""
Workflow domain types (``workflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow and step instances: their lifecycle
tables, definition snapshots handed out by the definition reader,
instance DTOs, progress summaries, and the collaborator protocols the
orchestrator depends on (definition reader, approver resolver).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``STEP_LIFECYCLE``: not_started -> in_progress -> completed | failed.
* ``WORKFLOW_LIFECYCLE``: not_started -> in_progress -> completed |
  failed | cancelled, plus not_started -> cancelled.
* A workflow instance's ``workflow_version`` is copied from the
  definition snapshot at creation and never changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID

from workflow_kernel.domain.approval import (
    ApprovalType,
    ApproverType,
    StepApprovalPolicy,
)
from workflow_kernel.domain.lifecycle import Lifecycle, Transition

# Fixed audit reasons for the rejection cascade.
STEP_REJECTED_REASON = "Step rejected by approver"
WORKFLOW_REJECTED_REASON = "Workflow rejected due to step rejection"


# =========================================================================
# Step lifecycle
# =========================================================================


class StepStatus(str, Enum):
    """Workflow step instance lifecycle states."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class StepEvent(str, Enum):
    START = "start"
    COMPLETE = "complete"
    FAIL = "fail"


STEP_LIFECYCLE: Lifecycle[StepStatus, StepEvent] = Lifecycle(
    name="StepInstance",
    states=tuple(StepStatus),
    initial=StepStatus.NOT_STARTED,
    transitions=(
        Transition(StepStatus.NOT_STARTED, StepEvent.START, StepStatus.IN_PROGRESS),
        Transition(StepStatus.IN_PROGRESS, StepEvent.COMPLETE, StepStatus.COMPLETED),
        Transition(StepStatus.IN_PROGRESS, StepEvent.FAIL, StepStatus.FAILED),
    ),
)


# =========================================================================
# Workflow lifecycle
# =========================================================================


class WorkflowStatus(str, Enum):
    """Workflow instance lifecycle states."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WorkflowEvent(str, Enum):
    START = "start"
    COMPLETE = "complete"
    FAIL = "fail"
    CANCEL = "cancel"


WORKFLOW_LIFECYCLE: Lifecycle[WorkflowStatus, WorkflowEvent] = Lifecycle(
    name="WorkflowInstance",
    states=tuple(WorkflowStatus),
    initial=WorkflowStatus.NOT_STARTED,
    transitions=(
        Transition(WorkflowStatus.NOT_STARTED, WorkflowEvent.START, WorkflowStatus.IN_PROGRESS),
        Transition(WorkflowStatus.IN_PROGRESS, WorkflowEvent.COMPLETE, WorkflowStatus.COMPLETED),
        Transition(WorkflowStatus.IN_PROGRESS, WorkflowEvent.FAIL, WorkflowStatus.FAILED),
        Transition(WorkflowStatus.NOT_STARTED, WorkflowEvent.CANCEL, WorkflowStatus.CANCELLED),
        Transition(WorkflowStatus.IN_PROGRESS, WorkflowEvent.CANCEL, WorkflowStatus.CANCELLED),
    ),
)

TERMINAL_WORKFLOW_STATUSES: frozenset[WorkflowStatus] = WORKFLOW_LIFECYCLE.terminal


# =========================================================================
# Definition snapshots (read-only views handed out by the reader)
# =========================================================================


@dataclass(frozen=True)
class StepApproverSnapshot:
    approver_type: ApproverType
    approver_value: str


@dataclass(frozen=True)
class StepDefinitionSnapshot:
    """One step of a workflow definition."""

    step_definition_id: UUID
    workflow_definition_id: UUID
    step_order: int
    step_name: str
    approval_type: ApprovalType
    min_approvals: int | None = None
    sla_hours: int | None = None

    @property
    def policy(self) -> StepApprovalPolicy:
        return StepApprovalPolicy(self.approval_type, self.min_approvals)


@dataclass(frozen=True)
class WorkflowDefinitionSnapshot:
    """A workflow definition at its current version, steps in order."""

    definition_id: UUID
    name: str
    version: int
    steps: tuple[StepDefinitionSnapshot, ...]
    is_active: bool = True


# =========================================================================
# Instance DTOs
# =========================================================================


@dataclass(frozen=True)
class StepInstance:
    step_instance_id: UUID
    workflow_instance_id: UUID
    step_definition_id: UUID
    step_order: int
    status: StepStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class WorkflowInstance:
    workflow_instance_id: UUID
    workflow_definition_id: UUID
    workflow_version: int
    work_item_id: UUID
    status: WorkflowStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failure_reason: str | None = None
    steps: tuple[StepInstance, ...] = ()


# =========================================================================
# Progress summary
# =========================================================================


@dataclass(frozen=True)
class StepProgress:
    step_instance_id: UUID
    step_order: int
    step_name: str
    status: StepStatus
    approved_tasks: int
    total_tasks: int


@dataclass(frozen=True)
class WorkflowProgress:
    """Read model: how far a work item's latest workflow has advanced."""

    workflow_instance_id: UUID
    work_item_id: UUID
    status: WorkflowStatus
    steps: tuple[StepProgress, ...]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def completed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def percent_complete(self) -> int:
        if not self.steps:
            return 0
        return (self.completed_steps * 100) // self.total_steps

    @property
    def current_step(self) -> StepProgress | None:
        for s in self.steps:
            if s.status == StepStatus.IN_PROGRESS:
                return s
        return None


# =========================================================================
# Collaborator protocols
# =========================================================================


class WorkflowDefinitionReader(Protocol):
    """Read access to workflow, step and approver definitions."""

    def get_workflow(self, definition_id: UUID) -> WorkflowDefinitionSnapshot | None: ...

    def get_step(self, step_definition_id: UUID) -> StepDefinitionSnapshot | None: ...

    def get_approvers(self, step_definition_id: UUID) -> tuple[StepApproverSnapshot, ...]: ...


class ApproverResolver(Protocol):
    """Maps role and manager-chain references to concrete user ids."""

    def resolve_role(self, role: str) -> list[str]: ...

    def resolve_manager_chain(self, user_id: str) -> list[str]: ...
