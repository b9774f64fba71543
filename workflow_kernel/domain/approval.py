"""
Approval domain types (``workflow_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for approval tasks: the task lifecycle table, decision
and policy enums, task/decision DTOs, and the snapshot/evaluation types
exchanged with the rule evaluation engine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``TASK_LIFECYCLE`` defines the only valid task status transitions.
  A task leaves ``pending`` through approve/reject at most once because
  ``approved`` and ``rejected`` have no outgoing edges.
* Delegation acceptance is guarded: only the current approver (the
  delegate) may accept.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from workflow_kernel.domain.lifecycle import Guard, Lifecycle, Transition
from workflow_kernel.exceptions import UnsupportedDecisionError


# =========================================================================
# Task lifecycle
# =========================================================================


class TaskStatus(str, Enum):
    """Approval task lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class TaskEvent(str, Enum):
    """Events accepted by the task lifecycle."""

    APPROVE = "approve"
    REJECT = "reject"
    DELEGATE = "delegate"
    ACCEPT_DELEGATION = "accept_delegation"
    REASSIGN = "reassign"
    EXPIRE = "expire"
    CANCEL = "cancel"


class ApproverType(str, Enum):
    """How an approver reference on a step definition is resolved."""

    USER = "user"
    ROLE = "role"
    MANAGER = "manager"


class DecisionType(str, Enum):
    """Terminal decision kinds an approver can record."""

    APPROVED = "approved"
    REJECTED = "rejected"


def _accepted_by_delegate(task: Any, params: Mapping[str, Any]) -> bool:
    return params.get("actor") == task.approver_id


ACCEPTED_BY_DELEGATE = Guard(
    name="accepted_by_delegate",
    description="only the current delegate may accept the delegation",
    check=_accepted_by_delegate,
)


TASK_LIFECYCLE: Lifecycle[TaskStatus, TaskEvent] = Lifecycle(
    name="ApprovalTask",
    states=tuple(TaskStatus),
    initial=TaskStatus.PENDING,
    transitions=(
        Transition(TaskStatus.PENDING, TaskEvent.APPROVE, TaskStatus.APPROVED),
        Transition(TaskStatus.PENDING, TaskEvent.REJECT, TaskStatus.REJECTED),
        Transition(TaskStatus.PENDING, TaskEvent.DELEGATE, TaskStatus.DELEGATED),
        Transition(
            TaskStatus.DELEGATED,
            TaskEvent.ACCEPT_DELEGATION,
            TaskStatus.PENDING,
            guard=ACCEPTED_BY_DELEGATE,
        ),
        Transition(TaskStatus.PENDING, TaskEvent.REASSIGN, TaskStatus.PENDING),
        Transition(TaskStatus.DELEGATED, TaskEvent.REASSIGN, TaskStatus.PENDING),
        Transition(TaskStatus.PENDING, TaskEvent.EXPIRE, TaskStatus.EXPIRED),
        Transition(TaskStatus.PENDING, TaskEvent.CANCEL, TaskStatus.CANCELLED),
    ),
)

# Tasks still waiting on a human.
OPEN_TASK_STATUSES: frozenset[TaskStatus] = frozenset({
    TaskStatus.PENDING,
    TaskStatus.DELEGATED,
})

TERMINAL_TASK_STATUSES: frozenset[TaskStatus] = TASK_LIFECYCLE.terminal

DECISION_EVENTS: dict[DecisionType, TaskEvent] = {
    DecisionType.APPROVED: TaskEvent.APPROVE,
    DecisionType.REJECTED: TaskEvent.REJECT,
}

COMMENT_PREFIXES: dict[DecisionType, str] = {
    DecisionType.APPROVED: "[APPROVED] ",
    DecisionType.REJECTED: "[REJECTED] ",
}

REASSIGN_COMMENT_PREFIX = "Task reassigned: "


def parse_decision(value: DecisionType | str) -> DecisionType:
    """Coerce caller input into a DecisionType.

    Accepts enum members and their string values, case-insensitively.

    Raises:
        UnsupportedDecisionError: For anything other than approved/rejected.
    """
    if isinstance(value, DecisionType):
        return value
    if isinstance(value, str):
        try:
            return DecisionType(value.strip().lower())
        except ValueError:
            pass
    raise UnsupportedDecisionError(str(value))


# =========================================================================
# Policy and evaluation types
# =========================================================================


class ApprovalType(str, Enum):
    """How many approvals a step requires."""

    ALL = "ALL"
    ANY = "ANY"
    N_OF_M = "N_OF_M"


class RuleEvaluationResult(str, Enum):
    """Outcome of evaluating a step's approval policy."""

    SATISFIED = "satisfied"
    REJECTED = "rejected"
    PENDING = "pending"


@dataclass(frozen=True)
class StepApprovalPolicy:
    """Approval policy of a step definition.

    ``min_approvals`` is only meaningful for ``N_OF_M``.
    """

    approval_type: ApprovalType
    min_approvals: int | None = None


@dataclass(frozen=True)
class TaskApprovalSnapshot:
    """Evaluation input for one task: its status and latest decision."""

    task_id: UUID
    status: TaskStatus
    latest_decision: DecisionType | None = None


@dataclass(frozen=True)
class RuleEvaluation:
    """Result of evaluating a step's tasks against its policy."""

    result: RuleEvaluationResult
    approved_count: int = 0
    total_count: int = 0
    reason: str = ""

    @property
    def is_satisfied(self) -> bool:
        return self.result == RuleEvaluationResult.SATISFIED

    @property
    def is_rejected(self) -> bool:
        return self.result == RuleEvaluationResult.REJECTED


# =========================================================================
# Task and decision DTOs
# =========================================================================


@dataclass(frozen=True)
class ApprovalTask:
    """An approval task assigned to one approver for one step instance."""

    task_id: UUID
    step_instance_id: UUID
    approver_id: str
    approver_type: ApproverType
    status: TaskStatus
    created_at: datetime
    due_at: datetime | None = None
    acted_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_TASK_STATUSES


@dataclass(frozen=True)
class ApprovalDecisionRecord:
    """Immutable decision recorded when a task is approved or rejected."""

    decision_id: UUID
    task_id: UUID
    decision: DecisionType
    decided_by: str
    decided_at: datetime
    comment: str | None = None


@dataclass(frozen=True)
class ApprovalCommentRecord:
    """Audit comment attached to a task."""

    comment_id: UUID
    task_id: UUID
    comment: str
    commented_by: str
    commented_at: datetime
