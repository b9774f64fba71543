"""
Tests for the lifecycle transition engine and the four lifecycle tables.

Covers:
- Lifecycle construction checks (undeclared states, duplicate edges)
- fire(): valid transitions, InvalidTransitionError, guard failures
- Terminal states derived from each table
- The task, step, workflow and work item tables edge by edge
"""

from enum import Enum
from types import SimpleNamespace
from uuid import uuid4

import pytest

from workflow_kernel.domain.approval import (
    TASK_LIFECYCLE,
    TERMINAL_TASK_STATUSES,
    TaskEvent,
    TaskStatus,
)
from workflow_kernel.domain.lifecycle import Guard, Lifecycle, Transition
from workflow_kernel.domain.work_item import (
    TERMINAL_WORK_ITEM_STATUSES,
    WORK_ITEM_LIFECYCLE,
    WorkItemEvent,
    WorkItemStatus,
)
from workflow_kernel.domain.workflow import (
    STEP_LIFECYCLE,
    TERMINAL_WORKFLOW_STATUSES,
    WORKFLOW_LIFECYCLE,
    StepEvent,
    StepStatus,
    WorkflowEvent,
    WorkflowStatus,
)
from workflow_kernel.exceptions import (
    InvalidTransitionError,
    TransitionGuardFailedError,
)


class Light(str, Enum):
    OFF = "off"
    ON = "on"
    BROKEN = "broken"


class Switch(str, Enum):
    FLIP = "flip"
    SMASH = "smash"


# =========================================================================
# Lifecycle construction
# =========================================================================


class TestLifecycleConstruction:

    def test_initial_must_be_declared(self):
        with pytest.raises(ValueError, match="initial state"):
            Lifecycle("Light", (Light.ON,), Light.OFF, ())

    def test_undeclared_target_rejected(self):
        with pytest.raises(ValueError, match="undeclared state"):
            Lifecycle(
                "Light", (Light.OFF, Light.ON), Light.OFF,
                (Transition(Light.OFF, Switch.SMASH, Light.BROKEN),),
            )

    def test_duplicate_edge_rejected(self):
        with pytest.raises(ValueError, match="duplicate transition"):
            Lifecycle(
                "Light", tuple(Light), Light.OFF,
                (
                    Transition(Light.OFF, Switch.FLIP, Light.ON),
                    Transition(Light.OFF, Switch.FLIP, Light.BROKEN),
                ),
            )

    def test_terminal_states_have_no_outgoing_edges(self):
        lifecycle = Lifecycle(
            "Light", tuple(Light), Light.OFF,
            (
                Transition(Light.OFF, Switch.FLIP, Light.ON),
                Transition(Light.ON, Switch.FLIP, Light.OFF),
                Transition(Light.ON, Switch.SMASH, Light.BROKEN),
            ),
        )
        assert lifecycle.terminal == frozenset({Light.BROKEN})
        assert lifecycle.allowed_events(Light.ON) == frozenset({Switch.FLIP, Switch.SMASH})


# =========================================================================
# fire()
# =========================================================================


class TestFire:

    @pytest.fixture
    def guarded(self):
        only_owner = Guard(
            name="only_owner",
            description="only the owner may flip",
            check=lambda entity, params: params.get("actor") == entity.owner,
        )
        return Lifecycle(
            "Light", tuple(Light), Light.OFF,
            (Transition(Light.OFF, Switch.FLIP, Light.ON, guard=only_owner),),
        )

    def test_missing_edge_raises_invalid_transition(self, guarded):
        entity_id = uuid4()
        with pytest.raises(InvalidTransitionError) as exc_info:
            guarded.fire(entity_id, Light.ON, Switch.SMASH)
        err = exc_info.value
        assert err.entity_type == "Light"
        assert err.entity_id == str(entity_id)
        assert err.current_status == "on"
        assert err.event == "smash"
        assert not isinstance(err, TransitionGuardFailedError)

    def test_guard_pass_returns_target(self, guarded):
        lamp = SimpleNamespace(owner="ann")
        assert guarded.fire("lamp-1", Light.OFF, Switch.FLIP, entity=lamp, actor="ann") == Light.ON

    def test_guard_failure_raises(self, guarded):
        lamp = SimpleNamespace(owner="ann")
        with pytest.raises(TransitionGuardFailedError) as exc_info:
            guarded.fire("lamp-1", Light.OFF, Switch.FLIP, entity=lamp, actor="bob")
        assert exc_info.value.guard_name == "only_owner"
        assert exc_info.value.reason == "only the owner may flip"

    def test_fire_does_not_mutate_entity(self, guarded):
        lamp = SimpleNamespace(owner="ann", status=Light.OFF)
        guarded.fire("lamp-1", Light.OFF, Switch.FLIP, entity=lamp, actor="ann")
        assert lamp.status == Light.OFF


# =========================================================================
# Task lifecycle
# =========================================================================


class TestTaskLifecycle:

    @pytest.mark.parametrize(
        "source,event,target",
        [
            (TaskStatus.PENDING, TaskEvent.APPROVE, TaskStatus.APPROVED),
            (TaskStatus.PENDING, TaskEvent.REJECT, TaskStatus.REJECTED),
            (TaskStatus.PENDING, TaskEvent.DELEGATE, TaskStatus.DELEGATED),
            (TaskStatus.PENDING, TaskEvent.REASSIGN, TaskStatus.PENDING),
            (TaskStatus.DELEGATED, TaskEvent.REASSIGN, TaskStatus.PENDING),
            (TaskStatus.PENDING, TaskEvent.EXPIRE, TaskStatus.EXPIRED),
            (TaskStatus.PENDING, TaskEvent.CANCEL, TaskStatus.CANCELLED),
        ],
    )
    def test_valid_edges(self, source, event, target):
        task = SimpleNamespace(approver_id="alice")
        assert TASK_LIFECYCLE.fire(uuid4(), source, event, entity=task, actor="alice") == target

    @pytest.mark.parametrize(
        "source,event",
        [
            (TaskStatus.APPROVED, TaskEvent.APPROVE),
            (TaskStatus.APPROVED, TaskEvent.REJECT),
            (TaskStatus.REJECTED, TaskEvent.APPROVE),
            (TaskStatus.DELEGATED, TaskEvent.APPROVE),
            (TaskStatus.EXPIRED, TaskEvent.APPROVE),
            (TaskStatus.CANCELLED, TaskEvent.REASSIGN),
            (TaskStatus.APPROVED, TaskEvent.CANCEL),
            (TaskStatus.DELEGATED, TaskEvent.EXPIRE),
            (TaskStatus.DELEGATED, TaskEvent.CANCEL),
        ],
    )
    def test_invalid_edges(self, source, event):
        with pytest.raises(InvalidTransitionError):
            TASK_LIFECYCLE.fire(uuid4(), source, event)

    def test_accept_delegation_guarded_by_delegate(self):
        task = SimpleNamespace(approver_id="dan")
        assert TASK_LIFECYCLE.fire(
            uuid4(), TaskStatus.DELEGATED, TaskEvent.ACCEPT_DELEGATION,
            entity=task, actor="dan",
        ) == TaskStatus.PENDING
        with pytest.raises(TransitionGuardFailedError):
            TASK_LIFECYCLE.fire(
                uuid4(), TaskStatus.DELEGATED, TaskEvent.ACCEPT_DELEGATION,
                entity=task, actor="alice",
            )

    def test_terminal_statuses(self):
        assert TERMINAL_TASK_STATUSES == frozenset({
            TaskStatus.APPROVED,
            TaskStatus.REJECTED,
            TaskStatus.EXPIRED,
            TaskStatus.CANCELLED,
        })


# =========================================================================
# Step and workflow lifecycles
# =========================================================================


class TestStepLifecycle:

    def test_happy_path(self):
        assert STEP_LIFECYCLE.fire(1, StepStatus.NOT_STARTED, StepEvent.START) == StepStatus.IN_PROGRESS
        assert STEP_LIFECYCLE.fire(1, StepStatus.IN_PROGRESS, StepEvent.COMPLETE) == StepStatus.COMPLETED
        assert STEP_LIFECYCLE.fire(1, StepStatus.IN_PROGRESS, StepEvent.FAIL) == StepStatus.FAILED

    @pytest.mark.parametrize(
        "source,event",
        [
            (StepStatus.NOT_STARTED, StepEvent.COMPLETE),
            (StepStatus.COMPLETED, StepEvent.START),
            (StepStatus.FAILED, StepEvent.COMPLETE),
        ],
    )
    def test_invalid(self, source, event):
        with pytest.raises(InvalidTransitionError):
            STEP_LIFECYCLE.fire(1, source, event)

    def test_failed_and_completed_are_terminal(self):
        assert STEP_LIFECYCLE.terminal == frozenset({StepStatus.COMPLETED, StepStatus.FAILED})


class TestWorkflowLifecycle:

    def test_cancel_allowed_before_start(self):
        assert WORKFLOW_LIFECYCLE.fire(
            1, WorkflowStatus.NOT_STARTED, WorkflowEvent.CANCEL,
        ) == WorkflowStatus.CANCELLED

    @pytest.mark.parametrize(
        "source", [WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED],
    )
    def test_cancel_not_allowed_after_finish(self, source):
        with pytest.raises(InvalidTransitionError):
            WORKFLOW_LIFECYCLE.fire(1, source, WorkflowEvent.CANCEL)

    def test_terminal_statuses(self):
        assert TERMINAL_WORKFLOW_STATUSES == frozenset({
            WorkflowStatus.COMPLETED,
            WorkflowStatus.FAILED,
            WorkflowStatus.CANCELLED,
        })


# =========================================================================
# Work item lifecycle
# =========================================================================


class TestWorkItemLifecycle:

    @pytest.mark.parametrize(
        "source,event,target",
        [
            (WorkItemStatus.DRAFT, WorkItemEvent.SUBMIT, WorkItemStatus.SUBMITTED),
            (WorkItemStatus.REWORK, WorkItemEvent.SUBMIT, WorkItemStatus.SUBMITTED),
            (WorkItemStatus.SUBMITTED, WorkItemEvent.START_REVIEW, WorkItemStatus.IN_REVIEW),
            (WorkItemStatus.IN_REVIEW, WorkItemEvent.APPROVE, WorkItemStatus.APPROVED),
            (WorkItemStatus.IN_REVIEW, WorkItemEvent.REJECT, WorkItemStatus.REJECTED),
            (WorkItemStatus.IN_REVIEW, WorkItemEvent.SEND_TO_REWORK, WorkItemStatus.REWORK),
            (WorkItemStatus.APPROVED, WorkItemEvent.ARCHIVE, WorkItemStatus.ARCHIVED),
            (WorkItemStatus.REJECTED, WorkItemEvent.ARCHIVE, WorkItemStatus.ARCHIVED),
        ],
    )
    def test_valid_edges(self, source, event, target):
        assert WORK_ITEM_LIFECYCLE.fire(1, source, event) == target

    def test_submit_only_from_draft_or_rework(self):
        for status in WorkItemStatus:
            if status in (WorkItemStatus.DRAFT, WorkItemStatus.REWORK):
                continue
            assert not WORK_ITEM_LIFECYCLE.can_fire(status, WorkItemEvent.SUBMIT)

    def test_cancel_from_everything_but_archived_and_cancelled(self):
        for status in WorkItemStatus:
            expected = status not in (WorkItemStatus.ARCHIVED, WorkItemStatus.CANCELLED)
            assert WORK_ITEM_LIFECYCLE.can_fire(status, WorkItemEvent.CANCEL) is expected

    def test_terminal_statuses(self):
        assert TERMINAL_WORK_ITEM_STATUSES == frozenset({
            WorkItemStatus.ARCHIVED,
            WorkItemStatus.CANCELLED,
        })
