"""Tests for the pure workflow and approval value objects."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from workflow_kernel.domain.approval import (
    ApprovalTask,
    ApprovalType,
    ApproverType,
    DecisionType,
    StepApprovalPolicy,
    TaskStatus,
    parse_decision,
)
from workflow_kernel.domain.workflow import (
    StepDefinitionSnapshot,
    StepProgress,
    StepStatus,
    WorkflowProgress,
    WorkflowStatus,
)
from workflow_kernel.exceptions import InvalidArgumentError, UnsupportedDecisionError


class TestParseDecision:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (DecisionType.APPROVED, DecisionType.APPROVED),
            ("approved", DecisionType.APPROVED),
            ("REJECTED", DecisionType.REJECTED),
            ("  Approved ", DecisionType.APPROVED),
        ],
    )
    def test_accepted_values(self, value, expected):
        assert parse_decision(value) == expected

    @pytest.mark.parametrize("value", ["escalated", "", "approve", None, 1])
    def test_unsupported_values(self, value):
        with pytest.raises(UnsupportedDecisionError) as exc_info:
            parse_decision(value)
        assert isinstance(exc_info.value, InvalidArgumentError)
        assert exc_info.value.code == "UNSUPPORTED_DECISION"


class TestApprovalTask:

    def _task(self, status):
        return ApprovalTask(
            task_id=uuid4(),
            step_instance_id=uuid4(),
            approver_id="alice",
            approver_type=ApproverType.USER,
            status=status,
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
        )

    def test_open_statuses(self):
        assert self._task(TaskStatus.PENDING).is_open
        assert self._task(TaskStatus.DELEGATED).is_open
        assert not self._task(TaskStatus.APPROVED).is_open
        assert not self._task(TaskStatus.CANCELLED).is_open


class TestStepDefinitionSnapshot:

    def test_policy_carries_type_and_minimum(self):
        step = StepDefinitionSnapshot(
            step_definition_id=uuid4(),
            workflow_definition_id=uuid4(),
            step_order=1,
            step_name="Finance",
            approval_type=ApprovalType.N_OF_M,
            min_approvals=2,
        )
        assert step.policy == StepApprovalPolicy(ApprovalType.N_OF_M, 2)


class TestWorkflowProgress:

    def _progress(self, *statuses):
        steps = tuple(
            StepProgress(
                step_instance_id=uuid4(),
                step_order=i,
                step_name=f"Step {i}",
                status=status,
                approved_tasks=0,
                total_tasks=1,
            )
            for i, status in enumerate(statuses, start=1)
        )
        return WorkflowProgress(uuid4(), uuid4(), WorkflowStatus.IN_PROGRESS, steps)

    def test_percent_is_integer_floor(self):
        progress = self._progress(
            StepStatus.COMPLETED, StepStatus.IN_PROGRESS, StepStatus.NOT_STARTED,
        )
        assert progress.total_steps == 3
        assert progress.completed_steps == 1
        assert progress.percent_complete == 33
        assert progress.current_step.step_order == 2

    def test_no_steps(self):
        progress = self._progress()
        assert progress.percent_complete == 0
        assert progress.current_step is None

    def test_all_completed(self):
        progress = self._progress(StepStatus.COMPLETED, StepStatus.COMPLETED)
        assert progress.percent_complete == 100
        assert progress.current_step is None
