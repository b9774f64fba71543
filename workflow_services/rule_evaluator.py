"""
workflow_services.rule_evaluator -- Step approval evaluation over stored state.

Responsibility:
    Load a step instance's policy, its approval tasks and each task's latest
    decision, and hand them to the pure ``evaluate_step_approval`` engine.

Architecture position:
    Services -- joins kernel persistence with the pure engines layer.
    The kernel does not import engines, so this adapter lives here.

Invariants enforced:
    - Read-only: evaluation never changes task, step or decision rows, so
      calling ``evaluate`` twice on unchanged state gives the same result.

Failure modes:
    - StepInstanceNotFoundError for an unknown step instance.
    - WorkflowDefinitionNotFoundError when the step definition is missing.
    - InvalidApprovalPolicyError for an unknown approval type.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_engines.approval_rules import evaluate_step_approval
from workflow_kernel.domain.approval import (
    DecisionType,
    RuleEvaluation,
    TaskApprovalSnapshot,
    TaskStatus,
)
from workflow_kernel.domain.workflow import WorkflowDefinitionReader
from workflow_kernel.exceptions import (
    StepInstanceNotFoundError,
    WorkflowDefinitionNotFoundError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.approval import ApprovalDecisionModel, ApprovalTaskModel
from workflow_kernel.models.workflow import WorkflowStepInstanceModel

logger = get_logger("services.rule_evaluator")


class RuleEvaluatorService:
    """Evaluates a stored step instance against its approval policy."""

    def __init__(self, session: Session, definitions: WorkflowDefinitionReader):
        self._session = session
        self._definitions = definitions

    def snapshots(self, step_instance_id: UUID) -> list[TaskApprovalSnapshot]:
        """Each task of the step with its most recent decision, in creation order."""
        tasks = self._session.execute(
            select(ApprovalTaskModel)
            .where(ApprovalTaskModel.step_instance_id == step_instance_id)
            .order_by(ApprovalTaskModel.created_at, ApprovalTaskModel.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        if not tasks:
            return []

        latest: dict[UUID, DecisionType] = {}
        decisions = self._session.execute(
            select(ApprovalDecisionModel)
            .where(ApprovalDecisionModel.task_id.in_([t.id for t in tasks]))
            .order_by(ApprovalDecisionModel.decided_at)
        ).scalars().all()
        for decision in decisions:
            latest[decision.task_id] = DecisionType(decision.decision)

        return [
            TaskApprovalSnapshot(
                task_id=task.id,
                status=TaskStatus(task.status),
                latest_decision=latest.get(task.id),
            )
            for task in tasks
        ]

    def evaluate(self, step_instance_id: UUID) -> RuleEvaluation:
        step = self._session.get(WorkflowStepInstanceModel, step_instance_id)
        if step is None:
            raise StepInstanceNotFoundError(str(step_instance_id))

        step_def = self._definitions.get_step(step.step_definition_id)
        if step_def is None:
            raise WorkflowDefinitionNotFoundError(
                str(step.step_definition_id), entity_type="WorkflowStepDefinition",
            )

        evaluation = evaluate_step_approval(
            policy=step_def.policy,
            tasks=self.snapshots(step_instance_id),
        )
        logger.debug(
            "step_evaluated",
            extra={
                "step_instance_id": str(step_instance_id),
                "approval_type": step_def.approval_type.value,
                "result": evaluation.result.value,
                "approved_count": evaluation.approved_count,
                "total_count": evaluation.total_count,
            },
        )
        return evaluation
