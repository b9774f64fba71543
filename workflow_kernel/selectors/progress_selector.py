"""
Module: workflow_kernel.selectors.progress_selector
Responsibility: Read model of how far a work item's workflow has advanced:
    per-step status and task counts, completed/total steps, an integer
    percentage and the current step.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Reports the most recently created workflow instance of the work item.
    - Steps are listed in ``step_order``; step names come from the step
      definitions the instance was created from.

Failure modes:
    - Returns None when the work item has no workflow instance.
"""

from uuid import UUID

from sqlalchemy import case, func, select

from workflow_kernel.domain.approval import TaskStatus
from workflow_kernel.domain.workflow import (
    StepProgress,
    StepStatus,
    WorkflowProgress,
    WorkflowStatus,
)
from workflow_kernel.models.approval import ApprovalTaskModel
from workflow_kernel.models.workflow import (
    WorkflowInstanceModel,
    WorkflowStepDefinitionModel,
    WorkflowStepInstanceModel,
)
from workflow_kernel.selectors.base import BaseSelector


class WorkflowProgressSelector(BaseSelector[WorkflowInstanceModel]):
    """Progress summaries for work items and workflow instances."""

    def get_workflow_progress(self, work_item_id: UUID) -> WorkflowProgress | None:
        instance = self.session.execute(
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.work_item_id == work_item_id)
            .order_by(WorkflowInstanceModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        if instance is None:
            return None
        return self._progress_for(instance)

    def get_instance_progress(self, workflow_instance_id: UUID) -> WorkflowProgress | None:
        instance = self.session.get(WorkflowInstanceModel, workflow_instance_id)
        if instance is None:
            return None
        return self._progress_for(instance)

    def _progress_for(self, instance: WorkflowInstanceModel) -> WorkflowProgress:
        rows = self.session.execute(
            select(WorkflowStepInstanceModel, WorkflowStepDefinitionModel.step_name)
            .join(
                WorkflowStepDefinitionModel,
                WorkflowStepDefinitionModel.id == WorkflowStepInstanceModel.step_definition_id,
            )
            .where(WorkflowStepInstanceModel.workflow_instance_id == instance.id)
            .order_by(WorkflowStepInstanceModel.step_order)
        ).all()

        counts = self._task_counts([step.id for step, _ in rows])
        steps = tuple(
            StepProgress(
                step_instance_id=step.id,
                step_order=step.step_order,
                step_name=step_name,
                status=StepStatus(step.status),
                approved_tasks=counts.get(step.id, (0, 0))[0],
                total_tasks=counts.get(step.id, (0, 0))[1],
            )
            for step, step_name in rows
        )
        return WorkflowProgress(
            workflow_instance_id=instance.id,
            work_item_id=instance.work_item_id,
            status=WorkflowStatus(instance.status),
            steps=steps,
        )

    def _task_counts(self, step_ids: list[UUID]) -> dict[UUID, tuple[int, int]]:
        """Map step instance id -> (approved task count, total task count)."""
        if not step_ids:
            return {}
        approved = func.sum(
            case((ApprovalTaskModel.status == TaskStatus.APPROVED.value, 1), else_=0)
        )
        result = self.session.execute(
            select(
                ApprovalTaskModel.step_instance_id,
                func.count(ApprovalTaskModel.id),
                approved,
            )
            .where(ApprovalTaskModel.step_instance_id.in_(step_ids))
            .group_by(ApprovalTaskModel.step_instance_id)
        ).all()
        return {
            step_id: (int(approved_count or 0), int(total))
            for step_id, total, approved_count in result
        }
