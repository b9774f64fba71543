"""
workflow_kernel.services.step_lifecycle -- Step instance lifecycle.

Responsibility:
    Start, complete and fail workflow step instances, stamping the matching
    timestamp.  Invoked only by the WorkflowOrchestrator after a rule
    evaluation result; never directly by an external caller.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Transitions only through ``STEP_LIFECYCLE``.
    - A failure reason is kept on the row and in the audit payload; it is
      not a separate state.

Failure modes:
    - StepInstanceNotFoundError for an unknown step instance id.
    - InvalidTransitionError when the step is not in the required status.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.workflow import (
    STEP_LIFECYCLE,
    StepEvent,
    StepInstance,
    StepStatus,
)
from workflow_kernel.exceptions import StepInstanceNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.audit_event import AuditAction
from workflow_kernel.models.workflow import WorkflowStepInstanceModel
from workflow_kernel.services.base import BaseService

logger = get_logger("services.step_lifecycle")

_ACTIONS: dict[StepEvent, AuditAction] = {
    StepEvent.START: AuditAction.STEP_STARTED,
    StepEvent.COMPLETE: AuditAction.STEP_COMPLETED,
    StepEvent.FAIL: AuditAction.STEP_FAILED,
}


class StepLifecycleService(BaseService):
    """Drives step instances through STEP_LIFECYCLE."""

    ENTITY_TYPE = "StepInstance"

    def _load(self, step_instance_id: UUID, lock: bool = True) -> WorkflowStepInstanceModel:
        return self._fetch(
            WorkflowStepInstanceModel, step_instance_id, StepInstanceNotFoundError, lock
        )

    def get(self, step_instance_id: UUID) -> StepInstance:
        return self._load(step_instance_id, lock=False).to_dto()

    def lock(self, step_instance_id: UUID) -> StepInstance:
        """Lock the step row and return its freshly read state."""
        return self._load(step_instance_id, lock=True).to_dto()

    def steps_for_workflow(self, workflow_instance_id: UUID) -> list[StepInstance]:
        """All step instances of a workflow, in step order."""
        rows = self._session.execute(
            select(WorkflowStepInstanceModel)
            .where(WorkflowStepInstanceModel.workflow_instance_id == workflow_instance_id)
            .order_by(WorkflowStepInstanceModel.step_order)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def _apply(
        self,
        step_instance_id: UUID,
        event: StepEvent,
        actor: str,
        reason: str | None = None,
    ) -> StepInstance:
        step = self._load(step_instance_id)
        source = StepStatus(step.status)
        target = STEP_LIFECYCLE.fire(step.id, source, event, entity=step)
        now = self._clock.now()

        step.status = target.value
        if event == StepEvent.START:
            step.started_at = now
        else:
            step.completed_at = now
        if reason is not None:
            step.failure_reason = reason
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, step.id, _ACTIONS[event], actor,
            from_status=source, to_status=target, reason=reason,
            workflow_instance_id=step.workflow_instance_id,
            step_order=step.step_order,
        )
        logger.info(
            f"step_{target.value}",
            extra={
                "step_instance_id": str(step.id),
                "workflow_instance_id": str(step.workflow_instance_id),
                "step_order": step.step_order,
            },
        )
        return step.to_dto()

    def start(self, step_instance_id: UUID, actor: str) -> StepInstance:
        """not_started -> in_progress; sets started_at."""
        return self._apply(step_instance_id, StepEvent.START, actor)

    def complete(self, step_instance_id: UUID, actor: str) -> StepInstance:
        """in_progress -> completed; sets completed_at."""
        return self._apply(step_instance_id, StepEvent.COMPLETE, actor)

    def fail(self, step_instance_id: UUID, actor: str, reason: str) -> StepInstance:
        """in_progress -> failed; sets completed_at and records the reason."""
        return self._apply(step_instance_id, StepEvent.FAIL, actor, reason=reason)
