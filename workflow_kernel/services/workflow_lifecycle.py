"""
workflow_kernel.services.workflow_lifecycle -- Workflow instance lifecycle.

Responsibility:
    Creates workflow instances pinned to a definition version (with one
    not-started step instance per step definition) and drives them through
    start, complete, fail and cancel.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Transitions only through ``WORKFLOW_LIFECYCLE``; cancel is allowed
      from not_started and in_progress.
    - ``workflow_version`` is copied from the definition snapshot at
      creation and never written again.
    - ``lock()`` takes a FOR UPDATE lock on the instance row; the
      orchestrator uses it as the per-workflow consistency boundary.

Failure modes:
    - WorkflowInstanceNotFoundError for an unknown instance id.
    - InvalidTransitionError when the instance is not in the required status.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.workflow import (
    WORKFLOW_LIFECYCLE,
    StepStatus,
    WorkflowDefinitionSnapshot,
    WorkflowEvent,
    WorkflowInstance,
    WorkflowStatus,
)
from workflow_kernel.exceptions import WorkflowInstanceNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.audit_event import AuditAction
from workflow_kernel.models.workflow import (
    WorkflowInstanceModel,
    WorkflowStepInstanceModel,
)
from workflow_kernel.services.base import BaseService

logger = get_logger("services.workflow_lifecycle")

_ACTIONS: dict[WorkflowEvent, AuditAction] = {
    WorkflowEvent.START: AuditAction.WORKFLOW_STARTED,
    WorkflowEvent.COMPLETE: AuditAction.WORKFLOW_COMPLETED,
    WorkflowEvent.FAIL: AuditAction.WORKFLOW_FAILED,
    WorkflowEvent.CANCEL: AuditAction.WORKFLOW_CANCELLED,
}


class WorkflowLifecycleService(BaseService):
    """Creates workflow instances and drives them through WORKFLOW_LIFECYCLE."""

    ENTITY_TYPE = "WorkflowInstance"

    def _load(self, workflow_instance_id: UUID, lock: bool = True) -> WorkflowInstanceModel:
        return self._fetch(
            WorkflowInstanceModel, workflow_instance_id, WorkflowInstanceNotFoundError, lock
        )

    def get(self, workflow_instance_id: UUID) -> WorkflowInstance:
        return self._load(workflow_instance_id, lock=False).to_dto()

    def lock(self, workflow_instance_id: UUID) -> WorkflowInstance:
        """Lock the instance row for the rest of the transaction."""
        return self._load(workflow_instance_id, lock=True).to_dto()

    def latest_for_work_item(self, work_item_id: UUID) -> WorkflowInstance | None:
        """The most recently created workflow instance for a work item."""
        instance = self._session.execute(
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.work_item_id == work_item_id)
            .order_by(WorkflowInstanceModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return instance.to_dto() if instance is not None else None

    def create(
        self,
        definition: WorkflowDefinitionSnapshot,
        work_item_id: UUID,
        actor: str,
    ) -> WorkflowInstance:
        """Create a not-started instance pinned to ``definition.version``.

        One not-started step instance is created per step definition, in
        step order.
        """
        instance = WorkflowInstanceModel(
            workflow_definition_id=definition.definition_id,
            workflow_version=definition.version,
            work_item_id=work_item_id,
            status=WORKFLOW_LIFECYCLE.initial.value,
            created_at=self._clock.now(),
        )
        self._session.add(instance)
        for step in sorted(definition.steps, key=lambda s: s.step_order):
            instance.steps.append(WorkflowStepInstanceModel(
                step_definition_id=step.step_definition_id,
                step_order=step.step_order,
                status=StepStatus.NOT_STARTED.value,
            ))
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, instance.id, AuditAction.WORKFLOW_CREATED, actor,
            to_status=WorkflowStatus.NOT_STARTED,
            workflow_definition_id=definition.definition_id,
            workflow_version=definition.version,
            work_item_id=work_item_id,
            step_count=len(instance.steps),
        )
        logger.info(
            "workflow_instance_created",
            extra={
                "workflow_instance_id": str(instance.id),
                "workflow_name": definition.name,
                "workflow_version": definition.version,
                "step_count": len(instance.steps),
            },
        )
        return instance.to_dto()

    def _apply(
        self,
        workflow_instance_id: UUID,
        event: WorkflowEvent,
        actor: str,
        reason: str | None = None,
    ) -> WorkflowInstance:
        instance = self._load(workflow_instance_id)
        source = WorkflowStatus(instance.status)
        target = WORKFLOW_LIFECYCLE.fire(instance.id, source, event, entity=instance)
        now = self._clock.now()

        instance.status = target.value
        if event == WorkflowEvent.START:
            instance.started_at = now
        else:
            instance.completed_at = now
        if reason is not None:
            instance.failure_reason = reason
        self._session.flush()

        self._auditor.record_transition(
            self.ENTITY_TYPE, instance.id, _ACTIONS[event], actor,
            from_status=source, to_status=target, reason=reason,
            work_item_id=instance.work_item_id,
        )
        logger.info(
            f"workflow_{target.value}",
            extra={
                "workflow_instance_id": str(instance.id),
                "work_item_id": str(instance.work_item_id),
            },
        )
        return instance.to_dto()

    def start(self, workflow_instance_id: UUID, actor: str) -> WorkflowInstance:
        """not_started -> in_progress; sets started_at."""
        return self._apply(workflow_instance_id, WorkflowEvent.START, actor)

    def complete(self, workflow_instance_id: UUID, actor: str) -> WorkflowInstance:
        """in_progress -> completed; sets completed_at."""
        return self._apply(workflow_instance_id, WorkflowEvent.COMPLETE, actor)

    def fail(self, workflow_instance_id: UUID, actor: str, reason: str) -> WorkflowInstance:
        """in_progress -> failed; sets completed_at and records the reason."""
        return self._apply(workflow_instance_id, WorkflowEvent.FAIL, actor, reason=reason)

    def cancel(self, workflow_instance_id: UUID, actor: str) -> WorkflowInstance:
        """not_started | in_progress -> cancelled; sets completed_at."""
        return self._apply(workflow_instance_id, WorkflowEvent.CANCEL, actor)
