"""
workflow_kernel.services.task_management -- Approval task creation and queries.

Responsibility:
    Creates the approval tasks of a step instance by resolving the step's
    configured approvers to concrete user ids, and answers task, decision
    and comment queries.

Architecture position:
    Kernel > Services.  Depends on the ``WorkflowDefinitionReader`` and
    ``ApproverResolver`` protocols; concrete implementations are injected.

Invariants enforced:
    - One pending task per distinct resolved user id within a step; the
      first occurrence wins.
    - ``due_at = now + sla_hours`` when the step has a positive SLA,
      otherwise None.

Failure modes:
    - StepInstanceNotFoundError for an unknown step instance.
    - WorkflowDefinitionNotFoundError when the step definition is missing.
    - A step with no resolvable approvers creates no tasks and logs a
      warning; it is not an error.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_kernel.domain.approval import (
    ApprovalCommentRecord,
    ApprovalDecisionRecord,
    ApprovalTask,
    ApproverType,
    TaskStatus,
)
from workflow_kernel.domain.clock import Clock
from workflow_kernel.domain.workflow import (
    ApproverResolver,
    StepApproverSnapshot,
    WorkflowDefinitionReader,
)
from workflow_kernel.exceptions import (
    StepInstanceNotFoundError,
    TaskNotFoundError,
    WorkflowDefinitionNotFoundError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.approval import (
    ApprovalCommentModel,
    ApprovalDecisionModel,
    ApprovalTaskModel,
)
from workflow_kernel.models.audit_event import AuditAction
from workflow_kernel.models.workflow import WorkflowStepInstanceModel
from workflow_kernel.services.auditor_service import AuditorService
from workflow_kernel.services.base import BaseService

logger = get_logger("services.task_management")


class TaskManagementService(BaseService):
    """
    Creates approval tasks for step instances.

    Contract:
        ``create_tasks_for_step`` returns the ids of the created tasks in
        approver order.  Tasks start ``pending``.

    Non-goals:
        - Does NOT change task status after creation (TaskLifecycleService).
        - Does NOT decide who belongs to a role; the resolver does.
    """

    ENTITY_TYPE = "ApprovalTask"

    def __init__(
        self,
        session: Session,
        definitions: WorkflowDefinitionReader,
        approver_resolver: ApproverResolver | None,
        auditor: AuditorService,
        clock: Clock | None = None,
    ):
        super().__init__(session, auditor, clock)
        self._definitions = definitions
        self._resolver = approver_resolver

    # ------------------------------------------------------------------
    # Approver resolution
    # ------------------------------------------------------------------

    def _resolve(self, approver: StepApproverSnapshot) -> list[str]:
        if approver.approver_type == ApproverType.USER:
            return [approver.approver_value]

        if self._resolver is None:
            logger.warning(
                "approver_resolver_missing",
                extra={
                    "approver_type": approver.approver_type.value,
                    "approver_value": approver.approver_value,
                },
            )
            return []

        if approver.approver_type == ApproverType.ROLE:
            return list(self._resolver.resolve_role(approver.approver_value))

        chain = self._resolver.resolve_manager_chain(approver.approver_value)
        if not chain:
            logger.warning(
                "manager_chain_empty",
                extra={"user_id": approver.approver_value},
            )
            return []
        return [chain[0]]

    def resolve_approvers(
        self, approvers: tuple[StepApproverSnapshot, ...],
    ) -> list[tuple[str, ApproverType]]:
        """Resolve configured approvers to distinct user ids, in order."""
        seen: set[str] = set()
        resolved: list[tuple[str, ApproverType]] = []
        for approver in approvers:
            for user_id in self._resolve(approver):
                if not user_id or user_id in seen:
                    continue
                seen.add(user_id)
                resolved.append((user_id, approver.approver_type))
        return resolved

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_tasks_for_step(self, step_instance_id: UUID, actor: str) -> list[UUID]:
        """Create one pending task per resolved approver of the step."""
        step = self._session.get(WorkflowStepInstanceModel, step_instance_id)
        if step is None:
            raise StepInstanceNotFoundError(str(step_instance_id))

        step_def = self._definitions.get_step(step.step_definition_id)
        if step_def is None:
            raise WorkflowDefinitionNotFoundError(
                str(step.step_definition_id), entity_type="WorkflowStepDefinition",
            )

        resolved = self.resolve_approvers(
            self._definitions.get_approvers(step.step_definition_id)
        )
        if not resolved:
            logger.warning(
                "step_has_no_approvers",
                extra={
                    "step_instance_id": str(step_instance_id),
                    "step_name": step_def.step_name,
                },
            )
            return []

        now = self._clock.now()
        due_at = None
        if step_def.sla_hours is not None and step_def.sla_hours > 0:
            due_at = now + timedelta(hours=step_def.sla_hours)

        tasks = [
            ApprovalTaskModel(
                step_instance_id=step_instance_id,
                approver_id=user_id,
                approver_type=approver_type.value,
                status=TaskStatus.PENDING.value,
                due_at=due_at,
                created_at=now,
            )
            for user_id, approver_type in resolved
        ]
        self._session.add_all(tasks)
        self._session.flush()

        for task in tasks:
            self._auditor.record_transition(
                self.ENTITY_TYPE, task.id, AuditAction.TASK_CREATED, actor,
                to_status=TaskStatus.PENDING,
                step_instance_id=step_instance_id,
                approver_id=task.approver_id,
                approver_type=task.approver_type,
                due_at=due_at,
            )

        logger.info(
            "step_tasks_created",
            extra={
                "step_instance_id": str(step_instance_id),
                "task_count": len(tasks),
                "approver_ids": [t.approver_id for t in tasks],
            },
        )
        return [task.id for task in tasks]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: UUID) -> ApprovalTask:
        task = self._session.get(ApprovalTaskModel, task_id)
        if task is None:
            raise TaskNotFoundError(str(task_id))
        return task.to_dto()

    def tasks_for_step(self, step_instance_id: UUID) -> list[ApprovalTask]:
        rows = self._session.execute(
            select(ApprovalTaskModel)
            .where(ApprovalTaskModel.step_instance_id == step_instance_id)
            .order_by(ApprovalTaskModel.created_at, ApprovalTaskModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def tasks_for_approver(
        self,
        approver_id: str,
        status: TaskStatus | None = None,
    ) -> list[ApprovalTask]:
        """An approver's tasks, optionally filtered by status (an inbox query)."""
        stmt = select(ApprovalTaskModel).where(ApprovalTaskModel.approver_id == approver_id)
        if status is not None:
            stmt = stmt.where(ApprovalTaskModel.status == TaskStatus(status).value)
        rows = self._session.execute(
            stmt.order_by(ApprovalTaskModel.created_at, ApprovalTaskModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def decision_for_task(self, task_id: UUID) -> ApprovalDecisionRecord | None:
        decision = self._session.execute(
            select(ApprovalDecisionModel).where(ApprovalDecisionModel.task_id == task_id)
        ).scalar_one_or_none()
        return decision.to_dto() if decision is not None else None

    def comments_for_task(self, task_id: UUID) -> list[ApprovalCommentRecord]:
        rows = self._session.execute(
            select(ApprovalCommentModel)
            .where(ApprovalCommentModel.task_id == task_id)
            .order_by(ApprovalCommentModel.commented_at, ApprovalCommentModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]
