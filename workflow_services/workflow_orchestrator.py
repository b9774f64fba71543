"""
workflow_services.workflow_orchestrator -- Cross-entity approval cascade.

Responsibility:
    The single place where a task-level decision is coupled to step,
    workflow and work item status.  Starts workflows, applies approval
    decisions and cascades their outcome, and cancels workflows.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Constructs every kernel service it needs exactly once, sharing one
    Session, AuditorService and Clock.

Invariants enforced:
    - Atomicity: each public operation runs inside ``session.begin_nested()``;
      any failure rolls back every partial change of the cascade.  With
      ``auto_commit=True`` the session is committed on success and rolled
      back on failure.
    - Per-workflow serialization: ``handle_approval_decision`` and
      ``cancel_workflow`` lock the workflow instance row FOR UPDATE before
      reading task or step state, so sibling decisions and a concurrent
      cancel cannot interleave.
    - The decision kind is validated before any state is touched.

Failure modes:
    - NotFoundError subclasses for missing tasks, work items, definitions
      and workflow instances.
    - EmptyWorkflowDefinitionError for a definition without steps.
    - UnsupportedDecisionError for a decision other than approved/rejected.
    - InvalidTransitionError from any lifecycle table (e.g. a decision on a
      task whose workflow was cancelled).
    All are logged with exc_info and re-raised; nothing is retried.

Audit relevance:
    Every transition in the cascade is audited by the owning lifecycle
    service.  Each decision additionally emits a
    WORKFLOW_ORCHESTRATOR_TRACE log record summarizing the outcome.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from workflow_kernel.domain.approval import (
    DecisionType,
    RuleEvaluation,
    RuleEvaluationResult,
    parse_decision,
)
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.work_item import WorkItemStatus
from workflow_kernel.domain.workflow import (
    STEP_REJECTED_REASON,
    WORKFLOW_REJECTED_REASON,
    ApproverResolver,
    StepInstance,
    StepStatus,
    WorkflowDefinitionReader,
    WorkflowInstance,
    WorkflowProgress,
    WorkflowStatus,
)
from workflow_kernel.exceptions import (
    EmptyWorkflowDefinitionError,
    InvalidTransitionError,
    WorkflowDefinitionNotFoundError,
)
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_kernel.selectors.definition_selector import DefinitionSelector
from workflow_kernel.selectors.progress_selector import WorkflowProgressSelector
from workflow_kernel.services.auditor_service import AuditorService
from workflow_kernel.services.step_lifecycle import StepLifecycleService
from workflow_kernel.services.task_lifecycle import TaskLifecycleService
from workflow_kernel.services.task_management import TaskManagementService
from workflow_kernel.services.work_item_lifecycle import WorkItemLifecycleService
from workflow_kernel.services.workflow_lifecycle import WorkflowLifecycleService
from workflow_services.rule_evaluator import RuleEvaluatorService

logger = get_logger("services.workflow_orchestrator")


@dataclass(frozen=True)
class DecisionOutcome:
    """What one approval decision did to the task's step, workflow and work item."""

    task_id: UUID
    step_instance_id: UUID
    workflow_instance_id: UUID
    work_item_id: UUID
    evaluation: RuleEvaluation
    step_status: StepStatus
    workflow_status: WorkflowStatus
    work_item_status: WorkItemStatus
    next_step_instance_id: UUID | None = None
    created_task_ids: tuple[UUID, ...] = ()
    cancelled_task_ids: tuple[UUID, ...] = ()

    @property
    def result(self) -> RuleEvaluationResult:
        return self.evaluation.result


class WorkflowOrchestrator:
    """
    Drives the approval cascade across the four lifecycles.

    Contract:
        ``start_workflow``, ``handle_approval_decision`` and
        ``cancel_workflow`` each either fully succeed or leave the store
        unchanged.

    Guarantees:
        - All kernel services share this orchestrator's Session, Clock and
          AuditorService.
        - A rejected step fails its workflow and rejects the work item; the
          rework path is never taken automatically.
        - No decision lands on a step or workflow that is no longer
          in progress.

    Non-goals:
        - Does NOT run timers; overdue tasks are expired by an external
          caller via ``tasks.expire_overdue``.
        - Does NOT authorize callers beyond the delegation guard.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        approver_resolver: ApproverResolver | None = None,
        auto_commit: bool = True,
        definitions: WorkflowDefinitionReader | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit

        self.auditor = AuditorService(session, self._clock)
        self.definitions = definitions or DefinitionSelector(session)
        self.approver_resolver = approver_resolver

        self.tasks = TaskLifecycleService(session, self.auditor, self._clock)
        self.steps = StepLifecycleService(session, self.auditor, self._clock)
        self.workflows = WorkflowLifecycleService(session, self.auditor, self._clock)
        self.work_items = WorkItemLifecycleService(session, self.auditor, self._clock)
        self.task_management = TaskManagementService(
            session, self.definitions, approver_resolver, self.auditor, self._clock,
        )
        self.rule_evaluator = RuleEvaluatorService(session, self.definitions)
        self.progress = WorkflowProgressSelector(session)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str, **context: Any) -> Iterator[None]:
        """Run the body as one all-or-nothing unit with bound log context."""
        with LogContext.bind(correlation_id=str(uuid4()), **context):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                with self._session.begin_nested():
                    yield
                if self._auto_commit:
                    self._session.commit()
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start_workflow(
        self,
        work_item_id: UUID,
        workflow_definition_id: UUID,
        actor: str,
    ) -> UUID:
        """Create and start a workflow for a submitted work item.

        The instance is pinned to the definition's current version.  The
        work item moves to in_review and the first step's tasks are created.

        Returns:
            The new workflow instance id.
        """
        with self._unit_of_work(
            "workflow_start", actor_id=actor, work_item_id=work_item_id,
        ):
            self.work_items.get(work_item_id)
            definition = self.definitions.get_workflow(workflow_definition_id)
            if definition is None:
                raise WorkflowDefinitionNotFoundError(str(workflow_definition_id))
            if not definition.steps:
                raise EmptyWorkflowDefinitionError(
                    str(workflow_definition_id), definition.name,
                )

            instance = self.workflows.create(definition, work_item_id, actor)
            self.workflows.start(instance.workflow_instance_id, actor)
            self.work_items.start_review(work_item_id, actor)

            first_step = instance.steps[0]
            self.steps.start(first_step.step_instance_id, actor)
            task_ids = self.task_management.create_tasks_for_step(
                first_step.step_instance_id, actor,
            )

            logger.info(
                "workflow_started",
                extra={
                    "workflow_instance_id": str(instance.workflow_instance_id),
                    "workflow_name": definition.name,
                    "workflow_version": definition.version,
                    "first_step_instance_id": str(first_step.step_instance_id),
                    "task_count": len(task_ids),
                },
            )
        return instance.workflow_instance_id

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def handle_approval_decision(
        self,
        task_id: UUID,
        actor: str,
        decision: DecisionType | str,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Apply a decision to a task and cascade the step outcome.

        SATISFIED completes the step and starts the next one (or completes
        the workflow and approves the work item).  REJECTED fails the step
        and the workflow, cancels the pending tasks of steps that never
        started and rejects the work item.  PENDING changes nothing further.

        Sibling tasks still pending on a step that has completed or failed
        keep their status.  A later decision on one of them, or on any task
        of a workflow that is no longer in progress, raises
        InvalidTransitionError before anything is written.
        """
        decision_type = parse_decision(decision)

        with self._unit_of_work("approval_decision", actor_id=actor, task_id=task_id):
            task = self.task_management.get_task(task_id)
            step = self.steps.get(task.step_instance_id)
            workflow = self.workflows.lock(step.workflow_instance_id)
            step = self.steps.lock(step.step_instance_id)
            self._require_active(step, workflow, decision_type)

            self.tasks.decide(task_id, actor, decision_type, comment)
            evaluation = self.rule_evaluator.evaluate(step.step_instance_id)

            next_step_id: UUID | None = None
            created: list[UUID] = []
            cancelled: list[UUID] = []
            if evaluation.result == RuleEvaluationResult.SATISFIED:
                next_step_id, created = self._advance(step, workflow, actor)
            elif evaluation.result == RuleEvaluationResult.REJECTED:
                cancelled = self._reject(step, workflow, actor)

            outcome = DecisionOutcome(
                task_id=task_id,
                step_instance_id=step.step_instance_id,
                workflow_instance_id=workflow.workflow_instance_id,
                work_item_id=workflow.work_item_id,
                evaluation=evaluation,
                step_status=self.steps.get(step.step_instance_id).status,
                workflow_status=self.workflows.get(workflow.workflow_instance_id).status,
                work_item_status=self.work_items.get(workflow.work_item_id).status,
                next_step_instance_id=next_step_id,
                created_task_ids=tuple(created),
                cancelled_task_ids=tuple(cancelled),
            )

            logger.info(
                "WORKFLOW_ORCHESTRATOR_TRACE",
                extra={
                    "trace_type": "WORKFLOW_ORCHESTRATOR_TRACE",
                    "decision": decision_type.value,
                    "evaluation_result": evaluation.result.value,
                    "approved_count": evaluation.approved_count,
                    "total_count": evaluation.total_count,
                    "step_status": outcome.step_status.value,
                    "workflow_status": outcome.workflow_status.value,
                    "work_item_status": outcome.work_item_status.value,
                    "next_step_instance_id": next_step_id,
                    "created_task_count": len(created),
                    "cancelled_task_count": len(cancelled),
                },
            )
        return outcome

    @staticmethod
    def _require_active(
        step: StepInstance, workflow: WorkflowInstance, decision: DecisionType,
    ) -> None:
        """Refuse decisions once the step or its workflow has been resolved."""
        if workflow.status != WorkflowStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                "WorkflowInstance", str(workflow.workflow_instance_id),
                workflow.status.value, decision.value,
            )
        if step.status != StepStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                "StepInstance", str(step.step_instance_id), step.status.value, decision.value,
            )

    def _advance(
        self,
        step: StepInstance,
        workflow: WorkflowInstance,
        actor: str,
    ) -> tuple[UUID | None, list[UUID]]:
        """Complete ``step``; start the next step or finish the workflow."""
        self.steps.complete(step.step_instance_id, actor)

        remaining = [
            s for s in self.steps.steps_for_workflow(workflow.workflow_instance_id)
            if s.status == StepStatus.NOT_STARTED
        ]
        if not remaining:
            self.workflows.complete(workflow.workflow_instance_id, actor)
            self.work_items.approve(workflow.work_item_id, actor)
            return None, []

        next_step = remaining[0]
        self.steps.start(next_step.step_instance_id, actor)
        task_ids = self.task_management.create_tasks_for_step(
            next_step.step_instance_id, actor,
        )
        return next_step.step_instance_id, task_ids

    def _reject(
        self,
        step: StepInstance,
        workflow: WorkflowInstance,
        actor: str,
    ) -> list[UUID]:
        """Fail ``step`` and the workflow; reject the work item.

        Returns the ids of pending tasks cancelled on not-started steps.
        """
        self.steps.fail(step.step_instance_id, actor, STEP_REJECTED_REASON)

        cancelled: list[UUID] = []
        for remaining in self.steps.steps_for_workflow(workflow.workflow_instance_id):
            if remaining.status == StepStatus.NOT_STARTED:
                cancelled.extend(
                    self.tasks.cancel_all_for_step(remaining.step_instance_id, actor)
                )

        self.workflows.fail(workflow.workflow_instance_id, actor, WORKFLOW_REJECTED_REASON)
        self.work_items.reject(workflow.work_item_id, actor)
        return cancelled

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_workflow(self, workflow_instance_id: UUID, actor: str) -> WorkflowInstance:
        """Cancel the pending tasks of active steps, the workflow and its work item."""
        with self._unit_of_work(
            "workflow_cancel", actor_id=actor, workflow_instance_id=workflow_instance_id,
        ):
            workflow = self.workflows.lock(workflow_instance_id)

            cancelled: list[UUID] = []
            for step in self.steps.steps_for_workflow(workflow_instance_id):
                if step.status == StepStatus.IN_PROGRESS:
                    cancelled.extend(
                        self.tasks.cancel_all_for_step(step.step_instance_id, actor)
                    )

            result = self.workflows.cancel(workflow_instance_id, actor)
            self.work_items.cancel(workflow.work_item_id, actor)

            logger.info(
                "workflow_cancelled_by_request",
                extra={
                    "workflow_instance_id": str(workflow_instance_id),
                    "cancelled_task_count": len(cancelled),
                },
            )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_workflow_progress(self, work_item_id: UUID) -> WorkflowProgress | None:
        """Progress of the work item's latest workflow, or None if never started."""
        self.work_items.get(work_item_id)
        return self.progress.get_workflow_progress(work_item_id)
