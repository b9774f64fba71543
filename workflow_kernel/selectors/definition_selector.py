"""
Module: workflow_kernel.selectors.definition_selector
Responsibility: Read-only access to stored workflow definitions, their
    ordered steps and each step's approver references.  This is the default
    ``WorkflowDefinitionReader`` used by the orchestrator.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Steps are returned ordered by ``step_order``; approvers by position.
    - ``get_workflow`` returns the definition row it is asked for.  Version
      pinning happens when an instance is created, not here.

Failure modes:
    - Returns None / an empty tuple for unknown ids.
"""

from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.workflow import (
    StepApproverSnapshot,
    StepDefinitionSnapshot,
    WorkflowDefinitionSnapshot,
)
from workflow_kernel.models.workflow import (
    WorkflowDefinitionModel,
    WorkflowStepApproverModel,
    WorkflowStepDefinitionModel,
)
from workflow_kernel.selectors.base import BaseSelector


class DefinitionSelector(BaseSelector[WorkflowDefinitionModel]):
    """SQLAlchemy-backed WorkflowDefinitionReader."""

    def get_workflow(self, definition_id: UUID) -> WorkflowDefinitionSnapshot | None:
        definition = self.session.get(WorkflowDefinitionModel, definition_id)
        return definition.to_dto() if definition is not None else None

    def get_step(self, step_definition_id: UUID) -> StepDefinitionSnapshot | None:
        step = self.session.get(WorkflowStepDefinitionModel, step_definition_id)
        return step.to_dto() if step is not None else None

    def get_approvers(self, step_definition_id: UUID) -> tuple[StepApproverSnapshot, ...]:
        rows = self.session.execute(
            select(WorkflowStepApproverModel)
            .where(WorkflowStepApproverModel.step_id == step_definition_id)
            .order_by(WorkflowStepApproverModel.position, WorkflowStepApproverModel.id)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def find_by_name(
        self, name: str, version: int | None = None,
    ) -> WorkflowDefinitionSnapshot | None:
        """Definition by name; the highest version when ``version`` is None."""
        stmt = select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.name == name)
        if version is not None:
            stmt = stmt.where(WorkflowDefinitionModel.version == version)
        definition = self.session.execute(
            stmt.order_by(WorkflowDefinitionModel.version.desc()).limit(1)
        ).scalar_one_or_none()
        return definition.to_dto() if definition is not None else None
