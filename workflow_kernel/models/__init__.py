"""ORM models for the workflow kernel."""

from workflow_kernel.models.approval import (
    ApprovalCommentModel,
    ApprovalDecisionModel,
    ApprovalTaskModel,
)
from workflow_kernel.models.audit_event import AuditAction, AuditEvent, SequenceCounter
from workflow_kernel.models.work_item import WorkItemModel, WorkItemVersionModel
from workflow_kernel.models.workflow import (
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
    WorkflowStepApproverModel,
    WorkflowStepDefinitionModel,
    WorkflowStepInstanceModel,
)

__all__ = [
    "ApprovalCommentModel",
    "ApprovalDecisionModel",
    "ApprovalTaskModel",
    "AuditAction",
    "AuditEvent",
    "SequenceCounter",
    "WorkItemModel",
    "WorkItemVersionModel",
    "WorkflowDefinitionModel",
    "WorkflowInstanceModel",
    "WorkflowStepApproverModel",
    "WorkflowStepDefinitionModel",
    "WorkflowStepInstanceModel",
]
