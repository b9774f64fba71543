"""Services for the workflow kernel (write side)."""

from workflow_kernel.services.auditor_service import AuditorService, AuditTrace
from workflow_kernel.services.sequence_service import SequenceService
from workflow_kernel.services.step_lifecycle import StepLifecycleService
from workflow_kernel.services.task_lifecycle import SYSTEM_ACTOR, TaskLifecycleService
from workflow_kernel.services.task_management import TaskManagementService
from workflow_kernel.services.work_item_lifecycle import WorkItemLifecycleService
from workflow_kernel.services.workflow_lifecycle import WorkflowLifecycleService

__all__ = [
    "SYSTEM_ACTOR",
    "AuditTrace",
    "AuditorService",
    "SequenceService",
    "StepLifecycleService",
    "TaskLifecycleService",
    "TaskManagementService",
    "WorkItemLifecycleService",
    "WorkflowLifecycleService",
]
