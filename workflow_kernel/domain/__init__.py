"""
Kernel domain layer -- pure value objects, lifecycle tables and protocols.

Nothing in this package performs I/O.
"""

from workflow_kernel.domain.approval import (
    TASK_LIFECYCLE,
    ApprovalTask,
    ApprovalType,
    ApproverType,
    DecisionType,
    RuleEvaluation,
    RuleEvaluationResult,
    StepApprovalPolicy,
    TaskApprovalSnapshot,
    TaskEvent,
    TaskStatus,
    parse_decision,
)
from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.lifecycle import Guard, Lifecycle, Transition
from workflow_kernel.domain.work_item import (
    WORK_ITEM_LIFECYCLE,
    WorkItem,
    WorkItemEvent,
    WorkItemStatus,
    WorkItemVersion,
)
from workflow_kernel.domain.workflow import (
    STEP_LIFECYCLE,
    WORKFLOW_LIFECYCLE,
    ApproverResolver,
    StepEvent,
    StepInstance,
    StepStatus,
    WorkflowDefinitionReader,
    WorkflowEvent,
    WorkflowInstance,
    WorkflowProgress,
    WorkflowStatus,
)

__all__ = [
    "STEP_LIFECYCLE",
    "TASK_LIFECYCLE",
    "WORKFLOW_LIFECYCLE",
    "WORK_ITEM_LIFECYCLE",
    "ApprovalTask",
    "ApprovalType",
    "ApproverResolver",
    "ApproverType",
    "Clock",
    "DecisionType",
    "DeterministicClock",
    "Guard",
    "Lifecycle",
    "RuleEvaluation",
    "RuleEvaluationResult",
    "StepApprovalPolicy",
    "StepEvent",
    "StepInstance",
    "StepStatus",
    "SystemClock",
    "TaskApprovalSnapshot",
    "TaskEvent",
    "TaskStatus",
    "Transition",
    "WorkItem",
    "WorkItemEvent",
    "WorkItemStatus",
    "WorkItemVersion",
    "WorkflowDefinitionReader",
    "WorkflowEvent",
    "WorkflowInstance",
    "WorkflowProgress",
    "WorkflowStatus",
    "parse_decision",
]
