"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the orchestration core (an API layer, a scheduler, a CLI) must be
able to tell "that task does not exist" apart from "that task was already
decided" without parsing message strings.  Every error therefore:

  1. Has its own exception class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (task_id, current_status, ...)

Example:
    try:
        orchestrator.handle_approval_decision(task_id, actor, "approved")
    except TaskNotFoundError as e:
        return respond(http_status_for(e), code=e.code, task=e.task_id)
    except InvalidTransitionError as e:
        return respond(409, code=e.code, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- NotFoundError
    |   +-- TaskNotFoundError
    |   +-- StepInstanceNotFoundError
    |   +-- WorkflowInstanceNotFoundError
    |   +-- WorkItemNotFoundError
    |   +-- WorkflowDefinitionNotFoundError
    |
    +-- InvalidTransitionError
    |   +-- TransitionGuardFailedError
    |
    +-- InvalidArgumentError
    |   +-- UnsupportedDecisionError
    |   +-- InvalidApprovalPolicyError
    |
    +-- InvalidStateError
    |   +-- EmptyWorkflowDefinitionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
NotFound        | TASK_NOT_FOUND                | Approval task ID doesn't exist
                | STEP_INSTANCE_NOT_FOUND       | Step instance ID doesn't exist
                | WORKFLOW_INSTANCE_NOT_FOUND   | Workflow instance ID doesn't exist
                | WORK_ITEM_NOT_FOUND           | Work item ID doesn't exist
                | WORKFLOW_DEFINITION_NOT_FOUND | Definition / step definition missing
----------------|-------------------------------|---------------------------------------
Transition      | INVALID_TRANSITION            | Event not allowed from current status
                | TRANSITION_GUARD_FAILED       | Guard rejected (e.g. wrong delegate)
----------------|-------------------------------|---------------------------------------
Argument        | UNSUPPORTED_DECISION          | Decision is not approved/rejected
                | INVALID_APPROVAL_POLICY       | Unknown approval type
----------------|-------------------------------|---------------------------------------
State           | EMPTY_WORKFLOW_DEFINITION     | Definition has zero steps
----------------|-------------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Decision / version / audit row changed
----------------|-------------------------------|---------------------------------------
Audit           | AUDIT_CHAIN_BROKEN            | Hash chain validation failed

Transport mapping (``http_status_for``):
    NotFound -> 404, InvalidArgument / InvalidState -> 400,
    InvalidTransition -> 409, everything else -> 500.
"""

from __future__ import annotations


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(WorkflowKernelError):
    """Base exception for references to entities that do not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class TaskNotFoundError(NotFoundError):
    """Approval task with the given ID was not found."""

    code: str = "TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__("ApprovalTask", task_id)


class StepInstanceNotFoundError(NotFoundError):
    """Workflow step instance with the given ID was not found."""

    code: str = "STEP_INSTANCE_NOT_FOUND"

    def __init__(self, step_instance_id: str):
        self.step_instance_id = step_instance_id
        super().__init__("StepInstance", step_instance_id)


class WorkflowInstanceNotFoundError(NotFoundError):
    """Workflow instance with the given ID was not found."""

    code: str = "WORKFLOW_INSTANCE_NOT_FOUND"

    def __init__(self, workflow_instance_id: str):
        self.workflow_instance_id = workflow_instance_id
        super().__init__("WorkflowInstance", workflow_instance_id)


class WorkItemNotFoundError(NotFoundError):
    """Work item with the given ID was not found."""

    code: str = "WORK_ITEM_NOT_FOUND"

    def __init__(self, work_item_id: str):
        self.work_item_id = work_item_id
        super().__init__("WorkItem", work_item_id)


class WorkflowDefinitionNotFoundError(NotFoundError):
    """Workflow definition (or one of its step definitions) was not found."""

    code: str = "WORKFLOW_DEFINITION_NOT_FOUND"

    def __init__(self, definition_id: str, entity_type: str = "WorkflowDefinition"):
        self.definition_id = definition_id
        super().__init__(entity_type, definition_id)


# Transition exceptions


class InvalidTransitionError(WorkflowKernelError):
    """An event is not permitted from the entity's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        event: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.event = event
        self.reason = reason
        message = (
            f"Cannot {event} {entity_type} {entity_id} "
            f"from status '{current_status}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TransitionGuardFailedError(InvalidTransitionError):
    """The transition exists but its guard condition rejected it."""

    code: str = "TRANSITION_GUARD_FAILED"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        event: str,
        guard_name: str,
        reason: str,
    ):
        self.guard_name = guard_name
        super().__init__(entity_type, entity_id, current_status, event, reason)


# Argument exceptions


class InvalidArgumentError(WorkflowKernelError):
    """Base exception for malformed caller input."""

    code: str = "INVALID_ARGUMENT"


class UnsupportedDecisionError(InvalidArgumentError):
    """Decision kind is not one of the terminal kinds (approved, rejected)."""

    code: str = "UNSUPPORTED_DECISION"

    def __init__(self, decision: str):
        self.decision = decision
        super().__init__(
            f"Unsupported decision '{decision}': expected 'approved' or 'rejected'"
        )


class InvalidApprovalPolicyError(InvalidArgumentError):
    """Approval policy type is not ALL, ANY or N_OF_M."""

    code: str = "INVALID_APPROVAL_POLICY"

    def __init__(self, approval_type: str):
        self.approval_type = approval_type
        super().__init__(f"Unknown approval type: '{approval_type}'")


# State exceptions


class InvalidStateError(WorkflowKernelError):
    """Base exception for violated structural preconditions."""

    code: str = "INVALID_STATE"


class EmptyWorkflowDefinitionError(InvalidStateError):
    """A workflow cannot start from a definition with zero steps."""

    code: str = "EMPTY_WORKFLOW_DEFINITION"

    def __init__(self, definition_id: str, name: str | None = None):
        self.definition_id = definition_id
        self.name = name
        super().__init__(
            f"Workflow definition {name or definition_id} has no steps"
        )


# Immutability exceptions


class ImmutabilityError(WorkflowKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    ApprovalDecision, ApprovalComment, WorkItemVersion and AuditEvent rows
    are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(WorkflowKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_seq: int, expected_hash: str, actual_hash: str):
        self.audit_event_seq = audit_event_seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at seq {audit_event_seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


# =============================================================================
# Transport mapping
# =============================================================================

ERROR_CATEGORY_STATUS: dict[type[WorkflowKernelError], int] = {
    NotFoundError: 404,
    InvalidArgumentError: 400,
    InvalidStateError: 400,
    InvalidTransitionError: 409,
}


def http_status_for(exc: BaseException) -> int:
    """Map an exception to its HTTP-equivalent status code.

    Unexpected errors, including non-kernel exceptions, map to 500.
    """
    for category, status in ERROR_CATEGORY_STATUS.items():
        if isinstance(exc, category):
            return status
    return 500
