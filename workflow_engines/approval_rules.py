"""
workflow_engines.approval_rules -- Pure step approval rule evaluation.

Responsibility:
    Decide whether a step's approval policy is satisfied, vetoed or still
    pending, given a snapshot of the step's tasks.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import workflow_kernel/domain/ types.

Invariants enforced:
    - Reject dominates: a single rejected task yields REJECTED whatever the
      policy.
    - An N_OF_M policy with a missing or non-positive minimum never yields
      SATISFIED.
    - Purity: no clock access, no I/O, no database.  Identical inputs give
      identical results.

Failure modes:
    - An empty task set evaluates to PENDING; it is not an error.
    - InvalidApprovalPolicyError for an approval type outside
      {ALL, ANY, N_OF_M}.
"""

from __future__ import annotations

from collections.abc import Iterable

from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.approval import (
    ApprovalType,
    DecisionType,
    RuleEvaluation,
    RuleEvaluationResult,
    StepApprovalPolicy,
    TaskApprovalSnapshot,
    TaskStatus,
)
from workflow_kernel.exceptions import InvalidApprovalPolicyError


@traced_engine("approval_rules", "1.0", fingerprint_fields=("policy", "tasks"))
def evaluate_step_approval(
    policy: StepApprovalPolicy,
    tasks: Iterable[TaskApprovalSnapshot],
) -> RuleEvaluation:
    """Evaluate a step's tasks against its approval policy.

    Args:
        policy: The step's approval type and, for N_OF_M, its minimum.
        tasks: Every task of the step with its latest decision, if any.

    Returns:
        RuleEvaluation with the result and the approved / total counts.
    """
    tasks = tuple(tasks)
    total = len(tasks)
    if total == 0:
        return RuleEvaluation(RuleEvaluationResult.PENDING, reason="Step has no tasks")

    if any(task.status == TaskStatus.REJECTED for task in tasks):
        return RuleEvaluation(
            RuleEvaluationResult.REJECTED,
            approved_count=count_approvals(tasks),
            total_count=total,
            reason="A task was rejected",
        )

    approved = count_approvals(tasks)
    approval_type = _approval_type(policy.approval_type)

    if approval_type == ApprovalType.ALL:
        satisfied = approved == total
        reason = f"{approved} of {total} approvals, all required"
    elif approval_type == ApprovalType.ANY:
        satisfied = approved >= 1
        reason = f"{approved} of {total} approvals, any one required"
    else:
        minimum = policy.min_approvals
        if minimum is None or minimum <= 0:
            return RuleEvaluation(
                RuleEvaluationResult.PENDING,
                approved_count=approved,
                total_count=total,
                reason="N_OF_M policy has no positive minimum",
            )
        satisfied = approved >= minimum
        reason = f"{approved} of {total} approvals, {minimum} required"

    return RuleEvaluation(
        RuleEvaluationResult.SATISFIED if satisfied else RuleEvaluationResult.PENDING,
        approved_count=approved,
        total_count=total,
        reason=reason,
    )


def count_approvals(tasks: Iterable[TaskApprovalSnapshot]) -> int:
    """Number of tasks whose most recent decision is an approval."""
    return sum(1 for task in tasks if task.latest_decision == DecisionType.APPROVED)


def _approval_type(value: ApprovalType | str) -> ApprovalType:
    try:
        return ApprovalType(value)
    except ValueError:
        raise InvalidApprovalPolicyError(str(value)) from None
