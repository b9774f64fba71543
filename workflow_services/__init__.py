"""
workflow_services -- Package init and public API.

Responsibility:
    Stateful services that compose the pure engines (workflow_engines/)
    with kernel persistence, and the orchestrator that couples the four
    lifecycles into one cascade.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        workflow_services/ -> workflow_engines/  (allowed)
        workflow_services/ -> workflow_kernel/   (allowed)
        workflow_engines/  -> workflow_services/ (FORBIDDEN)
        workflow_kernel/   -> workflow_services/ (FORBIDDEN)
"""

from workflow_kernel.logging_config import get_logger

logger = get_logger("services")

from workflow_services.approver_resolver import StaticApproverResolver
from workflow_services.rule_evaluator import RuleEvaluatorService
from workflow_services.workflow_orchestrator import DecisionOutcome, WorkflowOrchestrator

__all__ = [
    "DecisionOutcome",
    "RuleEvaluatorService",
    "StaticApproverResolver",
    "WorkflowOrchestrator",
]
