"""
Module: workflow_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for workflow_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import workflow_kernel/domain/ types and kernel exceptions.
    MUST NOT import workflow_services or workflow_config.

Invariants enforced:
    - Purity: engines never read the clock; identical inputs give
      identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``workflow_engines.tracer``), emitting WORKFLOW_ENGINE_TRACE records.
"""

from workflow_engines.approval_rules import count_approvals, evaluate_step_approval
from workflow_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "compute_input_fingerprint",
    "count_approvals",
    "evaluate_step_approval",
    "traced_engine",
]
