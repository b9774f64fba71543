"""
Workflow Kernel

The approval-workflow orchestration core:
- Explicit lifecycle tables for tasks, steps, workflows and work items
- Append-only decisions, comments and work item versions
- Hash-chained audit trail for every lifecycle transition
"""

__version__ = "0.1.0"
