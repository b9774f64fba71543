"""Selectors for the workflow kernel (read side)."""

from workflow_kernel.selectors.definition_selector import DefinitionSelector
from workflow_kernel.selectors.progress_selector import WorkflowProgressSelector

__all__ = [
    "DefinitionSelector",
    "WorkflowProgressSelector",
]
