"""
Workflow core configuration schema.

Defines the human-authored, reviewable configuration: database and logging
settings, the workflow definitions to install, and the static approver
directory.  YAML is parsed into these types by the loader; every type is
frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Workflow definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApproverDef:
    """One approver reference of a step: a user id, a role, or manager-of."""

    approver_type: str  # user, role, manager
    value: str


@dataclass(frozen=True)
class StepDefinitionDef:
    step_order: int
    name: str
    approval_type: str  # ALL, ANY, N_OF_M
    min_approvals: int | None = None
    sla_hours: int | None = None
    approvers: tuple[ApproverDef, ...] = ()


@dataclass(frozen=True)
class WorkflowDefinitionDef:
    name: str
    version: int = 1
    description: str | None = None
    is_active: bool = True
    steps: tuple[StepDefinitionDef, ...] = ()


# ---------------------------------------------------------------------------
# Approver directory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApproverDirectoryDef:
    """Role members and manager chains (nearest manager first)."""

    roles: dict[str, tuple[str, ...]] = field(default_factory=dict)
    managers: dict[str, tuple[str, ...]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowCoreConfig:
    """The complete, validated configuration returned by get_active_config()."""

    config_id: str
    version: int
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    workflows: tuple[WorkflowDefinitionDef, ...] = ()
    approvers: ApproverDirectoryDef = field(default_factory=ApproverDirectoryDef)
    checksum: str = ""

    def workflow(self, name: str) -> WorkflowDefinitionDef | None:
        """Highest configured version of the named workflow."""
        matches = [w for w in self.workflows if w.name == name]
        return max(matches, key=lambda w: w.version) if matches else None
