"""
Configuration Loader (``workflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into typed
``workflow_config.schema`` dataclass instances.  The single public entry
point for runtime config is ``workflow_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel,
engines or services.

Invariants enforced
-------------------
* Structural problems (unknown approval or approver type, N_OF_M without a
  positive ``min_approvals``, duplicate step order, duplicate workflow
  name/version) raise ``ConfigValidationError`` listing every problem.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  configuration for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from workflow_config.schema import (
    ApproverDef,
    ApproverDirectoryDef,
    DatabaseSettings,
    LoggingSettings,
    StepDefinitionDef,
    WorkflowCoreConfig,
    WorkflowDefinitionDef,
)

APPROVAL_TYPES = frozenset({"ALL", "ANY", "N_OF_M"})
APPROVER_TYPES = frozenset({"user", "role", "manager"})


class ConfigValidationError(ValueError):
    """Configuration failed structural validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=data.get("url", defaults.url),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def parse_approver(data: dict[str, Any]) -> ApproverDef:
    return ApproverDef(
        approver_type=str(data["type"]).lower(),
        value=str(data["value"]),
    )


def parse_step(data: dict[str, Any]) -> StepDefinitionDef:
    """Parse a ``StepDefinitionDef``; ``approval_type`` is upper-cased."""
    min_approvals = data.get("min_approvals")
    sla_hours = data.get("sla_hours")
    return StepDefinitionDef(
        step_order=int(data["order"]),
        name=data["name"],
        approval_type=str(data["approval_type"]).upper(),
        min_approvals=int(min_approvals) if min_approvals is not None else None,
        sla_hours=int(sla_hours) if sla_hours is not None else None,
        approvers=tuple(parse_approver(a) for a in data.get("approvers", [])),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDefinitionDef:
    return WorkflowDefinitionDef(
        name=data["name"],
        version=int(data.get("version", 1)),
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
        steps=tuple(parse_step(s) for s in data.get("steps", [])),
    )


def parse_approver_directory(data: dict[str, Any]) -> ApproverDirectoryDef:
    return ApproverDirectoryDef(
        roles={
            str(role): tuple(str(m) for m in members or [])
            for role, members in (data.get("roles") or {}).items()
        },
        managers={
            str(user): tuple(str(m) for m in chain or [])
            for user, chain in (data.get("managers") or {}).items()
        },
    )


def validate_workflows(workflows: tuple[WorkflowDefinitionDef, ...]) -> list[str]:
    """Return every structural problem found; an empty list means valid."""
    errors: list[str] = []
    seen: set[tuple[str, int]] = set()
    for wf in workflows:
        label = f"{wf.name} v{wf.version}"
        if (wf.name, wf.version) in seen:
            errors.append(f"{label}: duplicate workflow name/version")
        seen.add((wf.name, wf.version))

        orders: set[int] = set()
        for step in wf.steps:
            where = f"{label} step {step.step_order} ({step.name})"
            if step.step_order in orders:
                errors.append(f"{where}: duplicate step order")
            orders.add(step.step_order)
            if step.approval_type not in APPROVAL_TYPES:
                errors.append(f"{where}: unknown approval type '{step.approval_type}'")
            elif step.approval_type == "N_OF_M" and (
                step.min_approvals is None or step.min_approvals <= 0
            ):
                errors.append(f"{where}: N_OF_M requires a positive min_approvals")
            for approver in step.approvers:
                if approver.approver_type not in APPROVER_TYPES:
                    errors.append(
                        f"{where}: unknown approver type '{approver.approver_type}'"
                    )
    return errors


def parse_config(data: dict[str, Any]) -> WorkflowCoreConfig:
    """Parse and validate a full configuration document."""
    workflows = tuple(parse_workflow(w) for w in data.get("workflows", []))
    errors = validate_workflows(workflows)
    if errors:
        raise ConfigValidationError(errors)

    return WorkflowCoreConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        database=parse_database(data.get("database") or {}),
        logging=parse_logging(data.get("logging") or {}),
        workflows=workflows,
        approvers=parse_approver_directory(data.get("approvers") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
