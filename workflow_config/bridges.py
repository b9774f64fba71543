"""
Config -> Kernel Bridges.

Functions that turn a ``WorkflowCoreConfig`` into kernel-compatible inputs:
installed workflow definitions, an approver resolver and a database
engine.  These live in workflow_config (the producer) because the kernel
must NEVER import workflow_config.

Usage:
    from workflow_config import get_active_config
    from workflow_config.bridges import (
        build_approver_resolver,
        install_workflow_definitions,
    )

    config = get_active_config()
    definition_ids = install_workflow_definitions(session, config)
    resolver = build_approver_resolver(config)
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from workflow_config.schema import WorkflowCoreConfig, WorkflowDefinitionDef
from workflow_kernel.db.engine import init_engine_from_url
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.workflow import (
    WorkflowDefinitionModel,
    WorkflowStepApproverModel,
    WorkflowStepDefinitionModel,
)
from workflow_kernel.services.auditor_service import AuditorService
from workflow_services.approver_resolver import StaticApproverResolver

logger = get_logger("config.bridges")

CONFIG_ACTOR = "config"


def build_approver_resolver(config: WorkflowCoreConfig) -> StaticApproverResolver:
    """Build a StaticApproverResolver from the config's approver directory."""
    return StaticApproverResolver(
        role_members=config.approvers.roles,
        manager_chains=config.approvers.managers,
    )


def init_engine_from_config(config: WorkflowCoreConfig) -> Engine:
    db = config.database
    return init_engine_from_url(
        db.url, echo=db.echo, pool_size=db.pool_size, max_overflow=db.max_overflow,
    )


def _build_definition(
    wf: WorkflowDefinitionDef, actor: str, clock: Clock,
) -> WorkflowDefinitionModel:
    definition = WorkflowDefinitionModel(
        name=wf.name,
        version=wf.version,
        description=wf.description,
        is_active=wf.is_active,
        created_by=actor,
        created_at=clock.now(),
    )
    for step_def in sorted(wf.steps, key=lambda s: s.step_order):
        step = WorkflowStepDefinitionModel(
            step_order=step_def.step_order,
            step_name=step_def.name,
            approval_type=step_def.approval_type,
            min_approvals=step_def.min_approvals,
            sla_hours=step_def.sla_hours,
        )
        step.approvers = [
            WorkflowStepApproverModel(
                approver_type=approver.approver_type,
                approver_value=approver.value,
                position=position,
            )
            for position, approver in enumerate(step_def.approvers)
        ]
        definition.steps.append(step)
    return definition


def install_workflow_definitions(
    session: Session,
    config: WorkflowCoreConfig,
    actor: str = CONFIG_ACTOR,
    clock: Clock | None = None,
) -> dict[str, UUID]:
    """Store every configured workflow definition that is not stored yet.

    Definitions are keyed by (name, version); an existing row is left as
    it is, so calling this repeatedly is safe.  Flushes, never commits.

    Returns:
        Map of workflow name to the id of its highest configured version.
    """
    clock = clock or SystemClock()
    auditor = AuditorService(session, clock)

    installed: dict[str, tuple[int, UUID]] = {}
    for wf in config.workflows:
        existing = session.execute(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.name == wf.name,
                WorkflowDefinitionModel.version == wf.version,
            )
        ).scalar_one_or_none()

        if existing is None:
            definition = _build_definition(wf, actor, clock)
            session.add(definition)
            session.flush()
            auditor.record_definition_installed(
                definition.id, wf.name, wf.version, len(wf.steps), actor,
            )
            logger.info(
                "workflow_definition_installed",
                extra={
                    "workflow_name": wf.name,
                    "workflow_version": wf.version,
                    "step_count": len(wf.steps),
                },
            )
            definition_id = definition.id
        else:
            definition_id = existing.id

        current = installed.get(wf.name)
        if current is None or wf.version > current[0]:
            installed[wf.name] = (wf.version, definition_id)

    return {name: definition_id for name, (_, definition_id) in installed.items()}
