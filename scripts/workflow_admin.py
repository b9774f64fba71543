#!/usr/bin/env python3
"""
Operator commands for the workflow core.

Usage:
    python3 scripts/workflow_admin.py check [config.yaml]
    python3 scripts/workflow_admin.py install [config.yaml] [--db-url URL] [--create-tables]
    python3 scripts/workflow_admin.py trace <work_item_id> [--db-url URL] [--json]

check    Validate a configuration file and print its checksum and workflows.
install  Store every configured workflow definition that is not stored yet.
trace    Print a work item's workflow progress and audit history.

Without a path, the bundled workflow_config/sets/default.yaml is used.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import Session

from workflow_config import ConfigValidationError, WorkflowCoreConfig, get_active_config
from workflow_config.bridges import install_workflow_definitions
from workflow_kernel.selectors.progress_selector import WorkflowProgressSelector
from workflow_kernel.services.auditor_service import AuditorService
from workflow_kernel.services.work_item_lifecycle import WorkItemLifecycleService
from workflow_kernel.services.workflow_lifecycle import WorkflowLifecycleService

W = 72


def banner(title: str) -> None:
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


# =============================================================================
# check
# =============================================================================


def describe_config(config: WorkflowCoreConfig) -> list[str]:
    """Human-readable summary lines for a loaded configuration."""
    lines = [
        f"config_id: {config.config_id}",
        f"version:   {config.version}",
        f"checksum:  {config.checksum[:16]}...",
        f"roles:     {', '.join(sorted(config.approvers.roles)) or '-'}",
    ]
    for wf in config.workflows:
        state = "active" if wf.is_active else "inactive"
        lines.append(f"workflow {wf.name} v{wf.version} ({state}, {len(wf.steps)} steps)")
        for step in sorted(wf.steps, key=lambda s: s.step_order):
            policy = step.approval_type
            if step.min_approvals is not None:
                policy = f"{policy}({step.min_approvals})"
            approvers = ", ".join(f"{a.approver_type}:{a.value}" for a in step.approvers)
            lines.append(f"  {step.step_order}. {step.name} [{policy}] {approvers}")
    return lines


def cmd_check(args: argparse.Namespace) -> int:
    try:
        config = get_active_config(args.config)
    except ConfigValidationError as exc:
        print("VALIDATION FAILED:")
        for err in exc.errors:
            print(f"  ERROR: {err}")
        return 1
    except FileNotFoundError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    for line in describe_config(config):
        print(line)
    return 0


# =============================================================================
# install
# =============================================================================


def cmd_install(args: argparse.Namespace) -> int:
    from workflow_kernel.db.engine import create_tables, get_session, init_engine_from_url

    config = get_active_config(args.config)
    init_engine_from_url(args.db_url or config.database.url, echo=False)
    if args.create_tables:
        create_tables()

    session = get_session()
    try:
        installed = install_workflow_definitions(session, config)
        session.commit()
    except Exception as exc:
        session.rollback()
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()

    for name, definition_id in sorted(installed.items()):
        print(f"{name}: {definition_id}")
    return 0


# =============================================================================
# trace
# =============================================================================


def build_trace(session: Session, work_item_id: UUID) -> dict:
    """Collect a work item's status, workflow progress and audit history."""
    auditor = AuditorService(session)
    work_item = WorkItemLifecycleService(session, auditor).get(work_item_id)
    workflow = WorkflowLifecycleService(session, auditor).latest_for_work_item(work_item_id)
    progress = WorkflowProgressSelector(session).get_workflow_progress(work_item_id)

    history = list(auditor.get_trace("WorkItem", work_item_id).entries)
    if workflow is not None:
        history.extend(auditor.get_trace("WorkflowInstance", workflow.workflow_instance_id).entries)
        for step in workflow.steps:
            history.extend(auditor.get_trace("StepInstance", step.step_instance_id).entries)
    history.sort(key=lambda e: e.seq)

    return {
        "work_item": asdict(work_item),
        "progress": asdict(progress) if progress is not None else None,
        "percent_complete": progress.percent_complete if progress is not None else None,
        "history": [asdict(e) for e in history],
    }


def print_trace(trace: dict) -> None:
    item = trace["work_item"]
    banner(f"WORK ITEM {item['work_item_id']}")
    print(f"  type:    {item['item_type']}")
    print(f"  status:  {item['status'].value}")

    progress = trace["progress"]
    if progress is None:
        print("  (no workflow started)")
    else:
        print(f"  workflow: {progress['status'].value} ({trace['percent_complete']}%)")
        for step in progress["steps"]:
            print(
                f"    {step['step_order']}. {step['step_name']:<24} "
                f"{step['status'].value:<12} {step['approved_tasks']}/{step['total_tasks']}"
            )

    banner("AUDIT HISTORY")
    for entry in trace["history"]:
        print(
            f"  #{entry['seq']:<5} {entry['occurred_at']:%Y-%m-%d %H:%M:%S} "
            f"{entry['action'].value:<28} by {entry['actor_id']}"
        )


def cmd_trace(args: argparse.Namespace) -> int:
    from workflow_kernel.db.engine import get_session, init_engine_from_url

    try:
        work_item_id = UUID(args.work_item_id)
    except ValueError as exc:
        print(f"  ERROR: Invalid UUID: {exc}", file=sys.stderr)
        return 1

    init_engine_from_url(args.db_url or get_active_config().database.url, echo=False)
    session = get_session()
    try:
        trace = build_trace(session, work_item_id)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()

    if args.json:
        print(json.dumps(trace, indent=2, default=str))
    else:
        print_trace(trace)
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Workflow core operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Validate a configuration file")
    check.add_argument("config", nargs="?", help="YAML file (default: bundled set)")
    check.set_defaults(func=cmd_check)

    install = sub.add_parser("install", help="Install configured workflow definitions")
    install.add_argument("config", nargs="?", help="YAML file (default: bundled set)")
    install.add_argument("--db-url", help="Database URL (default: from the config)")
    install.add_argument("--create-tables", action="store_true", help="Create tables first")
    install.set_defaults(func=cmd_install)

    trace = sub.add_parser("trace", help="Show a work item's progress and history")
    trace.add_argument("work_item_id", help="Work item UUID")
    trace.add_argument("--db-url", help="Database URL (default: from the bundled config)")
    trace.add_argument("--json", action="store_true", help="Output JSON instead of text")
    trace.set_defaults(func=cmd_trace)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    # Keep operator output readable.
    logging.disable(logging.INFO)
    try:
        return args.func(args)
    finally:
        logging.disable(logging.NOTSET)


if __name__ == "__main__":
    sys.exit(main())
