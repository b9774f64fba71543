"""
Tests for workflow configuration loading, validation and installation.

Covers:
- Loader (parse_config) -- YAML dict parsing and normalization
- Validation -- every structural problem reported at once
- Checksums -- deterministic change detection
- End-to-end (get_active_config) -- the bundled default set and custom files
- Bridges -- installing definitions idempotently, building the resolver
"""

from __future__ import annotations

import dataclasses

import pytest
import yaml
from sqlalchemy import func, select

from conftest import task_for
from workflow_config import ConfigValidationError, get_active_config
from workflow_config.bridges import (
    CONFIG_ACTOR,
    build_approver_resolver,
    install_workflow_definitions,
)
from workflow_config.loader import compute_checksum, parse_config, parse_step
from workflow_kernel.models.audit_event import AuditAction
from workflow_kernel.models.workflow import WorkflowDefinitionModel
from workflow_services.workflow_orchestrator import WorkflowOrchestrator


def minimal_config(**overrides):
    data = {
        "config_id": "test",
        "version": 3,
        "workflows": [
            {
                "name": "expense",
                "steps": [
                    {
                        "order": 1,
                        "name": "Review",
                        "approval_type": "any",
                        "approvers": [{"type": "USER", "value": "alice"}],
                    },
                ],
            },
        ],
    }
    data.update(overrides)
    return data


def workflow_with_steps(*steps, name="broken", version=1):
    return {"name": name, "version": version, "steps": list(steps)}


# =========================================================================
# 1. Loader
# =========================================================================


class TestParseConfig:

    def test_minimal_document(self):
        config = parse_config(minimal_config())

        assert config.config_id == "test"
        assert config.version == 3
        assert config.database.url == "sqlite:///:memory:"
        assert config.logging.level == "INFO"
        wf = config.workflow("expense")
        assert wf.version == 1
        assert wf.is_active is True
        assert wf.steps[0].approval_type == "ANY"
        assert wf.steps[0].approvers[0].approver_type == "user"

    def test_step_fields(self):
        parsed = parse_step({
            "order": "2",
            "name": "Peer review",
            "approval_type": "N_OF_M",
            "min_approvals": "2",
            "sla_hours": 12,
        })
        assert parsed.step_order == 2
        assert parsed.min_approvals == 2
        assert parsed.sla_hours == 12
        assert parsed.approvers == ()

    def test_workflow_lookup_returns_highest_version(self):
        config = parse_config(minimal_config(workflows=[
            workflow_with_steps(name="expense", version=1),
            workflow_with_steps(name="expense", version=4),
        ]))
        assert config.workflow("expense").version == 4
        assert config.workflow("missing") is None

    def test_zero_step_workflow_is_accepted(self):
        config = parse_config(minimal_config(workflows=[workflow_with_steps(name="empty")]))
        assert config.workflow("empty").steps == ()

    def test_missing_config_id(self):
        data = minimal_config()
        del data["config_id"]
        with pytest.raises(KeyError):
            parse_config(data)

    def test_config_is_frozen(self):
        config = parse_config(minimal_config())
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.version = 9


# =========================================================================
# 2. Validation
# =========================================================================


class TestValidation:

    def test_unknown_approval_type(self):
        data = minimal_config(workflows=[workflow_with_steps(
            {"order": 1, "name": "Vote", "approval_type": "MAJORITY"},
        )])
        with pytest.raises(ConfigValidationError, match="unknown approval type 'MAJORITY'"):
            parse_config(data)

    def test_n_of_m_requires_positive_minimum(self):
        data = minimal_config(workflows=[workflow_with_steps(
            {"order": 1, "name": "Peers", "approval_type": "N_OF_M", "min_approvals": 0},
        )])
        with pytest.raises(ConfigValidationError, match="positive min_approvals"):
            parse_config(data)

    def test_all_problems_reported_together(self):
        data = minimal_config(workflows=[
            workflow_with_steps(
                {"order": 1, "name": "A", "approval_type": "ALL",
                 "approvers": [{"type": "group", "value": "x"}]},
                {"order": 1, "name": "B", "approval_type": "N_OF_M"},
            ),
            workflow_with_steps(),
        ])

        with pytest.raises(ConfigValidationError) as exc_info:
            parse_config(data)

        errors = exc_info.value.errors
        assert len(errors) == 4
        assert any("unknown approver type 'group'" in e for e in errors)
        assert any("duplicate step order" in e for e in errors)
        assert any("N_OF_M requires" in e for e in errors)
        assert any("duplicate workflow name/version" in e for e in errors)

    def test_validation_error_is_a_value_error(self):
        assert issubclass(ConfigValidationError, ValueError)


# =========================================================================
# 3. Checksums
# =========================================================================


class TestChecksum:

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_any_change_is_detected(self):
        base = minimal_config()
        changed = minimal_config(version=4)
        assert parse_config(base).checksum != parse_config(changed).checksum
        assert len(parse_config(base).checksum) == 64


# =========================================================================
# 4. End-to-end
# =========================================================================


class TestGetActiveConfig:

    def test_default_set(self, captured_logs):
        config = get_active_config()

        assert config.config_id == "default"
        assert {wf.name for wf in config.workflows} == {"purchase_request", "contract_review"}
        assert config.approvers.roles["finance_reviewers"] == ("alice", "bob")

        traces = [r for r in captured_logs() if r["message"] == "WORKFLOW_CONFIG_TRACE"]
        assert traces[-1]["checksum"] == config.checksum
        assert traces[-1]["workflow_count"] == 2

    def test_default_set_is_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum

    def test_custom_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump(minimal_config()))

        config = get_active_config(path)

        assert config.config_id == "test"
        assert config.checksum == compute_checksum(minimal_config())

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")


# =========================================================================
# 5. Bridges
# =========================================================================


class TestBridges:

    def test_resolver_from_directory(self):
        resolver = build_approver_resolver(get_active_config())

        assert resolver.resolve_role("legal") == ["lena"]
        assert resolver.resolve_role("unknown") == []
        assert resolver.resolve_manager_chain("carol") == ["dave", "erin"]

    def test_install_is_idempotent(self, session, deterministic_clock, auditor_service):
        config = get_active_config()

        first = install_workflow_definitions(session, config, clock=deterministic_clock)
        second = install_workflow_definitions(session, config, clock=deterministic_clock)

        assert first == second
        count = session.execute(select(func.count(WorkflowDefinitionModel.id))).scalar_one()
        assert count == 2
        trace = auditor_service.get_trace("WorkflowDefinition", first["purchase_request"])
        assert trace.actions == (AuditAction.DEFINITION_INSTALLED,)
        assert trace.entries[0].actor_id == CONFIG_ACTOR

    def test_installed_steps_keep_order_and_approvers(
        self, session, deterministic_clock, definition_selector,
    ):
        ids = install_workflow_definitions(session, get_active_config(), clock=deterministic_clock)

        definition = definition_selector.get_workflow(ids["contract_review"])

        peer, legal = definition.steps
        assert peer.step_name == "Peer review"
        assert peer.min_approvals == 2
        assert [a.approver_value for a in definition_selector.get_approvers(peer.step_definition_id)] == [
            "alice", "bob", "carol",
        ]
        assert legal.step_name == "Legal review"

    def test_configured_workflow_runs(
        self, session, deterministic_clock, create_work_item,
    ):
        config = get_active_config()
        ids = install_workflow_definitions(session, config, clock=deterministic_clock)
        orchestrator = WorkflowOrchestrator(
            session,
            clock=deterministic_clock,
            approver_resolver=build_approver_resolver(config),
        )
        item = create_work_item()

        instance_id = orchestrator.start_workflow(
            item.work_item_id, ids["purchase_request"], "requester",
        )
        workflow = orchestrator.workflows.get(instance_id)
        manager_step = workflow.steps[0].step_instance_id

        outcome = orchestrator.handle_approval_decision(
            task_for(orchestrator, manager_step, "dave").task_id, "dave", "approved",
        )

        assert outcome.next_step_instance_id == workflow.steps[1].step_instance_id
        assert len(outcome.created_task_ids) == 2
