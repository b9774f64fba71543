"""
Tests for the read-side selectors.

Covers:
- WorkflowProgressSelector: per-step counts, percent complete, current step,
  latest instance per work item, unknown ids
- DefinitionSelector: ordered steps and approvers, lookup by name/version
"""

from uuid import uuid4

from conftest import step, task_for
from workflow_kernel.domain.approval import ApprovalType, ApproverType
from workflow_kernel.domain.workflow import StepStatus, WorkflowStatus


class TestWorkflowProgress:

    def test_progress_after_first_step(self, start_workflow, orchestrator, progress_selector):
        workflow, work_item_id = start_workflow([
            step("ANY", "user:alice", name="Manager review"),
            step("ALL", "role:finance", name="Finance review"),
        ])
        first, second = (s.step_instance_id for s in workflow.steps)
        orchestrator.handle_approval_decision(
            task_for(orchestrator, first, "alice").task_id, "alice", "approved",
        )
        orchestrator.handle_approval_decision(
            task_for(orchestrator, second, "fin_a").task_id, "fin_a", "approved",
        )

        progress = progress_selector.get_workflow_progress(work_item_id)

        assert progress.status == WorkflowStatus.IN_PROGRESS
        assert progress.total_steps == 2
        assert progress.completed_steps == 1
        assert progress.percent_complete == 50
        assert [s.step_name for s in progress.steps] == ["Manager review", "Finance review"]
        assert progress.current_step.step_instance_id == second
        assert (progress.steps[1].approved_tasks, progress.steps[1].total_tasks) == (1, 2)

    def test_percent_rounds_down(self, start_workflow, orchestrator, progress_selector):
        workflow, work_item_id = start_workflow([
            step("ANY", "user:alice"),
            step("ANY", "user:bob"),
            step("ANY", "user:carol"),
        ])
        orchestrator.handle_approval_decision(
            task_for(orchestrator, workflow.steps[0].step_instance_id, "alice").task_id,
            "alice", "approved",
        )

        assert progress_selector.get_workflow_progress(work_item_id).percent_complete == 33

    def test_finished_workflow_has_no_current_step(
        self, start_workflow, orchestrator, progress_selector,
    ):
        workflow, work_item_id = start_workflow([step("ANY", "user:alice")])
        orchestrator.handle_approval_decision(
            task_for(orchestrator, workflow.steps[0].step_instance_id, "alice").task_id,
            "alice", "rejected",
        )

        progress = progress_selector.get_workflow_progress(work_item_id)

        assert progress.status == WorkflowStatus.FAILED
        assert progress.steps[0].status == StepStatus.FAILED
        assert progress.current_step is None
        assert progress.percent_complete == 0

    def test_instance_progress_matches_work_item_progress(
        self, start_workflow, progress_selector,
    ):
        workflow, work_item_id = start_workflow([step("ALL", "user:alice")])

        assert progress_selector.get_instance_progress(workflow.workflow_instance_id) == (
            progress_selector.get_workflow_progress(work_item_id)
        )

    def test_work_item_without_workflow(self, create_work_item, orchestrator, progress_selector):
        item = create_work_item()
        assert progress_selector.get_workflow_progress(item.work_item_id) is None
        assert orchestrator.get_workflow_progress(item.work_item_id) is None

    def test_unknown_instance(self, progress_selector):
        assert progress_selector.get_instance_progress(uuid4()) is None


class TestDefinitionSelector:

    def test_steps_and_approvers_in_order(self, create_definition, definition_selector):
        definition = create_definition([
            step("ALL", "user:zed", "role:finance", "manager:employee"),
            step("N_OF_M", "user:alice", "user:bob", min_approvals=1, sla_hours=48),
        ])

        loaded = definition_selector.get_workflow(definition.definition_id)

        assert [s.step_order for s in loaded.steps] == [1, 2]
        first, second = loaded.steps
        approvers = definition_selector.get_approvers(first.step_definition_id)
        assert [(a.approver_type, a.approver_value) for a in approvers] == [
            (ApproverType.USER, "zed"),
            (ApproverType.ROLE, "finance"),
            (ApproverType.MANAGER, "employee"),
        ]
        step_def = definition_selector.get_step(second.step_definition_id)
        assert step_def.approval_type == ApprovalType.N_OF_M
        assert step_def.min_approvals == 1
        assert step_def.sla_hours == 48

    def test_find_by_name_prefers_highest_version(self, create_definition, definition_selector):
        create_definition([step("ANY", "user:alice")], name="expense", version=1)
        v2 = create_definition([step("ANY", "user:bob")], name="expense", version=2)

        assert definition_selector.find_by_name("expense").definition_id == v2.definition_id
        assert definition_selector.find_by_name("expense", version=1).version == 1
        assert definition_selector.find_by_name("missing") is None

    def test_unknown_ids(self, definition_selector):
        assert definition_selector.get_workflow(uuid4()) is None
        assert definition_selector.get_step(uuid4()) is None
        assert definition_selector.get_approvers(uuid4()) == ()
