"""Unit tests for the workflow Orchestrator."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from astrid_agent.config import EngineConfig
from astrid_agent.executors import (
    ExecutionResult,
    ImplementationPlan,
    PlannedFile,
    PlanningResult,
    Usage,
)
from astrid_agent.orchestrator import (
    ALLOWED_TRANSITIONS,
    CommentStream,
    InvalidTransitionError,
    NotFoundError,
    Orchestrator,
    can_transition,
)
from astrid_agent.sandbox import FileAction, FileChange
from astrid_agent.state_store import (
    CompletionMetadata,
    FailureMetadata,
    PlanMetadata,
    RetryMetadata,
    StateStore,
    Task,
    TestingMetadata,
    WorkflowExistsError,
    WorkflowStatus,
)
from astrid_agent.webhooks import CallbackData, CallbackPayload, DeliveryResult
from astrid_agent.worktree import CIStatus, Worktree, WorktreeError

PR_URL = "https://github.com/acme/app/pull/7"


def make_plan(files: tuple[str, ...] = ("src/theme.py",)) -> ImplementationPlan:
    """Build a small implementation plan."""
    return ImplementationPlan(
        summary="Add a dark theme",
        approach="Add a theme module and a settings toggle",
        files=[PlannedFile(path=p, purpose="theme support") for p in files],
        estimated_complexity="simple",
    )


def good_execution() -> ExecutionResult:
    return ExecutionResult(
        success=True,
        files=[FileChange("src/theme.py", "DARK = True\n", FileAction.CREATE)],
        commit_message="feat: add dark mode",
        pr_title="Add dark mode",
        pr_description="Adds a dark mode toggle",
        usage=Usage(input_tokens=200, output_tokens=100, cost_usd=0.02),
    )


@pytest.fixture
def store() -> Iterator[StateStore]:
    """Create an in-memory StateStore."""
    s = StateStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def task(store: StateStore) -> Task:
    """Create a task assigned to the agent."""
    return store.create_task(
        title="Add dark mode",
        creator_id="user-1",
        description="Toggle in settings",
        assignee_id="claude",
    )


@pytest.fixture
def executor() -> MagicMock:
    """Create a mock Executor with a good plan and a good execution."""
    ex = MagicMock()
    ex.plan.return_value = PlanningResult(success=True, plan=make_plan(), usage=Usage(100, 50, 0.01))
    ex.execute.return_value = good_execution()
    return ex


@pytest.fixture
def executor_factory(executor: MagicMock) -> MagicMock:
    """Factory that always returns the mock executor."""
    return MagicMock(return_value=executor)


@pytest.fixture
def cleanup() -> MagicMock:
    """Worktree removal callback."""
    return MagicMock()


@pytest.fixture
def worktrees(tmp_path: Path, cleanup: MagicMock) -> MagicMock:
    """Create a mock WorktreeManager."""
    manager = MagicMock()
    manager.create.return_value = Worktree(
        path=tmp_path / "task-wt",
        branch_name="astrid/task-abc",
        repo_path=tmp_path,
        task_id="task-abc",
        _on_cleanup=cleanup,
    )
    manager.commit.return_value = True
    manager.push.return_value = PR_URL
    manager.github = None
    return manager


@pytest.fixture
def github() -> MagicMock:
    """Create a mock GitHubClient."""
    return MagicMock()


@pytest.fixture
def orchestrator(
    store: StateStore,
    worktrees: MagicMock,
    executor_factory: MagicMock,
    github: MagicMock,
    tmp_path: Path,
) -> Orchestrator:
    """Create an Orchestrator with mocked collaborators."""
    return Orchestrator(
        store=store,
        worktrees=worktrees,
        config=EngineConfig(repo_path=str(tmp_path)),
        executor_factory=executor_factory,
        github=github,
    )


def say(store: StateStore, task: Task, content: str, author: str = "user-1"):
    """Record a comment the way the API does before handing it to the orchestrator."""
    return store.create_comment(task.id, author, content)


def contents(store: StateStore, task: Task) -> list[str]:
    return [c.content for c in store.list_comments(task.id, limit=100)]


def to_testing(orchestrator: Orchestrator, store: StateStore, task: Task) -> str:
    workflow = orchestrator.start_workflow(task.id)
    orchestrator.handle_comment(say(store, task, "lgtm"))
    return workflow.id


@pytest.mark.unit
class TestTransitionTable:
    """Tests for the workflow state machine table."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (WorkflowStatus.PENDING, WorkflowStatus.AWAITING_APPROVAL),
            (WorkflowStatus.AWAITING_APPROVAL, WorkflowStatus.TESTING),
            (WorkflowStatus.TESTING, WorkflowStatus.READY_TO_MERGE),
            (WorkflowStatus.TESTING, WorkflowStatus.COMPLETED),
            (WorkflowStatus.READY_TO_MERGE, WorkflowStatus.COMPLETED),
            (WorkflowStatus.FAILED, WorkflowStatus.PENDING),
        ],
    )
    def test_allowed(self, current: WorkflowStatus, target: WorkflowStatus) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (WorkflowStatus.PENDING, WorkflowStatus.TESTING),
            (WorkflowStatus.AWAITING_APPROVAL, WorkflowStatus.COMPLETED),
            (WorkflowStatus.FAILED, WorkflowStatus.TESTING),
            (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED),
        ],
    )
    def test_rejected(self, current: WorkflowStatus, target: WorkflowStatus) -> None:
        assert not can_transition(current, target)

    def test_failed_reachable_from_every_non_terminal_status(self) -> None:
        for status, targets in ALLOWED_TRANSITIONS.items():
            if status in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED):
                continue
            assert WorkflowStatus.FAILED in targets

    def test_completed_is_terminal(self) -> None:
        assert ALLOWED_TRANSITIONS[WorkflowStatus.COMPLETED] == frozenset()


@pytest.mark.unit
class TestPlanning:
    """Tests for starting a workflow and the planning phase."""

    def test_plan_awaits_approval(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        executor: MagicMock,
        cleanup: MagicMock,
    ) -> None:
        """A successful plan moves the workflow to AWAITING_APPROVAL."""
        workflow = orchestrator.start_workflow(task.id)

        assert workflow.workflow_status == WorkflowStatus.AWAITING_APPROVAL
        meta = workflow.meta
        assert isinstance(meta, PlanMetadata)
        assert meta.plan["files"][0]["path"] == "src/theme.py"
        assert meta.retried_with_feedback is False

        posted = contents(store, task)
        assert any("Starting work" in c for c in posted)
        assert any("Implementation Plan" in c for c in posted)
        assert any("Awaiting Approval" in c for c in posted)

        executor.close.assert_called_once()
        cleanup.assert_called_once()

    def test_executor_receives_task(
        self, orchestrator: Orchestrator, task: Task, executor: MagicMock, executor_factory: MagicMock
    ) -> None:
        orchestrator.start_workflow(task.id)

        assert executor_factory.call_args.args[0] == "claude"
        coding_task = executor.plan.call_args.args[0]
        assert coding_task.task_id == task.id
        assert coding_task.description == "Toggle in settings"

    def test_explicit_ai_service(
        self, orchestrator: Orchestrator, task: Task, executor_factory: MagicMock
    ) -> None:
        workflow = orchestrator.start_workflow(task.id, ai_service="gemini")

        assert workflow.ai_service == "gemini"
        assert executor_factory.call_args.args[0] == "gemini"

    def test_second_start_rejected(self, orchestrator: Orchestrator, task: Task) -> None:
        """One workflow per task."""
        orchestrator.start_workflow(task.id)

        with pytest.raises(WorkflowExistsError):
            orchestrator.start_workflow(task.id)

    def test_unknown_task(self, orchestrator: Orchestrator) -> None:
        with pytest.raises(NotFoundError):
            orchestrator.start_workflow("missing")

    def test_empty_plan_fails(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        """A plan with no files is a planning failure, not an approval request."""
        executor.plan.return_value = PlanningResult(success=True, plan=make_plan(files=()))

        workflow = orchestrator.start_workflow(task.id)

        assert workflow.workflow_status == WorkflowStatus.FAILED
        meta = workflow.meta
        assert isinstance(meta, FailureMetadata)
        assert meta.step == "planning"
        assert meta.error == "Planning produced no files to modify."
        assert any(c.startswith("❌ **Error**") for c in contents(store, task))

    def test_executor_error_fails(
        self, orchestrator: Orchestrator, task: Task, executor: MagicMock
    ) -> None:
        executor.plan.return_value = PlanningResult(success=False, error="Max iterations reached")

        workflow = orchestrator.start_workflow(task.id)

        assert workflow.workflow_status == WorkflowStatus.FAILED
        assert workflow.meta.error == "Max iterations reached"

    def test_worktree_error_fails(
        self, orchestrator: Orchestrator, task: Task, worktrees: MagicMock
    ) -> None:
        worktrees.create.side_effect = WorktreeError("git worktree add failed")

        workflow = orchestrator.start_workflow(task.id)

        assert workflow.workflow_status == WorkflowStatus.FAILED
        assert "git worktree add failed" in workflow.meta.error

    def test_cleanup_after_executor_exception(
        self,
        orchestrator: Orchestrator,
        task: Task,
        executor: MagicMock,
        cleanup: MagicMock,
    ) -> None:
        executor.plan.side_effect = RuntimeError("provider exploded")

        workflow = orchestrator.start_workflow(task.id)

        assert workflow.workflow_status == WorkflowStatus.FAILED
        executor.close.assert_called_once()
        cleanup.assert_called_once()


@pytest.mark.unit
class TestApproval:
    """Tests for approving a plan and the execution phase."""

    def test_approve_pushes_for_testing(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        worktrees: MagicMock,
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.TESTING
        meta = workflow.meta
        assert isinstance(meta, TestingMetadata)
        assert meta.branch_name == "astrid/task-abc"
        assert meta.pr_url == PR_URL
        assert meta.commit_message == "feat: add dark mode"
        assert meta.usage == {"input_tokens": 200, "output_tokens": 100, "cost_usd": 0.02}

        commit_args = worktrees.commit.call_args.args
        assert commit_args[1] == "feat: add dark mode"
        push_args = worktrees.push.call_args.args
        assert push_args[1:] == ("Add dark mode", "Adds a dark mode toggle")

        posted = contents(store, task)
        assert any("Approval Received" in c for c in posted)
        assert any("Ready for Testing" in c and "[#7]" in c for c in posted)

    def test_execute_gets_approved_plan(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        to_testing(orchestrator, store, task)

        plan = executor.execute.call_args.args[0]
        assert plan == make_plan()
        assert executor.execute.call_args.kwargs["feedback"] is None

    def test_no_files_fails(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        executor.execute.return_value = ExecutionResult(success=True, files=[])

        workflow_id = to_testing(orchestrator, store, task)

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.FAILED
        assert workflow.meta.step == "execution"
        assert "produced no files" in workflow.meta.error

    def test_budget_exceeded_fails(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        executor.execute.return_value = ExecutionResult(
            success=False,
            files=[FileChange("a.py", "x", FileAction.CREATE)],
            error="Budget exceeded",
        )

        workflow_id = to_testing(orchestrator, store, task)

        assert store.get_workflow(workflow_id).meta.error == "Budget exceeded"

    def test_missing_pr_is_not_fatal(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, worktrees: MagicMock
    ) -> None:
        """A pushed branch without a PR still reaches testing."""
        worktrees.push.return_value = None

        workflow_id = to_testing(orchestrator, store, task)

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.TESTING
        assert workflow.meta.pr_url is None

    def test_approve_requires_awaiting_approval(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)

        with pytest.raises(InvalidTransitionError):
            orchestrator.approve_plan(workflow_id)

    def test_failure_recorded_mid_execution_is_kept(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        """A workflow failed by another step while executing is not moved to testing."""
        workflow = orchestrator.start_workflow(task.id)

        def failed_meanwhile(*args: object, **kwargs: object) -> ExecutionResult:
            store.update_workflow(
                workflow.id,
                status=WorkflowStatus.FAILED,
                metadata=FailureMetadata(error="worktree busy", step="execution"),
            )
            return good_execution()

        executor.execute.side_effect = failed_meanwhile

        orchestrator.approve_plan(workflow.id)

        updated = store.get_workflow(workflow.id)
        assert updated.workflow_status == WorkflowStatus.FAILED
        assert updated.meta.error == "worktree busy"
        assert not any("Ready for Testing" in c for c in contents(store, task))


@pytest.mark.unit
class TestMerge:
    """Tests for shipping a workflow."""

    def test_ship_it_completes(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)

        orchestrator.handle_comment(say(store, task, "ship it"))

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.COMPLETED
        meta = workflow.meta
        assert isinstance(meta, CompletionMetadata)
        assert meta.merged_by == "user-1"
        assert meta.pr_url == PR_URL
        assert store.get_task(task.id).completed is True
        assert any("Shipping to Production" in c for c in contents(store, task))

    def test_merge_from_ready_to_merge(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        github: MagicMock,
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)
        github.get_branch_ci_status.return_value = CIStatus.SUCCESS
        orchestrator.record_checks_status(task.id)

        orchestrator.handle_comment(say(store, task, "merge it"))

        assert store.get_workflow(workflow_id).workflow_status == WorkflowStatus.COMPLETED

    def test_ship_it_before_implementation_is_ignored(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow = orchestrator.start_workflow(task.id)

        orchestrator.handle_comment(say(store, task, "ship it"))

        assert store.get_workflow(workflow.id).workflow_status == WorkflowStatus.AWAITING_APPROVAL

    def test_merge_call_requires_testing(self, orchestrator: Orchestrator, task: Task) -> None:
        workflow = orchestrator.start_workflow(task.id)

        with pytest.raises(InvalidTransitionError):
            orchestrator.merge(workflow.id)


@pytest.mark.unit
class TestCommentIntake:
    """Tests for authorization and classification of comments."""

    def test_non_creator_ignored(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        workflow = orchestrator.start_workflow(task.id)

        orchestrator.handle_comment(say(store, task, "lgtm", author="someone-else"))

        assert store.get_workflow(workflow.id).workflow_status == WorkflowStatus.AWAITING_APPROVAL
        executor.execute.assert_not_called()

    def test_non_actionable_ignored(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        workflow = orchestrator.start_workflow(task.id)

        orchestrator.handle_comment(say(store, task, "hmm, noted"))

        assert store.get_workflow(workflow.id).workflow_status == WorkflowStatus.AWAITING_APPROVAL
        executor.execute.assert_not_called()

    def test_custom_classifier(
        self,
        store: StateStore,
        task: Task,
        worktrees: MagicMock,
        executor_factory: MagicMock,
        executor: MagicMock,
        tmp_path: Path,
    ) -> None:
        from astrid_agent.classifier import ActionType, CommentAction

        orchestrator = Orchestrator(
            store=store,
            worktrees=worktrees,
            config=EngineConfig(repo_path=str(tmp_path)),
            executor_factory=executor_factory,
            classifier=lambda text: CommentAction(ActionType.APPROVE, 1.0),
        )
        orchestrator.start_workflow(task.id)

        orchestrator.handle_comment(say(store, task, "🚀"))

        executor.execute.assert_called_once()

    def test_comment_on_missing_task_is_logged(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        """handle_comment never raises."""
        comment = say(store, task, "lgtm")
        comment.task_id = "gone"

        orchestrator.handle_comment(comment)


@pytest.mark.unit
class TestRequestChanges:
    """Tests for change requests."""

    def test_revision_before_approval_keeps_plan_up(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        executor: MagicMock,
        worktrees: MagicMock,
    ) -> None:
        """Feedback on a plan re-runs execution and leaves the plan awaiting approval."""
        workflow = orchestrator.start_workflow(task.id)

        orchestrator.handle_comment(say(store, task, "Please change the toggle to a dropdown."))

        updated = store.get_workflow(workflow.id)
        assert updated.workflow_status == WorkflowStatus.AWAITING_APPROVAL
        meta = updated.meta
        assert isinstance(meta, PlanMetadata)
        assert meta.plan == make_plan().to_dict()
        assert meta.revision_feedback is not None
        assert "dropdown" in meta.revision_feedback
        assert meta.branch_name == "astrid/task-abc"
        assert meta.pr_url == PR_URL

        assert executor.plan.call_count == 1
        assert executor.execute.call_args.args[0] == make_plan()
        assert "dropdown" in executor.execute.call_args.kwargs["feedback"]
        description = executor.execute.call_args.args[1].description
        assert "## Requested Changes" in description
        worktrees.push.assert_called_once()
        posted = contents(store, task)
        assert any("Change Request Received" in c for c in posted)
        assert any("Changes applied" in c for c in posted)

    def test_approval_after_revision(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow = orchestrator.start_workflow(task.id)
        orchestrator.request_changes(workflow.id, "use a dropdown")

        orchestrator.approve_plan(workflow.id)

        assert store.get_workflow(workflow.id).workflow_status == WorkflowStatus.TESTING

    def test_revision_while_planning_stays_pending(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        """Without a plan yet, the feedback alone drives the revision."""
        workflow = orchestrator.create_workflow(task.id)

        orchestrator.request_changes(workflow.id, "Use the settings page instead")

        updated = store.get_workflow(workflow.id)
        assert updated.workflow_status == WorkflowStatus.PENDING
        assert updated.metadata_json == {}
        plan = executor.execute.call_args.args[0]
        assert plan.files == []
        assert plan.summary == "Use the settings page instead"
        assert executor.execute.call_args.kwargs["feedback"] == "Use the settings page instead"
        assert any("Changes applied" in c for c in contents(store, task))

    def test_revision_while_ready_to_merge_keeps_status(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)
        store.update_workflow(workflow_id, status=WorkflowStatus.READY_TO_MERGE)

        orchestrator.request_changes(workflow_id, "rename the toggle")

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.READY_TO_MERGE
        assert isinstance(workflow.meta, TestingMetadata)
        assert workflow.meta.revision_feedback == "rename the toggle"

    def test_revise_implementation_while_testing(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)

        orchestrator.handle_comment(say(store, task, "Could you fix the contrast in the header?"))

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.TESTING
        assert executor.execute.call_count == 2
        feedback = executor.execute.call_args.kwargs["feedback"]
        assert "contrast" in feedback
        assert workflow.meta.revision_feedback == feedback
        assert any("Changes applied" in c for c in contents(store, task))

    def test_revision_failure_fails_workflow(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, executor: MagicMock
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)
        executor.execute.return_value = ExecutionResult(success=False, error="Max iterations reached")

        orchestrator.request_changes(workflow_id, "fix the header")

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.FAILED
        assert workflow.meta.step == "changes"

    def test_completed_rejects_changes(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)
        orchestrator.merge(workflow_id)

        with pytest.raises(InvalidTransitionError):
            orchestrator.request_changes(workflow_id, "fix it")


@pytest.mark.unit
class TestRetry:
    """Tests for retry with feedback after a failure."""

    @pytest.fixture
    def failed(self, orchestrator: Orchestrator, task: Task, executor: MagicMock) -> str:
        executor.plan.return_value = PlanningResult(success=True, plan=make_plan(files=()))
        workflow = orchestrator.start_workflow(task.id)
        assert workflow.workflow_status == WorkflowStatus.FAILED
        executor.plan.return_value = PlanningResult(success=True, plan=make_plan())
        return workflow.id

    def test_creator_comment_retries(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        executor: MagicMock,
        failed: str,
    ) -> None:
        """FAILED -> PENDING with the feedback recorded, then planning again."""
        with patch.object(store, "update_workflow", wraps=store.update_workflow) as spy:
            orchestrator.handle_comment(
                say(store, task, "please try again with the settings page")
            )

        statuses = [c.kwargs.get("status") for c in spy.call_args_list]
        assert statuses.index(WorkflowStatus.PENDING) < statuses.index(
            WorkflowStatus.AWAITING_APPROVAL
        )
        retry_meta = spy.call_args_list[statuses.index(WorkflowStatus.PENDING)].kwargs["metadata"]
        assert isinstance(retry_meta, RetryMetadata)
        assert retry_meta.user_feedback == "please try again with the settings page"
        assert retry_meta.previous_error == "Planning produced no files to modify."
        assert retry_meta.failed_step == "planning"

        workflow = store.get_workflow(failed)
        assert workflow.workflow_status == WorkflowStatus.AWAITING_APPROVAL
        assert workflow.meta.retried_with_feedback is True

        description = executor.plan.call_args.args[0].description
        assert "## User Clarification (after previous attempt failed)" in description
        assert "settings page" in description
        assert any("Retrying with your feedback" in c for c in contents(store, task))

    def test_any_creator_comment_counts(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, failed: str
    ) -> None:
        """Even a comment with no keywords is retry feedback on a failed workflow."""
        orchestrator.handle_comment(say(store, task, "thanks"))

        assert store.get_workflow(failed).workflow_status == WorkflowStatus.AWAITING_APPROVAL

    def test_non_creator_does_not_retry(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, failed: str
    ) -> None:
        orchestrator.handle_comment(say(store, task, "try again", author="someone-else"))

        assert store.get_workflow(failed).workflow_status == WorkflowStatus.FAILED

    def test_failed_retry_keeps_context(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        executor: MagicMock,
        failed: str,
    ) -> None:
        executor.plan.return_value = PlanningResult(success=False, error="Max iterations reached")

        orchestrator.retry_with_feedback(failed, None, "use the settings page")

        meta = store.get_workflow(failed).meta
        assert isinstance(meta, FailureMetadata)
        assert meta.step == "retry"
        assert meta.user_feedback == "use the settings page"
        assert meta.previous_error == "Planning produced no files to modify."

    def test_retry_requires_failed(self, orchestrator: Orchestrator, task: Task) -> None:
        workflow = orchestrator.start_workflow(task.id)

        with pytest.raises(InvalidTransitionError):
            orchestrator.retry_with_feedback(workflow.id, None, "again")


@pytest.mark.unit
class TestBackfill:
    """Tests for tasks that failed before workflows were recorded."""

    def test_failure_marker_creates_workflow(
        self,
        orchestrator: Orchestrator,
        store: StateStore,
        task: Task,
        executor: MagicMock,
    ) -> None:
        say(store, task, "❌ **Error**\n\nIssue during planning:\n\n**boom**", author="ai-agent")

        orchestrator.handle_comment(say(store, task, "the toggle belongs in settings"))

        workflow = store.get_workflow_by_task(task.id)
        assert workflow is not None
        assert workflow.ai_service == "claude"
        assert workflow.workflow_status == WorkflowStatus.AWAITING_APPROVAL
        description = executor.plan.call_args.args[0].description
        assert "Previous failure (no workflow record)" in description

    def test_service_inferred_from_assignee(
        self, orchestrator: Orchestrator, store: StateStore, executor_factory: MagicMock
    ) -> None:
        task = store.create_task(title="t", creator_id="user-1", assignee_id="openai-codex-agent")
        say(store, task, "Workflow Failed: timeout", author="ai-agent")

        orchestrator.handle_comment(say(store, task, "retry please"))

        assert store.get_workflow_by_task(task.id).ai_service == "openai"
        assert executor_factory.call_args.args[0] == "openai"

    def test_no_marker_no_workflow(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        orchestrator.handle_comment(say(store, task, "any news?"))

        assert store.get_workflow_by_task(task.id) is None

    def test_human_assignee_ignored(self, orchestrator: Orchestrator, store: StateStore) -> None:
        task = store.create_task(title="t", creator_id="user-1", assignee_id="user-2")
        say(store, task, "❌ **Error**\n\nsomething", author="ai-agent")

        orchestrator.handle_comment(say(store, task, "try again"))

        assert store.get_workflow_by_task(task.id) is None


@pytest.mark.unit
class TestChecksStatus:
    """Tests for recording CI results."""

    def test_green_checks_ready_to_merge(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, github: MagicMock
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)
        github.get_branch_ci_status.return_value = CIStatus.SUCCESS

        status = orchestrator.record_checks_status(task.id)

        assert status == CIStatus.SUCCESS
        github.get_branch_ci_status.assert_called_once_with("astrid/task-abc")
        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.READY_TO_MERGE
        assert workflow.meta.github_actions_status == "success"
        assert any("Checks passed" in c for c in contents(store, task))

    def test_failing_checks_recorded(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, github: MagicMock
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)
        github.get_branch_ci_status.return_value = CIStatus.FAILURE

        orchestrator.record_checks_status(task.id)

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.TESTING
        assert workflow.meta.github_actions_status == "failure"

    def test_http_error_returns_none(
        self, orchestrator: Orchestrator, store: StateStore, task: Task, github: MagicMock
    ) -> None:
        to_testing(orchestrator, store, task)
        github.get_branch_ci_status.side_effect = httpx.ConnectError("down")

        assert orchestrator.record_checks_status(task.id) is None

    def test_before_testing_returns_none(
        self, orchestrator: Orchestrator, task: Task, github: MagicMock
    ) -> None:
        orchestrator.start_workflow(task.id)

        assert orchestrator.record_checks_status(task.id) is None
        github.get_branch_ci_status.assert_not_called()

    def test_no_workflow(self, orchestrator: Orchestrator, task: Task) -> None:
        with pytest.raises(NotFoundError):
            orchestrator.record_checks_status(task.id)


@pytest.mark.unit
class TestRemoteCallbacks:
    """Tests for callbacks from remote executors."""

    def payload(self, task: Task, event: str, **data: object) -> CallbackPayload:
        return CallbackPayload(
            event=event,
            timestamp="2026-01-01T00:00:00Z",
            session_id="sess-1",
            task_id=task.id,
            data=CallbackData(**data) if data else None,
        )

    def test_completed_comment(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        orchestrator.handle_remote_callback(
            self.payload(task, "session.completed", summary="Done", files=["a.py"], pr_url=PR_URL)
        )

        body = contents(store, task)[0]
        assert "## ✅ Task Completed" in body
        assert "`a.py`" in body
        assert PR_URL in body

    def test_started_comment(self, orchestrator: Orchestrator, store: StateStore, task: Task) -> None:
        orchestrator.handle_remote_callback(self.payload(task, "session.started"))

        assert "Session ID: `sess-1`" in contents(store, task)[0]

    def test_empty_progress_skipped(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        orchestrator.handle_remote_callback(self.payload(task, "session.progress"))

        assert contents(store, task) == []

    def test_error_fails_workflow(
        self, orchestrator: Orchestrator, store: StateStore, task: Task
    ) -> None:
        workflow_id = to_testing(orchestrator, store, task)

        orchestrator.handle_remote_callback(self.payload(task, "session.error", error="OOM"))

        workflow = store.get_workflow(workflow_id)
        assert workflow.workflow_status == WorkflowStatus.FAILED
        assert workflow.meta.step == "remote"
        assert workflow.meta.error == "OOM"

    def test_unknown_task(self, orchestrator: Orchestrator, task: Task) -> None:
        payload = self.payload(task, "session.started")
        payload.task_id = "missing"

        with pytest.raises(NotFoundError):
            orchestrator.handle_remote_callback(payload)


@pytest.mark.unit
class TestNotifications:
    """Tests for outbound session notifications."""

    def make(self, store, worktrees, executor_factory, tmp_path, **config) -> tuple[Orchestrator, MagicMock]:
        webhooks = MagicMock()
        webhooks.deliver.return_value = DeliveryResult(success=True, attempts=1, status_code=200)
        orchestrator = Orchestrator(
            store=store,
            worktrees=worktrees,
            config=EngineConfig(repo_path=str(tmp_path), **config),
            executor_factory=executor_factory,
            webhooks=webhooks,
        )
        return orchestrator, webhooks

    def test_events_delivered(
        self,
        store: StateStore,
        task: Task,
        worktrees: MagicMock,
        executor_factory: MagicMock,
        tmp_path: Path,
    ) -> None:
        orchestrator, webhooks = self.make(
            store,
            worktrees,
            executor_factory,
            tmp_path,
            webhook_url="https://hooks.example.com/astrid",
            webhook_secret="s3cret",
        )

        workflow = orchestrator.start_workflow(task.id)

        events = [c.args[2]["event"] for c in webhooks.deliver.call_args_list]
        assert events == ["session.started", "session.waiting_input"]
        url, secret, payload = webhooks.deliver.call_args_list[0].args
        assert url == "https://hooks.example.com/astrid"
        assert secret == "s3cret"
        assert payload["taskId"] == task.id
        assert payload["sessionId"] == workflow.id

    def test_disabled_without_url(
        self,
        store: StateStore,
        task: Task,
        worktrees: MagicMock,
        executor_factory: MagicMock,
        tmp_path: Path,
    ) -> None:
        orchestrator, webhooks = self.make(store, worktrees, executor_factory, tmp_path)

        orchestrator.start_workflow(task.id)

        webhooks.deliver.assert_not_called()


@pytest.mark.unit
class TestCommentStream:
    """Tests for streaming executor text into comments."""

    def test_plan_section_posted_on_close(self) -> None:
        posted: list[str] = []
        stream = CommentStream(posted.append, "Gemini")

        stream.on_text("Here's my plan: add a theme module and wire the toggle")
        assert posted == []

        stream.close()
        assert len(posted) == 1
        assert posted[0].startswith("📋 **Gemini's Plan**")

    def test_completed_sections_posted_immediately(self) -> None:
        posted: list[str] = []
        stream = CommentStream(posted.append, "Claude")

        stream.on_text("Should I also update the dark palette?\n\nstill thinking")

        assert len(posted) == 1
        assert posted[0].startswith("❓ **Claude has a question**")
