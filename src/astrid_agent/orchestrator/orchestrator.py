"""Orchestrator - the per-task workflow state machine.

A workflow moves PENDING -> AWAITING_APPROVAL -> TESTING -> READY_TO_MERGE ->
COMPLETED, driven by comments from the task's creator. Any step can fail the
workflow; a FAILED workflow goes back to PENDING when the creator replies.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from astrid_agent.classifier import (
    ActionType,
    CommentAction,
    classify,
    extract_change_request,
    is_actionable,
)
from astrid_agent.config import EngineConfig
from astrid_agent.executors import CodingTask, ImplementationPlan, create_executor
from astrid_agent.orchestrator import comments
from astrid_agent.orchestrator.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    StepFailedError,
)
from astrid_agent.orchestrator.models import WorkflowStep, can_transition
from astrid_agent.state_store import (
    CompletionMetadata,
    FailureMetadata,
    PlanMetadata,
    RetryMetadata,
    StateStoreError,
    TaskNotFoundError,
    TestingMetadata,
    WorkflowExistsError,
    WorkflowNotFoundError,
    WorkflowStatus,
    WorkflowStatusConflictError,
)
from astrid_agent.stream import ParserState, flush, format_content_as_comment, parse_chunk
from astrid_agent.webhooks import CallbackData, CallbackPayload
from astrid_agent.worktree import CIStatus, PRError

if TYPE_CHECKING:
    from astrid_agent.executors import Executor
    from astrid_agent.state_store import Comment, StateStore, Task, Workflow, WorkflowMetadata
    from astrid_agent.stream import DetectedContent
    from astrid_agent.webhooks import WebhookClient
    from astrid_agent.worktree import GitHubClient, WorktreeManager

logger = logging.getLogger("astrid_agent.orchestrator")

ExecutorFactory = Callable[[str, Path, Callable[[str], None], Callable[[str], None]], "Executor"]

AGENT_NAMES = {"claude": "Claude", "openai": "OpenAI", "gemini": "Gemini"}
RECENT_COMMENTS = 20
BACKFILL_ERROR = "Previous failure (no workflow record)"

SESSION_STARTED = "session.started"
SESSION_PROGRESS = "session.progress"
SESSION_WAITING = "session.waiting_input"
SESSION_COMPLETED = "session.completed"
SESSION_ERROR = "session.error"


class CommentStream:
    """Feeds executor text through the output stream parser into comments."""

    def __init__(self, post: Callable[[str], None], agent_name: str) -> None:
        self._post = post
        self.agent_name = agent_name
        self.state = ParserState()

    def _emit(self, items: list[DetectedContent]) -> None:
        for item in items:
            self._post(format_content_as_comment(item, self.agent_name))

    def on_text(self, text: str) -> None:
        self._emit(parse_chunk(text, self.state))

    def on_progress(self, message: str) -> None:
        logger.debug("%s: %s", self.agent_name, message)

    def close(self) -> None:
        self._emit(flush(self.state))


class Orchestrator:
    """Drives workflows through their states and coordinates the components.

    The Orchestrator:
    - Creates a workflow per task and runs the planning phase
    - Turns creator comments into approve, merge, change and retry steps
    - Runs executors inside disposable worktrees and pushes their changes
    - Records every failure as FAILED with the failing step and error
    - Optionally notifies a webhook receiver of session events
    """

    def __init__(
        self,
        store: StateStore,
        worktrees: WorktreeManager,
        config: EngineConfig | None = None,
        executor_factory: ExecutorFactory | None = None,
        classifier: Callable[[str], CommentAction] = classify,
        webhooks: WebhookClient | None = None,
        github: GitHubClient | None = None,
    ) -> None:
        """Initialize the Orchestrator.

        Args:
            store: Task, comment and workflow persistence.
            worktrees: Creates and removes per-task worktrees.
            config: Engine configuration.
            executor_factory: Builds an executor for (ai_service, worktree
                path, on_text, on_progress). Defaults to ``create_executor``.
            classifier: Comment text to CommentAction.
            webhooks: Outbound notification client; notifications are off
                when omitted or when no webhook URL is configured.
            github: Client for CI status. Defaults to the worktree manager's.
        """
        self.store = store
        self.worktrees = worktrees
        self.config = config or EngineConfig()
        self.repo_path = Path(self.config.repo_path)
        self.executor_factory = executor_factory or self._create_executor
        self.classify = classifier
        self.webhooks = webhooks
        self.github = github if github is not None else worktrees.github

    def _create_executor(
        self,
        ai_service: str,
        worktree_path: Path,
        on_text: Callable[[str], None],
        on_progress: Callable[[str], None],
    ) -> Executor:
        return create_executor(
            ai_service, worktree_path, self.config, on_text=on_text, on_progress=on_progress
        )

    # --- Lookups ---

    def _get_task(self, task_id: str) -> Task:
        try:
            return self.store.get_task(task_id)
        except TaskNotFoundError as e:
            raise NotFoundError(str(e)) from e

    def _load(self, workflow_id: str) -> tuple[Workflow, Task]:
        try:
            workflow = self.store.get_workflow(workflow_id)
        except WorkflowNotFoundError as e:
            raise NotFoundError(str(e)) from e
        return workflow, self._get_task(workflow.task_id)

    def _agent_service(self, assignee_id: str | None) -> str | None:
        """AI service for an agent assignee, or None for human assignees."""
        if not assignee_id:
            return None
        lowered = assignee_id.lower()
        for service in ("openai", "gemini", "claude"):
            if service in lowered:
                return service
        if assignee_id == self.config.agent_user_id:
            return self.config.default_ai_service
        return None

    # --- Side effects ---

    def _post(self, task_id: str, content: str) -> None:
        try:
            self.store.create_comment(task_id, self.config.agent_user_id, content)
        except StateStoreError as e:
            logger.error("Failed to post comment on task %s: %s", task_id, e)

    def _notify(self, event: str, workflow: Workflow, **data: Any) -> None:
        if self.webhooks is None or not self.config.webhook_url or not self.config.webhook_secret:
            return
        payload = CallbackPayload(
            event=event,
            timestamp=datetime.now(UTC).isoformat(),
            session_id=workflow.id,
            task_id=workflow.task_id,
            data=CallbackData(**data) if data else None,
        )
        result = self.webhooks.deliver(
            self.config.webhook_url, self.config.webhook_secret, payload.to_wire()
        )
        if not result.success:
            logger.warning("Notification %s for workflow %s not delivered", event, workflow.id)

    def _transition(
        self,
        workflow: Workflow,
        target: WorkflowStatus,
        metadata: WorkflowMetadata | None = None,
    ) -> Workflow:
        current = workflow.workflow_status
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f"Workflow {workflow.id} cannot move from {current} to {target}"
            )
        try:
            updated = self.store.update_workflow(
                workflow.id, status=target, metadata=metadata, expected_status=current
            )
        except WorkflowStatusConflictError as e:
            raise InvalidTransitionError(
                f"Workflow {workflow.id} is no longer {current}, cannot move to {target}"
            ) from e
        logger.info("Workflow %s transitioned from %s to %s", workflow.id, current, target)
        return updated

    def _update_metadata(self, workflow: Workflow, metadata: WorkflowMetadata) -> Workflow:
        """Replace metadata, provided the status is still the one read."""
        try:
            return self.store.update_workflow(
                workflow.id, metadata=metadata, expected_status=workflow.workflow_status
            )
        except WorkflowStatusConflictError as e:
            raise InvalidTransitionError(
                f"Workflow {workflow.id} is no longer {workflow.status}, metadata not saved"
            ) from e

    def _fail(self, workflow_id: str, step: WorkflowStep, error: str, **context: Any) -> None:
        """Record a failed step: FAILED status, failure metadata, error comment."""
        try:
            workflow = self.store.get_workflow(workflow_id)
        except WorkflowNotFoundError:
            logger.error("Workflow %s vanished while failing step %s", workflow_id, step)
            return

        metadata = FailureMetadata(error=error, step=step, **context)
        status = workflow.workflow_status
        if status != WorkflowStatus.FAILED and not can_transition(status, WorkflowStatus.FAILED):
            logger.error("Workflow %s in %s cannot be failed: %s", workflow.id, status, error)
            return
        try:
            self.store.update_workflow(
                workflow.id,
                status=WorkflowStatus.FAILED,
                metadata=metadata,
                expected_status=status,
            )
        except WorkflowStatusConflictError:
            logger.warning(
                "Workflow %s left %s before its %s failure was recorded: %s",
                workflow.id,
                status,
                step,
                error,
            )
            return

        logger.error("Workflow %s failed during %s: %s", workflow.id, step, error)
        self._post(workflow.task_id, comments.error_comment(step, error))
        self._notify(SESSION_ERROR, workflow, error=error)

    # --- Executor phases ---

    def _plan(self, workflow: Workflow, task: Task, description: str | None) -> ImplementationPlan:
        agent = AGENT_NAMES.get(workflow.ai_service, self.config.agent_name)
        stream = CommentStream(lambda body: self._post(task.id, body), agent)
        worktree = self.worktrees.create(self.repo_path, task.id)
        try:
            executor = self.executor_factory(
                workflow.ai_service, worktree.path, stream.on_text, stream.on_progress
            )
            try:
                result = executor.plan(CodingTask(task.id, task.title, description))
            finally:
                executor.close()
                stream.close()
        finally:
            worktree.cleanup()

        if not result.success or result.plan is None:
            raise StepFailedError(result.error or "Planning failed")
        if not result.plan.files:
            raise StepFailedError("Planning produced no files to modify.")
        logger.info(
            "Plan for task %s: %d files (%s)",
            task.id,
            len(result.plan.files),
            result.plan.estimated_complexity,
        )
        return result.plan

    def _implement(
        self,
        workflow: Workflow,
        task: Task,
        plan: ImplementationPlan,
        description: str | None,
        feedback: str | None = None,
    ) -> TestingMetadata:
        agent = AGENT_NAMES.get(workflow.ai_service, self.config.agent_name)
        stream = CommentStream(lambda body: self._post(task.id, body), agent)
        worktree = self.worktrees.create(self.repo_path, task.id)
        try:
            executor = self.executor_factory(
                workflow.ai_service, worktree.path, stream.on_text, stream.on_progress
            )
            try:
                result = executor.execute(
                    plan, CodingTask(task.id, task.title, description), feedback=feedback
                )
            finally:
                executor.close()
                stream.close()

            if not result.success:
                raise StepFailedError(result.error or "Execution failed")
            if not result.files:
                raise StepFailedError(
                    "Code generation produced no files. Try simplifying the task description."
                )

            self.worktrees.commit(worktree, result.commit_message)
            pr_url = self.worktrees.push(worktree, result.pr_title, result.pr_description)
            logger.info(
                "Task %s: %d files pushed on %s (PR: %s)",
                task.id,
                len(result.files),
                worktree.branch_name,
                pr_url,
            )
            return TestingMetadata(
                plan=plan.to_dict(),
                branch_name=worktree.branch_name,
                commit_message=result.commit_message,
                pr_url=pr_url,
                usage=result.usage.to_dict() if result.usage else None,
                revision_feedback=feedback,
            )
        finally:
            worktree.cleanup()

    # --- Workflow operations ---

    def create_workflow(self, task_id: str, ai_service: str | None = None) -> Workflow:
        """Create the task's workflow and announce the start.

        Raises:
            NotFoundError: If the task doesn't exist.
            WorkflowExistsError: If the task already has a workflow.
        """
        task = self._get_task(task_id)
        workflow = self.store.create_workflow(task.id, ai_service or self.config.default_ai_service)
        self._post(task.id, comments.starting_comment(task.title))
        self._notify(SESSION_STARTED, workflow, message=f"Working on: {task.title}")
        return workflow

    def start_workflow(self, task_id: str, ai_service: str | None = None) -> Workflow:
        """Create the workflow and run planning.

        Returns:
            The workflow after planning (AWAITING_APPROVAL or FAILED).
        """
        workflow = self.create_workflow(task_id, ai_service)
        self.run_planning(workflow.id)
        return self.store.get_workflow(workflow.id)

    def run_planning(self, workflow_id: str) -> None:
        """Run the planning phase of a PENDING workflow."""
        self._run_planning(workflow_id)

    def _run_planning(
        self,
        workflow_id: str,
        description: str | None = None,
        retry: RetryMetadata | None = None,
    ) -> None:
        workflow, task = self._load(workflow_id)
        try:
            plan = self._plan(workflow, task, description or task.description)
            self._transition(
                workflow,
                WorkflowStatus.AWAITING_APPROVAL,
                PlanMetadata(plan=plan.to_dict(), retried_with_feedback=retry is not None),
            )
            self._post(task.id, comments.plan_comment(plan))
            self._post(task.id, comments.awaiting_approval_comment(len(plan.files), retry is not None))
            self._notify(
                SESSION_WAITING,
                workflow,
                question="Approve the implementation plan?",
                files=[f.path for f in plan.files],
            )
        except InvalidTransitionError as e:
            logger.warning("Workflow %s changed state during planning: %s", workflow_id, e)
        except Exception as e:
            logger.exception("Planning failed for workflow %s", workflow_id)
            if retry is None:
                self._fail(workflow_id, WorkflowStep.PLANNING, str(e))
            else:
                self._fail(
                    workflow_id,
                    WorkflowStep.RETRY,
                    str(e),
                    user_feedback=retry.user_feedback,
                    previous_error=retry.previous_error,
                )

    def approve_plan(self, workflow_id: str, comment_id: str | None = None) -> None:
        """Implement the approved plan and push it for testing.

        Raises:
            NotFoundError: If the workflow or task doesn't exist.
            InvalidTransitionError: If the workflow is not awaiting approval.
        """
        workflow, task = self._load(workflow_id)
        if workflow.workflow_status != WorkflowStatus.AWAITING_APPROVAL:
            raise InvalidTransitionError(f"Workflow {workflow.id} is {workflow.status}, not awaiting approval")
        logger.info("Plan approved for workflow %s (comment %s)", workflow.id, comment_id)

        self._post(task.id, comments.approval_received_comment())
        try:
            meta = workflow.meta
            if not isinstance(meta, PlanMetadata):
                raise StepFailedError("No approved plan found in workflow metadata")
            plan = ImplementationPlan.from_dict(meta.plan)
            self._post(task.id, comments.implementing_comment(len(plan.files)))

            testing = self._implement(workflow, task, plan, task.description)
            self._transition(workflow, WorkflowStatus.TESTING, testing)
            self._post(
                task.id,
                comments.implementation_comment(testing.branch_name, testing.pr_url, len(plan.files)),
            )
            self._notify(
                SESSION_PROGRESS,
                workflow,
                message="Implementation pushed, ready for testing",
                pr_url=testing.pr_url,
            )
        except InvalidTransitionError as e:
            logger.warning("Workflow %s changed state during implementation: %s", workflow_id, e)
        except Exception as e:
            logger.exception("Implementation failed for workflow %s", workflow_id)
            self._fail(workflow_id, WorkflowStep.EXECUTION, str(e))

    def merge(self, workflow_id: str, comment_id: str | None = None, merged_by: str | None = None) -> None:
        """Complete the workflow on a merge decision and mark the task done.

        Raises:
            NotFoundError: If the workflow or task doesn't exist.
            InvalidTransitionError: If the workflow is not in testing or ready to merge.
        """
        workflow, task = self._load(workflow_id)
        if not can_transition(workflow.workflow_status, WorkflowStatus.COMPLETED):
            raise InvalidTransitionError(f"Workflow {workflow.id} is {workflow.status}, cannot merge")
        logger.info("Merge requested for workflow %s (comment %s)", workflow.id, comment_id)

        self._post(task.id, comments.shipping_comment())
        try:
            meta = workflow.meta
            pr_url = meta.pr_url if isinstance(meta, TestingMetadata) else None
            self._transition(
                workflow,
                WorkflowStatus.COMPLETED,
                CompletionMetadata(merged_by=merged_by or task.creator_id, pr_url=pr_url),
            )
            self.store.mark_task_completed(task.id)
            self._notify(SESSION_COMPLETED, workflow, summary="Changes shipped", pr_url=pr_url)
        except InvalidTransitionError as e:
            logger.warning("Workflow %s changed state during merge: %s", workflow_id, e)
        except Exception as e:
            logger.exception("Merge failed for workflow %s", workflow_id)
            self._fail(workflow_id, WorkflowStep.MERGE, str(e))

    @staticmethod
    def _revision_plan(meta: WorkflowMetadata, feedback: str) -> ImplementationPlan:
        if isinstance(meta, (PlanMetadata, TestingMetadata)):
            return ImplementationPlan.from_dict(meta.plan)
        # Still planning: the feedback is all there is to go on
        return ImplementationPlan(
            summary=feedback[:200], approach="Apply the requested changes.", files=[]
        )

    def request_changes(self, workflow_id: str, feedback: str, comment_id: str | None = None) -> None:
        """Re-run the execution phase with feedback, keeping the current status.

        The revision builds on the stored plan and lands on the task's
        branch. Awaiting approval, the plan stays up for approval and the
        pushed branch is recorded next to it. In testing or ready to merge,
        the new push replaces the testing metadata. A PENDING workflow keeps
        its metadata, which the running planning phase owns.

        Raises:
            NotFoundError: If the workflow or task doesn't exist.
            InvalidTransitionError: If the workflow is FAILED or COMPLETED.
        """
        workflow, task = self._load(workflow_id)
        status = workflow.workflow_status
        if status in (WorkflowStatus.FAILED, WorkflowStatus.COMPLETED):
            raise InvalidTransitionError(f"Workflow {workflow.id} is {status}, cannot change")

        logger.info("Change request for workflow %s (comment %s)", workflow.id, comment_id)
        self._post(task.id, comments.change_request_comment(extract_change_request(feedback) or feedback))
        description = comments.revision_description(task.description, feedback)
        try:
            meta = workflow.meta
            plan = self._revision_plan(meta, feedback)
            testing = self._implement(workflow, task, plan, description, feedback=feedback)
            if isinstance(meta, PlanMetadata):
                revised = meta.model_copy(
                    update={
                        "revision_feedback": feedback,
                        "branch_name": testing.branch_name,
                        "pr_url": testing.pr_url,
                    }
                )
                self._update_metadata(workflow, revised)
            elif isinstance(meta, TestingMetadata):
                self._update_metadata(workflow, testing)
            self._post(task.id, comments.changes_applied_comment(feedback, testing.pr_url))
            self._notify(
                SESSION_PROGRESS, workflow, message="Requested changes pushed", pr_url=testing.pr_url
            )
        except InvalidTransitionError as e:
            logger.warning("Workflow %s changed state during a change request: %s", workflow_id, e)
        except Exception as e:
            logger.exception("Change request failed for workflow %s", workflow_id)
            self._fail(workflow_id, WorkflowStep.CHANGES, str(e))

    def retry_with_feedback(self, workflow_id: str, comment_id: str | None, feedback: str) -> None:
        """Move a FAILED workflow back to PENDING and re-plan with the feedback.

        Raises:
            NotFoundError: If the workflow or task doesn't exist.
            InvalidTransitionError: If the workflow is not FAILED.
        """
        workflow, task = self._load(workflow_id)
        if workflow.workflow_status != WorkflowStatus.FAILED:
            raise InvalidTransitionError(f"Workflow {workflow.id} is {workflow.status}, not failed")

        meta = workflow.meta
        previous_error = meta.error if isinstance(meta, FailureMetadata) else "Unknown error"
        failed_step = meta.step if isinstance(meta, FailureMetadata) else "unknown"
        logger.info(
            "Retrying workflow %s after %s failure: %s", workflow.id, failed_step, previous_error[:100]
        )

        self._post(task.id, comments.retry_comment(feedback))
        retry = RetryMetadata(
            previous_error=previous_error,
            failed_step=failed_step,
            user_feedback=feedback,
            retry_comment_id=comment_id,
        )
        self._transition(workflow, WorkflowStatus.PENDING, retry)
        self._run_planning(
            workflow.id,
            description=comments.retry_description(task.description, previous_error, feedback),
            retry=retry,
        )

    def record_checks_status(self, task_id: str) -> CIStatus | None:
        """Poll CI for the workflow's branch and record the result.

        Green checks move a TESTING workflow to READY_TO_MERGE.

        Returns:
            The CI status, or None when it could not be determined.

        Raises:
            NotFoundError: If the task has no workflow.
        """
        workflow = self.store.get_workflow_by_task(task_id)
        if workflow is None:
            raise NotFoundError(f"No workflow for task '{task_id}'")
        meta = workflow.meta
        if not isinstance(meta, TestingMetadata):
            logger.info("Workflow %s has no pushed branch yet", workflow.id)
            return None
        if self.github is None:
            logger.warning("No GitHub client configured; cannot read checks for %s", meta.branch_name)
            return None

        try:
            status = self.github.get_branch_ci_status(meta.branch_name)
        except (httpx.HTTPError, PRError) as e:
            logger.warning("Failed to read checks for %s: %s", meta.branch_name, e)
            return None

        meta.github_actions_status = status.value
        if status == CIStatus.SUCCESS and workflow.workflow_status == WorkflowStatus.TESTING:
            self._transition(workflow, WorkflowStatus.READY_TO_MERGE, meta)
            self._post(task_id, comments.checks_passed_comment())
        else:
            self._update_metadata(workflow, meta)
        return status

    def handle_remote_callback(self, payload: CallbackPayload) -> None:
        """Turn a verified callback from a remote executor into comments.

        ``session.error`` also fails the task's workflow.

        Raises:
            NotFoundError: If the task doesn't exist.
        """
        task = self._get_task(payload.task_id)
        data = payload.data
        logger.info("Remote %s for task %s (session %s)", payload.event, task.id, payload.session_id)

        match payload.event:
            case "session.started":
                body = comments.remote_started_comment(payload.session_id, data)
            case "session.completed":
                body = comments.remote_completed_comment(data)
            case "session.waiting_input":
                body = comments.remote_waiting_comment(data)
            case "session.progress":
                if data is None or not data.message:
                    return
                body = comments.remote_progress_comment(data)
            case "session.error":
                body = comments.remote_error_comment(data)
        self._post(task.id, body)

        if payload.event == "session.error":
            workflow = self.store.get_workflow_by_task(task.id)
            if workflow is not None and can_transition(workflow.workflow_status, WorkflowStatus.FAILED):
                error = (data.error if data else None) or "Remote session error"
                try:
                    self._transition(
                        workflow,
                        WorkflowStatus.FAILED,
                        FailureMetadata(error=error, step=WorkflowStep.REMOTE),
                    )
                except InvalidTransitionError as e:
                    logger.warning("Remote error for task %s not recorded: %s", task.id, e)

    # --- Comment intake ---

    def _authorize(self, task: Task, author_id: str) -> None:
        if author_id != task.creator_id:
            raise AuthorizationError(f"User {author_id} is not the creator of task {task.id}")

    def handle_comment(self, comment: Comment) -> None:
        """Entry point for every new comment on a task.

        Only the task creator's comments act on a workflow; others are
        ignored silently. Errors are logged, never raised.
        """
        try:
            workflow = self.store.get_workflow_by_task(comment.task_id)
            if workflow is None:
                self._backfill(comment)
                return

            task = self._get_task(workflow.task_id)
            try:
                self._authorize(task, comment.author_id)
            except AuthorizationError as e:
                logger.debug("Ignoring comment %s: %s", comment.id, e)
                return

            status = workflow.workflow_status
            if status == WorkflowStatus.FAILED:
                # Any creator reply on a failed workflow is retry feedback
                action = CommentAction(ActionType.RETRY, 1.0, feedback=comment.content)
            else:
                action = self.classify(comment.content)
            if not is_actionable(action):
                logger.debug("Comment %s is not actionable (%s)", comment.id, action)
                return
            logger.info(
                "Detected %s (confidence %.2f) on workflow %s in %s",
                action.type,
                action.confidence,
                workflow.id,
                status,
            )

            if action.type == ActionType.RETRY:
                self.retry_with_feedback(workflow.id, comment.id, action.feedback or comment.content)
            elif action.type == ActionType.APPROVE and status == WorkflowStatus.AWAITING_APPROVAL:
                self.approve_plan(workflow.id, comment.id)
            elif action.type == ActionType.MERGE and status in (
                WorkflowStatus.TESTING,
                WorkflowStatus.READY_TO_MERGE,
            ):
                self.merge(workflow.id, comment.id, merged_by=comment.author_id)
            elif action.type == ActionType.CHANGES_REQUESTED and status != WorkflowStatus.COMPLETED:
                self.request_changes(workflow.id, action.feedback or comment.content, comment.id)
            else:
                logger.info("Action %s not applicable for status %s", action.type, status)
        except (NotFoundError, InvalidTransitionError) as e:
            logger.error("Comment %s not processed: %s", comment.id, e)

    def _backfill(self, comment: Comment) -> None:
        """Recover tasks that failed before workflow rows existed."""
        task = self._get_task(comment.task_id)
        ai_service = self._agent_service(task.assignee_id)
        if ai_service is None or comment.author_id != task.creator_id:
            return

        recent = self.store.list_comments(task.id, limit=RECENT_COMMENTS)
        if not any(marker in c.content for c in recent for marker in comments.FAILURE_MARKERS):
            return

        logger.info("Task %s has failure markers but no workflow; creating one for retry", task.id)
        try:
            workflow = self.store.create_workflow(
                task.id,
                ai_service,
                status=WorkflowStatus.FAILED,
                metadata=FailureMetadata(
                    error=BACKFILL_ERROR, step="unknown", created_for_retry=True
                ),
            )
        except WorkflowExistsError:
            existing = self.store.get_workflow_by_task(task.id)
            if existing is None:
                raise
            workflow = existing
        self.retry_with_feedback(workflow.id, comment.id, comment.content)
