"""StateStore - the task, comment and workflow API the engine consumes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from astrid_agent.state_store.database import Database
from astrid_agent.state_store.exceptions import (
    TaskNotFoundError,
    WorkflowExistsError,
    WorkflowNotFoundError,
    WorkflowStatusConflictError,
)
from astrid_agent.state_store.models import Comment, Task, Workflow, WorkflowStatus

if TYPE_CHECKING:
    from astrid_agent.state_store.metadata import WorkflowMetadata

logger = logging.getLogger("astrid_agent.state_store")


class StateStore:
    """CRUD operations for Tasks, Comments and Workflows.

    Returned rows are detached from their session, so callers can read them
    freely but must go through the store to change them.
    """

    def __init__(self, db_path: str = "astrid_agent.db") -> None:
        """Initialize the store, creating tables if needed.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db = Database(db_path)
        self._db.create_tables()

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    # --- Task Operations ---

    def create_task(
        self,
        title: str,
        creator_id: str,
        description: str | None = None,
        assignee_id: str | None = None,
        list_description: str | None = None,
        task_id: str | None = None,
    ) -> Task:
        """Create a task.

        Args:
            title: Short task title.
            creator_id: User who created the task; the only user whose
                comments can drive its workflow.
            description: Full task description.
            assignee_id: Assigned user or agent id.
            list_description: Description of the list the task belongs to.
            task_id: Explicit id (generated when omitted).

        Returns:
            The created Task.
        """
        task = Task(
            id=task_id,
            title=title,
            creator_id=creator_id,
            description=description,
            assignee_id=assignee_id,
            list_description=list_description,
        )
        with self._db.session() as session:
            session.add(task)
            session.flush()
            session.refresh(task)
        return task

    def get_task(self, task_id: str) -> Task:
        """Get task by ID.

        Raises:
            TaskNotFoundError: If the task doesn't exist.
        """
        with self._db.session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise TaskNotFoundError(f"Task with id '{task_id}' not found")
            return task

    def mark_task_completed(self, task_id: str) -> Task:
        """Set ``completed`` on a task.

        Raises:
            TaskNotFoundError: If the task doesn't exist.
        """
        with self._db.session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise TaskNotFoundError(f"Task with id '{task_id}' not found")
            task.completed = True
            return task

    # --- Comment Operations ---

    def create_comment(self, task_id: str, author_id: str, content: str) -> Comment:
        """Add a comment to a task.

        Raises:
            TaskNotFoundError: If the task doesn't exist.
        """
        with self._db.session() as session:
            if session.get(Task, task_id) is None:
                raise TaskNotFoundError(f"Task with id '{task_id}' not found")
            comment = Comment(task_id=task_id, author_id=author_id, content=content)
            session.add(comment)
            session.flush()
            session.refresh(comment)
        logger.debug("Comment %s added to task %s by %s", comment.id, task_id, author_id)
        return comment

    def list_comments(self, task_id: str, limit: int = 20) -> list[Comment]:
        """List a task's most recent comments, newest first."""
        with self._db.session() as session:
            stmt = (
                select(Comment)
                .where(Comment.task_id == task_id)
                .order_by(Comment.created_at.desc())
                .limit(limit)
            )
            return list(session.execute(stmt).scalars().all())

    # --- Workflow Operations ---

    def create_workflow(
        self,
        task_id: str,
        ai_service: str,
        status: WorkflowStatus = WorkflowStatus.PENDING,
        metadata: WorkflowMetadata | None = None,
    ) -> Workflow:
        """Create the workflow for a task.

        The UNIQUE constraint on ``task_id`` makes this the atomic
        find-or-fail: two concurrent starts for one task cannot both succeed.

        Raises:
            TaskNotFoundError: If the task doesn't exist.
            WorkflowExistsError: If the task already has a workflow.
        """
        workflow = Workflow(
            task_id=task_id,
            ai_service=ai_service,
            status=status.value,
            metadata_json=metadata.to_json() if metadata is not None else {},
        )
        try:
            with self._db.session() as session:
                if session.get(Task, task_id) is None:
                    raise TaskNotFoundError(f"Task with id '{task_id}' not found")
                session.add(workflow)
                session.flush()
                session.refresh(workflow)
        except IntegrityError as e:
            if "UNIQUE constraint failed" in str(e) or "workflows.task_id" in str(e):
                raise WorkflowExistsError(f"Workflow for task '{task_id}' already exists") from e
            raise
        logger.info("Workflow %s created for task %s (%s)", workflow.id, task_id, ai_service)
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow:
        """Get workflow by ID.

        Raises:
            WorkflowNotFoundError: If the workflow doesn't exist.
        """
        with self._db.session() as session:
            workflow = session.get(Workflow, workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(f"Workflow with id '{workflow_id}' not found")
            return workflow

    def get_workflow_by_task(self, task_id: str) -> Workflow | None:
        """Get the workflow for a task, or None if there is none yet."""
        with self._db.session() as session:
            stmt = select(Workflow).where(Workflow.task_id == task_id)
            return session.execute(stmt).scalar_one_or_none()

    def update_workflow(
        self,
        workflow_id: str,
        status: WorkflowStatus | None = None,
        metadata: WorkflowMetadata | None = None,
        deployment_url: str | None = None,
        expected_status: WorkflowStatus | None = None,
    ) -> Workflow:
        """Update workflow fields. Only provided fields are updated.

        Transition rules are enforced by the orchestrator, not here. With
        ``expected_status`` the write is a single conditional UPDATE, so a
        caller holding a stale row cannot overwrite a status another step
        has since written.

        Args:
            workflow_id: Workflow to update.
            status: New status.
            metadata: New metadata, replacing the stored value.
            deployment_url: New deployment URL.
            expected_status: Status the stored row must still have.

        Raises:
            WorkflowNotFoundError: If the workflow doesn't exist.
            WorkflowStatusConflictError: If the stored status is no longer
                ``expected_status``.
        """
        values: dict[Any, Any] = {}
        if status is not None:
            values[Workflow.status] = status.value
        if metadata is not None:
            values[Workflow.metadata_json] = metadata.to_json()
        if deployment_url is not None:
            values[Workflow.deployment_url] = deployment_url

        with self._db.session() as session:
            matched = False
            if values:
                stmt = update(Workflow).where(Workflow.id == workflow_id)
                if expected_status is not None:
                    stmt = stmt.where(Workflow.status == expected_status.value)
                result = session.execute(
                    stmt.values(values).execution_options(synchronize_session=False)
                )
                matched = result.rowcount > 0

            workflow = session.get(Workflow, workflow_id, populate_existing=True)
            if workflow is None:
                raise WorkflowNotFoundError(f"Workflow with id '{workflow_id}' not found")
            conflict = not matched if values else (
                expected_status is not None and workflow.status != expected_status.value
            )
            if conflict:
                raise WorkflowStatusConflictError(
                    f"Workflow '{workflow_id}' is {workflow.status}, expected {expected_status}"
                )
            return workflow
