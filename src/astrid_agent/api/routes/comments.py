"""Comment endpoints."""

from fastapi import APIRouter, BackgroundTasks, Query, status

from astrid_agent.api.dependencies import OrchestratorDep, StateStoreDep
from astrid_agent.api.models import (
    APIResponse,
    CommentCreate,
    CommentResponse,
    comment_to_response,
)

router = APIRouter(prefix="/tasks/{task_id}/comments", tags=["comments"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=APIResponse[CommentResponse],
)
def add_comment(
    task_id: str,
    body: CommentCreate,
    background_tasks: BackgroundTasks,
    store: StateStoreDep,
    orchestrator: OrchestratorDep,
) -> APIResponse[CommentResponse]:
    """Record a comment and let the orchestrator act on it after responding."""
    comment = store.create_comment(task_id, body.author_id, body.content)
    background_tasks.add_task(orchestrator.handle_comment, comment)
    return APIResponse(data=comment_to_response(comment))


@router.get("", response_model=APIResponse[list[CommentResponse]])
def list_comments(
    task_id: str,
    store: StateStoreDep,
    limit: int = Query(default=20, ge=1, le=100, description="Most recent comments to return"),
) -> APIResponse[list[CommentResponse]]:
    """List a task's comments, newest first."""
    store.get_task(task_id)
    return APIResponse(data=[comment_to_response(c) for c in store.list_comments(task_id, limit)])
