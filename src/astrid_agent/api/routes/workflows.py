"""Workflow endpoints."""

from fastapi import APIRouter, BackgroundTasks, status

from astrid_agent.api.dependencies import OrchestratorDep, StateStoreDep
from astrid_agent.api.models import (
    APIResponse,
    ChecksResponse,
    WorkflowResponse,
    WorkflowStart,
    workflow_to_response,
)
from astrid_agent.state_store import WorkflowNotFoundError

router = APIRouter(prefix="/tasks/{task_id}/workflow", tags=["workflows"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=APIResponse[WorkflowResponse],
)
def start_workflow(
    task_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: OrchestratorDep,
    body: WorkflowStart | None = None,
) -> APIResponse[WorkflowResponse]:
    """Create the task's workflow and plan in the background."""
    workflow = orchestrator.create_workflow(task_id, body.ai_service if body else None)
    background_tasks.add_task(orchestrator.run_planning, workflow.id)
    return APIResponse(data=workflow_to_response(workflow))


@router.get("", response_model=APIResponse[WorkflowResponse])
def get_workflow(task_id: str, store: StateStoreDep) -> APIResponse[WorkflowResponse]:
    """Get the task's workflow."""
    # Verify task exists (will raise TaskNotFoundError if not)
    store.get_task(task_id)

    workflow = store.get_workflow_by_task(task_id)
    if workflow is None:
        raise WorkflowNotFoundError(f"No workflow for task '{task_id}'")
    return APIResponse(data=workflow_to_response(workflow))


@router.post("/checks", response_model=APIResponse[ChecksResponse])
def poll_checks(
    task_id: str, store: StateStoreDep, orchestrator: OrchestratorDep
) -> APIResponse[ChecksResponse]:
    """Read CI status for the workflow's branch; green checks mark it ready to merge."""
    ci_status = orchestrator.record_checks_status(task_id)
    workflow = store.get_workflow_by_task(task_id)
    return APIResponse(
        data=ChecksResponse(
            ci_status=ci_status.value if ci_status else None,
            workflow_status=workflow.status if workflow else "unknown",
        )
    )
