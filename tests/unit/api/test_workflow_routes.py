"""Unit tests for workflow routes."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from astrid_agent.state_store import StateStore, Task
from astrid_agent.worktree import CIStatus


@pytest.mark.unit
class TestStartWorkflow:
    """Tests for POST /tasks/{task_id}/workflow."""

    def test_start_returns_pending_then_plans(
        self, client: TestClient, task: Task, executor: MagicMock
    ) -> None:
        """The response is sent before planning; planning runs in the background."""
        response = client.post(f"/api/v1/tasks/{task.id}/workflow")

        assert response.status_code == 201
        data = response.json()
        assert data["error"] is None
        assert data["data"]["task_id"] == task.id
        assert data["data"]["status"] == "pending"
        assert data["data"]["ai_service"] == "claude"

        executor.plan.assert_called_once()
        current = client.get(f"/api/v1/tasks/{task.id}/workflow").json()["data"]
        assert current["status"] == "awaiting_approval"
        assert current["metadata"]["kind"] == "plan"

    def test_start_with_service(self, client: TestClient, task: Task) -> None:
        response = client.post(f"/api/v1/tasks/{task.id}/workflow", json={"ai_service": "gemini"})

        assert response.status_code == 201
        assert response.json()["data"]["ai_service"] == "gemini"

    def test_unknown_service_rejected(self, client: TestClient, task: Task) -> None:
        response = client.post(f"/api/v1/tasks/{task.id}/workflow", json={"ai_service": "gpt"})

        assert response.status_code == 422

    def test_second_start_conflicts(self, client: TestClient, task: Task) -> None:
        client.post(f"/api/v1/tasks/{task.id}/workflow")

        response = client.post(f"/api/v1/tasks/{task.id}/workflow")

        assert response.status_code == 409
        assert response.json()["error"] == "Workflow already exists for this task"

    def test_unknown_task(self, client: TestClient) -> None:
        response = client.post("/api/v1/tasks/missing/workflow")

        assert response.status_code == 404
        assert response.json()["data"] is None


@pytest.mark.unit
class TestGetWorkflow:
    """Tests for GET /tasks/{task_id}/workflow."""

    def test_no_workflow(self, client: TestClient, task: Task) -> None:
        response = client.get(f"/api/v1/tasks/{task.id}/workflow")

        assert response.status_code == 404
        assert response.json()["error"] == "Workflow not found"

    def test_unknown_task(self, client: TestClient) -> None:
        response = client.get("/api/v1/tasks/missing/workflow")

        assert response.status_code == 404
        assert response.json()["error"] == "Task not found"


@pytest.mark.unit
class TestPollChecks:
    """Tests for POST /tasks/{task_id}/workflow/checks."""

    def test_green_checks(
        self, client: TestClient, store: StateStore, task: Task, github: MagicMock
    ) -> None:
        client.post(f"/api/v1/tasks/{task.id}/workflow")
        client.post(f"/api/v1/tasks/{task.id}/comments", json={"author_id": "user-1", "content": "lgtm"})
        github.get_branch_ci_status.return_value = CIStatus.SUCCESS

        response = client.post(f"/api/v1/tasks/{task.id}/workflow/checks")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "ci_status": "success",
            "workflow_status": "ready_to_merge",
        }

    def test_no_workflow(self, client: TestClient, task: Task) -> None:
        response = client.post(f"/api/v1/tasks/{task.id}/workflow/checks")

        assert response.status_code == 404
