"""Tests for /tasks: CRUD responses, id validation, audit events published per mutation."""

import json

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_task_returns_201(async_client: AsyncClient):
    r = await async_client.post("/tasks", json={"title": "Write report", "priority": "high"})
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["id"] == 1
    assert body["data"]["title"] == "Write report"
    assert body["data"]["status"] == "pending"
    assert body["data"]["priority"] == "high"


@pytest.mark.asyncio
async def test_create_task_validation_error(async_client: AsyncClient):
    r = await async_client.post("/tasks", json={"title": ""})
    assert r.status_code == 400
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_list_and_get_tasks(async_client: AsyncClient):
    await async_client.post("/tasks", json={"title": "One"})
    await async_client.post("/tasks", json={"title": "Two"})

    r = await async_client.get("/tasks")
    assert r.status_code == 200
    assert r.json()["total"] == 2

    r = await async_client.get("/tasks/2")
    assert r.json()["data"]["title"] == "Two"


@pytest.mark.asyncio
async def test_get_missing_task_returns_404(async_client: AsyncClient):
    r = await async_client.get("/tasks/99")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Task not found"}


@pytest.mark.asyncio
@pytest.mark.parametrize("task_id", ["0", "abc", "-1"])
async def test_invalid_task_id_returns_400(async_client: AsyncClient, task_id):
    r = await async_client.get(f"/tasks/{task_id}")
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid task ID"}


@pytest.mark.asyncio
async def test_update_and_delete(async_client: AsyncClient):
    await async_client.post("/tasks", json={"title": "Ship"})

    r = await async_client.put("/tasks/1", json={"status": "completed"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "completed"

    r = await async_client.delete("/tasks/1")
    assert r.status_code == 200
    assert r.json()["message"] == "Task deleted successfully"
    assert r.json()["data"]["title"] == "Ship"

    r = await async_client.get("/tasks/1")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_mutation_succeeds_with_broker_down(async_client: AsyncClient, broker, pipeline):
    """No broker: the task is still created and nothing is queued."""
    r = await async_client.post("/tasks", json={"title": "Offline"})
    assert r.status_code == 201
    assert broker.queues == {}
    assert pipeline.metrics.get("audit_publish_dropped") == 1


@pytest.mark.asyncio
async def test_update_publishes_old_and_new_snapshots(async_client: AsyncClient, broker, pipeline):
    await pipeline.connection.connect()
    await async_client.post("/tasks", json={"title": "Report"})
    await async_client.put("/tasks/1", json={"status": "completed"})
    await pipeline.publisher.close(timeout=1)

    published = broker.exchanges["task-events"].published
    assert [key for _, key in published] == ["task.create", "task.update"]
    update = json.loads(published[1][0].body)
    assert update["taskId"] == 1
    assert update["oldData"]["status"] == "pending"
    assert update["newData"]["status"] == "completed"
