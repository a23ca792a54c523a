"""Fixtures for API unit tests: pipeline over the in-memory broker, in-memory task store, AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app


@pytest.fixture
def app_with_overrides(pipeline, task_repository):
    """App with the audit pipeline and task repository overridden; the lifespan is not run."""
    from app.api import dependencies

    app.dependency_overrides[dependencies.get_audit_pipeline] = lambda: pipeline
    app.dependency_overrides[dependencies.get_task_repository] = lambda: task_repository
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_overrides):
    """Async HTTP client for testing; uses overridden app."""
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
