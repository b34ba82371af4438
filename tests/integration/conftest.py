"""Integration test fixtures for FieldNotes.

Provides an async HTTP client that uses an in-memory SQLite database and a
temporary uploads directory with the real repository and file store.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.services.storage import database


@pytest.fixture
def app(uploads_dir):
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture
async def async_client(app, db_engine):
    """AsyncClient backed by the in-memory test engine.

    Injects the test engine into the database module so that all routes
    use the same in-memory SQLite with tables already created.
    """
    database._engine = db_engine
    database._session_factory = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    database.reset_engine()


@pytest.fixture
async def exercise(async_client):
    """Create project -> persona -> exercise via the API and return the exercise."""
    resp = await async_client.post("/api/v1/projects", json={"name": "Onboarding study"})
    project = resp.json()
    resp = await async_client.post(
        "/api/v1/personas",
        json={"project_id": project["id"], "name": "New admin", "characteristics": "busy"},
    )
    persona = resp.json()
    resp = await async_client.post(
        "/api/v1/exercises",
        json={"persona_id": persona["id"], "name": "First-run walkthrough", "type": "Usability Test"},
    )
    body = resp.json()
    body["project_id"] = project["id"]
    return body
