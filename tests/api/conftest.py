"""Fixtures for API tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from dealflow.api import deals
from dealflow.core.database import get_db
from dealflow.main import app
from dealflow.services.runtime import build_runtime


@pytest.fixture
def test_engine(file_engine):
    """Status changes start background workflows, so use separate connections."""
    return file_engine


@pytest.fixture
def runtime(session_provider):
    """Workflow runtime wired to the test database."""
    return build_runtime(session_provider, action_timeout=5.0, status_notifications=False)


@pytest.fixture
async def client(session_provider, runtime):
    """Async client for the app with the database and emitter overridden."""
    deals.init_deals_api(runtime.emitter)

    async def get_test_db():
        async with session_provider() as session:
            yield session

    app.dependency_overrides[get_db] = get_test_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await runtime.drain()
    # Clean up
    app.dependency_overrides = {}
    deals.init_deals_api(None)
