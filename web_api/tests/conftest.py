# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Route tests run against the real FastAPI app with authentication and the
notification services replaced through dependency overrides. The lifespan
is not run (TestClient is not used as a context manager), so no database
or mail relay is needed; core functions are patched per test.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from core.models import Caller
from main import app
from web_api.auth import get_current_user
from web_api.deps import get_dispatcher, get_reminder_scheduler, get_transport


@pytest.fixture(autouse=True)
def _jwt_secret():
    """Ensure JWT_SECRET is set so tokens can be created and verified."""
    with patch("web_api.auth.JWT_SECRET", "test-secret"):
        yield


@pytest.fixture
def auth_user():
    """The authenticated caller."""
    return Caller(id="u-1", name="Olivia", email="olivia@example.com")


@pytest.fixture
def mock_dispatcher():
    return MagicMock()


@pytest.fixture
def mock_transport():
    transport = MagicMock()
    transport.probe = AsyncMock()
    transport.send = AsyncMock()
    return transport


@pytest.fixture
def mock_reminder_scheduler():
    reminder_scheduler = MagicMock()
    reminder_scheduler.run_reminder_sweep = AsyncMock()
    return reminder_scheduler


@pytest.fixture
def client(auth_user, mock_dispatcher, mock_transport, mock_reminder_scheduler):
    """Create a test client with auth and services overridden."""

    async def override_get_current_user():
        return auth_user

    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher
    app.dependency_overrides[get_transport] = lambda: mock_transport
    app.dependency_overrides[get_reminder_scheduler] = lambda: mock_reminder_scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(mock_dispatcher):
    """A test client with real authentication."""
    app.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()
