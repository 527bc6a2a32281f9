# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Routes get a mocked NotificationService through dependency overrides, so
these tests need neither a database nor a running scheduler.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from notifier.timezone import Clock


@pytest.fixture
def mock_service():
    service = MagicMock()
    service.clock = Clock("Africa/Cairo")
    service.schedule_event = AsyncMock()
    service.reschedule_message = AsyncMock()
    service.delete_message = AsyncMock()
    service.get_message = AsyncMock()
    return service


@pytest.fixture
def client(mock_service):
    """Test client whose routes talk to mock_service."""
    from main import app
    from web_api.routes.events import get_service

    app.dependency_overrides[get_service] = lambda: mock_service
    yield TestClient(app)
    app.dependency_overrides.clear()
