"""Fixtures for notification tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio

from notifier.database import get_transaction
from notifier.queries.messages import create_message
from notifier.timezone import Clock


@pytest.fixture
def clock():
    return Clock("Africa/Cairo")


@pytest.fixture
def make_message(sqlite_db):
    """Factory that stores a pending message and returns the record."""

    async def _make(
        event_id: str = "evt-1",
        content: str = "See you there",
        scheduled_at: datetime | None = None,
    ) -> dict:
        if scheduled_at is None:
            scheduled_at = datetime.now(timezone.utc) + timedelta(hours=1)
        async with get_transaction() as conn:
            return await create_message(conn, content, event_id, scheduled_at)

    return _make


@pytest.fixture
def mock_send_email():
    """Patch the email channel as seen by the dispatcher; every send succeeds."""
    with patch(
        "notifier.notifications.dispatcher.send_email",
        MagicMock(return_value=True),
    ) as mock_send:
        yield mock_send


@pytest_asyncio.fixture
async def scheduler(clock):
    """A started in-memory MessageScheduler, shut down after the test."""
    from notifier.notifications.scheduler import MessageScheduler

    message_scheduler = MessageScheduler(clock)
    message_scheduler.start()
    yield message_scheduler
    message_scheduler.shutdown()
