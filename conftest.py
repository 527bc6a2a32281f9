"""Root pytest configuration."""

from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest_asyncio.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """
    Point the notifier at a fresh SQLite database with the schema created.

    The engine singleton is disposed before and after so every test gets
    its own database bound to its own event loop.
    """
    from notifier.database import close_engine, create_schema

    await close_engine()
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'notifier.db'}")
    await create_schema()
    yield
    await close_engine()


@pytest.fixture
def seed_event(sqlite_db):
    """Factory that inserts an event with the given participant addresses."""
    from sqlalchemy import insert

    from notifier.database import get_transaction
    from notifier.tables import event_participants, events

    async def _seed(event_id: str, emails: list[str | None] = ()) -> None:
        async with get_transaction() as conn:
            await conn.execute(
                insert(events).values(event_id=event_id, title=event_id, message_ids=[])
            )
            for email in emails:
                await conn.execute(
                    insert(event_participants).values(event_id=event_id, email=email)
                )

    return _seed
