"""Event and participant queries used by the notifier."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from ..exceptions import EventNotFoundError, StoreError
from ..tables import event_participants, events


async def get_event(conn: AsyncConnection, event_id: str) -> dict[str, Any] | None:
    """Get an event by ID."""
    try:
        result = await conn.execute(select(events).where(events.c.event_id == event_id))
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load event {event_id}: {e}") from e
    row = result.mappings().first()
    return dict(row) if row else None


async def get_participant_emails(conn: AsyncConnection, event_id: str) -> list[str]:
    """Contact addresses of the event's current participants, in join order."""
    try:
        result = await conn.execute(
            select(event_participants.c.email)
            .where(event_participants.c.event_id == event_id)
            .order_by(event_participants.c.participant_id)
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load participants for {event_id}: {e}") from e
    return [row["email"] for row in result.mappings() if row["email"]]


async def append_message_id(
    conn: AsyncConnection,
    event_id: str,
    message_id: str,
) -> list[str]:
    """
    Link a message to its event.

    Idempotent: an ID already present is not added twice.

    Returns:
        The event's message IDs after the append
    """
    event = await get_event(conn, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    message_ids = list(event.get("message_ids") or [])
    if message_id in message_ids:
        return message_ids

    message_ids.append(message_id)
    try:
        await conn.execute(
            update(events)
            .where(events.c.event_id == event_id)
            .values(message_ids=message_ids, updated_at=datetime.now(timezone.utc))
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to update event {event_id}: {e}") from e
    return message_ids
