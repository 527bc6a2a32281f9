"""Message store: scheduled message records and their send status."""

import functools
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import MessageStatus
from ..exceptions import MessageNotFoundError, StoreError, ValidationError
from ..tables import messages

_DATETIME_FIELDS = ("scheduled_at", "last_attempt_at", "sent_at", "created_at")


def _store_errors(func):
    """Re-raise database failures as StoreError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            raise StoreError(f"{func.__name__} failed: {e}") from e

    return wrapper


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        # SQLite hands back naive values; they were written as UTC
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_message(row) -> dict[str, Any]:
    message = dict(row)
    for field in _DATETIME_FIELDS:
        if message.get(field) is not None:
            message[field] = _as_utc(message[field])
    message["status"] = MessageStatus(message["status"])
    return message


@_store_errors
async def create_message(
    conn: AsyncConnection,
    content: str,
    event_id: str,
    scheduled_at: datetime,
    original_date: str | None = None,
    timezone_name: str | None = None,
) -> dict[str, Any]:
    """Persist a new pending message and return the created record."""
    values = {
        "message_id": uuid.uuid4().hex,
        "event_id": event_id,
        "content": content,
        "scheduled_at": _as_utc(scheduled_at),
        "original_date": original_date,
        "timezone": timezone_name,
        "status": MessageStatus.pending,
        "attempts": 0,
        "created_at": datetime.now(timezone.utc),
    }
    result = await conn.execute(insert(messages).values(**values).returning(messages))
    return _to_message(result.mappings().first())


@_store_errors
async def get_message(conn: AsyncConnection, message_id: str) -> dict[str, Any]:
    """Get a message by ID. Raises MessageNotFoundError if absent."""
    result = await conn.execute(
        select(messages).where(messages.c.message_id == message_id)
    )
    row = result.mappings().first()
    if not row:
        raise MessageNotFoundError(f"Message {message_id} not found")
    return _to_message(row)


@_store_errors
async def find_unsent(conn: AsyncConnection) -> list[dict[str, Any]]:
    """All messages not yet sent (pending or failed), oldest fire time first."""
    result = await conn.execute(
        select(messages)
        .where(messages.c.status != MessageStatus.sent)
        .order_by(messages.c.scheduled_at)
    )
    return [_to_message(row) for row in result.mappings()]


@_store_errors
async def mark_sent(
    conn: AsyncConnection,
    message_id: str,
    sent_at: datetime,
    recipients: Sequence[str],
    failed_recipients: Sequence[str] = (),
) -> dict[str, Any]:
    """Record a completed send along with the audit snapshot of recipients."""
    result = await conn.execute(
        update(messages)
        .where(messages.c.message_id == message_id)
        .values(
            status=MessageStatus.sent,
            sent_at=_as_utc(sent_at),
            last_attempt_at=_as_utc(sent_at),
            attempts=messages.c.attempts + 1,
            last_error=None,
            recipients=list(recipients),
            recipient_count=len(recipients),
            failed_recipients=list(failed_recipients),
        )
        .returning(messages)
    )
    row = result.mappings().first()
    if not row:
        raise MessageNotFoundError(f"Message {message_id} not found")
    return _to_message(row)


@_store_errors
async def mark_failed(
    conn: AsyncConnection,
    message_id: str,
    error: str,
    attempt_at: datetime,
) -> dict[str, Any]:
    """
    Record a failed attempt.

    A message that is already sent keeps its status; the sent record is
    returned unchanged.
    """
    result = await conn.execute(
        update(messages)
        .where(messages.c.message_id == message_id)
        .where(messages.c.status != MessageStatus.sent)
        .values(
            status=MessageStatus.failed,
            last_error=error,
            last_attempt_at=_as_utc(attempt_at),
            attempts=messages.c.attempts + 1,
        )
        .returning(messages)
    )
    row = result.mappings().first()
    if row:
        return _to_message(row)
    return await get_message(conn, message_id)


@_store_errors
async def reschedule_message(
    conn: AsyncConnection,
    message_id: str,
    scheduled_at: datetime,
) -> dict[str, Any]:
    """Move an unsent message to a new fire time."""
    message = await get_message(conn, message_id)
    if message["status"] == MessageStatus.sent:
        raise ValidationError(
            f"Message {message_id} was already sent", reason="already_sent"
        )

    result = await conn.execute(
        update(messages)
        .where(messages.c.message_id == message_id)
        .values(scheduled_at=_as_utc(scheduled_at))
        .returning(messages)
    )
    return _to_message(result.mappings().first())


@_store_errors
async def delete_message(conn: AsyncConnection, message_id: str) -> bool:
    """Delete a message record. Returns False if it did not exist."""
    result = await conn.execute(
        delete(messages).where(messages.c.message_id == message_id)
    )
    return result.rowcount > 0
