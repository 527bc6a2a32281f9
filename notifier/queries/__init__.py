"""Query layer for database operations using SQLAlchemy Core."""

from .events import append_message_id, get_event, get_participant_emails
from .messages import (
    create_message,
    delete_message,
    find_unsent,
    get_message,
    mark_failed,
    mark_sent,
    reschedule_message,
)

__all__ = [
    # Messages
    "create_message",
    "get_message",
    "find_unsent",
    "mark_sent",
    "mark_failed",
    "reschedule_message",
    "delete_message",
    # Events
    "get_event",
    "get_participant_emails",
    "append_message_id",
]
