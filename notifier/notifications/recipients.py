"""
Recipient resolution for scheduled messages.

Recipients are looked up when a message is dispatched, not when it is
scheduled, so participants who join before the fire time are included.
"""

from notifier.database import get_connection
from notifier.exceptions import EventNotFoundError, NoRecipientsError
from notifier.queries.events import get_event, get_participant_emails


async def resolve_recipients(event_id: str) -> list[str]:
    """
    Get the current delivery addresses for an event.

    Args:
        event_id: The event whose participants should receive the message

    Returns:
        Unique addresses in participant join order

    Raises:
        EventNotFoundError: The event record does not exist
        NoRecipientsError: The event exists but has no addressable participants
    """
    async with get_connection() as conn:
        event = await get_event(conn, event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        emails = await get_participant_emails(conn, event_id)

    # dict.fromkeys keeps first-seen order
    recipients = list(dict.fromkeys(emails))
    if not recipients:
        raise NoRecipientsError(event_id)
    return recipients
