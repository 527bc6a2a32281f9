"""
Startup recovery for unsent messages.

Timers live in memory, so after a restart every unsent message is either
dispatched right away (its fire time has passed) or re-armed.
"""

import logging
from dataclasses import dataclass, field

import sentry_sdk

from notifier.database import get_connection
from notifier.exceptions import SchedulingError
from notifier.queries.messages import find_unsent
from notifier.timezone import Clock

logger = logging.getLogger(__name__)


@dataclass
class RecoveryReport:
    missed: list[str] = field(default_factory=list)  # dispatched successfully
    scheduled: list[str] = field(default_factory=list)  # timers armed
    failed: list[str] = field(default_factory=list)  # dispatch or arming failed

    def as_dict(self) -> dict:
        return {
            "missed": len(self.missed),
            "scheduled": len(self.scheduled),
            "failed": len(self.failed),
        }


async def bootstrap(clock: Clock, scheduler, dispatcher) -> RecoveryReport:
    """
    Dispatch missed messages and re-arm future ones.

    Missed messages are sent one at a time. A failure is logged and the
    loop moves on to the next message.

    Args:
        clock: Clock used for the missed/future split
        scheduler: MessageScheduler that receives future messages
        dispatcher: Dispatcher used for missed messages

    Returns:
        RecoveryReport listing message IDs by outcome
    """
    report = RecoveryReport()

    try:
        async with get_connection() as conn:
            unsent = await find_unsent(conn)
    except Exception as e:
        logger.error(f"Error loading unsent messages: {e}")
        sentry_sdk.capture_exception(e)
        return report

    logger.info(f"Found {len(unsent)} unsent messages")

    now = clock.now()
    missed = [m for m in unsent if clock.normalize(m["scheduled_at"]) <= now]
    future = [m for m in unsent if clock.normalize(m["scheduled_at"]) > now]

    for message in future:
        try:
            scheduler.schedule(
                message["message_id"],
                message["event_id"],
                message["content"],
                message["scheduled_at"],
            )
            report.scheduled.append(message["message_id"])
        except SchedulingError:
            # Became due between the split and arming
            missed.append(message)

    if missed:
        logger.info(f"Processing {len(missed)} missed messages...")

    for message in missed:
        message_id = message["message_id"]
        try:
            await dispatcher.dispatch(message_id, message["event_id"], message["content"])
            report.missed.append(message_id)
            logger.info(f"Processed missed message {message_id}")
        except Exception as e:
            report.failed.append(message_id)
            logger.error(f"Failed to process missed message {message_id}: {e}")
            sentry_sdk.capture_exception(e)

    logger.info(f"Recovery finished: {report.as_dict()}")
    return report
