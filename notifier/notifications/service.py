"""
Notification service - the entry point request handlers call.

Wires the clock, scheduler and dispatcher together and implements the
inbound operations: schedule, reschedule, delete and look up messages.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from notifier.config import get_max_message_length, get_timezone_name
from notifier.database import get_connection, get_transaction
from notifier.exceptions import (
    EventNotFoundError,
    MessageNotFoundError,
    NotifierError,
    SchedulingError,
    ValidationError,
)
from notifier.notifications.dispatcher import Dispatcher
from notifier.notifications.recovery import RecoveryReport, bootstrap
from notifier.notifications.retry import retry_policy_from_config
from notifier.notifications.scheduler import MessageScheduler
from notifier.queries.events import append_message_id, get_event
from notifier.queries.messages import (
    create_message,
    delete_message,
    get_message,
    reschedule_message,
)
from notifier.timezone import Clock

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    message_id: str
    scheduled_for: datetime
    normalized_date: str
    original_date: str
    timezone: str
    sent_immediately: bool = False
    recipient_count: int | None = None

    def as_dict(self) -> dict:
        return {
            "messageId": self.message_id,
            "scheduledFor": self.normalized_date,
            "normalizedDate": self.normalized_date,
            "originalDate": self.original_date,
            "timezone": self.timezone,
            "sentImmediately": self.sent_immediately,
            "recipientCount": self.recipient_count,
        }


class NotificationService:
    def __init__(
        self,
        clock: Clock,
        scheduler: MessageScheduler,
        dispatcher: Dispatcher,
        max_message_length: int | None = None,
    ):
        self.clock = clock
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.max_message_length = max_message_length or get_max_message_length()

    @classmethod
    def from_config(cls) -> "NotificationService":
        """Build a service from environment settings."""
        clock = Clock(get_timezone_name())
        scheduler = MessageScheduler(clock, retry_policy=retry_policy_from_config())
        dispatcher = Dispatcher(scheduler=scheduler)
        scheduler.bind_dispatcher(dispatcher)
        return cls(clock, scheduler, dispatcher)

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    async def bootstrap(self) -> RecoveryReport:
        return await bootstrap(self.clock, self.scheduler, self.dispatcher)

    # =========================================================================
    # Inbound operations
    # =========================================================================

    async def schedule_event(
        self, date: str | None, event_id: str | None, message: str | None
    ) -> ScheduleResult:
        """
        Store a message for an event and deliver it at the given date.

        A date that is now or already past is dispatched before returning;
        a future date arms a timer.

        Raises:
            ValidationError: Missing fields or message too long
            SchedulingError: The date could not be parsed
            EventNotFoundError: The event does not exist
            DispatchError: Immediate delivery failed (message_id is attached)
        """
        missing = [
            name
            for name, value in (("date", date), ("id", event_id), ("message", message))
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                reason="missing_fields",
            )
        if len(message) > self.max_message_length:
            raise ValidationError(
                f"Message too long ({len(message)} > {self.max_message_length})",
                reason="message_too_long",
            )

        scheduled_at = self._parse_date(date)

        async with get_transaction() as conn:
            if await get_event(conn, event_id) is None:
                raise EventNotFoundError(event_id)
            record = await create_message(
                conn,
                content=message,
                event_id=event_id,
                scheduled_at=scheduled_at,
                original_date=date,
                timezone_name=self.clock.tz_name,
            )
            await append_message_id(conn, event_id, record["message_id"])

        message_id = record["message_id"]
        logger.info(f"Message stored with ID: {message_id}")

        result = ScheduleResult(
            message_id=message_id,
            scheduled_for=scheduled_at,
            normalized_date=self.clock.format(scheduled_at),
            original_date=date,
            timezone=self.clock.tz_name,
        )
        return await self._arm_or_dispatch(result, event_id, message)

    async def reschedule_message(self, message_id: str, date: str | None) -> ScheduleResult:
        """Move an unsent message to a new date, replacing its timer."""
        scheduled_at = self._parse_date(date)

        async with get_transaction() as conn:
            record = await reschedule_message(conn, message_id, scheduled_at)

        result = ScheduleResult(
            message_id=message_id,
            scheduled_for=scheduled_at,
            normalized_date=self.clock.format(scheduled_at),
            original_date=date,
            timezone=self.clock.tz_name,
        )
        return await self._arm_or_dispatch(result, record["event_id"], record["content"])

    async def delete_message(self, message_id: str) -> None:
        """Disarm and delete a message."""
        self.scheduler.cancel(message_id)
        async with get_transaction() as conn:
            deleted = await delete_message(conn, message_id)
        if not deleted:
            raise MessageNotFoundError(f"Message {message_id} not found")
        logger.info(f"Deleted message {message_id}")

    async def get_message(self, message_id: str) -> dict:
        async with get_connection() as conn:
            return await get_message(conn, message_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parse_date(self, date: str | None) -> datetime:
        parsed = self.clock.parse(date)
        if not parsed.ok:
            raise SchedulingError(
                f"Invalid date format: {date!r} ({parsed.error})",
                reason="invalid_date",
            )
        return parsed.value

    async def _arm_or_dispatch(
        self, result: ScheduleResult, event_id: str, content: str
    ) -> ScheduleResult:
        if not self.clock.is_due(result.scheduled_for):
            try:
                self.scheduler.schedule(
                    result.message_id, event_id, content, result.scheduled_for
                )
                return result
            except SchedulingError:
                # Fire time passed while we were storing the message
                pass

        logger.info(f"Date for message {result.message_id} is not in the future, sending immediately")
        self.scheduler.cancel(result.message_id)
        try:
            dispatched = await self.dispatcher.dispatch(result.message_id, event_id, content)
        except NotifierError as e:
            e.message_id = result.message_id
            raise
        result.sent_immediately = True
        result.recipient_count = dispatched.recipient_count
        return result
