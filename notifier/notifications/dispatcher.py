"""
Message dispatcher - delivers a stored message to its event's participants.

Dispatch is the single source of truth for "this message is done": it
records the outcome on the message and disarms any pending timer.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from notifier.config import get_email_subject, get_send_timeout
from notifier.database import get_connection, get_transaction
from notifier.enums import MessageStatus
from notifier.exceptions import DispatchError, NotifierError
from notifier.notifications.channels.email import send_email, text_to_html
from notifier.notifications.recipients import resolve_recipients
from notifier.queries.messages import get_message, mark_failed, mark_sent

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    message_id: str
    recipients: list[str] = field(default_factory=list)
    failed_recipients: list[str] = field(default_factory=list)
    already_sent: bool = False

    @property
    def recipient_count(self) -> int:
        return len(self.recipients)


def describe_error(error: BaseException) -> str:
    """Error text stored on the message, prefixed with its reason when known."""
    if isinstance(error, NotifierError):
        return f"{error.reason}: {error}"
    return str(error) or type(error).__name__


class Dispatcher:
    """
    Sends a message to every current participant of its event.

    Each recipient is attempted independently; one failed send does not stop
    the others. Once the loop has run the message is marked sent with the
    addresses that succeeded. Failed addresses are kept for audit only and
    are not retried.
    """

    def __init__(
        self,
        scheduler=None,
        send_timeout: float | None = None,
        subject: str | None = None,
    ):
        self.scheduler = scheduler
        self.send_timeout = send_timeout if send_timeout is not None else get_send_timeout()
        self.subject = subject or get_email_subject()
        # Per-message guard so a firing timer and a direct send never overlap
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def dispatch(self, message_id: str, event_id: str, content: str) -> DispatchResult:
        """
        Deliver a message and record the outcome.

        Args:
            message_id: Stored message to deliver
            event_id: Event whose participants receive it
            content: Text to send

        Returns:
            DispatchResult with delivered and failed addresses

        Raises:
            DispatchError: Event missing, no recipients, or delivery failed
            StoreError: The message store could not be read or written
            MessageNotFoundError: The message record does not exist
        """
        lock = self._locks.setdefault(message_id, asyncio.Lock())
        self._lock_users[message_id] = self._lock_users.get(message_id, 0) + 1
        try:
            async with lock:
                return await self._dispatch(message_id, event_id, content)
        finally:
            self._lock_users[message_id] -= 1
            if not self._lock_users[message_id]:
                del self._lock_users[message_id]
                del self._locks[message_id]

    async def _dispatch(self, message_id: str, event_id: str, content: str) -> DispatchResult:
        async with get_connection() as conn:
            message = await get_message(conn, message_id)

        if message["status"] == MessageStatus.sent:
            logger.info(f"Message {message_id} already sent, skipping dispatch")
            self._disarm(message_id)
            return DispatchResult(
                message_id=message_id,
                recipients=list(message.get("recipients") or []),
                failed_recipients=list(message.get("failed_recipients") or []),
                already_sent=True,
            )

        attempt_at = datetime.now(timezone.utc)
        try:
            recipients = await resolve_recipients(event_id)
            logger.info(
                f"Sending message {message_id} to {len(recipients)} participants"
            )

            delivered: list[str] = []
            failed: list[str] = []
            for address in recipients:
                if await self._send_one(message_id, address, content):
                    delivered.append(address)
                else:
                    failed.append(address)

            async with get_transaction() as conn:
                await mark_sent(
                    conn,
                    message_id,
                    sent_at=datetime.now(timezone.utc),
                    recipients=delivered,
                    failed_recipients=failed,
                )
        except Exception as e:
            logger.error(f"Error sending message {message_id}: {e}")
            await self._record_failure(message_id, e, attempt_at)
            if isinstance(e, NotifierError):
                raise
            raise DispatchError(f"Dispatch of message {message_id} failed: {e}") from e

        if failed:
            logger.warning(
                f"Message {message_id} delivered to {len(delivered)} of "
                f"{len(recipients)} participants; failed: {failed}"
            )
        else:
            logger.info(f"Message {message_id} delivered to {len(delivered)} participants")

        self._disarm(message_id)
        return DispatchResult(
            message_id=message_id,
            recipients=delivered,
            failed_recipients=failed,
        )

    async def _send_one(self, message_id: str, address: str, content: str) -> bool:
        """Send to one address, bounded by send_timeout. Never raises."""
        try:
            # The SendGrid client blocks, so it runs in a worker thread
            sent = await asyncio.wait_for(
                asyncio.to_thread(
                    send_email,
                    address,
                    self.subject,
                    content,
                    text_to_html(content),
                ),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out after {self.send_timeout}s sending message {message_id} to {address}"
            )
            return False
        except Exception as e:
            logger.error(f"Failed to send message {message_id} to {address}: {e}")
            return False

        if not sent:
            logger.warning(f"Delivery of message {message_id} to {address} failed")
        return bool(sent)

    async def _record_failure(
        self, message_id: str, error: BaseException, attempt_at: datetime
    ) -> None:
        try:
            async with get_transaction() as conn:
                await mark_failed(conn, message_id, describe_error(error), attempt_at)
        except Exception as update_error:
            logger.error(f"Error updating message status for {message_id}: {update_error}")

    def _disarm(self, message_id: str) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel(message_id)
