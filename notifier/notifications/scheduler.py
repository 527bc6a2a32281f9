"""
APScheduler-based timers for scheduled messages.

One MessageScheduler owns one AsyncIOScheduler plus the mapping of message
ID to its armed job. Jobs live in memory only: the messages table is the
durable record, and recovery re-arms future messages after a restart.

Timers and request handlers share the asyncio event loop, so the job map is
only touched between awaits and needs no lock.
"""

import logging
from datetime import datetime, timedelta

import sentry_sdk
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from notifier.exceptions import SchedulingError
from notifier.notifications.retry import NoRetry, RetryPolicy
from notifier.timezone import Clock

logger = logging.getLogger(__name__)


def job_id_for(message_id: str) -> str:
    return f"message_{message_id}"


class MessageScheduler:
    """
    Arms one-shot timers that hand messages to the dispatcher.

    Per message: unscheduled -> armed -> fired. Re-arming an armed message
    replaces its timer. A fired timer is consumed even if the dispatch
    fails; whether it is re-armed is up to the retry policy.
    """

    def __init__(
        self,
        clock: Clock,
        dispatcher=None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.clock = clock
        self.dispatcher = dispatcher
        self.retry_policy = retry_policy or NoRetry()
        self._scheduler = AsyncIOScheduler(
            timezone=clock.tz,
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                # No grace limit: a timer fires however late the loop gets to it
                "misfire_grace_time": None,
            },
        )
        self._jobs: dict[str, Job] = {}

    def bind_dispatcher(self, dispatcher) -> None:
        self.dispatcher = dispatcher

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Start the underlying scheduler. Must be called from the event loop."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info(f"Message scheduler started (timezone {self.clock.tz_name})")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Message scheduler stopped")
        self._jobs.clear()

    # =========================================================================
    # Arming and cancelling
    # =========================================================================

    def schedule(
        self,
        message_id: str,
        event_id: str,
        content: str,
        at: datetime,
        attempt: int = 0,
    ) -> Job:
        """
        Arm a one-shot timer for a message, replacing any existing one.

        Args:
            message_id: Message to dispatch when the timer fires
            event_id: Event whose participants receive it
            content: Text to send
            at: Timezone-aware fire time, strictly in the future
            attempt: Retry counter carried to the fire callback

        Raises:
            SchedulingError: at is naive or not in the future
        """
        if at.tzinfo is None:
            raise SchedulingError(
                f"Fire time for message {message_id} has no timezone"
            )
        run_at = self.clock.normalize(at)
        if run_at <= self.clock.now():
            raise SchedulingError(
                f"Fire time {self.clock.format(run_at)} for message {message_id} "
                "is not in the future"
            )

        self.cancel(message_id)

        job = self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_at, timezone=self.clock.tz),
            id=job_id_for(message_id),
            name=f"Send message {message_id}",
            replace_existing=True,
            kwargs={
                "message_id": message_id,
                "event_id": event_id,
                "content": content,
                "attempt": attempt,
            },
        )
        self._jobs[message_id] = job

        spec = self.clock.to_trigger_spec(run_at)
        logger.info(
            f"Scheduled message {message_id} for {self.clock.format(run_at)} "
            f"({spec.cron_expression})"
        )
        return job

    def cancel(self, message_id: str) -> bool:
        """
        Disarm a message's timer.

        Returns:
            True if a timer was removed, False if none was armed
        """
        job = self._jobs.pop(message_id, None)
        if job is None:
            return False
        try:
            job.remove()
        except JobLookupError:
            pass  # Already fired
        logger.info(f"Cancelled timer for message {message_id}")
        return True

    def is_armed(self, message_id: str) -> bool:
        return message_id in self._jobs

    def armed_message_ids(self) -> list[str]:
        return list(self._jobs)

    def get_status(self) -> dict:
        """Scheduler state for health checks."""
        return {
            "is_running": self.running,
            "armed_count": len(self._jobs),
            "jobs": [
                {
                    "message_id": message_id,
                    "next_run_time": job.next_run_time.isoformat()
                    if getattr(job, "next_run_time", None)
                    else None,
                }
                for message_id, job in self._jobs.items()
            ],
        }

    # =========================================================================
    # Firing
    # =========================================================================

    async def _fire(
        self,
        message_id: str,
        event_id: str,
        content: str,
        attempt: int = 0,
    ) -> None:
        """Job function called by APScheduler."""
        # A fired timer is always consumed
        self._jobs.pop(message_id, None)

        if self.dispatcher is None:
            logger.error(f"No dispatcher bound, dropping timer for message {message_id}")
            return

        try:
            await self.dispatcher.dispatch(message_id, event_id, content)
        except Exception as e:
            logger.error(f"Failed to send scheduled message {message_id}: {e}")
            sentry_sdk.capture_exception(e)
            self._maybe_retry(message_id, event_id, content, attempt, e)

    def _maybe_retry(
        self,
        message_id: str,
        event_id: str,
        content: str,
        attempt: int,
        error: Exception,
    ) -> None:
        delay = self.retry_policy.next_delay(attempt, error)
        if delay is None:
            return
        if message_id in self._jobs:
            # Re-armed by someone else while the dispatch was running
            return

        retry_at = self.clock.now() + timedelta(seconds=delay)
        self.schedule(message_id, event_id, content, retry_at, attempt=attempt + 1)
        logger.info(
            f"Retrying message {message_id} in {delay:.1f}s (attempt {attempt + 1})"
        )
