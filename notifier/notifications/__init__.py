"""
Deferred notification delivery for events.

Public API:
    NotificationService - schedule_event / reschedule / delete / lookup
    MessageScheduler - one-shot timers per message
    Dispatcher - delivers a message to the event's current participants
    bootstrap - re-arm or send unsent messages after a restart
"""

from .dispatcher import Dispatcher, DispatchResult
from .recipients import resolve_recipients
from .recovery import RecoveryReport, bootstrap
from .retry import ExponentialBackoff, NoRetry, RetryPolicy
from .scheduler import MessageScheduler
from .service import NotificationService, ScheduleResult

__all__ = [
    "NotificationService",
    "ScheduleResult",
    "MessageScheduler",
    "Dispatcher",
    "DispatchResult",
    "resolve_recipients",
    "bootstrap",
    "RecoveryReport",
    "RetryPolicy",
    "NoRetry",
    "ExponentialBackoff",
]
