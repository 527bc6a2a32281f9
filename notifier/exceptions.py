"""
Exception hierarchy for the notifier.

Every error carries a machine-readable ``reason`` so the HTTP layer can
return structured payloads and failed messages can be annotated.
"""


class NotifierError(Exception):
    """Base exception for notifier errors."""

    reason = "error"

    def __init__(self, message: str = "", reason: str | None = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(NotifierError):
    """Bad or missing input, rejected before anything is persisted."""

    reason = "invalid_request"


class NotFoundError(NotifierError):
    """An event or message does not exist."""

    reason = "not_found"


class SchedulingError(NotifierError):
    """A date could not be turned into a trigger."""

    reason = "invalid_trigger"


class DispatchError(NotifierError):
    """Delivery could not be carried out."""

    reason = "transport_failure"


class StoreError(NotifierError):
    """The persistence layer failed or is unreachable."""

    reason = "store_unavailable"


class MessageNotFoundError(NotFoundError):
    reason = "message_not_found"


class EventNotFoundError(NotFoundError, DispatchError):
    """Event record is absent. Aborts a dispatch before any send."""

    reason = "event_not_found"

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class NoRecipientsError(DispatchError):
    """Event exists but has nobody to deliver to."""

    reason = "no_recipients"

    def __init__(self, event_id: str):
        super().__init__(f"No participants found for event {event_id}")
        self.event_id = event_id
