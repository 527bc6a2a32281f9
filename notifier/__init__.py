"""
Event notifier core - scheduling and delivery of event messages.
Used by the web API; has no HTTP dependencies of its own.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine

# Status values
from .enums import MessageStatus

# Errors
from .exceptions import (
    NotifierError,
    ValidationError,
    NotFoundError,
    SchedulingError,
    DispatchError,
    StoreError,
    MessageNotFoundError,
    EventNotFoundError,
    NoRecipientsError,
)

# Clock
from .timezone import Clock, ParseResult, TriggerSpec

__all__ = [
    'get_connection', 'get_transaction', 'get_engine', 'close_engine',
    'MessageStatus',
    'NotifierError', 'ValidationError', 'NotFoundError', 'SchedulingError',
    'DispatchError', 'StoreError', 'MessageNotFoundError', 'EventNotFoundError',
    'NoRecipientsError',
    'Clock', 'ParseResult', 'TriggerSpec',
]
