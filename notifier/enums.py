"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class MessageStatus(str, enum.Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


# =====================================================
# SQLAlchemy Enum Types
# The PostgreSQL type is created by the initial migration (create_type=False)
# =====================================================

message_status_enum = SQLEnum(
    MessageStatus, name="message_status", create_type=False, native_enum=True
)
