"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from .enums import message_status_enum

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")


# =====================================================
# 1. EVENTS
# Owned by the event-management side; the notifier only reads events
# and appends to message_ids.
# =====================================================
events = Table(
    "events",
    metadata,
    Column("event_id", Text, primary_key=True),
    Column("title", Text),
    Column("message_ids", JSONList, nullable=False, default=list),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)


# =====================================================
# 2. EVENT_PARTICIPANTS
# =====================================================
event_participants = Table(
    "event_participants",
    metadata,
    Column("participant_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "event_id",
        Text,
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("email", Text),  # Contact address; rows without one are ignored
    Column("name", Text),
    Column("joined_at", DateTime(timezone=True), server_default=func.now()),
    Index("idx_event_participants_event_id", "event_id"),
)


# =====================================================
# 3. MESSAGES
# =====================================================
messages = Table(
    "messages",
    metadata,
    Column("message_id", Text, primary_key=True),
    Column("event_id", Text, nullable=False),  # Not a FK: events may be purged
    Column("content", Text, nullable=False),
    Column("scheduled_at", DateTime(timezone=True), nullable=False),
    Column("original_date", Text),  # Raw date string as submitted
    Column("timezone", Text),  # Zone the date was interpreted in
    Column("status", message_status_enum, nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column("last_error", Text),
    Column("last_attempt_at", DateTime(timezone=True)),
    Column("sent_at", DateTime(timezone=True)),
    # Audit snapshot written on send, never used to pick future recipients
    Column("recipients", JSONList),
    Column("recipient_count", Integer),
    Column("failed_recipients", JSONList),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_messages_status", "status"),
    Index("idx_messages_event_id", "event_id"),
)
