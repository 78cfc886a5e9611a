"""SQLAlchemy Core table definitions for the database schema.

Column types stay portable (no dialect-specific types) so the same schema
runs on PostgreSQL in production and SQLite in tests.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)

from .enums import participant_status_enum

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. MEETINGS
# =====================================================
meetings = Table(
    "meetings",
    metadata,
    Column("meeting_id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("agenda", Text, nullable=False, server_default=""),
    # Fixed textual formats so rows compare lexicographically
    Column("date", Text, nullable=False),  # YYYY-MM-DD
    Column("start_time", Text, nullable=False),  # HH:MM
    Column("end_time", Text, nullable=False),  # HH:MM
    Column("location", Text, nullable=False, server_default=""),
    Column("organizer_id", Text, nullable=False),
    Column("organizer_name", Text, nullable=False),
    Column("organizer_email", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("reminder_sent", Boolean, nullable=False, server_default="0"),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
    CheckConstraint("start_time < end_time", name="start_before_end"),
    Index("idx_meetings_organizer_id", "organizer_id"),
    Index(
        "idx_meetings_reminder_due",
        "is_active",
        "reminder_sent",
        "date",
        "start_time",
    ),
)


# =====================================================
# 2. MEETING_PARTICIPANTS
# =====================================================
meeting_participants = Table(
    "meeting_participants",
    metadata,
    Column("participant_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "meeting_id",
        Text,
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("position", Integer, nullable=False),  # Order set by the organizer
    Column("email", Text, nullable=False),  # Normalized to lower case
    Column("name", Text, nullable=False),
    Column("status", participant_status_enum, nullable=False, server_default="invited"),
    Column("responded_at", DateTime(timezone=True)),
    Index("idx_meeting_participants_email", "email"),
    UniqueConstraint(
        "meeting_id", "email", name="meeting_participants_meeting_email_unique"
    ),
)
