"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class ParticipantStatus(str, enum.Enum):
    invited = "invited"
    accepted = "accepted"
    declined = "declined"
    maybe = "maybe"


class NotificationKind(str, enum.Enum):
    invitation = "invitation"
    reminder = "reminder"
    update = "update"
    cancellation = "cancellation"
    rsvp_confirmation = "rsvp-confirmation"
    # Organizer-facing summary sent alongside an rsvp-confirmation
    rsvp_summary = "rsvp-summary"


class MailProvider(str, enum.Enum):
    smtp = "smtp"
    sendgrid = "sendgrid"


# Statuses a participant may choose via RSVP
RSVP_STATUSES = (
    ParticipantStatus.accepted,
    ParticipantStatus.declined,
    ParticipantStatus.maybe,
)

# Participants in these states get reminders
REMINDER_STATUSES = (
    ParticipantStatus.accepted,
    ParticipantStatus.maybe,
)


# =====================================================
# SQLAlchemy Enum Types
# =====================================================

participant_status_enum = SQLEnum(
    ParticipantStatus,
    name="participant_status",
    values_callable=lambda e: [m.value for m in e],
)
