"""
Core business logic - framework-agnostic.
Used by the web API and the reminder sweep.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, init_schema, is_configured

# Records
from .models import Caller, Meeting, Organizer, Participant, InvalidMeetingError

# Timezone utilities
from .timezone import format_meeting_date, format_meeting_time, format_time_range

# RSVP state
from .rsvp import (
    set_status, reminder_recipients,
    MeetingNotFoundError, ParticipantNotFoundError, InvalidRsvpStatusError,
)

# Meeting lifecycle (async functions - must be awaited)
from .meetings import (
    MeetingDraft, MeetingChanges, LifecycleResult, NotOrganizerError,
    create_meeting, update_meeting, cancel_meeting, respond,
    get_meeting_for, list_meetings_for, meeting_stats_for,
)

__all__ = [
    # Database (SQLAlchemy)
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'init_schema', 'is_configured',
    # Records
    'Caller', 'Meeting', 'Organizer', 'Participant', 'InvalidMeetingError',
    # Timezone
    'format_meeting_date', 'format_meeting_time', 'format_time_range',
    # RSVP
    'set_status', 'reminder_recipients',
    'MeetingNotFoundError', 'ParticipantNotFoundError', 'InvalidRsvpStatusError',
    # Meeting lifecycle (async)
    'MeetingDraft', 'MeetingChanges', 'LifecycleResult', 'NotOrganizerError',
    'create_meeting', 'update_meeting', 'cancel_meeting', 'respond',
    'get_meeting_for', 'list_meetings_for', 'meeting_stats_for',
]
