"""Query layer for database operations using SQLAlchemy Core."""

from .meetings import (
    claim_reminder,
    deactivate_meeting,
    find_due_meetings,
    find_meetings_for_user,
    get_meeting,
    insert_meeting,
    release_reminder,
    replace_participants,
    set_participant_status,
    update_meeting_fields,
)

__all__ = [
    # Meetings
    "insert_meeting",
    "get_meeting",
    "find_meetings_for_user",
    "update_meeting_fields",
    "replace_participants",
    "deactivate_meeting",
    # RSVP
    "set_participant_status",
    # Reminders
    "find_due_meetings",
    "claim_reminder",
    "release_reminder",
]
