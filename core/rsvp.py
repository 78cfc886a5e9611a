"""Participant RSVP state."""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncConnection

from core.enums import REMINDER_STATUSES, RSVP_STATUSES, ParticipantStatus
from core.models import Meeting, Participant, normalize_email
from core.queries.meetings import get_meeting, set_participant_status


class MeetingNotFoundError(Exception):
    """Raised when a meeting does not exist or is no longer active."""

    pass


class ParticipantNotFoundError(Exception):
    """Raised when an address is not on a meeting's participant list."""

    pass


class InvalidRsvpStatusError(ValueError):
    """Raised for a status a participant cannot choose."""

    pass


def parse_rsvp_status(value: str) -> ParticipantStatus:
    """
    Parse an RSVP status chosen by a participant.

    Raises:
        InvalidRsvpStatusError: For anything but accepted, declined, maybe
    """
    try:
        status = ParticipantStatus(value)
    except ValueError:
        raise InvalidRsvpStatusError(f"Invalid RSVP status: {value}") from None
    if status not in RSVP_STATUSES:
        raise InvalidRsvpStatusError(f"Invalid RSVP status: {value}")
    return status


async def set_status(
    conn: AsyncConnection,
    meeting_id: str,
    participant_email: str,
    new_status: str,
    now: datetime | None = None,
) -> Participant:
    """
    Record a participant's response to an invitation.

    Repeated calls overwrite the previous status and response time; no
    history is kept. Never adds a participant.

    Args:
        conn: Connection inside the caller's transaction
        meeting_id: Meeting being answered
        participant_email: Address the invitation was sent to
        new_status: "accepted", "declined" or "maybe"
        now: Response timestamp (defaults to current UTC time)

    Returns:
        The participant with the updated status

    Raises:
        InvalidRsvpStatusError: Status is not an RSVP choice
        MeetingNotFoundError: Meeting is missing or cancelled
        ParticipantNotFoundError: Address was not invited
    """
    status = parse_rsvp_status(new_status)
    email = normalize_email(participant_email)
    responded_at = now or datetime.now(timezone.utc)

    meeting = await get_meeting(conn, meeting_id)
    if meeting is None:
        raise MeetingNotFoundError(f"Meeting {meeting_id} not found")

    participant = meeting.participant(email)
    if participant is None:
        raise ParticipantNotFoundError(
            f"{email} is not invited to meeting {meeting_id}"
        )

    updated = await set_participant_status(conn, meeting_id, email, status, responded_at)
    if not updated:
        # Cancelled between the read and the write
        raise MeetingNotFoundError(f"Meeting {meeting_id} not found")

    participant.status = status
    participant.responded_at = responded_at
    return participant


def reminder_recipients(meeting: Meeting) -> list[Participant]:
    """Participants who should get a reminder: accepted or maybe."""
    return [p for p in meeting.participants if p.status in REMINDER_STATUSES]
