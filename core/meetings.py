"""
Meeting management service.

Coordinates the database and the notification dispatcher for each step of
a meeting's life: create, edit, RSVP, cancel. Every state change is
committed before its notifications go out, and a failed notification never
rolls the change back; callers get both the meeting and the batch result.
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from core.config import get_app_timezone
from core.database import get_connection, get_transaction
from core.enums import ParticipantStatus
from core.models import Caller, Meeting, Organizer, Participant, normalize_email
from core.notifications.dispatcher import BatchResult, NotificationDispatcher
from core.queries.meetings import (
    deactivate_meeting,
    find_meetings_for_user,
    get_meeting,
    insert_meeting,
    release_reminder,
    replace_participants,
    update_meeting_fields,
)
from core.rsvp import MeetingNotFoundError, set_status
from core.timezone import (
    format_meeting_date,
    format_meeting_time,
    now_in_timezone,
    split_date_time,
    to_timezone,
)

logger = logging.getLogger(__name__)


class NotOrganizerError(Exception):
    """Raised when someone other than the organizer edits or cancels a meeting."""

    pass


@dataclass
class MeetingDraft:
    """Fields for a new meeting."""

    title: str
    date: str
    start_time: str
    end_time: str
    agenda: str = ""
    location: str = ""
    participants: list[str] = field(default_factory=list)


@dataclass
class MeetingChanges:
    """An edit; None leaves the field unchanged."""

    title: str | None = None
    agenda: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    participants: list[str] | None = None


@dataclass
class LifecycleResult:
    """A meeting after a lifecycle step, plus the notifications it produced."""

    meeting: Meeting
    notifications: BatchResult | None = None


def _require_organizer(meeting: Meeting, caller: Caller) -> None:
    if meeting.organizer.id != caller.id:
        raise NotOrganizerError(
            f"Only the organizer can modify meeting {meeting.meeting_id}"
        )


def _can_view(meeting: Meeting, caller: Caller) -> bool:
    return meeting.organizer.id == caller.id or meeting.participant(caller.email) is not None


def merge_participants(current: list[Participant], emails: list[str]) -> list[Participant]:
    """
    Build a new participant list from addresses.

    Addresses already on the list keep their name and RSVP state; new ones
    start as invited.
    """
    existing = {p.email: p for p in current}
    merged = []
    for email in emails:
        key = normalize_email(email)
        merged.append(existing.get(key) or Participant.invite(key))
    return merged


def apply_changes(
    meeting: Meeting,
    changes: MeetingChanges,
) -> tuple[Meeting, dict, list[str]]:
    """
    Work out what an edit actually changes.

    Returns:
        (updated meeting, column values to write, human-readable change list)

    Raises:
        InvalidMeetingError: If the edited meeting breaks an invariant
    """
    values = {}
    if changes.title is not None and changes.title.strip() != meeting.title:
        values["title"] = changes.title.strip()
    if changes.agenda is not None and changes.agenda != meeting.agenda:
        values["agenda"] = changes.agenda
    if changes.date is not None and changes.date != meeting.date:
        values["date"] = changes.date
    if changes.start_time is not None and changes.start_time != meeting.start_time:
        values["start_time"] = changes.start_time
    if changes.end_time is not None and changes.end_time != meeting.end_time:
        values["end_time"] = changes.end_time
    if changes.location is not None and changes.location != meeting.location:
        values["location"] = changes.location

    participants = meeting.participants
    participants_changed = False
    if changes.participants is not None:
        participants = merge_participants(meeting.participants, changes.participants)
        participants_changed = [p.email for p in participants] != [
            p.email for p in meeting.participants
        ]

    updated = dataclasses.replace(meeting, participants=participants, **values)
    updated.validate()

    descriptions = []
    if "title" in values:
        descriptions.append(f"Title changed to: {updated.title}")
    if "agenda" in values:
        descriptions.append("Agenda updated")
    if "date" in values:
        descriptions.append(f"Date changed to: {format_meeting_date(updated.date)}")
    if "start_time" in values:
        descriptions.append(
            f"Start time changed to: {format_meeting_time(updated.start_time)}"
        )
    if "end_time" in values:
        descriptions.append(f"End time changed to: {format_meeting_time(updated.end_time)}")
    if "location" in values:
        descriptions.append(f"Location changed to: {updated.location or 'TBD'}")
    if participants_changed:
        descriptions.append("Participant list updated")

    return updated, values, descriptions


async def create_meeting(
    caller: Caller,
    draft: MeetingDraft,
    dispatcher: NotificationDispatcher,
) -> LifecycleResult:
    """
    Create a meeting organized by the caller and invite its participants.

    Raises:
        InvalidMeetingError: If the draft breaks a meeting invariant
    """
    meeting = Meeting(
        meeting_id=str(uuid.uuid4()),
        title=draft.title.strip(),
        agenda=draft.agenda,
        date=draft.date,
        start_time=draft.start_time,
        end_time=draft.end_time,
        location=draft.location,
        organizer=Organizer(id=caller.id, name=caller.name, email=caller.email),
        participants=[Participant.invite(email) for email in draft.participants],
    )
    meeting.validate()

    async with get_transaction() as conn:
        await insert_meeting(conn, meeting)
        meeting = await get_meeting(conn, meeting.meeting_id)

    logger.info(f"Meeting {meeting.meeting_id} created by {caller.id}")
    notifications = await dispatcher.dispatch_invitation(meeting)
    return LifecycleResult(meeting=meeting, notifications=notifications)


async def update_meeting(
    caller: Caller,
    meeting_id: str,
    changes: MeetingChanges,
    dispatcher: NotificationDispatcher,
    notify: bool = True,
) -> LifecycleResult:
    """
    Apply an organizer's edit and tell everyone what changed.

    Raises:
        MeetingNotFoundError: Meeting is missing or cancelled
        NotOrganizerError: Caller is not the organizer
        InvalidMeetingError: The edit breaks a meeting invariant
    """
    async with get_transaction() as conn:
        meeting = await get_meeting(conn, meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(f"Meeting {meeting_id} not found")
        _require_organizer(meeting, caller)

        updated, values, descriptions = apply_changes(meeting, changes)
        if values:
            await update_meeting_fields(conn, meeting_id, values)
        if "date" in values or "start_time" in values:
            # A new slot gets its own reminder
            await release_reminder(conn, meeting_id)
        if updated.participants is not meeting.participants:
            await replace_participants(conn, meeting_id, updated.participants)
        meeting = await get_meeting(conn, meeting_id)

    if descriptions:
        logger.info(f"Meeting {meeting_id} updated: {', '.join(descriptions)}")
    notifications = await dispatcher.dispatch_update(meeting, descriptions, notify=notify)
    return LifecycleResult(meeting=meeting, notifications=notifications)


async def cancel_meeting(
    caller: Caller,
    meeting_id: str,
    dispatcher: NotificationDispatcher,
) -> LifecycleResult:
    """
    Notify participants, then soft-delete the meeting.

    The meeting is deactivated whatever the notification outcome.

    Raises:
        MeetingNotFoundError: Meeting is missing or already cancelled
        NotOrganizerError: Caller is not the organizer
    """
    async with get_connection() as conn:
        meeting = await get_meeting(conn, meeting_id)
    if meeting is None:
        raise MeetingNotFoundError(f"Meeting {meeting_id} not found")
    _require_organizer(meeting, caller)

    notifications = await dispatcher.dispatch_cancellation(meeting)

    async with get_transaction() as conn:
        await deactivate_meeting(conn, meeting_id)
    meeting.is_active = False

    logger.info(f"Meeting {meeting_id} cancelled by {caller.id}")
    return LifecycleResult(meeting=meeting, notifications=notifications)


async def respond(
    meeting_id: str,
    participant_email: str,
    status: str,
    dispatcher: NotificationDispatcher,
) -> LifecycleResult:
    """
    Record an RSVP and confirm it to the participant and organizer.

    Raises:
        InvalidRsvpStatusError: Status is not accepted, declined or maybe
        MeetingNotFoundError: Meeting is missing or cancelled
        ParticipantNotFoundError: Address was not invited
    """
    async with get_transaction() as conn:
        participant = await set_status(conn, meeting_id, participant_email, status)
        meeting = await get_meeting(conn, meeting_id)

    logger.info(
        f"{participant.email} responded {participant.status.value} to meeting {meeting_id}"
    )
    notifications = await dispatcher.dispatch_rsvp_confirmation(
        meeting, participant.email, participant.status
    )
    return LifecycleResult(meeting=meeting, notifications=notifications)


async def get_meeting_for(caller: Caller, meeting_id: str) -> Meeting:
    """
    Get a meeting the caller organizes or is invited to.

    Raises:
        MeetingNotFoundError: Meeting is missing, cancelled, or not visible
            to the caller
    """
    async with get_connection() as conn:
        meeting = await get_meeting(conn, meeting_id)
    if meeting is None or not _can_view(meeting, caller):
        raise MeetingNotFoundError(f"Meeting {meeting_id} not found")
    return meeting


async def list_meetings_for(caller: Caller) -> list[Meeting]:
    """Active meetings the caller organizes or is invited to, soonest first."""
    async with get_connection() as conn:
        return await find_meetings_for_user(conn, caller.id, normalize_email(caller.email))


async def meeting_stats_for(caller: Caller, now: datetime | None = None) -> dict:
    """
    Dashboard counts for the caller's active meetings.

    Returns:
        Dict with total, upcoming, today, organized, pending_invitations
    """
    tz_name = get_app_timezone()
    now = to_timezone(now, tz_name) if now else now_in_timezone(tz_name)
    today, current_time = split_date_time(now)

    meetings = await list_meetings_for(caller)
    pending = 0
    for meeting in meetings:
        participant = meeting.participant(caller.email)
        if participant and participant.status == ParticipantStatus.invited:
            pending += 1

    return {
        "total": len(meetings),
        "upcoming": sum(
            1 for m in meetings if (m.date, m.start_time) >= (today, current_time)
        ),
        "today": sum(1 for m in meetings if m.date == today),
        "organized": sum(1 for m in meetings if m.organizer.id == caller.id),
        "pending_invitations": pending,
    }
