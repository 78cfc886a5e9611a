"""Database queries for meetings and their participants."""

from datetime import datetime

from sqlalchemy import and_, delete, false, func, insert, or_, select, true, update
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import ParticipantStatus
from ..models import Meeting, Participant, meeting_from_rows
from ..tables import meeting_participants, meetings


async def insert_meeting(conn: AsyncConnection, meeting: Meeting) -> None:
    """Insert a meeting record and its participants."""
    await conn.execute(
        insert(meetings).values(
            meeting_id=meeting.meeting_id,
            title=meeting.title,
            agenda=meeting.agenda,
            date=meeting.date,
            start_time=meeting.start_time,
            end_time=meeting.end_time,
            location=meeting.location,
            organizer_id=meeting.organizer.id,
            organizer_name=meeting.organizer.name,
            organizer_email=meeting.organizer.email,
            is_active=meeting.is_active,
            reminder_sent=meeting.reminder_sent,
        )
    )
    await _insert_participants(conn, meeting.meeting_id, meeting.participants)


async def _insert_participants(
    conn: AsyncConnection,
    meeting_id: str,
    participants: list[Participant],
) -> None:
    if not participants:
        return
    await conn.execute(
        insert(meeting_participants),
        [
            {
                "meeting_id": meeting_id,
                "position": position,
                "email": p.email,
                "name": p.name,
                "status": p.status,
                "responded_at": p.responded_at,
            }
            for position, p in enumerate(participants)
        ],
    )


async def _load_meetings(conn: AsyncConnection, query) -> list[Meeting]:
    """Run a meetings query and attach each meeting's participants."""
    result = await conn.execute(query)
    rows = [dict(row) for row in result.mappings()]
    if not rows:
        return []

    meeting_ids = [row["meeting_id"] for row in rows]
    participant_result = await conn.execute(
        select(meeting_participants)
        .where(meeting_participants.c.meeting_id.in_(meeting_ids))
        .order_by(meeting_participants.c.meeting_id, meeting_participants.c.position)
    )
    by_meeting: dict[str, list[dict]] = {mid: [] for mid in meeting_ids}
    for p in participant_result.mappings():
        by_meeting[p["meeting_id"]].append(dict(p))

    return [meeting_from_rows(row, by_meeting[row["meeting_id"]]) for row in rows]


async def get_meeting(
    conn: AsyncConnection,
    meeting_id: str,
    include_inactive: bool = False,
) -> Meeting | None:
    """Get a single meeting by ID (active meetings only unless asked)."""
    query = select(meetings).where(meetings.c.meeting_id == meeting_id)
    if not include_inactive:
        query = query.where(meetings.c.is_active == true())

    found = await _load_meetings(conn, query)
    return found[0] if found else None


async def find_meetings_for_user(
    conn: AsyncConnection,
    user_id: str,
    email: str,
) -> list[Meeting]:
    """
    Get active meetings the user organizes or is invited to.

    Ordered by date, then start time.
    """
    invited = select(meeting_participants.c.meeting_id).where(
        meeting_participants.c.email == email
    )
    query = (
        select(meetings)
        .where(meetings.c.is_active == true())
        .where(
            or_(
                meetings.c.organizer_id == user_id,
                meetings.c.meeting_id.in_(invited),
            )
        )
        .order_by(meetings.c.date, meetings.c.start_time)
    )
    return await _load_meetings(conn, query)


async def find_due_meetings(
    conn: AsyncConnection,
    ranges: list[tuple[str, str, str]],
) -> list[Meeting]:
    """
    Get active, not-yet-reminded meetings starting inside the given ranges.

    Args:
        ranges: (date, from_time, to_time) triples; start_time is matched
            inclusively with string comparison

    Returns:
        Matching meetings ordered by date and start time
    """
    if not ranges:
        return []

    query = (
        select(meetings)
        .where(meetings.c.is_active == true())
        .where(meetings.c.reminder_sent == false())
        .where(
            or_(
                *[
                    and_(
                        meetings.c.date == day,
                        meetings.c.start_time >= from_time,
                        meetings.c.start_time <= to_time,
                    )
                    for day, from_time, to_time in ranges
                ]
            )
        )
        .order_by(meetings.c.date, meetings.c.start_time)
    )
    return await _load_meetings(conn, query)


async def claim_reminder(
    conn: AsyncConnection,
    meeting_id: str,
    date: str | None = None,
    start_time: str | None = None,
) -> bool:
    """
    Atomically flip reminder_sent from false to true.

    Args:
        date, start_time: Slot the caller saw; when given, the claim fails if
            the meeting has been rescheduled since

    Returns:
        True if this call made the change; False if the meeting was already
        reminded, cancelled, rescheduled, or claimed by a concurrent sweep
    """
    query = update(meetings).where(meetings.c.meeting_id == meeting_id)
    if date is not None:
        query = query.where(meetings.c.date == date)
    if start_time is not None:
        query = query.where(meetings.c.start_time == start_time)
    result = await conn.execute(
        query
        .where(meetings.c.reminder_sent == false())
        .where(meetings.c.is_active == true())
        .values(reminder_sent=True, updated_at=func.now())
    )
    return result.rowcount == 1


async def release_reminder(conn: AsyncConnection, meeting_id: str) -> bool:
    """
    Atomically flip reminder_sent back from true to false.

    Used after a failed reminder batch so a later sweep can retry.
    """
    result = await conn.execute(
        update(meetings)
        .where(meetings.c.meeting_id == meeting_id)
        .where(meetings.c.reminder_sent == true())
        .values(reminder_sent=False, updated_at=func.now())
    )
    return result.rowcount == 1


async def update_meeting_fields(
    conn: AsyncConnection,
    meeting_id: str,
    values: dict,
) -> None:
    """Update meeting columns and bump updated_at."""
    await conn.execute(
        update(meetings)
        .where(meetings.c.meeting_id == meeting_id)
        .values(**values, updated_at=func.now())
    )


async def replace_participants(
    conn: AsyncConnection,
    meeting_id: str,
    participants: list[Participant],
) -> None:
    """Replace a meeting's participant list, keeping the given order."""
    await conn.execute(
        delete(meeting_participants).where(
            meeting_participants.c.meeting_id == meeting_id
        )
    )
    await _insert_participants(conn, meeting_id, participants)


async def set_participant_status(
    conn: AsyncConnection,
    meeting_id: str,
    email: str,
    status: ParticipantStatus,
    responded_at: datetime,
) -> bool:
    """
    Record a participant's RSVP on an active meeting.

    Returns:
        True if a participant row was updated, False if the meeting is not
        active or the address is not on its participant list
    """
    active_meeting = select(meetings.c.meeting_id).where(
        and_(meetings.c.meeting_id == meeting_id, meetings.c.is_active == true())
    )
    result = await conn.execute(
        update(meeting_participants)
        .where(meeting_participants.c.meeting_id.in_(active_meeting))
        .where(meeting_participants.c.email == email)
        .values(status=status, responded_at=responded_at)
    )
    if result.rowcount == 0:
        return False

    await conn.execute(
        update(meetings)
        .where(meetings.c.meeting_id == meeting_id)
        .values(updated_at=func.now())
    )
    return True


async def deactivate_meeting(conn: AsyncConnection, meeting_id: str) -> bool:
    """Soft-delete a meeting. Returns False if it was already inactive."""
    result = await conn.execute(
        update(meetings)
        .where(meetings.c.meeting_id == meeting_id)
        .where(meetings.c.is_active == true())
        .values(is_active=False, updated_at=func.now())
    )
    return result.rowcount == 1
