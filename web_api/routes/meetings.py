"""
Meeting routes.

Endpoints:
- POST /api/meetings - Create a meeting and invite participants
- GET /api/meetings - List the caller's meetings
- GET /api/meetings/stats - Dashboard counts for the caller
- GET /api/meetings/{meeting_id} - Get one meeting
- PUT /api/meetings/{meeting_id} - Edit a meeting (organizer only)
- DELETE /api/meetings/{meeting_id} - Cancel a meeting (organizer only)
- POST /api/meetings/{meeting_id}/rsvp - Respond to an invitation
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.meetings import (
    LifecycleResult,
    MeetingChanges,
    MeetingDraft,
    NotOrganizerError,
    cancel_meeting,
    create_meeting,
    get_meeting_for,
    list_meetings_for,
    meeting_stats_for,
    respond,
    update_meeting,
)
from core.models import Caller, InvalidMeetingError, Meeting
from core.notifications.dispatcher import NotificationDispatcher
from core.rsvp import (
    InvalidRsvpStatusError,
    MeetingNotFoundError,
    ParticipantNotFoundError,
)
from web_api.auth import get_current_user
from web_api.deps import get_dispatcher

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


class CreateMeetingRequest(BaseModel):
    """Schema for creating a meeting."""

    title: str
    date: str
    start_time: str
    end_time: str
    agenda: str = ""
    location: str = ""
    participants: list[str] = Field(default_factory=list)


class UpdateMeetingRequest(BaseModel):
    """Schema for editing a meeting. Omitted fields stay unchanged."""

    title: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    agenda: str | None = None
    location: str | None = None
    participants: list[str] | None = None
    notify: bool = True


class RsvpRequest(BaseModel):
    """Schema for an in-app RSVP."""

    status: str


def serialize_meeting(meeting: Meeting) -> dict[str, Any]:
    """Convert a Meeting to its API representation."""
    return {
        "meeting_id": meeting.meeting_id,
        "title": meeting.title,
        "agenda": meeting.agenda,
        "date": meeting.date,
        "start_time": meeting.start_time,
        "end_time": meeting.end_time,
        "location": meeting.location,
        "organizer": {
            "id": meeting.organizer.id,
            "name": meeting.organizer.name,
            "email": meeting.organizer.email,
        },
        "participants": [
            {
                "email": p.email,
                "name": p.name,
                "status": p.status.value,
                "responded_at": p.responded_at.isoformat() if p.responded_at else None,
            }
            for p in meeting.participants
        ],
        "is_active": meeting.is_active,
        "reminder_sent": meeting.reminder_sent,
        "created_at": meeting.created_at.isoformat() if meeting.created_at else None,
        "updated_at": meeting.updated_at.isoformat() if meeting.updated_at else None,
    }


def _result_response(result: LifecycleResult) -> dict[str, Any]:
    notifications = result.notifications.summary() if result.notifications else None
    return {
        "meeting": serialize_meeting(result.meeting),
        "notifications": notifications,
    }


@router.post("", status_code=201)
async def create_meeting_endpoint(
    request: CreateMeetingRequest,
    user: Caller = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Create a meeting organized by the caller and email invitations."""
    draft = MeetingDraft(
        title=request.title,
        date=request.date,
        start_time=request.start_time,
        end_time=request.end_time,
        agenda=request.agenda,
        location=request.location,
        participants=request.participants,
    )
    try:
        result = await create_meeting(user, draft, dispatcher)
    except InvalidMeetingError as e:
        raise HTTPException(400, str(e))

    return _result_response(result)


@router.get("")
async def list_meetings_endpoint(
    user: Caller = Depends(get_current_user),
) -> dict[str, Any]:
    """List active meetings the caller organizes or is invited to."""
    meetings = await list_meetings_for(user)
    return {"meetings": [serialize_meeting(m) for m in meetings]}


@router.get("/stats")
async def meeting_stats_endpoint(
    user: Caller = Depends(get_current_user),
) -> dict[str, Any]:
    """Dashboard counts for the caller."""
    return await meeting_stats_for(user)


@router.get("/{meeting_id}")
async def get_meeting_endpoint(
    meeting_id: str,
    user: Caller = Depends(get_current_user),
) -> dict[str, Any]:
    """Get a meeting the caller organizes or is invited to."""
    try:
        meeting = await get_meeting_for(user, meeting_id)
    except MeetingNotFoundError:
        raise HTTPException(404, "Meeting not found")

    return {"meeting": serialize_meeting(meeting)}


@router.put("/{meeting_id}")
async def update_meeting_endpoint(
    meeting_id: str,
    request: UpdateMeetingRequest,
    user: Caller = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """
    Edit a meeting.

    Participants get an update email listing the changes, unless notify is
    false or nothing changed.
    """
    changes = MeetingChanges(
        title=request.title,
        agenda=request.agenda,
        date=request.date,
        start_time=request.start_time,
        end_time=request.end_time,
        location=request.location,
        participants=request.participants,
    )
    try:
        result = await update_meeting(
            user, meeting_id, changes, dispatcher, notify=request.notify
        )
    except MeetingNotFoundError:
        raise HTTPException(404, "Meeting not found")
    except NotOrganizerError:
        raise HTTPException(403, "Only the organizer can edit this meeting")
    except InvalidMeetingError as e:
        raise HTTPException(400, str(e))

    return _result_response(result)


@router.delete("/{meeting_id}")
async def cancel_meeting_endpoint(
    meeting_id: str,
    user: Caller = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Cancel a meeting and email its participants."""
    try:
        result = await cancel_meeting(user, meeting_id, dispatcher)
    except MeetingNotFoundError:
        raise HTTPException(404, "Meeting not found")
    except NotOrganizerError:
        raise HTTPException(403, "Only the organizer can cancel this meeting")

    return _result_response(result)


@router.post("/{meeting_id}/rsvp")
async def rsvp_endpoint(
    meeting_id: str,
    request: RsvpRequest,
    user: Caller = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Record the caller's response to an invitation."""
    try:
        result = await respond(meeting_id, user.email, request.status, dispatcher)
    except InvalidRsvpStatusError as e:
        raise HTTPException(400, str(e))
    except MeetingNotFoundError:
        raise HTTPException(404, "Meeting not found")
    except ParticipantNotFoundError:
        raise HTTPException(404, "You are not invited to this meeting")

    return _result_response(result)
