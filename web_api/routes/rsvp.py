"""
One-click RSVP links from invitation emails.

Endpoints:
- GET /meetings/{meeting_id}/rsvp?status=...&email=... - Record the response
  and redirect to the meeting page (or the dashboard with an error code)

The link carries the participant's address, so no session is required.
Following the same link again re-applies the same status.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from core.config import get_app_url
from core.enums import RSVP_STATUSES
from core.meetings import respond
from core.notifications.dispatcher import NotificationDispatcher
from core.rsvp import (
    InvalidRsvpStatusError,
    MeetingNotFoundError,
    ParticipantNotFoundError,
)
from web_api.deps import get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rsvp"])


def _dashboard_redirect(error: str) -> RedirectResponse:
    query = urlencode({"error": error})
    return RedirectResponse(f"{get_app_url()}/dashboard?{query}", status_code=303)


@router.get("/meetings/{meeting_id}/rsvp")
async def rsvp_link_endpoint(
    meeting_id: str,
    status: str | None = None,
    email: str | None = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> RedirectResponse:
    """Apply an RSVP from an email link."""
    if not status or not email or status not in [s.value for s in RSVP_STATUSES]:
        return _dashboard_redirect("invalid-rsvp")

    try:
        await respond(meeting_id, email, status, dispatcher)
    except InvalidRsvpStatusError:
        return _dashboard_redirect("invalid-rsvp")
    except (MeetingNotFoundError, ParticipantNotFoundError):
        return _dashboard_redirect("meeting-not-found")
    except Exception as e:
        logger.error(f"RSVP via email link failed for meeting {meeting_id}: {e}")
        return _dashboard_redirect("rsvp-failed")

    query = urlencode({"rsvp": status})
    return RedirectResponse(
        f"{get_app_url()}/meetings/{meeting_id}?{query}", status_code=303
    )
