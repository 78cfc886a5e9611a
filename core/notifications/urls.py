"""URL builder utilities for notification templates."""

from urllib.parse import urlencode

from core.config import get_app_url


def build_meeting_url(meeting_id: str) -> str:
    """Build URL to a meeting's detail page."""
    base = get_app_url()
    return f"{base}/meetings/{meeting_id}"


def build_rsvp_url(meeting_id: str, status: str, email: str) -> str:
    """
    Build a one-click RSVP link.

    Following the link applies the status; following it again re-applies
    the same status.

    Args:
        meeting_id: Meeting being answered
        status: "accepted", "declined" or "maybe"
        email: Participant address the link is for
    """
    base = get_app_url()
    query = urlencode({"status": status, "email": email})
    return f"{base}/meetings/{meeting_id}/rsvp?{query}"


def build_dashboard_url() -> str:
    """Build URL to the user's dashboard."""
    base = get_app_url()
    return f"{base}/dashboard"
