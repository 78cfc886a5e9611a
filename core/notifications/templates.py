"""Message template loading and rendering."""

import html
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from core.enums import NotificationKind, ParticipantStatus
from core.models import Meeting
from core.notifications.channels.email import html_to_text
from core.notifications.urls import (
    build_dashboard_url,
    build_meeting_url,
    build_rsvp_url,
)
from core.timezone import format_meeting_date, format_meeting_time, format_time_range


_templates: dict | None = None

# Wording for "You have ___ the invitation"
STATUS_TEXT = {
    ParticipantStatus.accepted: "accepted",
    ParticipantStatus.declined: "declined",
    ParticipantStatus.maybe: "marked as maybe",
    ParticipantStatus.invited: "not yet answered",
}

BLANK_LINES_PATTERN = re.compile(r"\n{3,}")


@dataclass
class RenderedEmail:
    """Subject and both bodies of one email."""

    subject: str
    html: str
    text: str


def load_templates() -> dict:
    """
    Load message templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path, encoding="utf-8") as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Args:
        template: String with {variable} placeholders
        context: Dict of variable names to values

    Returns:
        Rendered string

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context)


def build_context(meeting: Meeting, recipient_email: str, extra: dict) -> dict:
    """Raw (unescaped) template variables for one recipient."""
    status = extra.get("status")
    status_text = STATUS_TEXT[ParticipantStatus(status)] if status else ""

    return {
        "title": meeting.title,
        "agenda": meeting.agenda,
        "date": format_meeting_date(meeting.date),
        "time": format_time_range(meeting.start_time, meeting.end_time),
        "start_time": format_meeting_time(meeting.start_time),
        "location": meeting.location or "TBD",
        "organizer_name": meeting.organizer.name,
        "organizer_email": meeting.organizer.email,
        "recipient_email": recipient_email,
        "participant_email": extra.get("participant_email", recipient_email),
        "meeting_url": build_meeting_url(meeting.meeting_id),
        "dashboard_url": build_dashboard_url(),
        "accept_url": build_rsvp_url(meeting.meeting_id, "accepted", recipient_email),
        "decline_url": build_rsvp_url(meeting.meeting_id, "declined", recipient_email),
        "maybe_url": build_rsvp_url(meeting.meeting_id, "maybe", recipient_email),
        "minutes": extra.get("minutes_before", 15),
        "status_text": status_text,
    }


def _render_blocks(
    templates: dict,
    variant: str,
    context: dict,
    meeting: Meeting,
    extra: dict,
    escape,
) -> dict:
    """Render the optional sections a template body can include."""
    fragments = templates["fragments"][variant]

    agenda_block = ""
    if meeting.agenda.strip():
        agenda_block = render_message(fragments["agenda"], context)

    join_block = ""
    if meeting.is_virtual:
        join_block = render_message(fragments["join_link"], context)

    change_items = "\n".join(
        render_message(fragments["change_item"], {"change": escape(change)})
        for change in extra.get("changes", [])
    )

    banner = ""
    if extra.get("status") == ParticipantStatus.accepted:
        banner = render_message(fragments["accepted_banner"], context)

    return {
        "details": render_message(templates["details"][variant], context),
        "agenda_block": agenda_block,
        "join_block": join_block,
        "change_items": change_items,
        "banner": banner,
    }


def render(
    kind: NotificationKind | str,
    meeting: Meeting,
    recipient_email: str,
    extra: dict | None = None,
) -> RenderedEmail:
    """
    Render one notification email for one recipient.

    Args:
        kind: Which notification to render
        meeting: Meeting the notification is about
        recipient_email: Address the email goes to (used for RSVP links)
        extra: Kind-specific values: minutes_before (reminder), changes
            (update), status (rsvp-confirmation, rsvp-summary),
            participant_email (rsvp-summary)

    Returns:
        RenderedEmail with a non-empty plain-text body

    Raises:
        ValueError: If kind is not a known notification kind
    """
    try:
        kind = NotificationKind(kind)
    except ValueError:
        raise ValueError(f"Unknown notification kind: {kind}") from None

    extra = extra or {}
    templates = load_templates()
    template = templates[kind.value]

    raw_context = build_context(meeting, recipient_email, extra)
    html_context = {key: html.escape(str(value)) for key, value in raw_context.items()}

    subject = render_message(template["subject"], raw_context)

    html_blocks = _render_blocks(
        templates, "html", html_context, meeting, extra, html.escape
    )
    content = render_message(template["html"], {**html_context, **html_blocks})
    html_body = render_message(
        templates["layout"],
        {"subject": html.escape(subject), "content": content.strip()},
    )

    text = ""
    if template.get("text"):
        text_blocks = _render_blocks(templates, "text", raw_context, meeting, extra, str)
        text = render_message(template["text"], {**raw_context, **text_blocks})
        text = BLANK_LINES_PATTERN.sub("\n\n", text).strip()
    if not text:
        text = html_to_text(html_body)

    return RenderedEmail(subject=subject, html=html_body, text=text)


def render_test_email(name: str, provider: str, from_email: str, sent_at: str) -> RenderedEmail:
    """Render the email sent to check relay configuration end to end."""
    templates = load_templates()
    template = templates["test_email"]
    context = {
        "name": name,
        "provider": provider,
        "from_email": from_email,
        "sent_at": sent_at,
        "dashboard_url": build_dashboard_url(),
    }
    escaped = {key: html.escape(value) for key, value in context.items()}

    subject = render_message(template["subject"], context)
    content = render_message(template["html"], escaped)
    html_body = render_message(
        templates["layout"],
        {"subject": html.escape(subject), "content": content.strip()},
    )
    text = render_message(template["text"], context).strip()
    return RenderedEmail(subject=subject, html=html_body, text=text)
