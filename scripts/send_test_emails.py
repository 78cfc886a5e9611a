#!/usr/bin/env python3
"""
Send test emails using the actual notification template pipeline.

Renders every notification kind for a sample meeting and sends it through
the configured mail relay.

Usage:
    python scripts/send_test_emails.py <email_address> [kind ...]

Examples:
    python scripts/send_test_emails.py test@example.com invitation reminder
    python scripts/send_test_emails.py test@example.com  # sends all kinds
"""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytz

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv(".env.local")
load_dotenv()

from core.config import get_app_timezone
from core.enums import NotificationKind, ParticipantStatus
from core.models import Meeting, Organizer, Participant
from core.notifications.channels.email import EmailMessage, MailTransport
from core.notifications.templates import render
from core.timezone import DATE_FORMAT


def build_sample_meeting(to_email: str) -> Meeting:
    """A meeting next Wednesday at 15:00 (app timezone) with the recipient invited."""
    now = datetime.now(pytz.timezone(get_app_timezone()))
    days_until_wednesday = (2 - now.weekday()) % 7 or 7
    day = (now + timedelta(days=days_until_wednesday)).strftime(DATE_FORMAT)

    return Meeting(
        meeting_id="test-meeting",
        title="Weekly Planning",
        agenda="1. Review last week\n2. Plan next sprint",
        date=day,
        start_time="15:00",
        end_time="16:00",
        location="https://zoom.us/j/1234567890",
        organizer=Organizer(id="test", name="Test Organizer", email=to_email),
        participants=[
            Participant.invite(to_email),
            Participant(
                email="alice@example.com", name="alice", status=ParticipantStatus.accepted
            ),
        ],
    )


SAMPLE_EXTRAS = {
    NotificationKind.reminder: {"minutes_before": 15},
    NotificationKind.update: {
        "changes": ["Start time changed to: 3:00 PM", "Agenda updated"]
    },
    NotificationKind.rsvp_confirmation: {"status": ParticipantStatus.accepted},
    NotificationKind.rsvp_summary: {
        "status": ParticipantStatus.maybe,
        "participant_email": "alice@example.com",
    },
}


async def send_test_email(
    transport: MailTransport, to_email: str, kind: NotificationKind
) -> bool:
    """Render and send one notification kind."""
    meeting = build_sample_meeting(to_email)
    rendered = render(kind, meeting, to_email, SAMPLE_EXTRAS.get(kind))

    # Add [TEST] prefix to subject
    subject = f"[TEST] {rendered.subject}"

    print(f"\n{'='*60}")
    print(f"Sending: {kind.value}")
    print(f"To: {to_email}")
    print(f"Subject: {subject}")
    print(f"{'='*60}")
    print(rendered.text[:500] + "..." if len(rendered.text) > 500 else rendered.text)
    print(f"{'='*60}")

    result = await transport.send(
        EmailMessage(
            to_email=to_email, subject=subject, html=rendered.html, text=rendered.text
        )
    )
    print(f"Result: {'✓ Sent' if result.success else f'✗ Failed: {result.error}'}")
    return result.success


async def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    to_email = sys.argv[1]
    try:
        kinds = [NotificationKind(k) for k in sys.argv[2:]] or list(NotificationKind)
    except ValueError as e:
        print(f"Unknown notification kind: {e}")
        print(f"Known kinds: {', '.join(k.value for k in NotificationKind)}")
        sys.exit(1)

    print(f"Sending test emails to: {to_email}")
    print(f"Using timezone: {get_app_timezone()}")
    print(f"Kinds: {', '.join(k.value for k in kinds)}")

    transport = MailTransport()
    results = {}
    try:
        for kind in kinds:
            results[kind] = await send_test_email(transport, to_email, kind)
    finally:
        await transport.close()

    print(f"\n{'='*60}")
    print("Summary:")
    for kind, success in results.items():
        status = "✓" if success else "✗"
        print(f"  {status} {kind.value}")

    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    asyncio.run(main())
