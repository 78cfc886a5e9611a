"""
Notification dispatcher - turns a meeting event into one email per recipient.

Every dispatch follows the same steps: work out who gets the email, render
it per recipient, send the emails one by one, and aggregate the outcomes
into a BatchResult. Delivery failures are recorded, never raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from core.enums import NotificationKind, ParticipantStatus
from core.models import Meeting, normalize_email
from core.notifications.channels.email import EmailMessage, MailTransport
from core.notifications.templates import render
from core.rsvp import reminder_recipients

logger = logging.getLogger(__name__)


@dataclass
class RecipientOutcome:
    """Delivery outcome for one recipient."""

    email: str
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class BatchResult:
    """Aggregated outcome of one notification event."""

    event: str
    meeting_id: str
    outcomes: list[RecipientOutcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.attempted - self.sent

    @property
    def fully_successful(self) -> bool:
        # An empty batch has nothing left undelivered
        return self.sent == self.attempted

    def summary(self) -> dict:
        """Short form returned alongside API responses."""
        return {
            "sent": self.sent,
            "attempted": self.attempted,
            "fully_successful": self.fully_successful,
        }

    def to_dict(self) -> dict:
        return {
            "event": self.event,
            "meeting_id": self.meeting_id,
            "skipped": self.skipped,
            **self.summary(),
            "failures": [
                {"email": o.email, "error": o.error}
                for o in self.outcomes
                if not o.success
            ],
        }


def unique_recipients(emails: list[str]) -> list[str]:
    """De-duplicate addresses case-insensitively, keeping first occurrences."""
    seen = set()
    recipients = []
    for email in emails:
        key = normalize_email(email)
        if key and key not in seen:
            seen.add(key)
            recipients.append(email.strip())
    return recipients


class NotificationDispatcher:
    """Sends meeting notifications through a shared MailTransport."""

    def __init__(self, transport: MailTransport, send_delay: float = 0.1):
        self.transport = transport
        self.send_delay = send_delay

    async def _send_batch(
        self,
        event: str,
        meeting: Meeting,
        deliveries: list[tuple[str, NotificationKind, dict]],
    ) -> BatchResult:
        """
        Render and send one email per (recipient, kind, extra) entry.

        Sends run sequentially with send_delay between them. A render
        failure is recorded against its recipient like a delivery failure.
        """
        batch = BatchResult(event=event, meeting_id=meeting.meeting_id)

        for index, (email, kind, extra) in enumerate(deliveries):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)

            try:
                rendered = render(kind, meeting, email, extra)
            except Exception as e:
                logger.error(f"Failed to render {kind.value} for {email}: {e}")
                batch.outcomes.append(
                    RecipientOutcome(email=email, success=False, error=str(e))
                )
                continue

            result = await self.transport.send(
                EmailMessage(
                    to_email=email,
                    subject=rendered.subject,
                    html=rendered.html,
                    text=rendered.text,
                )
            )
            batch.outcomes.append(
                RecipientOutcome(
                    email=email,
                    success=result.success,
                    message_id=result.message_id,
                    error=result.error,
                )
            )

        log = logger.info if batch.fully_successful else logger.warning
        log(
            f"Sent {batch.sent}/{batch.attempted} {event} notifications "
            f"for meeting {meeting.meeting_id}"
        )
        return batch

    async def dispatch_invitation(self, meeting: Meeting) -> BatchResult:
        """Invite every participant, with RSVP links in each email."""
        recipients = unique_recipients([p.email for p in meeting.participants])
        return await self._send_batch(
            NotificationKind.invitation.value,
            meeting,
            [(email, NotificationKind.invitation, {}) for email in recipients],
        )

    async def dispatch_update(
        self,
        meeting: Meeting,
        changes: list[str],
        notify: bool = True,
    ) -> BatchResult:
        """
        Tell participants and the organizer what changed.

        Nothing is sent when there are no changes or notify is False.
        """
        if not changes or not notify:
            logger.info(f"Skipping update notifications for meeting {meeting.meeting_id}")
            return BatchResult(
                event=NotificationKind.update.value,
                meeting_id=meeting.meeting_id,
                skipped=True,
            )

        recipients = unique_recipients(
            [p.email for p in meeting.participants] + [meeting.organizer.email]
        )
        extra = {"changes": list(changes)}
        return await self._send_batch(
            NotificationKind.update.value,
            meeting,
            [(email, NotificationKind.update, extra) for email in recipients],
        )

    async def dispatch_cancellation(self, meeting: Meeting) -> BatchResult:
        """Tell every participant the meeting is off."""
        recipients = unique_recipients([p.email for p in meeting.participants])
        return await self._send_batch(
            NotificationKind.cancellation.value,
            meeting,
            [(email, NotificationKind.cancellation, {}) for email in recipients],
        )

    async def dispatch_rsvp_confirmation(
        self,
        meeting: Meeting,
        participant_email: str,
        status: ParticipantStatus | str,
    ) -> BatchResult:
        """Confirm an RSVP to the participant and summarize it for the organizer."""
        status = ParticipantStatus(status)
        extra = {"status": status, "participant_email": participant_email}

        deliveries = [(participant_email, NotificationKind.rsvp_confirmation, extra)]
        if normalize_email(meeting.organizer.email) != normalize_email(participant_email):
            deliveries.append(
                (meeting.organizer.email, NotificationKind.rsvp_summary, extra)
            )

        return await self._send_batch(
            NotificationKind.rsvp_confirmation.value, meeting, deliveries
        )

    async def dispatch_reminder(
        self,
        meeting: Meeting,
        minutes_before: int = 15,
    ) -> BatchResult:
        """Remind accepted and maybe participants, plus the organizer."""
        recipients = unique_recipients(
            [p.email for p in reminder_recipients(meeting)] + [meeting.organizer.email]
        )
        extra = {"minutes_before": minutes_before}
        return await self._send_batch(
            NotificationKind.reminder.value,
            meeting,
            [(email, NotificationKind.reminder, extra) for email in recipients],
        )
