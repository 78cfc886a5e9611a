"""Tests for notification dispatcher."""

from unittest.mock import patch

import pytest

from core.enums import ParticipantStatus
from core.models import Meeting, Organizer, Participant
from core.notifications.dispatcher import (
    BatchResult,
    RecipientOutcome,
    unique_recipients,
)


def make_meeting(participants=None, **overrides) -> Meeting:
    fields = {
        "meeting_id": "m-1",
        "title": "Standup",
        "date": "2024-01-15",
        "start_time": "09:00",
        "end_time": "09:30",
        "organizer": Organizer(id="u-1", name="Olivia", email="olivia@example.com"),
        "location": "https://zoom.us/j/123",
        "participants": participants
        if participants is not None
        else [
            Participant.invite("alice@example.com"),
            Participant.invite("bob@example.com"),
        ],
    }
    fields.update(overrides)
    return Meeting(**fields)


def participant(email, status) -> Participant:
    return Participant(email=email, name=email.split("@")[0], status=status)


class TestBatchResult:
    def test_counts(self):
        batch = BatchResult(
            event="invitation",
            meeting_id="m-1",
            outcomes=[
                RecipientOutcome(email="a@example.com", success=True),
                RecipientOutcome(email="b@example.com", success=False, error="rejected"),
            ],
        )
        assert batch.attempted == 2
        assert batch.sent == 1
        assert batch.failed == 1
        assert batch.fully_successful is False
        assert batch.to_dict()["failures"] == [
            {"email": "b@example.com", "error": "rejected"}
        ]

    def test_empty_batch_is_fully_successful(self):
        batch = BatchResult(event="invitation", meeting_id="m-1")
        assert batch.fully_successful is True
        assert batch.summary() == {"sent": 0, "attempted": 0, "fully_successful": True}


class TestUniqueRecipients:
    def test_dedupes_case_insensitively_keeping_first(self):
        assert unique_recipients(
            ["Alice@Example.com", "bob@example.com", "alice@example.com"]
        ) == ["Alice@Example.com", "bob@example.com"]


class TestDispatchInvitation:
    @pytest.mark.asyncio
    async def test_one_email_per_participant(self, dispatcher, transport):
        batch = await dispatcher.dispatch_invitation(make_meeting())

        assert transport.recipients == ["alice@example.com", "bob@example.com"]
        assert batch.sent == 2
        assert batch.fully_successful is True
        assert transport.sent[0].subject == "Meeting Invitation: Standup - Mon, Jan 15"

    @pytest.mark.asyncio
    async def test_each_recipient_gets_own_rsvp_links(self, dispatcher, transport):
        await dispatcher.dispatch_invitation(make_meeting())

        assert "email=alice%40example.com" in transport.sent[0].text
        assert "email=bob%40example.com" in transport.sent[1].text
        assert "email=bob%40example.com" not in transport.sent[0].text

    @pytest.mark.asyncio
    async def test_partial_failure_is_reported_not_raised(self, dispatcher, transport):
        meeting = make_meeting(
            [
                Participant.invite("p1@example.com"),
                Participant.invite("bad@example.com"),
                Participant.invite("p3@example.com"),
            ]
        )
        transport.fail_for = {"bad@example.com"}

        batch = await dispatcher.dispatch_invitation(meeting)

        assert batch.attempted == 3
        assert batch.sent == 2
        assert batch.fully_successful is False
        failed = [o for o in batch.outcomes if not o.success]
        assert [o.email for o in failed] == ["bad@example.com"]
        assert "550" in failed[0].error

    @pytest.mark.asyncio
    async def test_no_participants_is_empty_success(self, dispatcher, transport):
        batch = await dispatcher.dispatch_invitation(make_meeting([]))

        assert transport.sent == []
        assert batch.attempted == 0
        assert batch.fully_successful is True

    @pytest.mark.asyncio
    async def test_render_failure_recorded_against_recipient(self, dispatcher, transport):
        with patch(
            "core.notifications.dispatcher.render",
            side_effect=KeyError("title"),
        ):
            batch = await dispatcher.dispatch_invitation(make_meeting())

        assert transport.sent == []
        assert batch.failed == 2


class TestDispatchUpdate:
    @pytest.mark.asyncio
    async def test_notifies_participants_and_organizer(self, dispatcher, transport):
        batch = await dispatcher.dispatch_update(make_meeting(), ["Agenda updated"])

        assert transport.recipients == [
            "alice@example.com",
            "bob@example.com",
            "olivia@example.com",
        ]
        assert batch.sent == 3
        assert "- Agenda updated" in transport.sent[0].text

    @pytest.mark.asyncio
    async def test_organizer_who_is_participant_gets_one_email(self, dispatcher, transport):
        meeting = make_meeting(
            [Participant.invite("alice@example.com"), Participant.invite("Olivia@example.com")]
        )

        await dispatcher.dispatch_update(meeting, ["Agenda updated"])

        assert len(transport.sent) == 2

    @pytest.mark.asyncio
    async def test_empty_changes_sends_nothing(self, dispatcher, transport):
        batch = await dispatcher.dispatch_update(make_meeting(), [])

        assert transport.sent == []
        assert batch.skipped is True
        assert batch.attempted == 0

    @pytest.mark.asyncio
    async def test_notify_false_sends_nothing(self, dispatcher, transport):
        batch = await dispatcher.dispatch_update(
            make_meeting(), ["Title changed to: Sync"], notify=False
        )

        assert transport.sent == []
        assert batch.skipped is True


class TestDispatchCancellation:
    @pytest.mark.asyncio
    async def test_notifies_participants_only(self, dispatcher, transport):
        batch = await dispatcher.dispatch_cancellation(make_meeting())

        assert transport.recipients == ["alice@example.com", "bob@example.com"]
        assert transport.sent[0].subject == "Meeting Cancelled: Standup"
        assert batch.event == "cancellation"

    @pytest.mark.asyncio
    async def test_one_rejected_address_of_three(self, dispatcher, transport):
        meeting = make_meeting(
            [
                Participant.invite("p1@example.com"),
                Participant.invite("bad@example.com"),
                Participant.invite("p3@example.com"),
            ]
        )
        transport.fail_for = {"bad@example.com"}

        batch = await dispatcher.dispatch_cancellation(meeting)

        assert transport.recipients == [
            "p1@example.com",
            "bad@example.com",
            "p3@example.com",
        ]
        assert batch.sent == 2
        assert batch.failed == 1
        assert batch.fully_successful is False
        assert [o.email for o in batch.outcomes if not o.success] == ["bad@example.com"]


class TestDispatchRsvpConfirmation:
    @pytest.mark.asyncio
    async def test_confirms_to_participant_and_summarizes_to_organizer(
        self, dispatcher, transport
    ):
        batch = await dispatcher.dispatch_rsvp_confirmation(
            make_meeting(), "alice@example.com", "accepted"
        )

        assert transport.recipients == ["alice@example.com", "olivia@example.com"]
        assert transport.sent[0].subject == "RSVP Confirmed: Standup"
        assert transport.sent[1].subject == "RSVP Update: Standup"
        assert "alice@example.com has accepted" in transport.sent[1].text
        assert batch.sent == 2

    @pytest.mark.asyncio
    async def test_invalid_status_raises(self, dispatcher):
        with pytest.raises(ValueError):
            await dispatcher.dispatch_rsvp_confirmation(
                make_meeting(), "alice@example.com", "sometimes"
            )


class TestDispatchReminder:
    @pytest.mark.asyncio
    async def test_reminds_accepted_and_maybe_plus_organizer(self, dispatcher, transport):
        meeting = make_meeting(
            [
                participant("p1@example.com", ParticipantStatus.accepted),
                participant("p2@example.com", ParticipantStatus.maybe),
                participant("p3@example.com", ParticipantStatus.declined),
                participant("p4@example.com", ParticipantStatus.invited),
            ]
        )

        batch = await dispatcher.dispatch_reminder(meeting)

        assert transport.recipients == [
            "p1@example.com",
            "p2@example.com",
            "olivia@example.com",
        ]
        assert batch.sent == 3
        for message in transport.sent:
            assert message.subject == "Reminder: Standup starts in 15 minutes"
            assert "Join Meeting" in message.html
            assert "https://zoom.us/j/123" in message.html

    @pytest.mark.asyncio
    async def test_only_organizer_when_nobody_accepted(self, dispatcher, transport):
        meeting = make_meeting([participant("p1@example.com", ParticipantStatus.declined)])

        await dispatcher.dispatch_reminder(meeting)

        assert transport.recipients == ["olivia@example.com"]

    @pytest.mark.asyncio
    async def test_sends_are_spaced_by_delay(self, transport):
        from unittest.mock import AsyncMock

        from core.notifications.dispatcher import NotificationDispatcher

        dispatcher = NotificationDispatcher(transport, send_delay=0.1)
        with patch(
            "core.notifications.dispatcher.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await dispatcher.dispatch_invitation(make_meeting())

        mock_sleep.assert_awaited_once_with(0.1)
