"""Tests for the meeting lifecycle: create, edit, RSVP, cancel."""

from datetime import datetime, timezone

import pytest

from core.database import get_connection
from core.enums import ParticipantStatus
from core.meetings import (
    MeetingChanges,
    MeetingDraft,
    NotOrganizerError,
    apply_changes,
    cancel_meeting,
    create_meeting,
    get_meeting_for,
    list_meetings_for,
    meeting_stats_for,
    merge_participants,
    respond,
    update_meeting,
)
from core.models import Caller, InvalidMeetingError, Meeting, Organizer, Participant
from core.queries.meetings import get_meeting
from core.rsvp import MeetingNotFoundError, ParticipantNotFoundError

OLIVIA = Caller(id="u-1", name="Olivia", email="olivia@example.com")
OSCAR = Caller(id="u-2", name="Oscar", email="oscar@example.com")
ALICE = Caller(id="u-3", name="Alice", email="alice@example.com")


def make_draft(**overrides) -> MeetingDraft:
    fields = {
        "title": "Standup",
        "date": "2024-01-15",
        "start_time": "09:00",
        "end_time": "09:30",
        "location": "Room 4",
        "participants": ["alice@example.com", "Bob@Example.com"],
    }
    fields.update(overrides)
    return MeetingDraft(**fields)


async def load(meeting_id: str) -> Meeting:
    async with get_connection() as conn:
        return await get_meeting(conn, meeting_id, include_inactive=True)


class TestMergeParticipants:
    def test_keeps_existing_state_and_invites_new(self):
        alice = Participant(
            email="alice@example.com", name="Alice", status=ParticipantStatus.accepted
        )
        merged = merge_participants(
            [alice, Participant.invite("bob@example.com")],
            ["dave@example.com", "ALICE@example.com"],
        )

        assert [p.email for p in merged] == ["dave@example.com", "alice@example.com"]
        assert merged[0].status == ParticipantStatus.invited
        assert merged[1] is alice


class TestApplyChanges:
    def make_meeting(self) -> Meeting:
        return Meeting(
            meeting_id="m-1",
            title="Standup",
            date="2024-01-15",
            start_time="09:00",
            end_time="09:30",
            organizer=Organizer(id="u-1", name="Olivia", email="olivia@example.com"),
            location="Room 4",
            participants=[Participant.invite("alice@example.com")],
            reminder_sent=True,
        )

    def test_unchanged_values_are_ignored(self):
        meeting = self.make_meeting()

        _, values, descriptions = apply_changes(
            meeting, MeetingChanges(title="Standup", location="Room 4")
        )

        assert values == {}
        assert descriptions == []

    def test_describes_each_change(self):
        meeting = self.make_meeting()

        updated, values, descriptions = apply_changes(
            meeting,
            MeetingChanges(
                title="Daily",
                agenda="Blockers",
                date="2024-01-16",
                start_time="09:15",
                end_time="09:45",
                location="",
                participants=["alice@example.com", "dave@example.com"],
            ),
        )

        assert descriptions == [
            "Title changed to: Daily",
            "Agenda updated",
            "Date changed to: Tue, Jan 16",
            "Start time changed to: 9:15 AM",
            "End time changed to: 9:45 AM",
            "Location changed to: TBD",
            "Participant list updated",
        ]
        assert updated.title == "Daily"
        assert "reminder_sent" not in values

    def test_edit_that_breaks_time_order_raises(self):
        with pytest.raises(InvalidMeetingError):
            apply_changes(self.make_meeting(), MeetingChanges(start_time="10:00"))


class TestCreateMeeting:
    @pytest.mark.asyncio
    async def test_stores_meeting_and_invites_participants(self, db, dispatcher, transport):
        result = await create_meeting(OLIVIA, make_draft(), dispatcher)

        meeting = result.meeting
        assert meeting.organizer.email == "olivia@example.com"
        assert [p.email for p in meeting.participants] == [
            "alice@example.com",
            "bob@example.com",
        ]
        assert (await load(meeting.meeting_id)).title == "Standup"
        assert transport.recipients == ["alice@example.com", "bob@example.com"]
        assert result.notifications.fully_successful is True

    @pytest.mark.asyncio
    async def test_meeting_survives_failed_invitations(self, db, dispatcher, transport):
        transport.fail_for = {"alice@example.com", "bob@example.com"}

        result = await create_meeting(OLIVIA, make_draft(), dispatcher)

        assert result.notifications.sent == 0
        assert (await load(result.meeting.meeting_id)).is_active is True

    @pytest.mark.asyncio
    async def test_invalid_draft_is_not_stored(self, db, dispatcher, transport):
        with pytest.raises(InvalidMeetingError):
            await create_meeting(
                OLIVIA, make_draft(start_time="10:00", end_time="09:00"), dispatcher
            )

        assert await list_meetings_for(OLIVIA) == []
        assert transport.sent == []


class TestUpdateMeeting:
    @pytest.mark.asyncio
    async def test_notifies_participants_and_organizer(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.sent.clear()

        result = await update_meeting(
            OLIVIA, created.meeting.meeting_id, MeetingChanges(title="Daily"), dispatcher
        )

        assert result.meeting.title == "Daily"
        assert transport.recipients == [
            "alice@example.com",
            "bob@example.com",
            "olivia@example.com",
        ]
        assert "Title changed to: Daily" in transport.sent[0].text

    @pytest.mark.asyncio
    async def test_notify_false_saves_silently(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.sent.clear()

        result = await update_meeting(
            OLIVIA,
            created.meeting.meeting_id,
            MeetingChanges(agenda="Blockers"),
            dispatcher,
            notify=False,
        )

        assert transport.sent == []
        assert result.notifications.skipped is True
        assert (await load(created.meeting.meeting_id)).agenda == "Blockers"

    @pytest.mark.asyncio
    async def test_participant_edit_keeps_responses(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        meeting_id = created.meeting.meeting_id
        await respond(meeting_id, "alice@example.com", "accepted", dispatcher)
        transport.sent.clear()

        await update_meeting(
            OLIVIA,
            meeting_id,
            MeetingChanges(participants=["alice@example.com", "dave@example.com"]),
            dispatcher,
        )

        meeting = await load(meeting_id)
        assert [p.email for p in meeting.participants] == [
            "alice@example.com",
            "dave@example.com",
        ]
        assert meeting.participant("alice@example.com").status == ParticipantStatus.accepted
        assert meeting.participant("dave@example.com").status == ParticipantStatus.invited
        # Added participants hear about it through the update email only
        assert transport.subjects_for("dave@example.com") == ["Meeting Updated: Standup"]

    @pytest.mark.asyncio
    async def test_rescheduling_rearms_reminder(self, db, dispatcher):
        from core.database import get_transaction
        from core.queries.meetings import claim_reminder

        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        meeting_id = created.meeting.meeting_id
        async with get_transaction() as conn:
            await claim_reminder(conn, meeting_id)

        await update_meeting(
            OLIVIA, meeting_id, MeetingChanges(date="2024-01-16"), dispatcher
        )

        assert (await load(meeting_id)).reminder_sent is False

    @pytest.mark.asyncio
    async def test_end_time_change_keeps_reminder_state(self, db, dispatcher):
        from core.database import get_transaction
        from core.queries.meetings import claim_reminder

        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        meeting_id = created.meeting.meeting_id
        async with get_transaction() as conn:
            await claim_reminder(conn, meeting_id)

        await update_meeting(
            OLIVIA, meeting_id, MeetingChanges(end_time="10:00"), dispatcher
        )

        assert (await load(meeting_id)).reminder_sent is True

    @pytest.mark.asyncio
    async def test_only_organizer_can_edit(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.sent.clear()

        with pytest.raises(NotOrganizerError):
            await update_meeting(
                OSCAR, created.meeting.meeting_id, MeetingChanges(title="Mine"), dispatcher
            )

        assert (await load(created.meeting.meeting_id)).title == "Standup"
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_missing_meeting(self, db, dispatcher):
        with pytest.raises(MeetingNotFoundError):
            await update_meeting(OLIVIA, "nope", MeetingChanges(title="X"), dispatcher)


class TestCancelMeeting:
    @pytest.mark.asyncio
    async def test_notifies_then_soft_deletes(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.sent.clear()

        result = await cancel_meeting(OLIVIA, created.meeting.meeting_id, dispatcher)

        assert result.meeting.is_active is False
        assert transport.recipients == ["alice@example.com", "bob@example.com"]
        assert (await load(created.meeting.meeting_id)).is_active is False
        assert await list_meetings_for(OLIVIA) == []

    @pytest.mark.asyncio
    async def test_cancelled_even_when_every_email_fails(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.fail_for = {"alice@example.com", "bob@example.com"}

        result = await cancel_meeting(OLIVIA, created.meeting.meeting_id, dispatcher)

        assert result.notifications.sent == 0
        assert (await load(created.meeting.meeting_id)).is_active is False

    @pytest.mark.asyncio
    async def test_only_organizer_can_cancel(self, db, dispatcher):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)

        with pytest.raises(NotOrganizerError):
            await cancel_meeting(ALICE, created.meeting.meeting_id, dispatcher)

        assert (await load(created.meeting.meeting_id)).is_active is True

    @pytest.mark.asyncio
    async def test_cancelling_twice_raises(self, db, dispatcher):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        await cancel_meeting(OLIVIA, created.meeting.meeting_id, dispatcher)

        with pytest.raises(MeetingNotFoundError):
            await cancel_meeting(OLIVIA, created.meeting.meeting_id, dispatcher)


class TestRespond:
    @pytest.mark.asyncio
    async def test_records_and_confirms(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.sent.clear()

        result = await respond(
            created.meeting.meeting_id, "bob@example.com", "maybe", dispatcher
        )

        assert result.meeting.participant("bob@example.com").status == (
            ParticipantStatus.maybe
        )
        assert transport.recipients == ["bob@example.com", "olivia@example.com"]

    @pytest.mark.asyncio
    async def test_uninvited_address_rejected(self, db, dispatcher, transport):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        transport.sent.clear()

        with pytest.raises(ParticipantNotFoundError):
            await respond(
                created.meeting.meeting_id, "mallory@example.com", "accepted", dispatcher
            )

        assert transport.sent == []


class TestVisibility:
    @pytest.mark.asyncio
    async def test_organizer_and_participants_can_view(self, db, dispatcher):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)
        meeting_id = created.meeting.meeting_id

        assert (await get_meeting_for(OLIVIA, meeting_id)).meeting_id == meeting_id
        assert (await get_meeting_for(ALICE, meeting_id)).meeting_id == meeting_id

    @pytest.mark.asyncio
    async def test_outsiders_get_not_found(self, db, dispatcher):
        created = await create_meeting(OLIVIA, make_draft(), dispatcher)

        with pytest.raises(MeetingNotFoundError):
            await get_meeting_for(OSCAR, created.meeting.meeting_id)

    @pytest.mark.asyncio
    async def test_list_includes_invitations(self, db, dispatcher):
        await create_meeting(OLIVIA, make_draft(), dispatcher)
        await create_meeting(
            OSCAR, make_draft(title="Other", participants=["carol@example.com"]), dispatcher
        )

        assert [m.title for m in await list_meetings_for(ALICE)] == ["Standup"]


class TestMeetingStats:
    @pytest.mark.asyncio
    async def test_counts(self, db, dispatcher):
        await create_meeting(OLIVIA, make_draft(start_time="08:00", end_time="08:30"), dispatcher)
        await create_meeting(OLIVIA, make_draft(date="2024-01-16"), dispatcher)
        await create_meeting(
            OSCAR,
            make_draft(title="Planning", start_time="14:00", end_time="15:00",
                       participants=["olivia@example.com"]),
            dispatcher,
        )

        stats = await meeting_stats_for(
            OLIVIA, now=datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
        )

        assert stats == {
            "total": 3,
            "upcoming": 2,
            "today": 2,
            "organized": 2,
            "pending_invitations": 1,
        }
