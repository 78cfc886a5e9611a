"""Typed meeting records.

Rows from the meetings tables are converted into these dataclasses at the
query layer, so the rest of the code never handles raw row mappings.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from core.enums import ParticipantStatus
from core.timezone import DATE_FORMAT, TIME_FORMAT

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class InvalidMeetingError(ValueError):
    """Raised when a meeting record breaks one of its invariants."""

    pass


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address for comparison and storage."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Check an address has the shape name@domain.tld."""
    return bool(EMAIL_PATTERN.match(email))


@dataclass(frozen=True)
class Caller:
    """The authenticated user acting on a request."""

    id: str
    name: str
    email: str


@dataclass(frozen=True)
class Organizer:
    """Owner of a meeting."""

    id: str
    name: str
    email: str


@dataclass
class Participant:
    """An invited participant and their RSVP state."""

    email: str
    name: str
    status: ParticipantStatus = ParticipantStatus.invited
    responded_at: datetime | None = None

    @classmethod
    def invite(cls, email: str, name: str | None = None) -> "Participant":
        """Create a freshly invited participant, naming them after their address."""
        email = normalize_email(email)
        return cls(email=email, name=name or email.split("@")[0])


@dataclass
class Meeting:
    """A scheduled meeting with its ordered participant list."""

    meeting_id: str
    title: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    organizer: Organizer
    agenda: str = ""
    location: str = ""
    participants: list[Participant] = field(default_factory=list)
    is_active: bool = True
    reminder_sent: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_virtual(self) -> bool:
        """A location that is a URL marks an online meeting."""
        return self.location.startswith("http")

    def participant(self, email: str) -> Participant | None:
        """Find a participant by (case-insensitive) email."""
        wanted = normalize_email(email)
        for participant in self.participants:
            if participant.email == wanted:
                return participant
        return None

    def validate(self) -> None:
        """
        Check the meeting's invariants.

        Raises:
            InvalidMeetingError: Describing every violated invariant
        """
        errors = []

        if not self.title.strip():
            errors.append("title is required")
        if not _matches(DATE_PATTERN, self.date, DATE_FORMAT):
            errors.append("date must be a valid YYYY-MM-DD date")
        if not _matches(TIME_PATTERN, self.start_time, TIME_FORMAT):
            errors.append("start time must be a valid HH:MM time")
        if not _matches(TIME_PATTERN, self.end_time, TIME_FORMAT):
            errors.append("end time must be a valid HH:MM time")
        elif self.start_time >= self.end_time:
            errors.append("start time must be before end time")

        seen: set[str] = set()
        for participant in self.participants:
            if not is_valid_email(participant.email):
                errors.append(f"invalid participant email: {participant.email}")
            if participant.email in seen:
                errors.append(f"duplicate participant: {participant.email}")
            seen.add(participant.email)

        if errors:
            raise InvalidMeetingError("; ".join(errors))


def _matches(pattern: re.Pattern, value: str, fmt: str) -> bool:
    """Check both the fixed shape and that the value is a real date/time."""
    if not pattern.match(value or ""):
        return False
    try:
        datetime.strptime(value, fmt)
    except ValueError:
        return False
    return True


def participant_from_row(row: Mapping) -> Participant:
    """Build a Participant from a meeting_participants row."""
    return Participant(
        email=row["email"],
        name=row["name"],
        status=ParticipantStatus(row["status"]),
        responded_at=row["responded_at"],
    )


def meeting_from_rows(row: Mapping, participant_rows: list[Mapping]) -> Meeting:
    """
    Build a Meeting from a meetings row and its participant rows.

    Args:
        row: Mapping with the meetings table columns
        participant_rows: Mappings with the meeting_participants columns,
            already ordered by position
    """
    return Meeting(
        meeting_id=row["meeting_id"],
        title=row["title"],
        agenda=row["agenda"] or "",
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        location=row["location"] or "",
        organizer=Organizer(
            id=row["organizer_id"],
            name=row["organizer_name"],
            email=row["organizer_email"],
        ),
        participants=[participant_from_row(p) for p in participant_rows],
        is_active=bool(row["is_active"]),
        reminder_sent=bool(row["reminder_sent"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
