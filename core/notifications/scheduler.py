"""
Reminder sweep and its optional in-process APScheduler trigger.

A sweep finds active meetings starting inside the reminder window that have
not been reminded yet, and sends each one's reminder batch exactly once.
The claim on a meeting is taken with a conditional UPDATE before anything
is sent, so overlapping sweeps (cron plus in-process trigger, or two
instances) never double-send. A batch that does not fully succeed gives
the claim back so a later sweep can retry while the meeting is still in
the window.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import sentry_sdk
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import get_app_timezone
from core.database import get_connection, get_transaction
from core.models import Meeting
from core.notifications.dispatcher import NotificationDispatcher
from core.queries.meetings import (
    claim_reminder,
    find_due_meetings,
    get_meeting,
    release_reminder,
)
from core.timezone import TIME_FORMAT, DATE_FORMAT, to_timezone

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None

SWEEP_JOB_ID = "reminder_sweep"


@dataclass(frozen=True)
class ReminderWindow:
    """Start-time range, in the application timezone, that is due for reminders."""

    start: datetime
    end: datetime

    def date_ranges(self) -> list[tuple[str, str, str]]:
        """
        Express the window as (date, from_time, to_time) triples.

        A window crossing midnight becomes two ranges, one per date.
        """
        start_date = self.start.strftime(DATE_FORMAT)
        end_date = self.end.strftime(DATE_FORMAT)
        start_time = self.start.strftime(TIME_FORMAT)
        end_time = self.end.strftime(TIME_FORMAT)

        if start_date == end_date:
            return [(start_date, start_time, end_time)]
        return [
            (start_date, start_time, "23:59"),
            (end_date, "00:00", end_time),
        ]


def compute_reminder_window(
    now: datetime,
    lead_minutes: int,
    slack_minutes: int,
    tz_name: str,
) -> ReminderWindow:
    """
    Window of meeting start times whose reminder is due at `now`.

    Args:
        now: Current time (naive values are treated as UTC)
        lead_minutes: How long before the start the reminder goes out
        slack_minutes: Width of the window, so sweeps a few minutes apart
            do not miss a meeting
        tz_name: Timezone meeting dates and times are expressed in
    """
    now_utc = to_timezone(now, "UTC")
    start = now_utc + timedelta(minutes=lead_minutes)
    end = start + timedelta(minutes=slack_minutes)
    return ReminderWindow(start=to_timezone(start, tz_name), end=to_timezone(end, tz_name))


class ReminderScheduler:
    """Runs reminder sweeps against the meetings table."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        lead_minutes: int = 15,
        slack_minutes: int = 5,
        tz_name: str | None = None,
    ):
        self.dispatcher = dispatcher
        self.lead_minutes = lead_minutes
        self.slack_minutes = slack_minutes
        self.tz_name = tz_name or get_app_timezone()

    async def run_reminder_sweep(self, now: datetime | None = None) -> dict:
        """
        Send reminders for every meeting due in the current window.

        Returns:
            Dict with meetings_processed, reminded, failed, skipped counts
        """
        now = now or datetime.now(timezone.utc)
        window = compute_reminder_window(
            now, self.lead_minutes, self.slack_minutes, self.tz_name
        )

        async with get_connection() as conn:
            due = await find_due_meetings(conn, window.date_ranges())

        summary = {
            "meetings_processed": len(due),
            "reminded": 0,
            "failed": 0,
            "skipped": 0,
        }

        for meeting in due:
            try:
                outcome = await self._remind(meeting)
            except Exception as e:
                logger.error(f"Reminder for meeting {meeting.meeting_id} failed: {e}")
                sentry_sdk.capture_exception(e)
                outcome = "failed"
            summary[outcome] += 1

        logger.info(
            f"Reminder sweep for {window.start:%Y-%m-%d %H:%M}-{window.end:%H:%M}: "
            f"{summary['meetings_processed']} due, {summary['reminded']} reminded, "
            f"{summary['failed']} failed, {summary['skipped']} skipped"
        )
        return summary

    async def _remind(self, meeting: Meeting) -> str:
        """Claim, dispatch, and release on failure. Returns the summary key."""
        async with get_transaction() as conn:
            claimed = await claim_reminder(
                conn, meeting.meeting_id, meeting.date, meeting.start_time
            )
            if claimed:
                # Dispatch from the claimed row, not the scan's copy
                meeting = await get_meeting(conn, meeting.meeting_id)
        if not claimed:
            logger.info(
                f"Reminder for meeting {meeting.meeting_id} already claimed or rescheduled"
            )
            return "skipped"

        try:
            batch = await self.dispatcher.dispatch_reminder(meeting, self.lead_minutes)
        except Exception as e:
            logger.error(f"Reminder dispatch for meeting {meeting.meeting_id} raised: {e}")
            sentry_sdk.capture_exception(e)
        else:
            if batch.fully_successful:
                return "reminded"
            logger.warning(
                f"Reminder for meeting {meeting.meeting_id} reached "
                f"{batch.sent}/{batch.attempted} recipients, releasing for retry"
            )

        async with get_transaction() as conn:
            await release_reminder(conn, meeting.meeting_id)
        return "failed"


# =============================================================================
# In-process trigger
# =============================================================================


def init_scheduler(
    reminder_scheduler: ReminderScheduler,
    interval_minutes: int,
) -> AsyncIOScheduler | None:
    """
    Start an interval job that runs the reminder sweep in-process.

    Call this during app startup (in FastAPI lifespan). An interval of 0
    leaves the external cron endpoint as the only trigger.
    """
    global _scheduler

    if interval_minutes <= 0:
        logger.info("In-process reminder sweep disabled")
        return None

    if _scheduler is not None:
        return _scheduler

    _scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )
    _scheduler.add_job(
        reminder_scheduler.run_reminder_sweep,
        trigger="interval",
        minutes=interval_minutes,
        id=SWEEP_JOB_ID,
        replace_existing=True,
    )
    _scheduler.start()
    logger.info(f"Reminder sweep scheduled every {interval_minutes} minutes")
    return _scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during app shutdown.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Reminder sweep scheduler stopped")
