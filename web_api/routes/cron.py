"""
Cron trigger for the reminder sweep.

Endpoints:
- GET|POST /api/cron/reminders - Run one reminder sweep

Called every few minutes by an external scheduler with
"Authorization: Bearer <CRON_SECRET>".
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Any

import sentry_sdk
from fastapi import APIRouter, Depends, Header, HTTPException

from core.config import get_cron_secret
from core.notifications.scheduler import ReminderScheduler
from web_api.deps import get_reminder_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """FastAPI dependency checking the cron bearer secret."""
    try:
        secret = get_cron_secret()
    except ValueError:
        logger.error("Cron request rejected: CRON_SECRET is not configured")
        raise HTTPException(500, "Cron secret not configured")

    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(401, "Unauthorized")


@router.api_route(
    "/reminders",
    methods=["GET", "POST"],
    dependencies=[Depends(verify_cron_secret)],
)
async def run_reminders_endpoint(
    reminder_scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
) -> dict[str, Any]:
    """Send every reminder that is due now."""
    try:
        summary = await reminder_scheduler.run_reminder_sweep()
    except Exception as e:
        logger.error(f"Reminder sweep failed: {e}")
        sentry_sdk.capture_exception(e)
        raise HTTPException(500, "Reminder sweep failed")

    return {
        "message": "Reminder sweep completed",
        **summary,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
