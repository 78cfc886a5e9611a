"""
Backend entry point.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the meetings API and the one-click RSVP links
- One MailTransport per process, shared by every notification batch
- Reminders are swept by an external cron hitting /api/cron/reminders,
  optionally also by an in-process APScheduler interval job

Run with: python main.py [--port PORT]
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
project_root = Path(__file__).parent
load_dotenv(project_root / ".env.local")
load_dotenv()

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import (
    check_required_env_vars,
    get_allowed_origins,
    get_api_port,
    get_app_timezone,
    get_reminder_lead_minutes,
    get_reminder_slack_minutes,
    get_reminder_sweep_interval_minutes,
)
from core.database import close_engine, init_schema, is_configured
from core.notifications.channels.email import MailTransport
from core.notifications.dispatcher import NotificationDispatcher
from core.notifications.scheduler import (
    ReminderScheduler,
    init_scheduler,
    shutdown_scheduler,
)
from web_api.routes.cron import router as cron_router
from web_api.routes.email import router as email_router
from web_api.routes.meetings import router as meetings_router
from web_api.routes.rsvp import router as rsvp_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SENTRY_DSN = os.environ.get("SENTRY_DSN")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=os.environ.get("APP_ENV", "development"),
        traces_sample_rate=0.1,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Builds the shared mail transport, dispatcher and reminder scheduler,
    makes sure the schema exists, and starts the optional sweep job.
    """
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        logger.warning(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    transport = MailTransport()
    dispatcher = NotificationDispatcher(transport)
    reminder_scheduler = ReminderScheduler(
        dispatcher,
        lead_minutes=get_reminder_lead_minutes(),
        slack_minutes=get_reminder_slack_minutes(),
        tz_name=get_app_timezone(),
    )
    app.state.transport = transport
    app.state.dispatcher = dispatcher
    app.state.reminder_scheduler = reminder_scheduler

    if is_configured():
        await init_schema()
    else:
        logger.warning("DATABASE_URL not set, meeting storage unavailable")

    init_scheduler(reminder_scheduler, get_reminder_sweep_interval_minutes())

    yield

    logger.info("Shutting down...")
    shutdown_scheduler()
    await transport.close()
    await close_engine()


app = FastAPI(
    title="Meeting Scheduler API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(meetings_router)
app.include_router(rsvp_router)
app.include_router(cron_router)
app.include_router(email_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    transport = getattr(app.state, "transport", None)
    config = transport.configuration if transport else None
    return {
        "status": "healthy",
        "database_configured": is_configured(),
        "mail_provider": config.provider.value if config else None,
    }


if __name__ == "__main__":
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Meeting Scheduler Server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
