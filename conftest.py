"""Root pytest configuration."""

from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(autouse=True)
def app_env(monkeypatch):
    """Pin the settings that end up in rendered emails and reminder windows."""
    monkeypatch.setenv("APP_URL", "https://meet.example.com")
    monkeypatch.setenv("APP_TIMEZONE", "UTC")


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    """
    Point the engine at a fresh SQLite database with the schema created.

    The engine singleton is disposed before and after, so each test gets
    its own file.
    """
    from core.database import close_engine, init_schema

    await close_engine()
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'meetings.db'}")
    await init_schema()
    yield
    await close_engine()


class RecordingTransport:
    """Stands in for MailTransport; records messages instead of sending."""

    def __init__(self):
        self.sent = []
        self.fail_for: set[str] = set()
        self.configuration = None

    async def send(self, message):
        from core.notifications.channels.email import SendResult

        self.sent.append(message)
        if message.to_email.lower() in self.fail_for:
            return SendResult(success=False, error="550 Recipient address rejected")
        return SendResult(success=True, message_id=f"<{len(self.sent)}@test>")

    @property
    def recipients(self) -> list[str]:
        return [m.to_email for m in self.sent]

    def subjects_for(self, email: str) -> list[str]:
        return [m.subject for m in self.sent if m.to_email == email]


@pytest.fixture
def transport():
    """A transport that records every message."""
    return RecordingTransport()


@pytest.fixture
def dispatcher(transport):
    """A dispatcher over the recording transport, without send delays."""
    from core.notifications.dispatcher import NotificationDispatcher

    return NotificationDispatcher(transport, send_delay=0)
