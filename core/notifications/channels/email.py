"""
Email delivery channel.

MailTransport owns the one connection to the outbound relay (an SMTP server,
or SendGrid's API). It connects lazily on first use, reuses the connection
for every later send, and turns every delivery problem into a SendResult
instead of raising.
"""

import asyncio
import html
import logging
import os
import re
import smtplib
from dataclasses import dataclass, field, replace
from email.message import EmailMessage as MimeMessage
from email.utils import formataddr, make_msgid
from typing import Callable

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.enums import MailProvider
from core.models import is_valid_email

logger = logging.getLogger(__name__)


# Host/port defaults for common providers (SMTP_PRESET)
SMTP_PRESETS = {
    "gmail": {"host": "smtp.gmail.com", "port": 587, "secure": False},
    "outlook": {"host": "smtp-mail.outlook.com", "port": 587, "secure": False},
    "yahoo": {"host": "smtp.mail.yahoo.com", "port": 587, "secure": False},
}

DEFAULT_FROM_NAME = "Meeting Scheduler"

HIDDEN_BLOCK_PATTERN = re.compile(
    r"<(style|script|head)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL
)
LINK_PATTERN = re.compile(
    r"<a\s[^>]*href=\"([^\"]*)\"[^>]*>(.*?)</a>", re.IGNORECASE | re.DOTALL
)
BLOCK_END_PATTERN = re.compile(
    r"<br\s*/?>|</(p|div|h[1-6]|li|tr|ul|table)>", re.IGNORECASE
)
TAG_PATTERN = re.compile(r"<[^>]+>")
INLINE_WHITESPACE_PATTERN = re.compile(r"[ \t\r\f\v]+")


class MailConfigError(Exception):
    """Raised when the mail relay is missing or has invalid configuration."""

    pass


class MailAuthenticationError(MailConfigError):
    """Raised when the relay rejects the configured credentials."""

    pass


@dataclass(frozen=True)
class MailConfig:
    """Relay settings, loaded once per process."""

    provider: MailProvider
    from_email: str
    from_name: str = DEFAULT_FROM_NAME
    host: str = ""
    port: int = 587
    secure: bool = False  # Implicit TLS; otherwise STARTTLS when offered
    user: str = ""
    password: str = field(default="", repr=False)
    api_key: str = field(default="", repr=False)

    @property
    def from_address(self) -> str:
        return formataddr((self.from_name, self.from_email))

    def effective(self) -> dict:
        """Configuration as reported to operators, without secrets."""
        if self.provider == MailProvider.sendgrid:
            return {
                "provider": self.provider.value,
                "from": {"name": self.from_name, "email": self.from_email},
            }
        return {
            "provider": self.provider.value,
            "host": self.host,
            "port": self.port,
            "secure": self.secure,
            "user": self.user,
            "from": {"name": self.from_name, "email": self.from_email},
        }


def load_mail_config() -> MailConfig:
    """
    Load and validate relay configuration from the environment.

    Raises:
        MailConfigError: Listing every problem found
    """
    errors = []

    provider_name = os.environ.get("MAIL_PROVIDER", MailProvider.smtp.value).lower()
    try:
        provider = MailProvider(provider_name)
    except ValueError:
        raise MailConfigError(f"Unknown MAIL_PROVIDER: {provider_name}") from None

    from_email = os.environ.get("FROM_EMAIL", "").strip()
    from_name = os.environ.get("FROM_NAME", DEFAULT_FROM_NAME).strip()
    if not from_email:
        errors.append("Missing required environment variable: FROM_EMAIL")
    elif not is_valid_email(from_email):
        errors.append("FROM_EMAIL must be a valid email address")

    if provider == MailProvider.sendgrid:
        api_key = os.environ.get("SENDGRID_API_KEY", "").strip()
        if not api_key:
            errors.append("Missing required environment variable: SENDGRID_API_KEY")
        if errors:
            raise MailConfigError(", ".join(errors))
        return MailConfig(
            provider=provider,
            from_email=from_email,
            from_name=from_name,
            api_key=api_key,
        )

    preset = SMTP_PRESETS.get(os.environ.get("SMTP_PRESET", "").lower(), {})
    host = os.environ.get("SMTP_HOST", preset.get("host", "")).strip()
    port_value = os.environ.get("SMTP_PORT", str(preset.get("port", "")))
    secure_value = os.environ.get("SMTP_SECURE")
    secure = (
        secure_value.lower() == "true"
        if secure_value is not None
        else preset.get("secure", False)
    )
    user = os.environ.get("SMTP_USER", "").strip()
    password = os.environ.get("SMTP_PASS", "")

    if not host:
        errors.append("SMTP_HOST cannot be empty")
    try:
        port = int(port_value)
    except ValueError:
        port = 0
    if not 1 <= port <= 65535:
        errors.append("SMTP_PORT must be a valid port number (1-65535)")
    if not user:
        errors.append("SMTP_USER cannot be empty")
    if not password.strip():
        errors.append("SMTP_PASS cannot be empty")

    if errors:
        raise MailConfigError(", ".join(errors))

    return MailConfig(
        provider=provider,
        from_email=from_email,
        from_name=from_name,
        host=host,
        port=port,
        secure=secure,
        user=user,
        password=password,
    )


@dataclass
class EmailMessage:
    """One email to one recipient."""

    to_email: str
    subject: str
    html: str
    text: str | None = None
    reply_to: str | None = None
    from_address: str | None = None


@dataclass
class SendResult:
    """Outcome of a single send."""

    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class ProbeResult:
    """Outcome of a connectivity check."""

    success: bool
    error: str | None = None
    config: dict | None = None


def html_to_text(html_body: str) -> str:
    """
    Derive a plain-text body from HTML.

    Drops style/script/head blocks, rewrites links as "text (url)", turns
    block ends into line breaks, strips the remaining tags and entities,
    and collapses whitespace.
    """
    text = HIDDEN_BLOCK_PATTERN.sub("", html_body)
    text = LINK_PATTERN.sub(r"\2 (\1)", text)
    text = BLOCK_END_PATTERN.sub("\n", text)
    text = TAG_PATTERN.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    lines = [INLINE_WHITESPACE_PATTERN.sub(" ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def build_mime_message(config: MailConfig, message: EmailMessage) -> MimeMessage:
    """Build a multipart/alternative message for SMTP delivery."""
    mime = MimeMessage()
    mime["From"] = message.from_address or config.from_address
    mime["To"] = message.to_email
    mime["Subject"] = message.subject
    mime["Message-ID"] = make_msgid(domain=config.from_email.split("@")[-1])
    if message.reply_to:
        mime["Reply-To"] = message.reply_to
    mime.set_content(message.text or html_to_text(message.html))
    mime.add_alternative(message.html, subtype="html")
    return mime


# =============================================================================
# Relays - blocking clients, always called from a worker thread
# =============================================================================


class SmtpRelay:
    """SMTP relay connection."""

    def __init__(self, config: MailConfig, timeout: float):
        self.config = config
        self.timeout = timeout
        self._smtp: smtplib.SMTP | None = None

    def connect(self) -> None:
        config = self.config
        if config.secure:
            smtp = smtplib.SMTP_SSL(config.host, config.port, timeout=self.timeout)
        else:
            smtp = smtplib.SMTP(config.host, config.port, timeout=self.timeout)
        try:
            if not config.secure:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            smtp.login(config.user, config.password)
        except smtplib.SMTPAuthenticationError as e:
            smtp.close()
            raise MailAuthenticationError(f"SMTP login rejected: {e}") from e
        except (smtplib.SMTPException, OSError):
            smtp.close()
            raise
        self._smtp = smtp

    def verify(self) -> None:
        try:
            code, reply = self._smtp.noop()
        except smtplib.SMTPServerDisconnected:
            self.connect()
            code, reply = self._smtp.noop()
        if code != 250:
            raise smtplib.SMTPResponseException(code, reply)

    def send(self, message: EmailMessage) -> str:
        mime = build_mime_message(self.config, message)
        try:
            self._smtp.send_message(mime)
        except smtplib.SMTPServerDisconnected:
            # Relays drop idle connections; reconnect once with the same settings
            logger.info("SMTP connection dropped, reconnecting")
            self.connect()
            self._smtp.send_message(mime)
        return mime["Message-ID"]

    def close(self) -> None:
        if self._smtp is None:
            return
        try:
            self._smtp.quit()
        except smtplib.SMTPException:
            self._smtp.close()
        self._smtp = None


class SendGridRelay:
    """SendGrid Web API relay."""

    def __init__(self, config: MailConfig, timeout: float):
        self.config = config
        self.timeout = timeout
        self._client: SendGridAPIClient | None = None

    def connect(self) -> None:
        self._client = SendGridAPIClient(self.config.api_key)
        self.verify()

    def verify(self) -> None:
        try:
            response = self._client.client.scopes.get()
        except Exception as e:
            if getattr(e, "status_code", None) in (401, 403):
                raise MailAuthenticationError(f"SendGrid rejected API key: {e}") from e
            raise
        if response.status_code != 200:
            raise RuntimeError(f"SendGrid returned HTTP {response.status_code}")

    def send(self, message: EmailMessage) -> str:
        mail = Mail(
            from_email=(self.config.from_email, self.config.from_name),
            to_emails=message.to_email,
            subject=message.subject,
            plain_text_content=message.text or html_to_text(message.html),
            html_content=message.html,
        )
        if message.reply_to:
            mail.reply_to = message.reply_to

        response = self._client.send(mail)
        if response.status_code not in (200, 201, 202):
            raise RuntimeError(f"SendGrid returned HTTP {response.status_code}")
        return response.headers.get("X-Message-Id", "") if response.headers else ""

    def close(self) -> None:
        self._client = None


def create_relay(config: MailConfig, timeout: float) -> SmtpRelay | SendGridRelay:
    """Pick the relay implementation for a configuration."""
    if config.provider == MailProvider.sendgrid:
        return SendGridRelay(config, timeout)
    return SmtpRelay(config, timeout)


# =============================================================================
# Transport - shared async service object
# =============================================================================


class MailTransport:
    """
    Shared outbound mail connection.

    Create one per process and pass it to whoever sends mail. Configuration
    is loaded on first use and never reloaded; if it is invalid (or the
    relay rejects the credentials) every later call fails with the same
    error until the process restarts.
    """

    def __init__(
        self,
        config_loader: Callable[[], MailConfig] = load_mail_config,
        send_delay: float = 0.1,
        timeout: float = 30.0,
        relay_factory: Callable[[MailConfig, float], SmtpRelay | SendGridRelay] = create_relay,
    ):
        self.send_delay = send_delay
        self.timeout = timeout
        self._config_loader = config_loader
        self._relay_factory = relay_factory
        self._config: MailConfig | None = None
        self._relay: SmtpRelay | SendGridRelay | None = None
        self._init_error: str | None = None
        self._init_lock = asyncio.Lock()
        # The relay connection handles one message at a time
        self._send_lock = asyncio.Lock()

    @property
    def configuration(self) -> MailConfig | None:
        return self._config

    async def _get_relay(self) -> SmtpRelay | SendGridRelay:
        if self._relay is not None:
            return self._relay

        async with self._init_lock:
            if self._relay is not None:
                return self._relay
            if self._init_error is not None:
                raise MailConfigError(self._init_error)

            try:
                if self._config is None:
                    self._config = self._config_loader()
                relay = self._relay_factory(self._config, self.timeout)
                await asyncio.to_thread(relay.connect)
            except MailConfigError as e:
                self._record_setup_failure(e)
                raise MailConfigError(self._init_error) from e
            except Exception as e:
                logger.error(f"Mail transport setup failed: {e}")
                raise

            self._relay = relay
            logger.info(f"Mail transport connected via {self._config.provider.value}")
            return relay

    def _record_setup_failure(self, error: MailConfigError) -> None:
        if self._init_error is None:
            self._init_error = f"Mail transport setup failed: {error}"
            logger.error(self._init_error)
        self._relay = None

    async def send(self, message: EmailMessage) -> SendResult:
        """
        Send one email.

        Never raises: configuration, connection and delivery errors all come
        back as a failed SendResult.
        """
        if not message.text:
            message = replace(message, text=html_to_text(message.html))

        try:
            relay = await self._get_relay()
            async with self._send_lock:
                message_id = await asyncio.to_thread(relay.send, message)
        except MailConfigError as e:
            # Raised by a reconnect inside the relay as well as by setup
            self._record_setup_failure(e)
            logger.error(f"Failed to send email to {message.to_email}: {e}")
            return SendResult(success=False, error=str(e))
        except Exception as e:
            logger.error(f"Failed to send email to {message.to_email}: {e}")
            return SendResult(success=False, error=str(e))

        logger.info(f"Email sent to {message.to_email}: {message.subject}")
        return SendResult(success=True, message_id=message_id)

    async def send_many(self, messages: list[EmailMessage]) -> list[SendResult]:
        """
        Send several emails as independent single-recipient sends.

        Waits send_delay seconds between sends to stay under relay rate
        limits. One rejected address does not affect the others.
        """
        results = []
        for index, message in enumerate(messages):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)
            results.append(await self.send(message))
        return results

    async def probe(self) -> ProbeResult:
        """Check the relay is reachable and accepts our credentials."""
        try:
            relay = await self._get_relay()
            async with self._send_lock:
                await asyncio.to_thread(relay.verify)
        except MailConfigError as e:
            self._record_setup_failure(e)
            logger.error(f"Mail transport probe failed: {e}")
            return ProbeResult(success=False, error=str(e))
        except Exception as e:
            logger.error(f"Mail transport probe failed: {e}")
            return ProbeResult(success=False, error=str(e))

        return ProbeResult(success=True, config=self._config.effective())

    async def close(self) -> None:
        """Drop the relay connection. A later send reconnects."""
        async with self._init_lock:
            relay, self._relay = self._relay, None
        if relay is not None:
            await asyncio.to_thread(relay.close)
            logger.info("Mail transport closed")
