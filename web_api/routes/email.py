"""
Mail relay diagnostics.

Endpoints:
- GET /api/email/test - Check the relay connection and configuration
- POST /api/email/test - Send a test email to the caller (or to `to`)
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.models import Caller, is_valid_email
from core.notifications.channels.email import EmailMessage, MailTransport
from core.notifications.templates import render_test_email
from web_api.auth import get_current_user
from web_api.deps import get_transport

router = APIRouter(prefix="/api/email", tags=["email"])


class TestEmailRequest(BaseModel):
    """Schema for sending a test email."""

    to: str | None = None


@router.get("/test")
async def probe_email_endpoint(
    user: Caller = Depends(get_current_user),
    transport: MailTransport = Depends(get_transport),
) -> dict[str, Any]:
    """Report whether the relay accepts our configuration."""
    result = await transport.probe()
    response = {
        "success": result.success,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if result.success:
        response["config"] = result.config
    else:
        response["error"] = result.error
    return response


@router.post("/test")
async def send_test_email_endpoint(
    request: TestEmailRequest | None = None,
    user: Caller = Depends(get_current_user),
    transport: MailTransport = Depends(get_transport),
) -> Any:
    """Send a test email through the configured relay."""
    recipient = (request.to if request and request.to else user.email).strip()
    if not is_valid_email(recipient):
        raise HTTPException(400, "Invalid email address format")

    probe = await transport.probe()
    if not probe.success:
        return JSONResponse(
            status_code=500,
            content={
                "message": "Email relay is not available",
                "error": probe.error,
                "recipient": recipient,
            },
        )

    sent_at = datetime.now(timezone.utc)
    rendered = render_test_email(
        name=user.name,
        provider=probe.config["provider"],
        from_email=probe.config["from"]["email"],
        sent_at=sent_at.strftime("%Y-%m-%d %H:%M UTC"),
    )
    result = await transport.send(
        EmailMessage(
            to_email=recipient,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
        )
    )

    if not result.success:
        return JSONResponse(
            status_code=500,
            content={
                "message": "Failed to send test email",
                "error": result.error,
                "recipient": recipient,
            },
        )

    return {
        "message": "Test email sent successfully! Check your inbox.",
        "recipient": recipient,
        "message_id": result.message_id,
        "timestamp": sent_at.isoformat(),
    }
