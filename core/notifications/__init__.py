"""
Notification system for meeting emails.

Public API:
    MailTransport - shared connection to the outbound mail relay
    NotificationDispatcher - invitation, update, cancellation, RSVP and
        reminder batches for a meeting
    ReminderScheduler.run_reminder_sweep() - send reminders that are due
    init_scheduler / shutdown_scheduler - optional in-process sweep trigger
"""

from .channels.email import EmailMessage, MailConfigError, MailTransport, SendResult
from .dispatcher import BatchResult, NotificationDispatcher, RecipientOutcome
from .scheduler import (
    ReminderScheduler,
    compute_reminder_window,
    init_scheduler,
    shutdown_scheduler,
)
from .templates import RenderedEmail, render

__all__ = [
    # Transport
    "MailTransport",
    "MailConfigError",
    "EmailMessage",
    "SendResult",
    # Dispatch
    "NotificationDispatcher",
    "BatchResult",
    "RecipientOutcome",
    "render",
    "RenderedEmail",
    # Reminders
    "ReminderScheduler",
    "compute_reminder_window",
    "init_scheduler",
    "shutdown_scheduler",
]
