"""
FastAPI dependencies for the notification services.

main.py builds one MailTransport, NotificationDispatcher and
ReminderScheduler in its lifespan and stores them on app.state.
"""

from fastapi import Request

from core.notifications.channels.email import MailTransport
from core.notifications.dispatcher import NotificationDispatcher
from core.notifications.scheduler import ReminderScheduler


def get_transport(request: Request) -> MailTransport:
    return request.app.state.transport


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    return request.app.state.reminder_scheduler
