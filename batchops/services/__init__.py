"""Messaging gateway and notification dispatcher used by the executors."""

from .email_service import (
    EmailService,
    EmailServiceConfig,
    html_to_text,
)
from .notification_service import NotificationDispatcher

__all__ = [
    "EmailService",
    "EmailServiceConfig",
    "html_to_text",
    "NotificationDispatcher",
]
