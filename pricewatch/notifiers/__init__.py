"""Notification channels."""

from .base import NotificationChannel
from .email_channel import EmailChannel
from .telegram_channel import TelegramChannel

__all__ = [
    "NotificationChannel",
    "EmailChannel",
    "TelegramChannel",
]
