"""Notification channel interface."""

from abc import ABC, abstractmethod
from typing import Optional

import structlog


class NotificationChannel(ABC):
    """Abstract base class for notification delivery channels.

    ``send`` raises :class:`~pricewatch.core.exceptions.DispatchError` when the
    message cannot be delivered; a channel never fails silently.
    """

    name: str = ""  # Must be overridden in subclass (e.g., "email")

    def __init__(self, enabled: bool = True, default_recipient: Optional[str] = None):
        """Initialize the channel.

        Args:
            enabled: Whether the channel may be used for dispatch
            default_recipient: Recipient used when an alert names none
        """
        self.enabled = enabled
        self.default_recipient = default_recipient or None
        self.logger = structlog.get_logger(channel=self.name)

    def resolve_recipient(self, recipient: Optional[str]) -> Optional[str]:
        return recipient or self.default_recipient

    @abstractmethod
    async def send(self, recipient: Optional[str], subject: str, body: str) -> None:
        """Deliver one message.

        Args:
            recipient: Channel-specific address, or None for the channel default
            subject: Short summary line
            body: Message text

        Raises:
            DispatchError: If delivery fails
        """

    async def close(self) -> None:
        """Release channel resources."""
