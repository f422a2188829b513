"""Email channel via SMTP.

Supports STARTTLS (587), implicit SSL (465) or plain SMTP for local relays.
smtplib is blocking, so each send runs in a worker thread.
"""

import asyncio
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

from pricewatch.config import Settings
from pricewatch.core.exceptions import DispatchError
from pricewatch.notifiers.base import NotificationChannel


class EmailChannel(NotificationChannel):
    """SMTP email notification channel."""

    name = "email"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        enabled: bool = True,
        default_recipient: Optional[str] = None,
        timeout: float = 20.0,
    ):
        super().__init__(enabled=enabled, default_recipient=default_recipient)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailChannel":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            sender=settings.EMAIL_FROM,
            use_tls=settings.SMTP_USE_TLS,
            enabled=settings.EMAIL_ENABLED,
            default_recipient=settings.EMAIL_DEFAULT_RECIPIENT,
        )

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = recipient
        msg.set_content(body)
        return msg

    async def send(self, recipient: Optional[str], subject: str, body: str) -> None:
        to = self.resolve_recipient(recipient)
        if not to:
            raise DispatchError(self.name, "no recipient configured")
        if not self.sender:
            raise DispatchError(self.name, "no sender address configured")

        msg = self.build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(self.name, str(e) or type(e).__name__) from e

        self.logger.info("email_sent", recipient=to, subject=subject)

    def _deliver(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as smtp:
                self._login(smtp)
                smtp.send_message(msg)
            return

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.ehlo()
            if self.use_tls:
                smtp.starttls(context=context)
                smtp.ehlo()
            self._login(smtp)
            smtp.send_message(msg)

    def _login(self, smtp: smtplib.SMTP) -> None:
        if self.username:
            smtp.login(self.username, self.password)
