"""Telegram bot channel using the Bot API ``sendMessage`` method."""

from typing import Optional

import httpx

from pricewatch.config import Settings
from pricewatch.core.exceptions import DispatchError
from pricewatch.notifiers.base import NotificationChannel


class TelegramChannel(NotificationChannel):
    """Send alerts as Telegram chat messages."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str = "",
        api_url: str = "https://api.telegram.org",
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        super().__init__(enabled=enabled, default_recipient=chat_id)
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "TelegramChannel":
        return cls(
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            chat_id=settings.TELEGRAM_CHAT_ID,
            api_url=settings.TELEGRAM_API_URL,
            enabled=settings.TELEGRAM_ENABLED,
            client=client,
        )

    async def send(self, recipient: Optional[str], subject: str, body: str) -> None:
        chat_id = self.resolve_recipient(recipient)
        if not self.bot_token:
            raise DispatchError(self.name, "bot token not configured")
        if not chat_id:
            raise DispatchError(self.name, "no chat id configured")

        payload = {
            "chat_id": chat_id,
            "text": f"*{subject}*\n\n{body}",
            "parse_mode": "Markdown",
            "disable_web_page_preview": False,
        }
        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"

        try:
            response = await self.client.post(url, json=payload, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise DispatchError(self.name, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise DispatchError(self.name, f"Bot API returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise DispatchError(self.name, "Bot API returned invalid JSON") from e
        if not data.get("ok", False):
            raise DispatchError(self.name, data.get("description") or "Bot API rejected the message")

        self.logger.info("telegram_sent", chat_id=chat_id)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
