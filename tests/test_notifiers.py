"""Tests for the email and Telegram notification channels."""

import json
import smtplib

import httpx
import pytest

from pricewatch.core.exceptions import DispatchError
from pricewatch.notifiers import EmailChannel, TelegramChannel


# ============================================================================
# TELEGRAM
# ============================================================================

def telegram_with(handler, **kwargs) -> TelegramChannel:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramChannel(bot_token="123:abc", chat_id="42", client=client, **kwargs)


class TestTelegramChannel:
    """Tests for TelegramChannel."""

    async def test_send_posts_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": {}})

        channel = telegram_with(handler)
        await channel.send(None, "Price Alert: Widget", "New price: 9.99 BRL")

        assert seen["url"] == "https://api.telegram.org/bot123:abc/sendMessage"
        assert seen["payload"]["chat_id"] == "42"
        assert seen["payload"]["text"] == "*Price Alert: Widget*\n\nNew price: 9.99 BRL"
        assert seen["payload"]["parse_mode"] == "Markdown"

    async def test_recipient_overrides_default_chat(self):
        seen = {}

        def handler(request):
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        await telegram_with(handler).send("777", "s", "b")
        assert seen["payload"]["chat_id"] == "777"

    async def test_api_rejection_raises(self):
        channel = telegram_with(
            lambda r: httpx.Response(200, json={"ok": False, "description": "Bad Request: chat not found"})
        )
        with pytest.raises(DispatchError, match="chat not found"):
            await channel.send(None, "s", "b")

    async def test_http_error_status_raises(self):
        channel = telegram_with(lambda r: httpx.Response(502))
        with pytest.raises(DispatchError, match="HTTP 502"):
            await channel.send(None, "s", "b")

    async def test_network_failure_raises(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(DispatchError):
            await telegram_with(handler).send(None, "s", "b")

    async def test_missing_configuration(self):
        channel = TelegramChannel(bot_token="", chat_id="42")
        try:
            with pytest.raises(DispatchError, match="bot token"):
                await channel.send(None, "s", "b")
        finally:
            await channel.close()

    def test_from_settings(self, settings):
        settings.TELEGRAM_ENABLED = True
        settings.TELEGRAM_BOT_TOKEN = "t"
        settings.TELEGRAM_CHAT_ID = "c"

        channel = TelegramChannel.from_settings(settings, client=httpx.AsyncClient())

        assert channel.enabled is True
        assert channel.default_recipient == "c"


# ============================================================================
# EMAIL
# ============================================================================

class FakeSMTP:
    """smtplib.SMTP stand-in recording the conversation."""

    instances = []

    def __init__(self, host, port, timeout=None, context=None):
        self.host = host
        self.port = port
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def ehlo(self):
        self.calls.append("ehlo")

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username))

    def send_message(self, msg):
        self.sent.append(msg)


class TestEmailChannel:
    """Tests for EmailChannel."""

    @pytest.fixture(autouse=True)
    def fake_smtp(self, monkeypatch):
        FakeSMTP.instances = []
        monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
        monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)

    async def test_send_with_starttls_and_login(self):
        channel = EmailChannel(
            host="smtp.example.com", username="bot@example.com", password="pw",
            default_recipient="me@example.com",
        )

        await channel.send(None, "Price Alert: Widget", "body text")

        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port) == ("smtp.example.com", 587)
        assert smtp.calls == ["ehlo", "starttls", "ehlo", ("login", "bot@example.com")]
        msg = smtp.sent[0]
        assert msg["To"] == "me@example.com"
        assert msg["From"] == "bot@example.com"
        assert msg["Subject"] == "Price Alert: Widget"
        assert "body text" in msg.get_content()

    async def test_local_relay_without_tls_or_login(self):
        channel = EmailChannel(host="localhost", port=25, sender="alerts@example.com", use_tls=False)

        await channel.send("you@example.com", "s", "b")

        assert FakeSMTP.instances[0].calls == ["ehlo"]

    async def test_smtp_failure_becomes_dispatch_error(self, monkeypatch):
        def refuse(self, msg):
            raise smtplib.SMTPRecipientsRefused({"me@example.com": (550, b"no such user")})

        monkeypatch.setattr(FakeSMTP, "send_message", refuse)
        channel = EmailChannel(host="localhost", sender="alerts@example.com", default_recipient="me@example.com")

        with pytest.raises(DispatchError):
            await channel.send(None, "s", "b")

    async def test_missing_recipient(self):
        channel = EmailChannel(host="localhost", sender="alerts@example.com")
        with pytest.raises(DispatchError, match="recipient"):
            await channel.send(None, "s", "b")

    def test_from_settings(self, settings):
        settings.EMAIL_ENABLED = True
        settings.SMTP_HOST = "smtp.example.com"
        settings.EMAIL_FROM = "alerts@example.com"

        channel = EmailChannel.from_settings(settings)

        assert channel.enabled is True
        assert channel.sender == "alerts@example.com"
        assert channel.default_recipient is None
