"""Price alert message formatting and multi-channel dispatch."""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from pricewatch.core.exceptions import DispatchError
from pricewatch.models import Alert, Product
from pricewatch.notifiers.base import NotificationChannel

logger = structlog.get_logger(__name__)

ALL_CHANNELS = "all"

SUBJECT_TEMPLATE = "Price Alert: {name}"

PRICE_ALERT_TEMPLATE = """Price alert for {name}

Old price: {old_price}
New price: {new_price}
Price drop: {drop}
Difference: {difference}

View product: {url}
"""


def format_price(amount: Optional[Decimal], currency: str) -> str:
    if amount is None:
        return "n/a"
    value = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{value} {currency}".strip()


def price_drop_percent(old_price: Optional[Decimal], new_price: Decimal) -> Optional[Decimal]:
    """Relative drop ``(old - new) / old * 100``, None when old is zero or unknown."""
    if old_price is None or Decimal(old_price) == 0:
        return None
    old = Decimal(old_price)
    return ((old - Decimal(new_price)) / old * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def build_message(product: Product, old_price: Optional[Decimal]) -> Tuple[str, str]:
    """Render the subject and body of a price alert.

    Args:
        product: Product with its new current price
        old_price: Price before the change

    Returns:
        (subject, body) tuple
    """
    name = product.name or product.url
    currency = product.currency or ""
    new_price = Decimal(product.current_price)

    drop = price_drop_percent(old_price, new_price)
    difference = Decimal(old_price) - new_price if old_price is not None else None

    body = PRICE_ALERT_TEMPLATE.format(
        name=name,
        old_price=format_price(old_price, currency),
        new_price=format_price(new_price, currency),
        drop=f"{drop}%" if drop is not None else "n/a",
        difference=format_price(difference, currency),
        url=product.url,
    )
    return SUBJECT_TEMPLATE.format(name=name), body


@dataclass
class DispatchResult:
    """Per-channel outcome of one alert dispatch."""

    delivered: List[str] = field(default_factory=list)
    errors: Dict[str, DispatchError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True if at least one channel delivered."""
        return bool(self.delivered)


class NotificationDispatcher:
    """Fans a fired alert out to the channels named on it.

    Channels are independent: a failure in one is recorded and never stops
    delivery through the others.
    """

    def __init__(self, channels: Iterable[NotificationChannel] = ()):
        self.channels: Dict[str, NotificationChannel] = {c.name: c for c in channels}
        self.logger = logger.bind(service="notification_dispatcher")

    def register(self, channel: NotificationChannel) -> None:
        self.channels[channel.name] = channel

    def enabled_channels(self) -> List[str]:
        return [name for name, channel in self.channels.items() if channel.enabled]

    def resolve_channels(self, selector: Optional[str]) -> List[str]:
        """Expand an alert's channel selector into channel names.

        ``"all"`` means every enabled channel; otherwise a comma-separated list.
        """
        names = [n.strip().lower() for n in (selector or "").split(",") if n.strip()]
        if ALL_CHANNELS in names:
            return self.enabled_channels()
        return list(dict.fromkeys(names))

    async def dispatch(
        self,
        alert: Alert,
        product: Product,
        old_price: Optional[Decimal],
    ) -> DispatchResult:
        """Send a price alert through each selected channel.

        Args:
            alert: Fired alert naming channels and optional recipient
            product: Product with its new price
            old_price: Price before the change

        Returns:
            DispatchResult listing delivered channels and per-channel errors
        """
        subject, body = build_message(product, old_price)
        result = DispatchResult()

        names = self.resolve_channels(alert.notification_type)
        if not names:
            selector = alert.notification_type or "none"
            result.errors[selector] = DispatchError(selector, "no notification channel selected")

        for name in names:
            try:
                await self._send_via(name, alert.recipient, subject, body)
            except DispatchError as e:
                result.errors[name] = e
                self.logger.warning(
                    "notification_failed",
                    alert_id=str(alert.id),
                    channel=name,
                    error=str(e),
                )
            else:
                result.delivered.append(name)

        self.logger.info(
            "alert_dispatched",
            alert_id=str(alert.id),
            product_id=str(product.id),
            delivered=result.delivered,
            failed=list(result.errors),
        )
        return result

    async def _send_via(self, name: str, recipient: Optional[str], subject: str, body: str) -> None:
        channel = self.channels.get(name)
        if channel is None:
            raise DispatchError(name, "unsupported notification channel")
        if not channel.enabled:
            raise DispatchError(name, "notification channel is disabled")

        try:
            await channel.send(recipient, subject, body)
        except DispatchError:
            raise
        except Exception as e:
            self.logger.error("channel_crashed", channel=name, error=str(e), exc_info=True)
            raise DispatchError(name, str(e) or type(e).__name__) from e

    async def close(self) -> None:
        for channel in self.channels.values():
            await channel.close()
