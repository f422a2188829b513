"""PriceWatch command line entry point.

Usage:
    pricewatch run                                   # scheduler daemon
    pricewatch check                                 # one monitoring cycle
    pricewatch add URL --target 99.90 --channel email,telegram
    pricewatch history PRODUCT_ID --days 30
"""

import argparse
import asyncio
import signal
import sys
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import structlog

from pricewatch.config import Settings, get_settings
from pricewatch.core.exceptions import NotFoundError, PriceWatchException
from pricewatch.core.logging_config import configure_logging
from pricewatch.models import Alert, Product
from pricewatch.notifiers import EmailChannel, TelegramChannel
from pricewatch.scrapers.factory import get_extractor_registry
from pricewatch.scrapers.fetcher import PageFetcher, create_fetcher
from pricewatch.scrapers.scheduler import MonitoringScheduler
from pricewatch.scrapers.scraper_service import ScrapeOrchestrator
from pricewatch.scrapers.utils.normalizer import is_valid_product_url, normalize_url
from pricewatch.services.monitor_service import MonitorService
from pricewatch.services.notification_service import NotificationDispatcher
from pricewatch.storage import Storage, create_storage

logger = structlog.get_logger(__name__)


@dataclass
class Components:
    """Everything a command needs, wired from settings."""

    storage: Storage
    fetcher: PageFetcher
    orchestrator: ScrapeOrchestrator
    dispatcher: NotificationDispatcher
    monitor: MonitorService
    scheduler: MonitoringScheduler

    async def close(self) -> None:
        await self.dispatcher.close()
        await self.fetcher.close()
        await self.storage.close()


async def build_components(settings: Settings) -> Components:
    storage = await create_storage(settings)
    fetcher = create_fetcher(settings)
    orchestrator = ScrapeOrchestrator.from_settings(settings, fetcher, get_extractor_registry())
    dispatcher = NotificationDispatcher([
        EmailChannel.from_settings(settings),
        TelegramChannel.from_settings(settings),
    ])
    monitor = MonitorService.from_settings(settings, storage, dispatcher)
    scheduler = MonitoringScheduler.from_settings(settings, storage, orchestrator, monitor)

    logger.info(
        "components_ready",
        environment=settings.ENVIRONMENT,
        channels=dispatcher.enabled_channels(),
        workers=settings.SCRAPER_WORKERS,
    )
    return Components(storage, fetcher, orchestrator, dispatcher, monitor, scheduler)


async def cmd_run(settings: Settings, args: argparse.Namespace) -> int:
    if settings.ENVIRONMENT == "test":
        logger.info("scheduler_disabled", reason="test_environment")
        return 0

    components = await build_components(settings)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        components.scheduler.start()
        await stop_event.wait()
        logger.info("shutdown_requested")
    finally:
        await components.scheduler.stop()
        await components.close()
    return 0


async def cmd_check(settings: Settings, args: argparse.Namespace) -> int:
    components = await build_components(settings)
    try:
        report = await components.scheduler.run_cycle()
    finally:
        await components.close()

    print(
        f"checked={report.checked} updated={report.updated} unchanged={report.unchanged} "
        f"failed={report.failed} vanished={report.vanished} skipped_invalid={report.skipped_invalid} "
        f"abandoned={report.abandoned} alerts_fired={report.alerts_fired} "
        f"notifications_failed={report.notifications_failed} "
        f"timed_out={report.timed_out} duration={report.duration_seconds:.1f}s"
    )
    return 1 if report.error else 0


async def cmd_add(settings: Settings, args: argparse.Namespace) -> int:
    url = normalize_url(args.url)
    if not is_valid_product_url(url):
        print(f"error: not an http(s) product URL: {args.url}", file=sys.stderr)
        return 2

    components = await build_components(settings)
    try:
        product = await components.storage.get_product_by_url(url)
        if product is None:
            snapshot = await components.orchestrator.scrape(url)
            product = await components.storage.create_product(Product(
                url=url,
                name=snapshot.name,
                image_url=snapshot.image_url or "",
                current_price=snapshot.price,
                currency=snapshot.currency,
                is_available=snapshot.is_available,
                website=snapshot.website,
            ))
            await components.storage.append_price_history(
                product.id, snapshot.price, snapshot.scraped_at, product.currency
            )
            print(f"{product.id}  {product.name}  {product.current_price} {product.currency}")
        else:
            print(f"{product.id}  already tracked")

        if args.target is not None:
            alert = await components.storage.create_alert(Alert(
                product_id=product.id,
                target_price=args.target,
                notification_type=args.channel,
                recipient=args.recipient,
            ))
            print(f"alert {alert.id}  target {alert.target_price} via {alert.notification_type}")
    finally:
        await components.close()
    return 0


async def cmd_history(settings: Settings, args: argparse.Namespace) -> int:
    storage = await create_storage(settings)
    try:
        product = await storage.get_product(args.product_id)
        if product is None:
            raise NotFoundError("Product", str(args.product_id))

        entries = await storage.get_price_history(product.id, days=args.days)
        print(f"{product.name or product.url} ({len(entries)} entries)")
        for entry in entries:
            print(f"{entry.recorded_at.isoformat()}  {entry.price} {entry.currency}")
    finally:
        await storage.close()
    return 0


def _price(value: str) -> Decimal:
    try:
        price = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid price: {value}") from None
    if price < 0:
        raise argparse.ArgumentTypeError("price must not be negative")
    return price


def _product_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid product id: {value}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pricewatch", description="Track product prices and alert on drops.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="run the monitoring scheduler until interrupted")
    run.set_defaults(handler=cmd_run)

    check = subparsers.add_parser("check", help="run one monitoring cycle and print the report")
    check.set_defaults(handler=cmd_check)

    add = subparsers.add_parser("add", help="start tracking a product URL")
    add.add_argument("url")
    add.add_argument("--target", type=_price, help="alert when the price drops to this value")
    add.add_argument("--channel", default="email", help="notification channels, e.g. email,telegram or all")
    add.add_argument("--recipient", help="recipient overriding the channel default")
    add.set_defaults(handler=cmd_add)

    history = subparsers.add_parser("history", help="print the price history of a product")
    history.add_argument("product_id", type=_product_id)
    history.add_argument("--days", type=int, help="only the last N days")
    history.set_defaults(handler=cmd_history)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON, caller=settings.LOG_CALLER)

    try:
        return asyncio.run(args.handler(settings, args))
    except PriceWatchException as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
