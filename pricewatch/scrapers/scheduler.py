"""APScheduler-based monitoring scheduler.

Runs the scrape-all-products cycle on a fixed interval and on demand.
A cycle is never run in parallel with itself: triggers arriving while a
cycle is in progress are folded into a single follow-up cycle that starts
as soon as the current one finishes.
"""

import asyncio
from contextlib import aclosing
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pricewatch.config import Settings
from pricewatch.core.exceptions import StorageError
from pricewatch.models import Product
from pricewatch.scrapers.scraper_service import ScrapeOrchestrator
from pricewatch.scrapers.utils.normalizer import is_valid_product_url
from pricewatch.services.monitor_service import (
    FAILED,
    UNCHANGED,
    UPDATED,
    VANISHED,
    MonitorService,
    ProductOutcome,
)
from pricewatch.storage.base import Storage

logger = structlog.get_logger(__name__)


@dataclass
class CycleReport:
    """Counters describing one monitoring cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    checked: int = 0  # Products with a valid URL handed to the orchestrator
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    vanished: int = 0  # Deleted while the cycle was running
    skipped_invalid: int = 0
    abandoned: int = 0  # Not finished before the deadline
    alerts_fired: int = 0
    notifications_failed: int = 0
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def record(self, outcome: ProductOutcome) -> None:
        if outcome.status == UPDATED:
            self.updated += 1
        elif outcome.status == UNCHANGED:
            self.unchanged += 1
        elif outcome.status == VANISHED:
            self.vanished += 1
        elif outcome.status == FAILED:
            self.failed += 1
        self.alerts_fired += outcome.alerts_fired
        self.notifications_failed += outcome.notifications_failed

    def as_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        data["duration_seconds"] = round(self.duration_seconds, 3)
        return data


class MonitoringScheduler:
    """Drives the periodic monitoring cycle.

    This scheduler:
    - Registers one APScheduler interval job for the cycle
    - Coalesces overlapping interval and on-demand triggers
    - Bounds each cycle by an overall deadline
    - Cancels the in-flight cycle cooperatively on stop
    """

    IDLE = "idle"
    RUNNING = "running"
    JOB_ID = "price_monitor_cycle"

    def __init__(
        self,
        storage: Storage,
        orchestrator: ScrapeOrchestrator,
        monitor: MonitorService,
        interval_minutes: float = 60,
        cycle_timeout: float = 600.0,
        run_on_start: bool = True,
    ):
        """Initialize the monitoring scheduler.

        Args:
            storage: Storage backend listing tracked products
            orchestrator: Scrape orchestrator used for each cycle
            monitor: Per-product comparison and alerting step
            interval_minutes: Minutes between scheduled cycles
            cycle_timeout: Overall deadline of one cycle in seconds
            run_on_start: Run the first cycle immediately on start()
        """
        self.storage = storage
        self.orchestrator = orchestrator
        self.monitor = monitor
        self.interval_minutes = interval_minutes
        self.cycle_timeout = cycle_timeout
        self.run_on_start = run_on_start

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="monitoring_scheduler")
        self.last_report: Optional[CycleReport] = None

        self._running = False
        self._pending = False
        self._current: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: Storage,
        orchestrator: ScrapeOrchestrator,
        monitor: MonitorService,
    ) -> "MonitoringScheduler":
        return cls(
            storage,
            orchestrator,
            monitor,
            interval_minutes=settings.MONITOR_INTERVAL_MINUTES,
            cycle_timeout=settings.MONITOR_CYCLE_TIMEOUT_SECONDS,
            run_on_start=settings.MONITOR_RUN_ON_START,
        )

    @property
    def state(self) -> str:
        return self.RUNNING if self._running else self.IDLE

    def is_running(self) -> bool:
        """Check if the interval job scheduler is running."""
        return self.scheduler.running

    def start(self) -> None:
        """Register the interval job and start APScheduler.

        Must be called from inside the running event loop.
        """
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return

        trigger = IntervalTrigger(minutes=self.interval_minutes, timezone="UTC")
        job_kwargs = {}
        if self.run_on_start:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        job = self.scheduler.add_job(
            func=self._scheduled_run,
            trigger=trigger,
            id=self.JOB_ID,
            name="Price monitoring cycle",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self.scheduler.start()

        self.logger.info(
            "scheduler_started",
            interval_minutes=self.interval_minutes,
            cycle_timeout=self.cycle_timeout,
            next_run=job.next_run_time.isoformat() if job.next_run_time else None,
        )

    async def stop(self) -> None:
        """Stop the interval job and cancel the in-flight cycle, if any."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        task = self._current
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self.logger.info("scheduler_stopped")

    def trigger_now(self) -> bool:
        """Request a cycle immediately.

        Returns:
            True if a new cycle started, False if folded into a running one
        """
        return self._submit("manual")

    async def run_cycle(self) -> CycleReport:
        """Run a cycle now and wait for its report.

        If a cycle is already running, waits for the follow-up cycle this
        request was folded into.
        """
        self._submit("manual")
        return await self._current

    def get_job_status(self) -> Dict[str, Optional[str]]:
        job = self.scheduler.get_job(self.JOB_ID)
        return {
            "state": self.state,
            "next_run": job.next_run_time.isoformat() if job and job.next_run_time else None,
        }

    async def _scheduled_run(self) -> None:
        """Interval job entry point; only submits the cycle."""
        self._submit("scheduled")

    def _submit(self, source: str) -> bool:
        if self._running:
            self._pending = True
            self.logger.info("cycle_coalesced", source=source)
            return False

        # Flag set before the task starts so back-to-back triggers see it
        self._running = True
        self._current = asyncio.create_task(self._drain(source))
        self._current.add_done_callback(self._on_cycle_done)
        return True

    async def _drain(self, source: str) -> CycleReport:
        try:
            while True:
                self._pending = False
                report = await self._execute_cycle(source)
                self.last_report = report
                if not self._pending:
                    return report
                source = "coalesced"
        finally:
            self._running = False
            self._pending = False

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self.logger.info("cycle_cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("cycle_crashed", error=str(exc), exc_info=exc)

    async def _execute_cycle(self, source: str) -> CycleReport:
        report = CycleReport(started_at=datetime.now(timezone.utc))
        self.logger.info("cycle_started", source=source)

        try:
            products = await self.storage.list_tracked_products()
        except StorageError as e:
            report.error = str(e)
            report.finished_at = datetime.now(timezone.utc)
            self.logger.error("cycle_aborted", error=str(e))
            return report

        by_url: Dict[str, Product] = {}
        for product in products:
            if not is_valid_product_url(product.url):
                report.skipped_invalid += 1
                self.logger.warning("invalid_product_url", product_id=str(product.id), url=product.url)
                continue
            by_url.setdefault(product.url.strip(), product)
        report.checked = len(by_url)

        completed = 0
        in_flight: Optional[asyncio.Task] = None
        try:
            async with asyncio.timeout(self.cycle_timeout):
                async with aclosing(self.orchestrator.iter_scrape(by_url)) as results:
                    async for result in results:
                        in_flight = asyncio.create_task(
                            self.monitor.process_result(by_url[result.url], result)
                        )
                        # A product whose update started is finished even past the deadline
                        outcome = await self._outcome_of(asyncio.shield(in_flight), result.url)
                        in_flight = None
                        completed += 1
                        report.record(outcome)
        except TimeoutError:
            report.timed_out = True
            if in_flight is not None:
                report.record(await self._outcome_of(in_flight, "in-flight"))
                completed += 1
            self.logger.warning(
                "cycle_deadline_exceeded",
                cycle_timeout=self.cycle_timeout,
                completed=completed,
                checked=report.checked,
            )
        except asyncio.CancelledError:
            # stop() returns only once the product being applied is settled
            if in_flight is not None:
                self.logger.info("cycle_cancelled_finishing_product")
                await self._outcome_of(in_flight, "in-flight")
            raise

        report.abandoned = report.checked - completed
        report.finished_at = datetime.now(timezone.utc)
        self.logger.info("cycle_completed", **report.as_dict())
        return report

    async def _outcome_of(self, pending, url: str) -> ProductOutcome:
        try:
            return await pending
        except (StorageError, ValueError) as e:
            self.logger.error("product_processing_failed", url=url, error=str(e))
        except Exception as e:
            self.logger.error("product_processing_crashed", url=url, error=str(e), exc_info=True)
        return ProductOutcome(FAILED, error="processing failed")
