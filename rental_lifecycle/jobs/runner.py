"""
Job construction and scheduling.

Clients are built here and injected into each job. Daemon mode runs a job on
a fixed interval in one event loop, optionally next to the ops API.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Type

import uvicorn

from rental_lifecycle.api.main import create_app
from rental_lifecycle.config import settings
from rental_lifecycle.domain.calendar import HolidayCalendar, default_calendar
from rental_lifecycle.domain.charges import ChargeEngine, build_replacement_policy
from rental_lifecycle.domain.ports import LinkShortener, NotificationDispatcher, TransactionStore
from rental_lifecycle.infrastructure.clients.memory_store import InMemoryTransactionStore
from rental_lifecycle.infrastructure.clients.shortener import HttpLinkShortener
from rental_lifecycle.infrastructure.clients.sms import TwilioDispatcher
from rental_lifecycle.infrastructure.clients.store import TransactionStoreClient
from rental_lifecycle.jobs.overdue_reminders import OverdueReminderJob
from rental_lifecycle.jobs.return_reminders import ReturnReminderJob
from rental_lifecycle.jobs.shipping_reminders import ShippingReminderJob
from rental_lifecycle.jobs.windowed import JobOptions, RunSummary, WindowedReminderJob

logger = logging.getLogger(__name__)

JOBS: Dict[str, Type[WindowedReminderJob]] = {
    ReturnReminderJob.name: ReturnReminderJob,
    ShippingReminderJob.name: ShippingReminderJob,
    OverdueReminderJob.name: OverdueReminderJob,
}

DEFAULT_INTERVALS: Dict[str, Callable[[], float]] = {
    ReturnReminderJob.name: lambda: settings.return_interval_seconds,
    ShippingReminderJob.name: lambda: settings.shipping_interval_seconds,
    OverdueReminderJob.name: lambda: settings.overdue_interval_seconds,
}


def get_store(seed_path: Optional[str] = None) -> TransactionStore:
    """Provide transaction store instance; a seed file selects the in-memory store"""
    seed_path = seed_path or settings.store_seed_path
    if seed_path:
        return InMemoryTransactionStore.from_file(seed_path)
    return TransactionStoreClient()


def get_dispatcher() -> TwilioDispatcher:
    """Provide SMS dispatcher instance"""
    return TwilioDispatcher()


def get_shortener() -> HttpLinkShortener:
    """Provide link shortener instance"""
    return HttpLinkShortener()


def build_charge_engine(store: TransactionStore, calendar: HolidayCalendar) -> ChargeEngine:
    return ChargeEngine(
        store=store,
        calendar=calendar,
        policy=build_replacement_policy(settings.replacement_policy, settings.replacement_threshold_days),
        late_fee_cents=settings.late_fee_cents,
        currency=settings.currency,
    )


def build_job(
    name: str,
    store: Optional[TransactionStore] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    shortener: Optional[LinkShortener] = None,
    calendar: Optional[HolidayCalendar] = None,
) -> WindowedReminderJob:
    """Build a job by name, using configured clients for anything not passed in"""
    if name not in JOBS:
        raise ValueError(f"Unknown job: {name}")
    store = get_store() if store is None else store
    calendar = calendar or default_calendar()
    kwargs = {
        "store": store,
        "dispatcher": dispatcher or get_dispatcher(),
        "shortener": shortener or get_shortener(),
        "calendar": calendar,
    }
    if name == OverdueReminderJob.name:
        kwargs["engine"] = build_charge_engine(store, calendar)
    return JOBS[name](**kwargs)


async def run_once(job: WindowedReminderJob, options: JobOptions) -> RunSummary:
    return await job.run(options)


class Scheduler:
    """Runs a job every interval seconds, never two runs of it at once"""

    def __init__(self, job: WindowedReminderJob, options: JobOptions, interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.job = job
        self.options = options
        self.interval = interval
        self._running: Optional[asyncio.Task] = None

    async def tick(self) -> Optional[asyncio.Task]:
        """Start a run unless the previous one is still going"""
        if self._running is not None and not self._running.done():
            logger.warning("Previous run still active, skipping tick", extra={"job": self.job.name})
            return None
        self._running = asyncio.create_task(self._run())
        return self._running

    async def _run(self) -> Optional[RunSummary]:
        try:
            return await self.job.run(self.options)
        except Exception as e:
            # a failed tick must not stop the daemon
            logger.error(
                "Scheduled run failed",
                extra={"job": self.job.name, "error": str(e), "error_type": type(e).__name__},
            )
            return None

    async def serve(self, ticks: Optional[int] = None) -> None:
        """Tick forever (or ticks times), sleeping interval seconds between ticks"""
        logger.info("Daemon started", extra={"job": self.job.name, "interval_seconds": self.interval})
        count = 0
        while ticks is None or count < ticks:
            await self.tick()
            count += 1
            await asyncio.sleep(self.interval)
        if self._running is not None:
            await self._running


async def run_daemon(
    job: WindowedReminderJob,
    options: JobOptions,
    interval: Optional[float] = None,
    ops_port: Optional[int] = None,
) -> None:
    scheduler = Scheduler(job, options, interval or DEFAULT_INTERVALS[job.name]())
    if ops_port is None:
        await scheduler.serve()
        return

    server = uvicorn.Server(uvicorn.Config(create_app(), host="0.0.0.0", port=ops_port, log_config=None))
    await asyncio.gather(scheduler.serve(), server.serve())
