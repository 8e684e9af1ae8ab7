"""
Generic windowed reminder job.

Each job pages through candidate transactions and, strictly one at a time:
works out which reminder window (if any) applies, runs the skip checks,
dispatches the message and only then persists the window's sent-flag.
A failure on one transaction is logged and counted; the batch continues.
A failure fetching a candidate page aborts the run.

The return, shipping and overdue jobs are configurations of this class.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from rental_lifecycle.config import settings
from rental_lifecycle.domain.calendar import HolidayCalendar
from rental_lifecycle.domain.exceptions import NotFoundError, UnexpectedScenarioError
from rental_lifecycle.domain.messages import Template, compose, format_cents
from rental_lifecycle.domain.models import Transaction
from rental_lifecycle.domain.ports import LinkShortener, NotificationDispatcher, TransactionStore
from rental_lifecycle.domain.state import deep_merge, get_path, path_patch
from rental_lifecycle.infrastructure.observability.logging import log_reminder, log_run_summary
from rental_lifecycle.infrastructure.observability.metrics import (
    calendar_days_remaining_gauge,
    job_run_duration_histogram,
    record_reminder,
)
from rental_lifecycle.utils.date_utils import to_utc_datetime, utc_now
from rental_lifecycle.utils.phone import normalize_phone_e164

logger = logging.getLogger(__name__)


class Skip(Exception):
    """Raised by job hooks to skip a transaction with a reason"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class Window:
    """
    A reminder window and the flag that records it was sent.

    With flag_value None the flag holds the send timestamp and any truthy
    value means sent; otherwise the window counts as sent only when the flag
    equals flag_value (used for per-day overdue tiers).
    """

    name: str
    flag_path: Tuple[str, ...]
    flag_value: Any = None

    def is_sent(self, tx: Transaction) -> bool:
        current = get_path(tx.protected_data, self.flag_path)
        if self.flag_value is None:
            return bool(current)
        return current == self.flag_value

    def flag_patch(self, now: datetime) -> Dict[str, Any]:
        value = to_utc_datetime(now).isoformat() if self.flag_value is None else self.flag_value
        return path_patch(self.flag_path, value)


@dataclass
class Reminder:
    """Everything needed to compose and dispatch one message"""

    window: Window
    template: Template
    to: str
    link: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    extra_patch: Dict[str, Any] = field(default_factory=dict)  # persisted with the sent-flag


@dataclass
class JobOptions:
    """Per-run batch controls"""

    dry_run: bool = False
    only_phone: Optional[str] = None
    now: Optional[datetime] = None  # simulated current time
    send_limit: int = 0  # 0 = unlimited
    verbose: bool = False

    @classmethod
    def from_settings(cls) -> "JobOptions":
        return cls(
            dry_run=settings.dry_run,
            only_phone=settings.only_phone,
            now=settings.force_now,
            send_limit=settings.send_limit,
            verbose=settings.verbose,
        )


@dataclass
class RunSummary:
    job: str
    dry_run: bool = False
    processed: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    charged: int = 0
    charge_failures: int = 0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "dry_run": self.dry_run,
            "processed": self.processed,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "charged": self.charged,
            "charge_failures": self.charge_failures,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


# Latest summary per job, read by the ops API
_latest_runs: Dict[str, RunSummary] = {}


def record_run(summary: RunSummary) -> None:
    _latest_runs[summary.job] = summary


def latest_runs() -> List[RunSummary]:
    return list(_latest_runs.values())


def latest_run(job: str) -> Optional[RunSummary]:
    return _latest_runs.get(job)


class WindowedReminderJob:
    """Base class; subclasses define candidates, windows, recipients and templates"""

    name = "windowed"
    states: Tuple[str, ...] = ()
    checks_calendar = True

    def __init__(
        self,
        store: TransactionStore,
        dispatcher: NotificationDispatcher,
        shortener: LinkShortener,
        calendar: HolidayCalendar,
        page_size: int | None = None,
        max_pages: int | None = None,
        max_message_length: int | None = None,
        brand_name: str | None = None,
        late_fee_cents: int | None = None,
        app_host: str | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.shortener = shortener
        self.calendar = calendar
        self.page_size = settings.store_page_size if page_size is None else page_size
        self.max_pages = settings.store_max_pages if max_pages is None else max_pages
        self.max_message_length = settings.max_message_length if max_message_length is None else max_message_length
        self.brand_name = settings.brand_name if brand_name is None else brand_name
        self.late_fee_cents = settings.late_fee_cents if late_fee_cents is None else late_fee_cents
        self.app_host = settings.app_host if app_host is None else app_host
        if self.page_size < 1 or self.max_pages < 1:
            raise ValueError("page_size and max_pages must be positive")

    # Hooks

    def select_window(self, tx: Transaction, now: datetime) -> Optional[Window]:
        """Window that applies right now, None when outside every window; may raise Skip"""
        raise NotImplementedError

    def is_shipped(self, tx: Transaction) -> bool:
        raise NotImplementedError

    def recipient(self, tx: Transaction) -> Optional[str]:
        raise NotImplementedError

    async def prepare(self, tx: Transaction, window: Window, now: datetime) -> Reminder:
        """Template, link and fields for the window; may raise Skip"""
        raise NotImplementedError

    async def before_dispatch(self, tx: Transaction, reminder: Reminder, options: JobOptions) -> None:
        """Runs after all skip checks pass and before the message goes out"""

    async def after_notification(
        self, tx: Transaction, now: datetime, options: JobOptions, summary: RunSummary
    ) -> None:
        """Runs for every candidate after the notification step, in its own failure boundary"""

    # Shared

    def base_fields(self) -> Dict[str, Any]:
        return {"brand": self.brand_name, "fee": format_cents(self.late_fee_cents)}

    def return_page_url(self, tx: Transaction) -> Optional[str]:
        """App page for the return, used when the transaction carries no label"""
        if not self.app_host:
            return None
        return f"{self.app_host.rstrip('/')}/return/{tx.id}"

    async def run(self, options: Optional[JobOptions] = None) -> RunSummary:
        """
        Run the job once over all candidate pages.

        Raises:
            StoreError: When a candidate page cannot be fetched
            CalendarCoverageError: When "now" is past the holiday calendar
        """
        options = options or JobOptions()
        now = options.now or utc_now()
        summary = RunSummary(job=self.name, dry_run=options.dry_run, started_at=utc_now().isoformat())

        if self.checks_calendar:
            remaining = self.calendar.check_coverage(now, settings.calendar_warn_days)
            calendar_days_remaining_gauge.set(remaining)

        logger.info(
            "Run started",
            extra={"job": self.name, "now": to_utc_datetime(now).isoformat(), "dry_run": options.dry_run},
        )

        with job_run_duration_histogram.labels(job=self.name).time():
            page = 1
            for _ in range(self.max_pages):
                result = await self.store.query(self.states, page=page, per_page=self.page_size)
                for tx in result.transactions:
                    if self._limit_reached(options, summary):
                        break
                    await self.process(tx, now, options, summary)
                if self._limit_reached(options, summary):
                    logger.info("Send limit reached", extra={"job": self.name, "limit": options.send_limit})
                    break
                if not result.next_page:
                    break
                page = result.next_page
            else:
                logger.warning("Stopped at page limit", extra={"job": self.name, "max_pages": self.max_pages})

        summary.finished_at = utc_now().isoformat()
        record_run(summary)
        log_run_summary(summary)
        return summary

    def _limit_reached(self, options: JobOptions, summary: RunSummary) -> bool:
        return bool(options.send_limit) and summary.sent >= options.send_limit

    async def process(self, tx: Transaction, now: datetime, options: JobOptions, summary: RunSummary) -> None:
        """Notification step then post-notification hook, each isolated"""
        summary.processed += 1
        try:
            outcome, window, reason = await self.notify(tx, now, options)
        except (NotFoundError, UnexpectedScenarioError) as e:
            outcome, window, reason = "skipped", "", type(e).__name__
            logger.warning("Skipping transaction", extra={"job": self.name, "tx_id": tx.id, "reason": str(e)})
        except Exception as e:
            outcome, window, reason = "failed", "", str(e)
            logger.error(
                "Reminder processing failed",
                extra={"job": self.name, "tx_id": tx.id, "error": str(e), "error_type": type(e).__name__},
            )

        if outcome == "sent":
            summary.sent += 1
        elif outcome == "skipped":
            summary.skipped += 1
        else:
            summary.failed += 1
        if not options.dry_run:
            record_reminder(self.name, outcome, window=window, reason=reason)

        try:
            await self.after_notification(tx, now, options, summary)
        except Exception as e:
            logger.error(
                "Post-notification step failed",
                extra={"job": self.name, "tx_id": tx.id, "error": str(e), "error_type": type(e).__name__},
            )

    async def notify(self, tx: Transaction, now: datetime, options: JobOptions) -> Tuple[str, str, str]:
        """Returns (outcome, window name, skip reason)"""
        phone: Optional[str] = None
        window: Optional[Window] = None
        try:
            if tx.state not in self.states:
                raise Skip("wrong-state")
            window = self.select_window(tx, now)
            if window is None:
                raise Skip("not-in-window")
            if self.is_shipped(tx):
                raise Skip("already-shipped")
            phone = self.recipient(tx)
            if not phone:
                raise Skip("no-phone")
            if options.only_phone and phone != normalize_phone_e164(options.only_phone):
                raise Skip("only-phone-filter")
            if not options.dry_run and not self.dispatcher.is_configured():
                raise Skip("sms-not-configured")
            if window.is_sent(tx):
                raise Skip("already-sent")
            reminder = await self.prepare(tx, window, now)
        except Skip as skip:
            window_name = window.name if window else ""
            log_reminder(self.name, tx.id, window_name, "skipped", phone=phone, reason=skip.reason)
            return "skipped", window_name, skip.reason

        link = await self.shortener.shorten(reminder.link) if reminder.link else None
        message = compose(reminder.template, link, self.max_message_length, **reminder.fields)

        try:
            await self.before_dispatch(tx, reminder, options)
        except Skip as skip:
            log_reminder(self.name, tx.id, window.name, "skipped", phone=phone, reason=skip.reason)
            return "skipped", window.name, skip.reason

        if options.dry_run:
            log_reminder(
                self.name, tx.id, window.name, "would-send", phone=phone, tag=message.tag, dry_run=True, body=message.body
            )
            return "sent", window.name, ""

        result = await self.dispatcher.send(
            phone, message.body, message.tag, meta={"tx_id": tx.id, "window": window.name, "job": self.name}
        )
        if not result.delivered:
            log_reminder(self.name, tx.id, window.name, "skipped", phone=phone, tag=message.tag, reason=result.reason)
            return "skipped", window.name, result.reason or "not-delivered"

        # flag only after the provider accepted the message
        await self.store.update(tx.id, deep_merge(window.flag_patch(now), reminder.extra_patch))
        log_reminder(
            self.name,
            tx.id,
            window.name,
            "simulated" if result.simulated else "sent",
            phone=phone,
            tag=message.tag,
            body=message.body if options.verbose else None,
        )
        return "sent", window.name, ""
