"""
Overdue reminders and late-fee charging.

Never-returned rentals get one message per chargeable late day, with the
message tier chosen by the late-day count. Charges are evaluated for every
candidate (returned-late and never-returned) in a separate failure boundary
from the notification.
"""

import logging
from datetime import datetime
from typing import Optional

from rental_lifecycle.domain.charges import ChargeEngine
from rental_lifecycle.domain.exceptions import AuthorizationError, ChargeError, ValidationError
from rental_lifecycle.domain.messages import OVERDUE_TIERS, overdue_tier
from rental_lifecycle.domain.models import Transaction
from rental_lifecycle.domain.scenarios import NEVER_RETURNED, Classification, classify
from rental_lifecycle.domain.state import is_return_scanned, resolve_return_due, resolve_return_label
from rental_lifecycle.infrastructure.observability.logging import log_charge
from rental_lifecycle.infrastructure.observability.metrics import charge_failures_counter, record_charge
from rental_lifecycle.jobs.windowed import JobOptions, Reminder, RunSummary, Skip, Window, WindowedReminderJob
from rental_lifecycle.utils.phone import resolve_borrower_phone

logger = logging.getLogger(__name__)

LAST_NOTIFIED_DAY = ("return", "overdue", "lastNotifiedDay")


class OverdueReminderJob(WindowedReminderJob):
    name = "overdue-reminders"
    states = ("delivered", "accepted")

    def __init__(self, *args, engine: ChargeEngine, **kwargs):
        super().__init__(*args, **kwargs)
        self.engine = engine

    def _classify(self, tx: Transaction, now: datetime) -> Classification:
        due_at = resolve_return_due(tx)
        if not due_at:
            raise ValidationError(f"No return due date found for transaction {tx.id}")
        record = tx.return_record
        return classify(
            state=tx.state,
            first_scan_at=record.first_scan_at,
            status=record.status,
            due_at=due_at,
            now=now,
            calendar=self.calendar,
        ).require_modeled()

    def select_window(self, tx: Transaction, now: datetime) -> Optional[Window]:
        if tx.return_record.replacement_charged:
            raise Skip("replacement-charged")
        classification = self._classify(tx, now)
        if classification.scenario != NEVER_RETURNED:
            raise Skip("returned-late")
        if classification.late_days < 1:
            return None
        tier = overdue_tier(classification.late_days)
        return Window(f"day{tier}", LAST_NOTIFIED_DAY, classification.late_days)

    def is_shipped(self, tx: Transaction) -> bool:
        return is_return_scanned(tx)

    def recipient(self, tx: Transaction) -> Optional[str]:
        return resolve_borrower_phone(tx)

    async def prepare(self, tx: Transaction, window: Window, now: datetime) -> Reminder:
        late_days = window.flag_value
        return Reminder(
            window,
            OVERDUE_TIERS[overdue_tier(late_days)],
            self.recipient(tx),
            link=resolve_return_label(tx, prefer_qr=True) or self.return_page_url(tx),
            fields=self.base_fields(),
            extra_patch={"return": {"overdue": {"daysLate": late_days}}},
        )

    async def after_notification(
        self, tx: Transaction, now: datetime, options: JobOptions, summary: RunSummary
    ) -> None:
        try:
            result = await self.engine.apply_charges(tx.id, now, commit=not options.dry_run)
        except ChargeError as e:
            summary.charge_failures += 1
            charge_failures_counter.labels(job=self.name).inc()
            if isinstance(e.cause, AuthorizationError):
                logger.error(
                    "Charge transition not permitted",
                    extra={
                        "job": self.name,
                        "tx_id": tx.id,
                        "hint": "The store client needs privileged transition rights; "
                        "check the integration app's permissions",
                    },
                )
            return

        log_charge(self.name, tx.id, result, dry_run=options.dry_run)
        if result.charged:
            summary.charged += 1
            record_charge(result.scenario, result.items)
