"""
Lender outbound shipping reminders and auto-cancel.

Ship-by dates are compared as UTC midnight of the ship-by day:
- 24h: ship-by is within the next 24 hours
- end_of_day: on the ship-by day from 23:50 UTC
- auto_cancel: 48 to 72 hours past ship-by with no carrier scan; the
  transaction is cancelled before the notice goes out
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from rental_lifecycle.domain import messages
from rental_lifecycle.domain.exceptions import StoreError
from rental_lifecycle.domain.models import Transaction
from rental_lifecycle.domain.state import is_outbound_scanned, is_return_only, resolve_outbound_label, resolve_ship_by
from rental_lifecycle.jobs.windowed import JobOptions, Reminder, Skip, Window, WindowedReminderJob
from rental_lifecycle.utils.date_utils import to_local_date, to_utc_datetime
from rental_lifecycle.utils.phone import resolve_lender_phone

logger = logging.getLogger(__name__)

CANCEL_TRANSITION = "transition/cancel"
END_OF_DAY_CUTOFF = time(23, 50)

SHIP_24H = Window("24h", ("outbound", "shippingReminders", "sent24h"), True)
SHIP_END_OF_DAY = Window("end_of_day", ("outbound", "shippingReminders", "sentEndOfDay"), True)
AUTO_CANCEL = Window("auto_cancel", ("outbound", "shippingReminders", "autoCancelSent"), True)


def ship_by_midnight(value: str) -> datetime:
    """UTC midnight of the ship-by day"""
    day = to_local_date(value, "UTC")
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


class ShippingReminderJob(WindowedReminderJob):
    name = "shipping-reminders"
    states = ("accepted",)
    checks_calendar = False  # ship-by windows are plain UTC hours

    def select_window(self, tx: Transaction, now: datetime) -> Optional[Window]:
        if is_return_only(tx):
            raise Skip("return-only")
        ship_by_at = resolve_ship_by(tx)
        if not ship_by_at:
            raise Skip("no-ship-by")

        ship_by = ship_by_midnight(ship_by_at)
        now_utc = to_utc_datetime(now)
        hours_until = (ship_by - now_utc) / timedelta(hours=1)

        if 48 <= -hours_until < 72:
            return AUTO_CANCEL
        if now_utc.date() == ship_by.date() and now_utc.time() >= END_OF_DAY_CUTOFF:
            return SHIP_END_OF_DAY
        if 0 < hours_until <= 24:
            return SHIP_24H
        return None

    def is_shipped(self, tx: Transaction) -> bool:
        return is_outbound_scanned(tx)

    def recipient(self, tx: Transaction) -> Optional[str]:
        return resolve_lender_phone(tx)

    async def prepare(self, tx: Transaction, window: Window, now: datetime) -> Reminder:
        fields = self.base_fields()
        if window is AUTO_CANCEL:
            return Reminder(window, messages.SHIP_AUTO_CANCEL, self.recipient(tx), fields=fields)

        link = resolve_outbound_label(tx)
        if not link:
            raise Skip("no-outbound-label")
        if window is SHIP_END_OF_DAY:
            return Reminder(window, messages.SHIP_END_OF_DAY, self.recipient(tx), link=link, fields=fields)

        ship_by = ship_by_midnight(resolve_ship_by(tx))
        fields["ship_by"] = f"{ship_by:%b} {ship_by.day}"
        return Reminder(window, messages.SHIP_24H, self.recipient(tx), link=link, fields=fields)

    async def before_dispatch(self, tx: Transaction, reminder: Reminder, options: JobOptions) -> None:
        """Cancel first; the notice only goes out once the transaction is cancelled"""
        if reminder.window is not AUTO_CANCEL:
            return
        if options.dry_run:
            logger.info("Would cancel transaction", extra={"job": self.name, "tx_id": tx.id, "dry_run": True})
            return

        try:
            await self.store.transition(tx.id, CANCEL_TRANSITION)
            logger.info("Transaction auto-cancelled", extra={"job": self.name, "tx_id": tx.id})
        except StoreError as e:
            if e.status_code not in (400, 409):
                raise
            # transition not allowed from the current state: already cancelled or otherwise terminal
            logger.info(
                "Transaction already terminal",
                extra={"job": self.name, "tx_id": tx.id, "status_code": e.status_code},
            )
