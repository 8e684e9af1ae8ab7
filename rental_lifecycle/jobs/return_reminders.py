"""Borrower return reminders: the day before, the day of, and the first late day"""

from datetime import datetime, timedelta
from typing import Optional

from rental_lifecycle.domain import messages
from rental_lifecycle.domain.models import Transaction
from rental_lifecycle.domain.state import is_return_scanned, resolve_return_due, resolve_return_label
from rental_lifecycle.jobs.windowed import Reminder, Skip, Window, WindowedReminderJob
from rental_lifecycle.utils.phone import resolve_borrower_phone

T_MINUS_1 = Window("t_minus_1", ("return", "tMinus1SentAt"))
TODAY = Window("today", ("return", "todayReminderSentAt"))
TOMORROW = Window("tomorrow", ("return", "tomorrowReminderSentAt"))


class ReturnReminderJob(WindowedReminderJob):
    name = "return-reminders"
    states = ("delivered",)

    def select_window(self, tx: Transaction, now: datetime) -> Optional[Window]:
        due_at = resolve_return_due(tx)
        if not due_at:
            raise Skip("no-due-date")

        today = self.calendar.local_date(now)
        due = self.calendar.local_date(due_at)
        if today == due - timedelta(days=1):
            return T_MINUS_1
        if today == due:
            return TODAY
        if today > due and today == self.calendar.first_chargeable_late_date(due):
            return TOMORROW
        return None

    def is_shipped(self, tx: Transaction) -> bool:
        return is_return_scanned(tx)

    def recipient(self, tx: Transaction) -> Optional[str]:
        return resolve_borrower_phone(tx)

    async def prepare(self, tx: Transaction, window: Window, now: datetime) -> Reminder:
        fields = self.base_fields()

        if window is T_MINUS_1:
            link = resolve_return_label(tx, prefer_qr=True)
            if not link:
                raise Skip("no-return-label")
            fields["label_noun"] = "QR code" if link == tx.protected_data.get("returnQrUrl") else "label"
            return Reminder(window, messages.RETURN_T_MINUS_1, self.recipient(tx), link=link, fields=fields)

        if window is TODAY:
            link = resolve_return_label(tx) or self.return_page_url(tx)
            return Reminder(window, messages.RETURN_TODAY, self.recipient(tx), link=link, fields=fields)

        return Reminder(window, messages.RETURN_TOMORROW, self.recipient(tx), fields=fields)
