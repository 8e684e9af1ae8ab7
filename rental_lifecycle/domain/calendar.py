"""
Business-day calendar for late fees and overdue reminders.

A chargeable day is any calendar day that is neither the non-chargeable
weekday (Sunday) nor a USPS holiday. Every input is normalized to a
start-of-day date in the business timezone before it is compared.
"""

import json
import logging
from datetime import date, timedelta
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from rental_lifecycle.config import settings
from rental_lifecycle.domain.exceptions import CalendarCoverageError
from rental_lifecycle.domain.holidays import USPS_HOLIDAYS, USPS_HOLIDAYS_COVERED_THROUGH
from rental_lifecycle.utils.date_utils import DateLike, generate_date_range, to_local_date

logger = logging.getLogger(__name__)

SUNDAY = 6  # date.weekday()


class HolidayCalendar:
    """Finite, explicitly dated holiday set with a known coverage edge"""

    def __init__(
        self,
        holidays: Iterable[date],
        covered_through: date,
        tz_name: str = "America/Los_Angeles",
        non_chargeable_weekdays: Iterable[int] = (SUNDAY,),
    ):
        self.holidays = frozenset(holidays)
        self.covered_through = covered_through
        self.tz_name = tz_name
        self.non_chargeable_weekdays = frozenset(non_chargeable_weekdays)

    @classmethod
    def bundled(cls, tz_name: str = "America/Los_Angeles") -> "HolidayCalendar":
        return cls(USPS_HOLIDAYS, USPS_HOLIDAYS_COVERED_THROUGH, tz_name=tz_name)

    @classmethod
    def from_file(cls, path: str, tz_name: str = "America/Los_Angeles") -> "HolidayCalendar":
        """
        Load a calendar from JSON.

        Expected shape:
            {"holidays": ["2028-01-01", ...], "covered_through": "2028-12-31"}

        Without "covered_through" the calendar is assumed complete through
        December 31 of the latest listed year.
        """
        data = json.loads(Path(path).read_text())
        try:
            holidays = [date.fromisoformat(d) for d in data["holidays"]]
        except (KeyError, TypeError, ValueError) as e:
            raise CalendarCoverageError(f"Invalid holiday calendar file {path}: {e}") from e
        if not holidays:
            raise CalendarCoverageError(f"Holiday calendar file {path} lists no holidays")

        if data.get("covered_through"):
            covered_through = date.fromisoformat(data["covered_through"])
        else:
            covered_through = date(max(h.year for h in holidays), 12, 31)
        return cls(holidays, covered_through, tz_name=tz_name)

    def local_date(self, value: DateLike) -> date:
        return to_local_date(value, self.tz_name)

    def _ensure_covered(self, day: date) -> None:
        if day > self.covered_through:
            raise CalendarCoverageError(
                f"{day.isoformat()} is past the holiday calendar coverage "
                f"({self.covered_through.isoformat()}); extend the holiday data"
            )

    def is_non_chargeable_date(self, value: DateLike) -> bool:
        day = self.local_date(value)
        if day.weekday() in self.non_chargeable_weekdays:
            return True
        self._ensure_covered(day)
        return day in self.holidays

    def compute_chargeable_late_days(self, ref_date: DateLike, due_date: DateLike) -> int:
        """
        Count chargeable days after due_date up to and including ref_date.

        Returns 0 when ref_date is before due_date.

        Example:
            Due Friday 2025-01-10, scanned Monday 2025-01-13 -> 2
            (Saturday and Monday count, Sunday does not)
        """
        due = self.local_date(due_date)
        ref = self.local_date(ref_date)
        if ref <= due:
            return 0
        return sum(
            1 for day in generate_date_range(due + timedelta(days=1), ref)
            if not self.is_non_chargeable_date(day)
        )

    def first_chargeable_late_date(self, due_date: DateLike) -> date:
        """First chargeable day strictly after the due date"""
        cursor = self.local_date(due_date) + timedelta(days=1)
        while self.is_non_chargeable_date(cursor):
            cursor += timedelta(days=1)
        return cursor

    def days_of_coverage_left(self, today: DateLike) -> int:
        return (self.covered_through - self.local_date(today)).days

    def check_coverage(self, today: DateLike, warn_days: int) -> int:
        """
        Verify the calendar still covers today.

        Logs a warning when fewer than warn_days remain and raises
        CalendarCoverageError once today is past the coverage edge.
        """
        remaining = self.days_of_coverage_left(today)
        if remaining < 0:
            raise CalendarCoverageError(
                f"Holiday calendar ended {self.covered_through.isoformat()}; "
                "late-day counts cannot be trusted until it is extended"
            )
        if remaining < warn_days:
            logger.warning(
                "Holiday calendar nearing end of coverage",
                extra={
                    "covered_through": self.covered_through.isoformat(),
                    "days_remaining": remaining,
                },
            )
        return remaining


@lru_cache(maxsize=1)
def default_calendar() -> HolidayCalendar:
    """Calendar built from settings: a JSON override when configured, else the bundled set"""
    if settings.holiday_calendar_path:
        return HolidayCalendar.from_file(settings.holiday_calendar_path, tz_name=settings.business_timezone)
    return HolidayCalendar.bundled(tz_name=settings.business_timezone)


def is_non_chargeable_date(value: DateLike, calendar: Optional[HolidayCalendar] = None) -> bool:
    return (calendar or default_calendar()).is_non_chargeable_date(value)


def compute_chargeable_late_days(
    ref_date: DateLike,
    due_date: DateLike,
    calendar: Optional[HolidayCalendar] = None,
) -> int:
    return (calendar or default_calendar()).compute_chargeable_late_days(ref_date, due_date)
