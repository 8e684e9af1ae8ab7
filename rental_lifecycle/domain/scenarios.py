"""
Lateness scenario classification.

Scenario A (returned late): state delivered and the return has a carrier
scan. Lateness is measured against the scan date, so it is fixed once the
scan exists no matter how much later the check runs.

Scenario B (never returned): state accepted or delivered with no scan.
Lateness is measured against "now" and grows every day.

Any other combination is unexpected and never produces a charge.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rental_lifecycle.domain.calendar import HolidayCalendar
from rental_lifecycle.domain.exceptions import UnexpectedScenarioError
from rental_lifecycle.domain.state import to_carrier_phase

RETURNED_LATE = "delivered-late"
NEVER_RETURNED = "non-return"
UNEXPECTED = "unexpected"


@dataclass
class Classification:
    scenario: str
    late_days: int = 0
    effective_date: Optional[str] = None  # YYYY-MM-DD charge idempotency key
    reason: Optional[str] = None

    @property
    def is_modeled(self) -> bool:
        return self.scenario != UNEXPECTED

    def require_modeled(self) -> "Classification":
        if not self.is_modeled:
            raise UnexpectedScenarioError(self.reason or "unexpected scenario")
        return self


def has_return_scan(first_scan_at: Optional[str], status: Optional[str]) -> bool:
    return bool(first_scan_at) or to_carrier_phase(status) == "SHIPPED"


def classify(
    state: str,
    first_scan_at: Optional[str],
    status: Optional[str],
    due_at: str,
    now: datetime,
    calendar: HolidayCalendar,
) -> Classification:
    scanned = has_return_scan(first_scan_at, status)

    if state == "delivered" and scanned:
        if not first_scan_at:
            # status says scanned but there is no scan date to lock lateness to
            return Classification(scenario=UNEXPECTED, reason="delivered-scan-without-timestamp")
        effective = calendar.local_date(first_scan_at)
        return Classification(
            scenario=RETURNED_LATE,
            late_days=calendar.compute_chargeable_late_days(effective, due_at),
            effective_date=effective.isoformat(),
        )

    if state in ("accepted", "delivered") and not scanned:
        effective = calendar.local_date(now)
        return Classification(
            scenario=NEVER_RETURNED,
            late_days=calendar.compute_chargeable_late_days(effective, due_at),
            effective_date=effective.isoformat(),
        )

    if state == "accepted" and scanned:
        reason = "accepted-with-scan (should be delivered)"
    else:
        reason = f"state-{state}-unhandled"
    return Classification(scenario=UNEXPECTED, reason=reason)
