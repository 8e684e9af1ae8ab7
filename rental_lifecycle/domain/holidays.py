"""Bundled USPS holiday data (no mail pickup or delivery)"""

from datetime import date

USPS_HOLIDAYS = frozenset(
    date.fromisoformat(d)
    for d in [
        # 2025
        "2025-01-01",  # New Year's Day
        "2025-01-20",  # Martin Luther King Jr. Day
        "2025-02-17",  # Washington's Birthday
        "2025-05-26",  # Memorial Day
        "2025-06-19",  # Juneteenth
        "2025-07-04",  # Independence Day
        "2025-09-01",  # Labor Day
        "2025-10-13",  # Columbus Day
        "2025-11-11",  # Veterans Day
        "2025-11-27",  # Thanksgiving Day
        "2025-12-25",  # Christmas Day
        # 2026
        "2026-01-01",
        "2026-01-19",
        "2026-02-16",
        "2026-05-25",
        "2026-06-19",
        "2026-07-03",  # Independence Day (observed)
        "2026-09-07",
        "2026-10-12",
        "2026-11-11",
        "2026-11-26",
        "2026-12-25",
        # 2027
        "2027-01-01",
        "2027-01-18",
        "2027-02-15",
        "2027-05-31",
        "2027-06-18",  # Juneteenth (observed)
        "2027-07-05",  # Independence Day (observed)
        "2027-09-06",
        "2027-10-11",
        "2027-11-11",
        "2027-11-25",
        "2027-12-24",  # Christmas Day (observed)
    ]
)

# Last day the set above is known to be complete for.
# TODO: add the 2028 USPS schedule once it is published.
USPS_HOLIDAYS_COVERED_THROUGH = date(2027, 12, 31)
