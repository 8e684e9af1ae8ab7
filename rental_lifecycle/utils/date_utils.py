"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import List, Union
from zoneinfo import ZoneInfo

DateLike = Union[str, date, datetime]


@lru_cache(maxsize=8)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: DateLike) -> Union[date, datetime]:
    """
    Parse an ISO-8601 value coming from the transaction store.

    Date-only strings ("2025-01-10") stay calendar dates. Timestamps without an
    offset are treated as UTC; a trailing "Z" is accepted.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a date or timestamp: {value!r}")

    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_local_date(value: DateLike, tz_name: str) -> date:
    """Normalize a date or timestamp to a start-of-day calendar date in tz_name"""
    parsed = parse_timestamp(value)
    if isinstance(parsed, datetime):
        return parsed.astimezone(get_zone(tz_name)).date()
    return parsed


def to_utc_datetime(value: DateLike) -> datetime:
    """Timestamp in UTC; calendar dates become UTC midnight"""
    parsed = parse_timestamp(value)
    if isinstance(parsed, datetime):
        return parsed.astimezone(timezone.utc)
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]
