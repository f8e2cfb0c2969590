"""Date-time helpers for month boundaries and UTC timestamps."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in ``DateTime`` columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def month_start(today: date | None = None) -> date:
    """Return the first day of the month containing ``today``."""

    current = today or datetime.now(timezone.utc).date()
    return date(current.year, current.month, 1)


def previous_month_start(bucket: date) -> date:
    """Return the first day of the month preceding the supplied month start."""

    year = bucket.year
    month = bucket.month - 1
    if month == 0:
        year -= 1
        month = 12
    return date(year, month, 1)


def local_to_utc(day: date, hour: int, tz_name: str) -> datetime:
    """Combine a local calendar day and full hour into a naive UTC datetime."""

    local = datetime(day.year, day.month, day.day, hour, 0, tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_weeks(value: datetime, weeks: int) -> datetime:
    return value + timedelta(weeks=weeks)


def utc_to_local(value: datetime, tz_name: str) -> datetime:
    """Naive UTC datetime rendered in ``tz_name`` (tz-aware)."""

    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))


def parse_full_hour(value: str) -> int:
    """Hour of an ``HH:00`` string; classes only start on the hour."""

    hours, sep, minutes = value.partition(":")
    if not sep or len(hours) != 2 or minutes != "00" or not hours.isdigit() or int(hours) > 23:
        raise ValueError(f"Time must be a full hour (HH:00), got {value!r}")
    return int(hours)
