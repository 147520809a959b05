from datetime import date, datetime, timedelta, timezone
from typing import Iterable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_bounds(day: date | datetime) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing ``day``."""
    day = as_date(day)
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=6)


def quarter_of(day: date | datetime) -> int:
    return (as_date(day).month - 1) // 3 + 1


def distinct_weeks(week_starts: Iterable[date]) -> int:
    return len({as_date(d) for d in week_starts})


def in_half_open(day: date, start: date, end: date) -> bool:
    """start <= day < end"""
    return start <= as_date(day) < end


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes, as SQLite returns them without an offset."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)

