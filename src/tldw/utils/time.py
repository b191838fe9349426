"""Calendar helpers. All timestamps in the service are timezone-aware UTC."""

from datetime import UTC, datetime, time, timedelta

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def first_of_next_month(now: datetime) -> datetime:
    """Midnight UTC on the first day of the month after ``now``."""
    start_of_month = datetime.combine(ensure_utc(now).date().replace(day=1), time.min, tzinfo=UTC)
    return start_of_month + relativedelta(months=1)


def next_midnight(now: datetime) -> datetime:
    """Midnight UTC at the start of the day after ``now``."""
    return datetime.combine(ensure_utc(now).date() + timedelta(days=1), time.min, tzinfo=UTC)


def months_ago(now: datetime, months: int) -> datetime:
    return ensure_utc(now) - relativedelta(months=months)


def months_from(now: datetime, months: int) -> datetime:
    return ensure_utc(now) + relativedelta(months=months)
