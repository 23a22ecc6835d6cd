from datetime import datetime
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC now, matching the naive DateTime columns"""
    return datetime.utcnow()


def format_datetime(value: datetime) -> str:
    """Format as 'YYYY-MM-DD HH:MM:SS' (UTC) for response timestamps"""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def calculate_order_age(created_at: datetime, now: Optional[datetime] = None) -> float:
    """Wall-clock hours elapsed since created_at"""
    now = now or utcnow()
    return (now - created_at).total_seconds() / 3600


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_remaining(hours: float) -> str:
    if hours <= 0:
        return "Can be cancelled now"
    if hours * 60 < 1:
        return "Less than a minute remaining"

    full_hours = int(hours)
    minutes = round((hours - full_hours) * 60)
    if minutes == 60:
        full_hours += 1
        minutes = 0

    if full_hours == 0:
        return f"{_plural(minutes, 'minute')} remaining"
    if minutes == 0:
        return f"{_plural(full_hours, 'hour')} remaining"
    return f"{_plural(full_hours, 'hour')} and {_plural(minutes, 'minute')} remaining"
