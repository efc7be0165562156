"""Naive-UTC datetime helpers; every DateTime column stores naive UTC."""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_start(now: datetime, months_back: int = 0) -> datetime:
    """First instant of the month ``months_back`` months before ``now``."""
    month_index = now.year * 12 + (now.month - 1) - months_back
    return datetime(month_index // 12, month_index % 12 + 1, 1)
