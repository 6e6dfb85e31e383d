from datetime import datetime, timedelta, timezone
from typing import Optional
import enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimeRange(str, enum.Enum):
    ALL_TIME = "all"
    LAST_WEEK = "7d"

    def since(self, now: datetime) -> Optional[datetime]:
        """Lower bound on settlement time for ``now``, or None for no predicate."""
        if self is TimeRange.LAST_WEEK:
            return now - timedelta(days=7)
        return None

    @classmethod
    def parse(cls, value: str) -> "TimeRange":
        """Accepts ``"7d"`` as well as ``"LAST_WEEK"``."""
        if isinstance(value, cls):
            return value
        raw = (value or "").strip()
        for member in cls:
            if raw == member.value or raw.upper() == member.name:
                return member
        raise ValueError(f"Unknown time range: {value!r}")
