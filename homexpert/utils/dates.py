import math
from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow():
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def month_key(moment):
    return f"{moment.year}-{moment.month:02d}"


def days_until(end, now=None):
    """Whole days left until ``end``, rounded up and never negative."""
    if end is None:
        return 0
    now = now or utcnow()
    return max(0, math.ceil((end - now).total_seconds() / SECONDS_PER_DAY))


def isoformat(value):
    return value.isoformat() if value else None


def parse_datetime(value):
    """Parse an ISO-8601 string (``Z`` suffix allowed) into a naive UTC datetime."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
