from datetime import datetime, timedelta, timezone, date
from typing import Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a PostgREST timestamp (ISO 8601, possibly with a trailing Z); naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def day_range(date_string: Optional[str]) -> Optional[Tuple[str, str]]:
    """YYYY-MM-DD -> [start, end) of that UTC day as ISO strings; None when missing or invalid."""
    if not date_string:
        return None
    try:
        day = date.fromisoformat(date_string)
    except ValueError:
        return None
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return start.isoformat(), end.isoformat()


def month_key(value) -> Optional[str]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    parsed = parsed.astimezone(timezone.utc)
    return f"{parsed.year}-{parsed.month:02d}-01"
