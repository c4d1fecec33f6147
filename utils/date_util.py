from datetime import datetime, timedelta
from typing import Optional

import pytz


def get_timestamp_in_utc() -> datetime:
    current_timestamp = datetime.now().timestamp()
    # Convert the timestamp to a timezone-aware datetime object in UTC
    utc_datetime = datetime.fromtimestamp(current_timestamp, tz=pytz.utc)

    return utc_datetime


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def seconds_ago(now: datetime, seconds: float) -> datetime:
    return now - timedelta(seconds=seconds)


def format_long_date(value: datetime) -> str:
    """Long date, short time, e.g. 'January 15, 2025 at 10:30 AM'."""
    value = ensure_utc(value)
    return f"{value.strftime('%B')} {value.day}, {value.year} at {value.strftime('%I:%M %p').lstrip('0')}"
