from datetime import datetime, timezone, timedelta
import re

# Indian Standard Time (IST) offset: UTC +5:30
IST = timezone(timedelta(hours=5, minutes=30))


def get_now_ist() -> datetime:
    """Get current datetime in IST"""
    return datetime.now(IST)


def to_ist(dt: datetime) -> datetime:
    """Convert an aware datetime to IST or localize a naive one"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=IST)
    return dt.astimezone(IST)


def format_iso_ist(dt: datetime) -> str:
    """
    Format datetime as an ISO string in IST at second precision.

    Every timestamp the booking core stores goes through here so that
    string comparison in Mongo range queries matches time order.
    """
    return to_ist(dt).replace(microsecond=0).isoformat()


def parse_datetime_safe(value) -> datetime:
    """
    Parse a datetime (or ISO string) into an IST-aware datetime.

    Handles:
    - UTC format: '2026-01-28T12:24:00Z' or '2026-01-28T12:24:00+00:00'
    - IST format: '2026-01-28T12:24:00+05:30'
    - Naive format: '2026-01-28T12:24:00' (assumed IST)
    """
    if isinstance(value, datetime):
        return to_ist(value)
    if not value:
        raise ValueError("Empty datetime string")

    dt_str = str(value).strip()
    if dt_str.endswith("Z"):
        dt_str = dt_str[:-1] + "+00:00"

    # fromisoformat before 3.11 only accepts 3 or 6 fractional digits
    match = re.match(r"^(.*T\d{2}:\d{2}:\d{2})\.(\d+)(.*)$", dt_str)
    if match:
        base, fraction, tz_part = match.groups()
        dt_str = f"{base}.{(fraction + '000000')[:6]}{tz_part}"

    try:
        return to_ist(datetime.fromisoformat(dt_str))
    except ValueError as e:
        raise ValueError(f"Failed to parse datetime '{value}': {e}")


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60
