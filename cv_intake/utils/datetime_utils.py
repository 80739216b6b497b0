from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Saturday and Sunday in datetime.weekday() numbering
WEEKEND = (5, 6)


def get_now_utc() -> datetime:
    """Get current datetime in UTC"""
    return datetime.now(timezone.utc)


def resolve_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    """Turn an IANA name (or None) into a tzinfo, defaulting to UTC."""
    if tz is None:
        return timezone.utc
    if isinstance(tz, tzinfo):
        return tz
    if tz.upper() in ("UTC", "Z"):
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone '{tz}'") from e


def next_business_day(
    now: Optional[datetime] = None,
    hour: int = 10,
    tz: Union[str, tzinfo, None] = None,
) -> datetime:
    """
    Next business day at a fixed local hour.

    Moves one day forward from ``now`` (in ``tz``), then skips a
    Saturday/Sunday target to the following Monday. Friday and Saturday
    both land on Monday; Tuesday lands on Wednesday.

    Returns:
        Timezone-aware datetime at ``hour``:00:00 local time
    """
    zone = resolve_timezone(tz)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    else:
        now = now.astimezone(zone)

    target = now + timedelta(days=1)
    if target.weekday() in WEEKEND:
        target = target + timedelta(days=7 - target.weekday())

    return datetime(target.year, target.month, target.day, hour, 0, 0, tzinfo=zone)


def parse_datetime_safe(dt_str: str, tz: Union[str, tzinfo, None] = None) -> datetime:
    """
    Parse an ISO-8601 string into an aware datetime.

    Handles a trailing 'Z'. Naive values are taken to be in ``tz`` (UTC by default).
    """
    if not dt_str or not dt_str.strip():
        raise ValueError("Empty datetime string")

    dt_str = dt_str.strip()
    if dt_str.endswith("Z"):
        dt_str = dt_str[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(dt_str)
    except ValueError as e:
        raise ValueError(f"Failed to parse datetime '{dt_str}': {e}") from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=resolve_timezone(tz))
    return dt


def format_iso_utc(dt: datetime) -> str:
    """Format datetime as ISO string in UTC without microseconds"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
