"""Time parsing and calendar utilities."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, tzinfo

from zoneinfo import ZoneInfo


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Europe/Berlin".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：UTC, Europe/Berlin") from exc


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert a datetime into ``tz_name``. Naive datetimes are read as UTC, like ``ensure_aware``."""

    return ensure_aware(dt).astimezone(tzinfo_from_name(tz_name))


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime (discouraged, but keeps comparisons valid)."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse user-provided datetime text to a timezone-aware datetime.

    Supported formats:
      - "YYYY-MM-DD HH:MM:SS"
      - "YYYY-MM-DDTHH:MM:SS"
      - with optional timezone offset, e.g. "+08:00"

    If timezone is missing, it will be assumed to be tz_name.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18 09:30:00") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later``, truncated toward zero."""

    delta: timedelta = ensure_aware(later) - ensure_aware(earlier)
    return int(delta.total_seconds() / 86_400.0)


def local_weekday_and_hour(dt: datetime, tz_name: str) -> tuple[int, int]:
    """Return (weekday, hour) in ``tz_name``. Weekday is 0=Monday ... 6=Sunday."""

    local = to_local(dt, tz_name)
    return local.weekday(), local.hour


def overlaps(start: datetime, end: datetime, range_start: datetime, range_end: datetime) -> bool:
    """Whether [start, end] intersects [range_start, range_end]."""

    return ensure_aware(start) <= ensure_aware(range_end) and ensure_aware(end) >= ensure_aware(range_start)
