"""Date and time utilities for Calendar Health application."""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz

logger = logging.getLogger(__name__)

SECONDS_IN_DAY = 60 * 60 * 24


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC.

    Args:
        dt: Datetime to convert

    Returns:
        UTC datetime
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def resolve_timezone(name: Optional[str]):
    """
    Look up a timezone by IANA name, falling back to UTC.

    Args:
        name: Timezone name such as "Europe/Zurich"

    Returns:
        pytz timezone object
    """
    if not name:
        return pytz.utc
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', assuming UTC")
        return pytz.utc


def localize(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Attach a timezone to a naive datetime and convert to UTC."""
    if dt.tzinfo is not None:
        return dt.astimezone(pytz.utc)
    return resolve_timezone(tz_name).localize(dt).astimezone(pytz.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / SECONDS_IN_DAY


def get_analysis_window(
    lookback_days: int = 30,
    lookahead_days: int = 0,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """
    Get an analysis window (start, end) in UTC.

    Args:
        lookback_days: Days to look back from now
        lookahead_days: Days to look ahead from now
        now: Reference time (defaults to the current time)

    Returns:
        Tuple of (start_date, end_date) in UTC
    """
    now = ensure_utc(now) if now else datetime.now(pytz.utc)
    # Use start of day (midnight UTC) to include all events from that day
    today_midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = today_midnight - timedelta(days=lookback_days)
    # End at midnight of the last day to include all events
    end = today_midnight + timedelta(days=lookahead_days + 1)
    return start, end


def parse_recurrence_pattern(rules: Optional[list[str]]) -> Optional[dict]:
    """
    Parse the RRULE line of an iCalendar recurrence list.

    Args:
        rules: Recurrence lines, e.g. ["RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO"]

    Returns:
        Dict with ``freq``, ``interval``, ``until``, ``count`` and
        ``by_day`` keys, or None when no usable RRULE is present
    """
    if not rules:
        return None

    rule = next((r for r in rules if r.strip().upper().startswith("RRULE")), None)
    if rule is None:
        return None

    body = rule.split(":", 1)[1] if ":" in rule else rule
    parts: dict[str, str] = {}
    for part in body.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        parts[key.strip().upper()] = value.strip()

    freq = parts.get("FREQ", "").upper()
    if not freq:
        return None

    try:
        interval = int(parts.get("INTERVAL", "1")) or 1
    except ValueError:
        interval = 1

    count: Optional[int]
    try:
        count = int(parts["COUNT"]) if "COUNT" in parts else None
    except ValueError:
        count = None

    by_day = parts.get("BYDAY")

    return {
        "freq": freq,
        "interval": interval,
        "until": parts.get("UNTIL"),
        "count": count,
        "by_day": by_day.split(",") if by_day else None,
    }
