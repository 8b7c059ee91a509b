"""
dates.py: ISO-8601 helpers shared by the SLA / staleness / progress code.

All timestamps are compared as timezone-aware UTC datetimes. Naive values are
assumed to already be UTC (that is how db.utc_now_iso() and the importers
write them).
"""

from datetime import datetime, timezone

from dateutil import parser as date_parser


def parse_timestamp(value):
    """ISO string / datetime → aware UTC datetime, or None when unparseable."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_now(now=None) -> datetime:
    """Injectable clock: None → current UTC time."""
    parsed = parse_timestamp(now)
    return parsed if parsed is not None else datetime.now(timezone.utc)


def latest_timestamp(values):
    """Return the raw value whose parsed time is the latest (first one wins ties)."""
    latest_value, latest_dt = None, None
    for value in values:
        dt = parse_timestamp(value)
        if dt is None:
            continue
        if latest_dt is None or dt > latest_dt:
            latest_value, latest_dt = value, dt
    return latest_value


def hours_between(earlier, later) -> float:
    """Hours from earlier → later, 0 when either side is missing or negative."""
    start = parse_timestamp(earlier)
    end = parse_timestamp(later)
    if start is None or end is None:
        return 0.0
    seconds = (end - start).total_seconds()
    return seconds / 3600 if seconds > 0 else 0.0


def format_relative_time(value, now=None):
    """'just now', '5 minutes ago', '3 hours ago', '2 days ago'. None if unparseable."""
    dt = parse_timestamp(value)
    if dt is None:
        return None
    seconds = (resolve_now(now) - dt).total_seconds()
    if seconds < 60:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            n = int(seconds // size)
            return f"{n} {unit}{'' if n == 1 else 's'} ago"
    return "just now"
