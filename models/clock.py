"""Clock-time helpers for the "HH:MM" 24-hour strings used on the wire."""

import re
from datetime import date, datetime, time, timedelta

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_clock(value: str) -> time:
    """Parse "HH:MM" (24h). Raises ValueError for anything else."""
    m = _CLOCK_RE.match(str(value).strip())
    if not m:
        raise ValueError(f"Invalid clock time '{value}' (expected HH:MM)")
    return time(int(m.group(1)), int(m.group(2)))


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def combine(day: date, clock: time) -> datetime:
    """Naive datetime for a calendar day and clock time (no timezone)."""
    return datetime.combine(day, clock)


def end_clock(start: str, minutes: int) -> str:
    """End time of a block starting at `start` lasting `minutes`, as HH:MM."""
    end = datetime.combine(date.min, parse_clock(start)) + timedelta(minutes=minutes)
    return format_clock(end.time())


def minutes_between(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
