"""Schedule Assembler: validated per-date entries → persisted Schedule shape."""

import logging
from datetime import date

from models.schedule import Schedule, ScheduleEntry

logger = logging.getLogger(__name__)


def sort_day(entries: list[ScheduleEntry]) -> list[ScheduleEntry]:
    """Stable sort by start time; untimed entries go last."""
    return sorted(entries, key=lambda e: e.start_minutes)


def assemble(days: dict[date, list[ScheduleEntry]]) -> Schedule:
    """Build the final Schedule.

    Dates come out ascending, entries ordered by start time, and a date with
    no surviving entries is absent instead of mapping to an empty list.
    """
    assembled = {
        day: sort_day(entries)
        for day, entries in sorted(days.items())
        if entries
    }
    schedule = Schedule(days=assembled)
    logger.info(f"Assembled {schedule.entry_count} entries over {len(assembled)} days")
    return schedule
