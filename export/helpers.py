"""Shared helpers for the Excel and PDF export."""

from collections import defaultdict
from datetime import date, timedelta

from models.schedule import EntryType, Schedule, ScheduleEntry

# ─── Colour palette (RRGGBB, no #) ────────────────────────────────────────────

COLORS: dict[str, str] = {
    "study":          "B3D4FF",
    "revision":       "D4B3FF",
    "practice":       "B3FFB3",
    "exam_questions": "FFD4B3",
    "homework":       "FFF2B3",
    "break":          "DDDDDD",
    "event":          "E0E0E0",
    "overlap":        "FF9999",
    "free":           "F5F5F5",
    "header":         "4472C4",
}

TYPE_LABELS: dict[EntryType, str] = {
    EntryType.STUDY:          "Study",
    EntryType.REVISION:       "Revision",
    EntryType.PRACTICE:       "Practice",
    EntryType.EXAM_QUESTIONS: "Exam questions",
    EntryType.HOMEWORK:       "Homework",
    EntryType.BREAK:          "Break",
    EntryType.EVENT:          "Event",
}

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Turns an RRGGBB string into an (r, g, b) tuple."""
    h = hex_color.lstrip("#")
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def today_str() -> str:
    return date.today().isoformat()


def entry_color(entry: ScheduleEntry) -> str:
    """Background colour for an entry; flagged overlaps always show red."""
    if entry.overlap_warning:
        return COLORS["overlap"]
    return COLORS.get(entry.type.value, COLORS["free"])


# ─── Week grouping ────────────────────────────────────────────────────────────

def week_start(day: date) -> date:
    """Monday of the ISO week containing `day`."""
    return day - timedelta(days=day.weekday())


def week_label(monday: date) -> str:
    year, week, _ = monday.isocalendar()
    return f"{year}-W{week:02d}"


def group_by_week(schedule: Schedule) -> dict[date, dict[date, list[ScheduleEntry]]]:
    """{monday: {day: entries}} in ascending order, empty weeks omitted."""
    weeks: dict[date, dict[date, list[ScheduleEntry]]] = defaultdict(dict)
    for day in schedule.dates():
        weeks[week_start(day)][day] = schedule.days[day]
    return dict(sorted(weeks.items()))


# ─── Cell formatting ──────────────────────────────────────────────────────────

def end_clock(entry: ScheduleEntry) -> str:
    if entry.time is None or not entry.duration:
        return ""
    end = entry.start_minutes + entry.duration
    return f"{end // 60 % 24:02d}:{end % 60:02d}"


def format_entry(entry: ScheduleEntry, with_notes: bool = False) -> str:
    """One entry as cell text.

    "HH:MM–HH:MM Topic" plus a second line with subject and type. Breaks
    collapse to a single line.
    """
    span = f"{entry.time}–{end_clock(entry)}" if entry.time else "any time"
    if entry.is_break:
        return f"{span} Break ({entry.duration or 0} min)"
    lines = [f"{span} {entry.topic}"]
    detail = TYPE_LABELS.get(entry.type, entry.type.value)
    if entry.subject:
        detail = f"{entry.subject} · {detail}"
    if entry.overlap_warning:
        detail += " ⚠"
    lines.append(detail)
    if with_notes and entry.notes:
        lines.append(entry.notes)
    return "\n".join(lines)


def minutes_by_type(entries: list[ScheduleEntry]) -> dict[EntryType, int]:
    totals: dict[EntryType, int] = defaultdict(int)
    for e in entries:
        totals[e.type] += e.duration or 0
    return dict(totals)
