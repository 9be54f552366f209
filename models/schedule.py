"""ScheduleEntry and Schedule: the persisted timetable (Pydantic v2).

On disk and on the wire a schedule is ``{"YYYY-MM-DD": [entry, ...]}`` with
camelCase entry keys (``testDate``, ``homeworkDueDate``, ``overlapWarning``).
"""

import json
import uuid
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.clock import parse_clock

BREAK_TOPIC = "Break"

# Entries without a time sort after every timed entry of the same day
_UNTIMED_SORT = 24 * 60


class EntryType(str, Enum):
    STUDY = "study"
    REVISION = "revision"
    PRACTICE = "practice"
    EXAM_QUESTIONS = "exam_questions"
    HOMEWORK = "homework"
    BREAK = "break"
    EVENT = "event"   # never valid in a schedule, exists so it can be rejected

    @property
    def is_topic_type(self) -> bool:
        return self in TOPIC_TYPES


TOPIC_TYPES = frozenset({
    EntryType.STUDY, EntryType.REVISION, EntryType.PRACTICE, EntryType.EXAM_QUESTIONS,
})


class ScheduleEntry(BaseModel):
    """One block in the calendar: topic session, homework session or break."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    time: Optional[str] = None          # "HH:MM", may be absent on breaks only
    duration: Optional[int] = None      # minutes
    subject: str = ""
    topic: str
    type: EntryType
    notes: Optional[str] = None
    test_date: Optional[date] = Field(None, alias="testDate")
    homework_due_date: Optional[date] = Field(None, alias="homeworkDueDate")
    mode: Optional[str] = None
    overlap_warning: bool = Field(False, alias="overlapWarning")

    @field_validator("time")
    @classmethod
    def _clock(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return parse_clock(v).strftime("%H:%M")

    @property
    def start_minutes(self) -> int:
        """Minutes after midnight, used for ordering within a day."""
        if self.time is None:
            return _UNTIMED_SORT
        t = parse_clock(self.time)
        return t.hour * 60 + t.minute

    @property
    def is_break(self) -> bool:
        return self.type == EntryType.BREAK

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def new_entry_id() -> str:
    return f"sess-{uuid.uuid4().hex[:12]}"


def _stable_entry_id(day: date, index: int, raw: dict) -> str:
    seed = f"{day.isoformat()}|{index}|{raw.get('time')}|{raw.get('topic')}|{raw.get('type')}"
    return f"sess-{uuid.uuid5(uuid.NAMESPACE_URL, seed).hex[:12]}"


class Schedule(BaseModel):
    """Mapping calendar date → entries ordered by start time."""

    days: dict[date, list[ScheduleEntry]] = Field(default_factory=dict)

    # ─── Access ───

    @property
    def entry_count(self) -> int:
        return sum(len(entries) for entries in self.days.values())

    @property
    def is_empty(self) -> bool:
        return self.entry_count == 0

    def dates(self) -> list[date]:
        return sorted(self.days)

    def iter_entries(self) -> Iterator[tuple[date, ScheduleEntry]]:
        for day in self.dates():
            for entry in self.days[day]:
                yield day, entry

    def find(self, entry_id: str) -> Optional[tuple[date, ScheduleEntry]]:
        """Locate an entry by id. Returns (date, entry) or None."""
        for day, entry in self.iter_entries():
            if entry.id == entry_id:
                return day, entry
        return None

    # ─── Wire format ───

    def to_payload(self) -> dict[str, list[dict]]:
        return {
            day.isoformat(): [e.to_wire() for e in self.days[day]]
            for day in self.dates()
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "Schedule":
        """Build from the persisted ``{date: [entry]}`` layout.

        Entries without an id get one derived from their date, position and
        content, so loading the same file twice yields the same ids.
        """
        days: dict[date, list[ScheduleEntry]] = {}
        for key, raw_entries in payload.items():
            day = date.fromisoformat(key)
            entries = []
            for index, raw in enumerate(raw_entries):
                entry = ScheduleEntry.model_validate(raw)
                if not entry.id:
                    entry.id = _stable_entry_id(day, index, raw)
                entries.append(entry)
            if entries:
                days[day] = entries
        return cls(days=days)

    # ─── Persistence ───

    def save_json(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_payload(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load_json(cls, path: Path) -> "Schedule":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Schedule file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_payload(json.load(f))
