"""Reconciliation: move one entry of a persisted schedule to another day.

A move keeps the entry's clock time, never rejects, and only re-checks the
moved entry: its overlap flag against the target day's blocked intervals and,
for homework, its position relative to the due date (advisory warning).
"""

import logging
import os
import tempfile
import threading
import weakref
from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel

from models.event import BlockedEvent
from models.homework import Homework
from models.identity import normalize_identity
from models.schedule import EntryType, Schedule, ScheduleEntry
from planner.assembler import sort_day
from planner.constraints import BlockedInterval
from planner.errors import EntryNotFoundError

logger = logging.getLogger(__name__)


class MoveStatus(str, Enum):
    MOVED = "MOVED"
    NOT_FOUND = "NOT_FOUND"


class MoveResult(BaseModel):
    schedule: Schedule
    status: MoveStatus
    warning: Optional[str] = None
    entry: Optional[ScheduleEntry] = None
    source_date: Optional[date] = None

    @property
    def moved(self) -> bool:
        return self.status == MoveStatus.MOVED


def _overlaps(entry: ScheduleEntry, day: date,
              blocked_intervals: Iterable[BlockedInterval]) -> bool:
    if entry.time is None or not entry.duration:
        return False
    start = datetime.combine(day, time.fromisoformat(entry.time))
    end = start + timedelta(minutes=entry.duration)
    subject_key = normalize_identity(entry.subject) or None
    return any(
        b.applies_to(subject_key) and b.overlaps(start, end)
        for b in blocked_intervals
    )


def move_entry(schedule: Schedule, entry_id: str, target_date: date, *,
               blocked_intervals: Iterable[BlockedInterval] = ()) -> MoveResult:
    """Relocate one entry to `target_date`, keeping its start time.

    Pure: `schedule` is not modified. An unknown id returns the input
    schedule unchanged with status NOT_FOUND.
    """
    found = schedule.find(entry_id)
    if found is None:
        logger.info(f"Move of '{entry_id}' ignored: no such entry")
        return MoveResult(schedule=schedule, status=MoveStatus.NOT_FOUND)
    source_date, _ = found

    updated = schedule.model_copy(deep=True)
    bucket = updated.days[source_date]
    index = next(i for i, e in enumerate(bucket) if e.id == entry_id)
    entry = bucket.pop(index)
    if not bucket:
        del updated.days[source_date]

    entry.overlap_warning = _overlaps(entry, target_date, blocked_intervals)

    warning = None
    if entry.type == EntryType.HOMEWORK and entry.homework_due_date is not None:
        if target_date >= entry.homework_due_date:
            warning = (
                f"'{entry.topic}' is now on {target_date.isoformat()}, on or after its "
                f"due date {entry.homework_due_date.isoformat()}"
            )
    if entry.overlap_warning:
        overlap_note = f"'{entry.topic}' overlaps blocked time on {target_date.isoformat()}"
        warning = f"{warning}; {overlap_note}" if warning else overlap_note

    target = updated.days.setdefault(target_date, [])
    target.append(entry)
    updated.days[target_date] = sort_day(target)
    updated.days = dict(sorted(updated.days.items()))

    logger.info(f"Moved '{entry_id}' from {source_date} to {target_date}")
    return MoveResult(
        schedule=updated,
        status=MoveStatus.MOVED,
        warning=warning,
        entry=entry,
        source_date=source_date,
    )


def move_event(event: BlockedEvent, target_date: date) -> BlockedEvent:
    """Same clock time on `target_date`, same duration."""
    start = datetime.combine(target_date, event.start_time.timetz())
    end = start + (event.end_time - event.start_time)
    return event.model_copy(update={"start_time": start, "end_time": end})


def move_homework(homework: Homework, target_date: date) -> Homework:
    """A dragged homework item takes the target day as its new due date."""
    return homework.model_copy(update={"due_date": target_date})


# ─── Persisted schedule ───────────────────────────────────────────────────────

_registry_lock = threading.Lock()
# A lock lives only as long as a store for its path
_path_locks: "weakref.WeakValueDictionary[Path, threading.Lock]" = weakref.WeakValueDictionary()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _path_locks[key] = lock
        return lock


class ScheduleStore:
    """One persisted schedule file with serialized read-modify-write moves."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def load(self) -> Schedule:
        return Schedule.load_json(self.path)

    def save(self, schedule: Schedule) -> None:
        with self._lock:
            self._write(schedule)

    def move(self, entry_id: str, target_date: date, *,
             blocked_intervals: Iterable[BlockedInterval] = (),
             strict: bool = False) -> MoveResult:
        """Apply one move against the current file contents.

        The file is re-read inside the lock, so concurrent moves never work on
        a stale copy. With `strict`, NOT_FOUND raises EntryNotFoundError.
        """
        with self._lock:
            current = self.load()
            result = move_entry(current, entry_id, target_date,
                                blocked_intervals=tuple(blocked_intervals))
            if result.moved:
                self._write(result.schedule)
        if not result.moved and strict:
            raise EntryNotFoundError(entry_id)
        return result

    def _write(self, schedule: Schedule) -> None:
        """Temp file + os.replace: readers see the old or the new file, never half."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            schedule.save_json(tmp)
            os.replace(tmp, self.path)
        finally:
            if tmp.exists():
                tmp.unlink()
