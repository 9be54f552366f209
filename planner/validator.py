"""Schedule Validator/Repair pass over an untrusted candidate.

Every entry runs through the same checks in a fixed order, first match wins:

  1. structure        → MALFORMED (untimed breaks pass through unchanged)
  2. identity         → EVENT_IMPERSONATION / UNKNOWN_IDENTITY
  3. due date         → DEADLINE_VIOLATION (homework only)
  4. test day         → TEST_DAY_VIOLATION
  5. entry type       → FORBIDDEN_TYPE
  6. blocked overlap  → OVERLAP_WARNING, entry is KEPT and flagged

Steps 1-5 drop the entry and record it in the RejectionLedger. Step 6 only
flags: a full schedule with highlighted overlaps is preferred over a sparse
one. Retained entries are repaired (canonical topic spelling, echoes, notes,
ids) before they reach the assembler.
"""

import json
import logging
from collections import Counter
from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from config.defaults import EXAM_QUESTION_RESOURCES, resource_hints_for
from models.clock import combine, parse_clock
from models.identity import normalize_identity
from models.schedule import (
    BREAK_TOPIC,
    TOPIC_TYPES,
    EntryType,
    ScheduleEntry,
    new_entry_id,
)
from planner.constraints import ConstraintSet

logger = logging.getLogger(__name__)


class ViolationCode(str, Enum):
    MALFORMED = "MALFORMED"
    EVENT_IMPERSONATION = "EVENT_IMPERSONATION"
    UNKNOWN_IDENTITY = "UNKNOWN_IDENTITY"
    DEADLINE_VIOLATION = "DEADLINE_VIOLATION"
    TEST_DAY_VIOLATION = "TEST_DAY_VIOLATION"
    FORBIDDEN_TYPE = "FORBIDDEN_TYPE"
    OVERLAP_WARNING = "OVERLAP_WARNING"   # advisory, never removes


REASON_TEXT = {
    ViolationCode.MALFORMED: "malformed entry",
    ViolationCode.EVENT_IMPERSONATION: "copies a blocked event's title",
    ViolationCode.UNKNOWN_IDENTITY: "unknown topic or homework",
    ViolationCode.DEADLINE_VIOLATION: "homework on or after its due date",
    ViolationCode.TEST_DAY_VIOLATION: "session on its subject's test day",
    ViolationCode.FORBIDDEN_TYPE: "event entries are not allowed",
    ViolationCode.OVERLAP_WARNING: "overlaps blocked time",
}


# ─── Ledger ───────────────────────────────────────────────────────────────────

class LedgerRecord(BaseModel):
    """One rejected (or overlap-flagged) entry."""

    day: str                 # date key as it appeared in the candidate
    code: ViolationCode
    reason: str
    topic: str = ""
    entry: Any = None        # the offending raw entry


class LedgerSummary(BaseModel):
    removed: int
    overlaps: int
    by_code: dict[str, int]
    message: str


class RejectionLedger(BaseModel):
    """Itemized record of everything the validator removed or flagged."""

    rejections: list[LedgerRecord] = Field(default_factory=list)
    overlaps: list[LedgerRecord] = Field(default_factory=list)

    def record(self, day: str, code: ViolationCode, reason: str, entry: Any) -> None:
        topic = entry.get("topic", "") if isinstance(entry, dict) else ""
        rec = LedgerRecord(day=day, code=code, reason=reason, topic=str(topic or ""), entry=entry)
        if code == ViolationCode.OVERLAP_WARNING:
            self.overlaps.append(rec)
        else:
            self.rejections.append(rec)
        logger.debug(f"{day} {code.value}: {reason}")

    @property
    def removed_count(self) -> int:
        return len(self.rejections)

    def counts(self) -> dict[ViolationCode, int]:
        return dict(Counter(r.code for r in self.rejections))

    def summary(self) -> LedgerSummary:
        counts = self.counts()
        by_code = {code.value: n for code, n in sorted(counts.items(), key=lambda kv: kv[0].value)}
        if self.rejections:
            parts = ", ".join(f"{n} {REASON_TEXT[code]}" for code, n in
                              sorted(counts.items(), key=lambda kv: -kv[1]))
            message = f"{self.removed_count} sessions removed: {parts}"
        else:
            message = "No sessions removed"
        if self.overlaps:
            message += f"; {len(self.overlaps)} overlap blocked time"
        return LedgerSummary(
            removed=self.removed_count,
            overlaps=len(self.overlaps),
            by_code=by_code,
            message=message,
        )

    def print_rich(self) -> None:
        """Print the ledger via Rich."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        summary = self.summary()
        status = (
            "[bold green]✓ NOTHING REMOVED[/bold green]"
            if not self.rejections
            else f"[bold yellow]{summary.removed} REMOVED[/bold yellow]"
        )
        lines = [status, summary.message]
        console.print(Panel("\n".join(lines), title="Rejection ledger", border_style="cyan"))

        records = self.rejections + self.overlaps
        if not records:
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Date", width=10)
        table.add_column("Code", width=20)
        table.add_column("Topic", width=24)
        table.add_column("Reason")
        for r in records:
            color = "yellow" if r.code == ViolationCode.OVERLAP_WARNING else "red"
            table.add_row(r.day, f"[{color}]{r.code.value}[/{color}]", r.topic, r.reason)
        console.print(table)

    def save_json(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "RejectionLedger":
        with open(Path(path), "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))


class ValidationResult(BaseModel):
    days: dict[date, list[ScheduleEntry]]
    ledger: RejectionLedger
    repaired: int = 0

    @property
    def retained_count(self) -> int:
        return sum(len(v) for v in self.days.values())


class _Rejected(Exception):
    def __init__(self, code: ViolationCode, reason: str) -> None:
        super().__init__(reason)
        self.code = code
        self.reason = reason


# ─── Field coercion ───────────────────────────────────────────────────────────

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_duration(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean duration")
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, float) and value.is_integer():
        minutes = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        minutes = int(value.strip())
    else:
        raise ValueError(f"duration {value!r} is not a whole number of minutes")
    if minutes <= 0:
        raise ValueError(f"duration {minutes} is not positive")
    return minutes


def _coerce_date(value: Any) -> Optional[date]:
    if _is_blank(value):
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _coerce_type(value: Any) -> EntryType:
    if _is_blank(value):
        raise ValueError("missing type")
    try:
        return EntryType(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"unknown type {value!r}") from None


# ─── Validator ────────────────────────────────────────────────────────────────

class ScheduleValidator:
    """Validates and repairs candidate schedules against one ConstraintSet."""

    def __init__(self, constraints: ConstraintSet) -> None:
        self.constraints = constraints
        self.identities = constraints.identities

    def validate(self, payload: dict) -> ValidationResult:
        """Run all checks over a ``{date: [entry]}`` mapping."""
        ledger = RejectionLedger()
        days: dict[date, list[ScheduleEntry]] = {}
        repaired = 0
        seen = 0
        issued: set[str] = set()

        for key in sorted(payload, key=str):
            bucket = payload[key]
            day_label = str(key)
            try:
                day = date.fromisoformat(day_label)
            except ValueError:
                reason = f"date key {day_label!r} is not an ISO date"
                for raw in (bucket if isinstance(bucket, list) else [bucket]):
                    seen += 1
                    ledger.record(day_label, ViolationCode.MALFORMED, reason, raw)
                continue
            if not isinstance(bucket, list):
                seen += 1
                ledger.record(day_label, ViolationCode.MALFORMED,
                              "date bucket is not a list of entries", bucket)
                continue

            for raw in bucket:
                seen += 1
                try:
                    entry, changed = self._check_entry(day, raw, ledger)
                except _Rejected as rej:
                    ledger.record(day_label, rej.code, rej.reason, raw)
                    continue
                if entry.id in issued:
                    # Ids are unique within one schedule
                    entry.id = new_entry_id()
                    changed = True
                issued.add(entry.id)
                repaired += int(changed)
                days.setdefault(day, []).append(entry)

        result = ValidationResult(days=days, ledger=ledger, repaired=repaired)
        counts = ", ".join(f"{c.value}={n}" for c, n in ledger.counts().items()) or "none"
        logger.info(
            f"Validated {seen} candidate entries: {result.retained_count} kept, "
            f"{ledger.removed_count} removed ({counts}), {len(ledger.overlaps)} overlaps, "
            f"{repaired} repaired"
        )
        return result

    # ── Per-entry checks ─────────────────────────────────────────────────────

    def _check_entry(self, day: date, raw: Any,
                     ledger: RejectionLedger) -> tuple[ScheduleEntry, bool]:
        # 1. Structure
        if not isinstance(raw, dict):
            raise _Rejected(ViolationCode.MALFORMED, "entry is not an object")
        try:
            entry_type = _coerce_type(raw.get("type"))
        except ValueError as e:
            raise _Rejected(ViolationCode.MALFORMED, str(e)) from None

        topic = "" if _is_blank(raw.get("topic")) else str(raw["topic"]).strip()
        is_break = entry_type == EntryType.BREAK

        if _is_blank(raw.get("time")) or _is_blank(raw.get("duration")):
            if is_break:
                return self._pass_through_break(raw, topic), False
            raise _Rejected(ViolationCode.MALFORMED, "missing time or duration")
        try:
            clock = parse_clock(str(raw["time"]))
            duration = _coerce_duration(raw["duration"])
        except ValueError as e:
            raise _Rejected(ViolationCode.MALFORMED, str(e)) from None
        if not topic and not is_break:
            raise _Rejected(ViolationCode.MALFORMED, "missing topic")

        key = normalize_identity(topic)
        ids = self.identities

        # 2. Identity
        if not is_break:
            if key in ids.events:
                raise _Rejected(ViolationCode.EVENT_IMPERSONATION,
                                f"'{topic}' matches a blocked event title")
            if entry_type == EntryType.HOMEWORK:
                known = key in ids.homework
            elif entry_type in TOPIC_TYPES:
                known = key in ids.topics
            else:
                # event-typed: let step 5 name the real problem
                known = key in ids.topics or key in ids.homework
            if not known:
                raise _Rejected(ViolationCode.UNKNOWN_IDENTITY,
                                f"'{topic}' is not a known {self._kind(entry_type)}")

        # 3. Due date
        if entry_type == EntryType.HOMEWORK:
            due = self.constraints.homework_due.get(key)
            if due is not None and day >= due:
                raise _Rejected(ViolationCode.DEADLINE_VIOLATION,
                                f"'{topic}' is due {due.isoformat()}")
            if day in self.constraints.homework_due_dates:
                raise _Rejected(ViolationCode.DEADLINE_VIOLATION,
                                f"{day.isoformat()} is a homework due date")

        # 4. Test day
        subject_key = self._subject_key(key, entry_type, raw)
        if self.constraints.is_test_day(subject_key, day):
            subject = self.constraints.subject_names.get(subject_key, subject_key)
            raise _Rejected(ViolationCode.TEST_DAY_VIOLATION,
                            f"{day.isoformat()} is a {subject} test day")

        # 5. Entry type
        if entry_type == EntryType.EVENT:
            raise _Rejected(ViolationCode.FORBIDDEN_TYPE, "entry declares itself an event")

        # 6. Overlap (flag only)
        start = combine(day, clock)
        end = start + timedelta(minutes=duration)
        hits = self.constraints.blocked_between(start, end, subject_key)
        if hits:
            ledger.record(
                day.isoformat(), ViolationCode.OVERLAP_WARNING,
                f"{clock.strftime('%H:%M')} +{duration} min overlaps {hits[0].label}", raw,
            )

        return self._repair(raw, entry_type, key, topic, clock.strftime("%H:%M"),
                            duration, subject_key, bool(hits))

    def _pass_through_break(self, raw: dict, topic: str) -> ScheduleEntry:
        """Untimed breaks are kept as they are, only an id is added."""
        duration = raw.get("duration")
        try:
            duration = None if _is_blank(duration) else _coerce_duration(duration)
        except ValueError:
            duration = None
        time_value = raw.get("time")
        try:
            time_value = None if _is_blank(time_value) else parse_clock(str(time_value)).strftime("%H:%M")
        except ValueError:
            time_value = None
        entry_id = raw.get("id")
        return ScheduleEntry(
            id=entry_id if isinstance(entry_id, str) and entry_id else new_entry_id(),
            time=time_value,
            duration=duration,
            subject=str(raw.get("subject") or ""),
            topic=topic or BREAK_TOPIC,
            type=EntryType.BREAK,
            notes=raw.get("notes") if isinstance(raw.get("notes"), str) else None,
            mode=raw.get("mode") if isinstance(raw.get("mode"), str) else None,
        )

    @staticmethod
    def _kind(entry_type: EntryType) -> str:
        if entry_type == EntryType.HOMEWORK:
            return "homework"
        if entry_type in TOPIC_TYPES:
            return "topic"
        return "topic or homework"

    def _subject_key(self, key: str, entry_type: EntryType, raw: dict) -> Optional[str]:
        """Owning subject of the topic or homework first, then the entry's own label."""
        if entry_type == EntryType.HOMEWORK:
            owner = self.identities.homework_subjects.get(key)
        else:
            owner = self.identities.topic_subjects.get(key)
        if owner:
            return owner
        label = raw.get("subject")
        return normalize_identity(str(label)) if not _is_blank(label) else None

    # ── Repair ───────────────────────────────────────────────────────────────

    def _repair(self, raw: dict, entry_type: EntryType, key: str, topic: str,
                time_value: str, duration: int, subject_key: Optional[str],
                overlap: bool) -> tuple[ScheduleEntry, bool]:
        c = self.constraints
        changed = False

        subject = str(raw.get("subject") or "").strip()
        notes = raw.get("notes") if isinstance(raw.get("notes"), str) else None
        mode = raw.get("mode") if isinstance(raw.get("mode"), str) else None
        test_date = _coerce_date(raw.get("testDate"))
        due_date = _coerce_date(raw.get("homeworkDueDate"))
        hints: list[str] = []

        if entry_type == EntryType.HOMEWORK:
            canonical = self.identities.homework_titles.get(key, topic)
            ob = c.homework(key)
            true_due = c.homework_due.get(key)
            if true_due is not None and due_date != true_due:
                due_date = true_due
                changed = True
            if ob is not None and subject != ob.subject:
                subject = ob.subject
                changed = True
            hints = resource_hints_for(subject)
        elif entry_type == EntryType.BREAK:
            canonical = topic or BREAK_TOPIC
        else:
            canonical = self.identities.topic_names.get(key, topic)
            ob = c.topic(key)
            if ob is not None:
                if subject != ob.subject:
                    subject = ob.subject
                    changed = True
                if test_date is None and ob.deadline is not None:
                    test_date = ob.deadline
                    changed = True
                hints = list(ob.resource_hints)
            if entry_type == EntryType.EXAM_QUESTIONS:
                hints = list(EXAM_QUESTION_RESOURCES)

        if canonical != topic:
            changed = True

        if mode is None and subject_key in c.subject_tiers and c.subject_tiers[subject_key]:
            mode = c.subject_tiers[subject_key].value
            changed = True

        if entry_type != EntryType.BREAK and _is_blank(notes) and hints:
            notes = "Resources: " + ", ".join(hints)
            changed = True

        entry_id = raw.get("id")
        if not (isinstance(entry_id, str) and entry_id):
            entry_id = new_entry_id()

        entry = ScheduleEntry(
            id=entry_id,
            time=time_value,
            duration=duration,
            subject=subject,
            topic=canonical,
            type=entry_type,
            notes=notes,
            test_date=test_date if entry_type != EntryType.BREAK else None,
            homework_due_date=due_date if entry_type == EntryType.HOMEWORK else None,
            mode=mode,
            overlap_warning=overlap,
        )
        return entry, changed
