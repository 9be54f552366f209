"""StudyRequest: everything a generation run needs + input check (Pydantic v2)."""

from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.event import BlockedEvent
from models.homework import Homework
from models.preferences import Preferences
from models.signals import PeakPerformanceSignal, TopicAnalysis
from models.subject import StudyMode, Subject
from models.topic import TestDate, Topic

MAX_SUBJECTS = 20
MAX_TOPICS = 500
MAX_TEST_DATES = 50


class RequestCheck(BaseModel):
    """Result of the input check that runs before any acquisition."""

    is_valid: bool
    errors: list[str]      # fatal, generation is refused
    warnings: list[str]    # generation proceeds, user should know

    def print_rich(self) -> None:
        """Print the check result via Rich."""
        from rich.console import Console
        from rich.panel import Panel

        console = Console()
        if self.is_valid:
            status = "[bold green]✓ VALID[/bold green]"
        else:
            status = "[bold red]✗ INVALID[/bold red]"

        lines = [status]
        if self.errors:
            lines.append("\n[red bold]Errors:[/red bold]")
            for e in self.errors:
                lines.append(f"  [red]• {e}[/red]")
        if self.warnings:
            lines.append("\n[yellow bold]Warnings:[/yellow bold]")
            for w in self.warnings:
                lines.append(f"  [yellow]• {w}[/yellow]")
        if not self.errors and not self.warnings:
            lines.append("[dim]No problems found.[/dim]")

        console.print(Panel("\n".join(lines), title="Input check", border_style="cyan"))


class StudyRequest(BaseModel):
    """A complete timetable request: subjects, topics, tests, homework, events, preferences."""

    subjects: list[Subject] = Field(max_length=MAX_SUBJECTS)
    topics: list[Topic] = Field(default_factory=list, max_length=MAX_TOPICS)
    test_dates: list[TestDate] = Field(default_factory=list, max_length=MAX_TEST_DATES)
    homeworks: list[Homework] = Field(default_factory=list)
    events: list[BlockedEvent] = Field(default_factory=list)
    preferences: Preferences
    topic_analysis: Optional[TopicAnalysis] = None
    peak_signal: Optional[PeakPerformanceSignal] = None
    start_date: date
    end_date: date
    timetable_mode: Optional[StudyMode] = None   # overall baseline tier
    ai_notes: Optional[str] = None

    @field_validator("events")
    @classmethod
    def _dedupe_events(cls, v: list[BlockedEvent]) -> list[BlockedEvent]:
        # Calendars synced twice deliver the same event twice
        seen: set[tuple] = set()
        unique = []
        for ev in v:
            key = (ev.id, ev.title, ev.start_time, ev.end_time)
            if key in seen:
                continue
            seen.add(key)
            unique.append(ev)
        return unique

    # ─── Lookups ───

    def subject_by_id(self) -> dict[str, Subject]:
        return {s.id: s for s in self.subjects}

    def topics_of(self, subject_id: str) -> list[Topic]:
        return [t for t in self.topics if t.subject_id == subject_id]

    def window_days(self) -> list[date]:
        """All calendar days of the closed planning window."""
        n = (self.end_date - self.start_date).days + 1
        return [self.start_date + timedelta(days=i) for i in range(max(n, 0))]

    def last_eligible_day(self, hw: Homework) -> date:
        """Latest in-window day a homework session may be placed on."""
        return min(self.end_date, hw.due_date - timedelta(days=1))

    # ─── Overview ───

    def summary(self) -> str:
        lines = [
            f"Window: {self.start_date} → {self.end_date} ({len(self.window_days())} days)",
            f"Subjects: {len(self.subjects)}",
            f"Topics: {len(self.topics)}",
            f"Tests: {len(self.test_dates)}",
            f"Homework: {len(self.homeworks)}",
            f"Events: {len(self.events)}",
            f"Duration mode: {self.preferences.duration_mode.value}",
        ]
        if self.timetable_mode:
            lines.append(f"Timetable mode: {self.timetable_mode.value}")
        return "\n".join(lines)

    # ─── Input check ───

    def check(self) -> RequestCheck:
        """Check the request for problems that make generation meaningless.

        Errors:
        1. window end before window start
        2. topics or tests referencing an unknown subject id
        3. no enabled day slot, or an enabled slot that ends before it starts

        Warnings:
        4. subjects with topics but no test
        5. homework that cannot be preceded by any in-window day
        6. tests outside the planning window
        """
        errors: list[str] = []
        warnings: list[str] = []

        if self.end_date < self.start_date:
            errors.append(
                f"Planning window ends ({self.end_date}) before it starts ({self.start_date})."
            )

        subjects = self.subject_by_id()
        for topic in self.topics:
            if topic.subject_id not in subjects:
                errors.append(
                    f"Topic '{topic.name}' references unknown subject id '{topic.subject_id}'."
                )
        for test in self.test_dates:
            if test.subject_id not in subjects:
                errors.append(
                    f"Test '{test.test_type}' on {test.test_date} references unknown "
                    f"subject id '{test.subject_id}'."
                )

        enabled = self.preferences.enabled_slots
        if not enabled:
            errors.append("No enabled study day: enable at least one day/time slot.")
        for slot in enabled:
            if slot.end_time <= slot.start_time:
                errors.append(
                    f"Slot {slot.day}: end {slot.end_time} is not after start {slot.start_time}."
                )

        tested = {t.subject_id for t in self.test_dates}
        for subject in self.subjects:
            if self.topics_of(subject.id) and subject.id not in tested:
                warnings.append(
                    f"Subject '{subject.name}' has topics but no test; topics are untested "
                    f"and get no deadline."
                )

        for hw in self.homeworks:
            if self.last_eligible_day(hw) < self.start_date:
                warnings.append(
                    f"Homework '{hw.title}' (due {hw.due_date}) has no eligible day before "
                    f"its due date inside the window, it will not be scheduled."
                )

        for test in self.test_dates:
            if not (self.start_date <= test.test_date <= self.end_date):
                warnings.append(
                    f"Test '{test.test_type}' on {test.test_date} lies outside the planning window."
                )

        return RequestCheck(is_valid=not errors, errors=errors, warnings=warnings)

    # ─── Persistence ───

    def save_json(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "StudyRequest":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Request file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
