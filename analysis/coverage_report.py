"""Coverage report for a finished schedule.

Compares what ended up in the calendar with what the constraint model asked
for: sessions per topic against the target, homework prepared before its due
date, minutes per subject and minutes per day against the daily target.
"""

from collections import defaultdict
from datetime import date
from typing import Optional

from pydantic import BaseModel

from models.identity import normalize_identity
from models.schedule import EntryType, Schedule
from planner.constraints import ConstraintSet


# ─── Metric models ────────────────────────────────────────────────────────────

class TopicCoverage(BaseModel):
    """Sessions of one topic compared with its target."""

    topic: str
    subject: str
    target_sessions: int
    scheduled_sessions: int
    after_deadline: int = 0          # sessions on/after the subject's test day
    deadline: Optional[date] = None
    focus: bool = False

    @property
    def fulfilled(self) -> bool:
        return self.scheduled_sessions >= self.target_sessions


class HomeworkCoverage(BaseModel):
    title: str
    due_date: date
    scheduled_on: Optional[date] = None
    minutes: int = 0

    @property
    def prepared(self) -> bool:
        return self.scheduled_on is not None and self.scheduled_on < self.due_date


class DayLoad(BaseModel):
    day: date
    study_minutes: int
    break_minutes: int
    target_minutes: int
    entries: int


class CoverageReport(BaseModel):
    """All coverage metrics of one schedule."""

    topics: list[TopicCoverage]
    homework: list[HomeworkCoverage]
    subject_minutes: dict[str, int]
    days: list[DayLoad]
    total_study_minutes: int
    topic_fulfillment_rate: float    # share of topics at or above target
    homework_prepared_rate: float    # share of homework placed before due date
    overlap_flags: int


# ─── Analyzer ─────────────────────────────────────────────────────────────────

class CoverageAnalyzer:
    """Computes coverage metrics for a schedule against its constraint model."""

    def analyze(self, schedule: Schedule, constraints: ConstraintSet) -> CoverageReport:
        topics = self._topic_coverage(schedule, constraints)
        homework = self._homework_coverage(schedule, constraints)
        days = self._day_loads(schedule, constraints)

        subject_minutes: dict[str, int] = defaultdict(int)
        overlap_flags = 0
        for _, entry in schedule.iter_entries():
            if entry.overlap_warning:
                overlap_flags += 1
            if entry.is_break or not entry.duration:
                continue
            subject_minutes[entry.subject or "(none)"] += entry.duration

        fulfilled = sum(1 for t in topics if t.fulfilled)
        prepared = sum(1 for h in homework if h.prepared)

        return CoverageReport(
            topics=topics,
            homework=homework,
            subject_minutes=dict(sorted(subject_minutes.items())),
            days=days,
            total_study_minutes=sum(d.study_minutes for d in days),
            topic_fulfillment_rate=round(fulfilled / len(topics), 4) if topics else 1.0,
            homework_prepared_rate=round(prepared / len(homework), 4) if homework else 1.0,
            overlap_flags=overlap_flags,
        )

    def _topic_coverage(self, schedule: Schedule,
                        constraints: ConstraintSet) -> list[TopicCoverage]:
        sessions: dict[str, list[date]] = defaultdict(list)
        for day, entry in schedule.iter_entries():
            if entry.type.is_topic_type:
                sessions[normalize_identity(entry.topic)].append(day)

        result = []
        for ob in constraints.topic_obligations:
            days = sessions.get(ob.key, [])
            late = sum(1 for d in days if ob.deadline is not None and d >= ob.deadline)
            result.append(TopicCoverage(
                topic=ob.topic,
                subject=ob.subject,
                target_sessions=ob.target_sessions,
                scheduled_sessions=len(days),
                after_deadline=late,
                deadline=ob.deadline,
                focus=ob.focus,
            ))
        return result

    def _homework_coverage(self, schedule: Schedule,
                           constraints: ConstraintSet) -> list[HomeworkCoverage]:
        placed: dict[str, tuple[date, int]] = {}
        for day, entry in schedule.iter_entries():
            if entry.type != EntryType.HOMEWORK:
                continue
            key = normalize_identity(entry.topic)
            # The earliest session counts
            if key not in placed or day < placed[key][0]:
                placed[key] = (day, entry.duration or 0)

        result = []
        for ob in constraints.homework_obligations:
            day, minutes = placed.get(ob.key, (None, 0))
            result.append(HomeworkCoverage(
                title=ob.title, due_date=ob.due_date, scheduled_on=day, minutes=minutes,
            ))
        return result

    def _day_loads(self, schedule: Schedule, constraints: ConstraintSet) -> list[DayLoad]:
        loads = []
        for day in constraints.window_days():
            entries = schedule.days.get(day, [])
            study = sum(e.duration or 0 for e in entries if not e.is_break)
            breaks = sum(e.duration or 0 for e in entries if e.is_break)
            target = constraints.daily_study_minutes if constraints.windows_for(day) else 0
            loads.append(DayLoad(
                day=day, study_minutes=study, break_minutes=breaks,
                target_minutes=target, entries=len(entries),
            ))
        return loads

    def print_rich(self, report: CoverageReport) -> None:
        """Prints the coverage report with Rich."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()

        topic_color = (
            "green" if report.topic_fulfillment_rate >= 0.90
            else "yellow" if report.topic_fulfillment_rate >= 0.60
            else "red"
        )
        hw_color = "green" if report.homework_prepared_rate >= 1.0 else "red"
        console.print(Panel(
            f"Study time: [bold]{report.total_study_minutes}[/bold] min over "
            f"{sum(1 for d in report.days if d.entries)} days\n"
            f"Topics at target: "
            f"[{topic_color}]{report.topic_fulfillment_rate:.1%}[/{topic_color}] | "
            f"Homework prepared: "
            f"[{hw_color}]{report.homework_prepared_rate:.1%}[/{hw_color}]\n"
            f"Overlap flags: [bold]{report.overlap_flags}[/bold]",
            title="Coverage overview",
            border_style="cyan",
        ))

        t_table = Table(title="Topics", box=box.ROUNDED, show_lines=False)
        t_table.add_column("Subject", width=16)
        t_table.add_column("Topic", width=30)
        t_table.add_column("Target", justify="right", width=7)
        t_table.add_column("Planned", justify="right", width=8)
        t_table.add_column("Test", width=11)
        t_table.add_column("Status", width=12)
        for t in sorted(report.topics, key=lambda x: (x.subject, x.topic)):
            if t.after_deadline:
                status = "[red]After test[/red]"
            elif t.fulfilled:
                status = "[green]OK[/green]"
            else:
                status = "[yellow]Short[/yellow]"
            name = f"★ {t.topic}" if t.focus else t.topic
            t_table.add_row(
                t.subject, name,
                str(t.target_sessions), str(t.scheduled_sessions),
                t.deadline.isoformat() if t.deadline else "-",
                status,
            )
        console.print(t_table)

        if report.homework:
            h_table = Table(title="Homework", box=box.ROUNDED, show_lines=False)
            h_table.add_column("Title", width=30)
            h_table.add_column("Due", width=11)
            h_table.add_column("Planned", width=11)
            h_table.add_column("Min", justify="right", width=5)
            for h in report.homework:
                planned = (
                    f"[green]{h.scheduled_on.isoformat()}[/green]" if h.prepared
                    else "[red]missing[/red]"
                )
                h_table.add_row(h.title, h.due_date.isoformat(), planned, str(h.minutes))
            console.print(h_table)

        d_table = Table(title="Daily load", box=box.SIMPLE)
        d_table.add_column("Day", width=14)
        d_table.add_column("Study", justify="right", width=6)
        d_table.add_column("Breaks", justify="right", width=7)
        d_table.add_column("Target", justify="right", width=7)
        for d in report.days:
            over = d.target_minutes and d.study_minutes > d.target_minutes
            study = f"[yellow]{d.study_minutes}[/yellow]" if over else str(d.study_minutes)
            d_table.add_row(
                d.day.strftime("%a %Y-%m-%d"), study,
                str(d.break_minutes), str(d.target_minutes),
            )
        console.print(d_table)
