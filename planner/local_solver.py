"""Local candidate source: CP-SAT heuristic planner (Google OR-Tools).

Works from the generation brief alone, like any other source, and emits the
same wire format a language model would. Its output still goes through the
validator.

Model:
  - one optional placement per (session, day, free interval piece)
  - every placement reserves its session plus the following break
  - NoOverlap per day; at most one session per topic per day
  - homework: one session, strictly before the due date (highest weight)
  - topic sessions: up to the target, never on/after the subject's test day,
    never in homework-only windows
  - daily study-minute cap
  - focus topics get a bonus inside the best peak window (advisory)
"""

import logging
import time as _time
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import NamedTuple, Optional

from ortools.sat.python import cp_model

from config.defaults import EXAM_QUESTION_RESOURCES, resource_hints_for
from config.schema import SolverConfig
from models.clock import format_clock, parse_clock
from models.identity import normalize_identity
from models.schedule import BREAK_TOPIC, EntryType
from models.subject import StudyMode
from planner.brief import GenerationBrief, IntensityDirective
from planner.constraints import free_intervals_for

logger = logging.getLogger(__name__)


class _Task(NamedTuple):
    """One session the model may place."""

    key: tuple                     # ("hw", i) or ("topic", i, k)
    kind: EntryType
    topic: str
    subject: str
    duration: int
    break_after: int
    weight: int
    focus: bool
    group: Optional[int]           # topic index, for the one-per-day rule
    tier: Optional[StudyMode]
    due: Optional[date] = None
    deadline: Optional[date] = None
    notes: str = ""


class _Placement(NamedTuple):
    task: _Task
    day: date
    lo: int                        # earliest start of its free piece
    free_end: int                  # end of the free interval it sits in
    start: cp_model.IntVar
    present: cp_model.IntVar


def _minutes(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def _clock_minutes(value: str) -> int:
    t = parse_clock(value)
    return t.hour * 60 + t.minute


def _split_at(start: int, end: int, cuts: list[int]) -> list[tuple[int, int]]:
    points = sorted({start, end, *[c for c in cuts if start < c < end]})
    return list(zip(points, points[1:]))


class CpSatCandidateSource:
    """Heuristic draft schedules without any network access."""

    name = "local"

    def __init__(self, config: SolverConfig) -> None:
        self.config = config

    # ─── Public API ───

    def propose(self, brief: GenerationBrief) -> dict:
        t0 = _time.time()
        days = [brief.start_date + timedelta(days=i)
                for i in range((brief.end_date - brief.start_date).days + 1)]
        tasks = self._build_tasks(brief)

        model = cp_model.CpModel()
        placements = self._create_placements(model, brief, days, tasks)
        self._add_constraints(model, brief, days, tasks, placements)
        self._add_objective(model, brief, placements)

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.config.time_limit_seconds
        if self.config.num_workers:
            solver.parameters.num_workers = self.config.num_workers
        solver.parameters.log_search_progress = False
        status = solver.solve(model)

        logger.info(
            f"Local solver finished: {solver.status_name(status)} | "
            f"time: {_time.time() - t0:.1f}s | placements: {len(placements)}"
        )
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            return {"schedule": {}}
        return {"schedule": self._extract(solver, brief, placements)}

    # ─── Tasks ───

    def _intensity(self, brief: GenerationBrief, tier: Optional[StudyMode]) -> Optional[IntensityDirective]:
        for i in brief.intensity:
            if i.tier == tier:
                return i
        return None

    def _break_for(self, brief: GenerationBrief, tier: Optional[StudyMode]) -> int:
        directive = self._intensity(brief, tier) or self._intensity(brief, brief.baseline_tier)
        return directive.break_band.default if directive else 10

    def _build_tasks(self, brief: GenerationBrief) -> list[_Task]:
        cfg = self.config
        tasks: list[_Task] = []
        for i, hw in enumerate(brief.homework_directives):
            tasks.append(_Task(
                key=("hw", i),
                kind=EntryType.HOMEWORK,
                topic=hw.title,
                subject=hw.subject,
                duration=hw.duration,
                break_after=self._break_for(brief, brief.baseline_tier),
                weight=cfg.weight_homework,
                focus=False,
                group=None,
                tier=brief.baseline_tier,
                due=hw.due_date,
                notes="Resources: " + ", ".join(resource_hints_for(hw.subject)),
            ))
        for i, d in enumerate(brief.topic_directives):
            for k in range(d.target_sessions):
                if d.tier == StudyMode.NO_EXAM:
                    kind = EntryType.REVISION
                    notes = "Resources: " + ", ".join(d.resource_hints)
                elif k % 2 == 0:
                    kind = EntryType.PRACTICE
                    notes = "Practice: " + ", ".join(d.resource_hints)
                else:
                    kind = EntryType.EXAM_QUESTIONS
                    notes = "Exam questions: " + ", ".join(EXAM_QUESTION_RESOURCES)
                weight = cfg.weight_topic_session + (cfg.weight_focus if d.focus else 0)
                # Later sessions of the same topic are worth slightly less
                tasks.append(_Task(
                    key=("topic", i, k),
                    kind=kind,
                    topic=d.topic,
                    subject=d.subject,
                    duration=d.band.default,
                    break_after=self._break_for(brief, d.tier),
                    weight=max(1, weight - k),
                    focus=d.focus,
                    group=i,
                    tier=d.tier,
                    deadline=d.deadline,
                    notes=notes,
                ))
        return tasks

    # ─── Variables ───

    def _test_days(self, brief: GenerationBrief) -> dict[str, set[date]]:
        result: dict[str, set[date]] = defaultdict(set)
        for t in brief.test_days:
            result[normalize_identity(t.subject)].add(t.day)
        return result

    def _create_placements(self, model: cp_model.CpModel, brief: GenerationBrief,
                           days: list[date], tasks: list[_Task]) -> list[_Placement]:
        test_days = self._test_days(brief)
        peak_cuts: list[int] = []
        if brief.peak_signal:
            best = brief.peak_signal.best
            peak_cuts = [_clock_minutes(best.start), _clock_minutes(best.end)]

        placements: list[_Placement] = []
        for day in days:
            for free in free_intervals_for(day, brief.availability, brief.blocked_intervals):
                for lo, hi in _split_at(_minutes(free.start), _minutes(free.end),
                                        peak_cuts):
                    for task in tasks:
                        if not self._allowed(task, day, free.homework_only, brief, test_days):
                            continue
                        if hi - lo < task.duration:
                            continue
                        start = model.new_int_var(lo, hi - task.duration,
                                                  f"start_{task.key}_{day}_{lo}")
                        present = model.new_bool_var(f"on_{task.key}_{day}_{lo}")
                        placements.append(_Placement(
                            task, day, lo, _minutes(free.end), start, present,
                        ))
        return placements

    def _allowed(self, task: _Task, day: date, homework_only: bool,
                 brief: GenerationBrief, test_days: dict[str, set[date]]) -> bool:
        subject_test_days = test_days.get(normalize_identity(task.subject), set())
        if task.kind == EntryType.HOMEWORK:
            if task.due is None or day >= task.due:
                return False
            # No homework on any homework's due date
            if day in self._due_dates(brief):
                return False
            if homework_only and task.duration > brief.school_window_max_homework:
                return False
            return day not in subject_test_days
        if homework_only:
            return False
        if task.deadline is not None and day >= task.deadline:
            return False
        return day not in subject_test_days

    @staticmethod
    def _due_dates(brief: GenerationBrief) -> set[date]:
        dates = {h.due_date for h in brief.homework_directives}
        dates.update(ex.due_date for ex in brief.excluded_homework)
        return dates

    # ─── Constraints ───

    def _add_constraints(self, model: cp_model.CpModel, brief: GenerationBrief,
                         days: list[date], tasks: list[_Task],
                         placements: list[_Placement]) -> None:
        by_task: dict[tuple, list[_Placement]] = defaultdict(list)
        by_day: dict[date, list[_Placement]] = defaultdict(list)
        by_group_day: dict[tuple, list[_Placement]] = defaultdict(list)
        for p in placements:
            by_task[p.task.key].append(p)
            by_day[p.day].append(p)
            if p.task.group is not None:
                by_group_day[(p.task.group, p.day)].append(p)

        # Each session placed at most once
        for plist in by_task.values():
            model.add_at_most_one([p.present for p in plist])

        # Session k+1 of a topic only if session k is placed
        for task in tasks:
            if task.kind == EntryType.HOMEWORK or task.key[2] == 0:
                continue
            prev = ("topic", task.key[1], task.key[2] - 1)
            here = [p.present for p in by_task.get(task.key, [])]
            before = [p.present for p in by_task.get(prev, [])]
            if here:
                model.add(sum(here) <= sum(before))

        # One session per topic per day
        for plist in by_group_day.values():
            model.add_at_most_one([p.present for p in plist])

        cap = brief.daily_study_minutes
        longest_hw = max((h.duration for h in brief.homework_directives), default=0)
        cap = max(cap, longest_hw)
        for day, plist in by_day.items():
            intervals = [
                model.new_optional_fixed_size_interval_var(
                    p.start, p.task.duration + p.task.break_after, p.present,
                    f"iv_{p.task.key}_{day}_{i}",
                )
                for i, p in enumerate(plist)
            ]
            model.add_no_overlap(intervals)
            if cap > 0:
                model.add(sum(p.task.duration * p.present for p in plist) <= cap)

    def _add_objective(self, model: cp_model.CpModel, brief: GenerationBrief,
                       placements: list[_Placement]) -> None:
        peak = None
        if brief.peak_signal:
            best = brief.peak_signal.best
            peak = (_clock_minutes(best.start), _clock_minutes(best.end))

        terms = []
        for p in placements:
            weight = p.task.weight
            if peak and p.task.focus:
                if peak[0] <= p.lo < peak[1]:
                    weight += self.config.weight_peak_window
            terms.append(weight * p.present)
        model.maximize(sum(terms))

    # ─── Extraction ───

    def _extract(self, solver: cp_model.CpSolver, brief: GenerationBrief,
                 placements: list[_Placement]) -> dict[str, list[dict]]:
        placed: dict[date, list[tuple[int, int, _Task]]] = defaultdict(list)
        for p in placements:
            if solver.value(p.present):
                placed[p.day].append((solver.value(p.start), p.free_end, p.task))

        schedule: dict[str, list[dict]] = {}
        for day in sorted(placed):
            entries: list[dict] = []
            sessions = sorted(placed[day], key=lambda st: st[0])
            for idx, (start, free_end, task) in enumerate(sessions):
                entries.append(self._entry(start, task))
                end = start + task.duration
                if idx + 1 < len(sessions) and end + task.break_after <= free_end:
                    # Break only between two sessions of the same free interval
                    next_start = sessions[idx + 1][0]
                    if next_start < free_end and next_start - end >= task.break_after:
                        entries.append({
                            "time": _clock(end),
                            "duration": task.break_after,
                            "subject": "",
                            "topic": BREAK_TOPIC,
                            "type": EntryType.BREAK.value,
                            "notes": "",
                        })
            schedule[day.isoformat()] = entries
        return schedule

    @staticmethod
    def _entry(start: int, task: _Task) -> dict:
        entry = {
            "time": _clock(start),
            "duration": task.duration,
            "subject": task.subject,
            "topic": task.topic,
            "type": task.kind.value,
            "notes": task.notes,
        }
        if task.tier is not None:
            entry["mode"] = task.tier.value
        if task.deadline is not None:
            entry["testDate"] = task.deadline.isoformat()
        if task.due is not None:
            entry["homeworkDueDate"] = task.due.isoformat()
        return entry


def _clock(minutes: int) -> str:
    return format_clock((datetime.min + timedelta(minutes=minutes)).time())
