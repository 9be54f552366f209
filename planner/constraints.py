"""Constraint Model Builder: StudyRequest → immutable ConstraintSet.

Everything that later phases check against is computed here exactly once:

  - weekly availability windows (school hours carved out, before-school and
    lunch windows added back as homework-only)
  - blocked intervals from events and test days
  - per-topic obligations (target sessions, duration band, deadline)
  - per-homework obligations, plus the homework that cannot be scheduled
  - the closed identity snapshot used for matching candidate entries

The resulting ConstraintSet is frozen; the validator only reads it.
"""

import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict

from config.defaults import (
    BASE_TOPIC_SESSIONS,
    BASE_TOPIC_SESSIONS_NO_EXAM,
    DIFFICULT_TOPIC_SCORE,
    PRIORITY_SESSION_DIVISOR,
    resource_hints_for,
)
from config.schema import PlannerConfig
from models.clock import combine, format_clock, parse_clock
from models.identity import normalize_identity
from models.preferences import DurationMode, Preferences
from models.request import StudyRequest
from models.schedule import EntryType
from models.signals import PeakPerformanceSignal
from models.subject import StudyMode
from planner.duration_policy import (
    DurationBand,
    duration_policy,
    focus_band,
    tested_subject_band,
)

logger = logging.getLogger(__name__)

_FROZEN = ConfigDict(frozen=True)

SOURCE_EVENT = "event"
SOURCE_TEST_DAY = "test_day"


# ─── Building blocks ──────────────────────────────────────────────────────────

class TimeWindow(BaseModel):
    """Weekly availability window [start, end) on one weekday (0=Monday)."""

    model_config = _FROZEN

    weekday: int
    start: str
    end: str
    homework_only: bool = False   # before-school / lunch windows

    @property
    def minutes(self) -> int:
        return _to_minutes(parse_clock(self.end)) - _to_minutes(parse_clock(self.start))


class BlockedInterval(BaseModel):
    """Absolute unavailable range. Test days block only their own subject."""

    model_config = _FROZEN

    start: datetime
    end: datetime
    source: str                          # SOURCE_EVENT | SOURCE_TEST_DAY
    label: str
    subject_key: Optional[str] = None    # None = blocks every subject

    def applies_to(self, subject_key: Optional[str]) -> bool:
        return self.subject_key is None or self.subject_key == subject_key

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and self.start < end

    def touches(self, day: date) -> bool:
        day_start = combine(day, time(0, 0))
        return self.overlaps(day_start, day_start + timedelta(days=1))


class FreeInterval(NamedTuple):
    start: datetime
    end: datetime
    homework_only: bool


class TopicObligation(BaseModel):
    model_config = _FROZEN

    topic: str                 # canonical display spelling
    key: str                   # normalized identity
    subject_id: str
    subject: str
    subject_key: str
    tier: Optional[StudyMode]
    target_sessions: int
    band: DurationBand
    deadline: Optional[date] = None    # first test of the subject on/after the window start
    final_week: bool = False           # test within the final-week horizon
    focus: bool = False
    priority_score: Optional[float] = None
    resource_hints: tuple[str, ...] = ()


class HomeworkObligation(BaseModel):
    """One session strictly before `due_date`, never later than `latest_date`."""

    model_config = _FROZEN

    title: str
    key: str
    subject: str
    due_date: date
    latest_date: date
    duration: int


class ExcludedHomework(BaseModel):
    model_config = _FROZEN

    title: str
    due_date: date
    reason: str


class IdentitySet(BaseModel):
    """Closed, normalized identity snapshot of one request."""

    model_config = _FROZEN

    topics: frozenset[str]
    homework: frozenset[str]
    events: frozenset[str]
    topic_names: dict[str, str]        # key → display spelling
    homework_titles: dict[str, str]    # key → display spelling
    topic_subjects: dict[str, str]     # topic key → subject key
    homework_subjects: dict[str, str]  # homework key → subject key

    def is_topic(self, text: str) -> bool:
        return normalize_identity(text) in self.topics

    def is_homework(self, text: str) -> bool:
        return normalize_identity(text) in self.homework

    def is_event(self, text: str) -> bool:
        return normalize_identity(text) in self.events

    @classmethod
    def from_request(cls, request: StudyRequest) -> "IdentitySet":
        subjects = request.subject_by_id()
        topic_names: dict[str, str] = {}
        topic_subjects: dict[str, str] = {}
        for t in request.topics:
            topic_names.setdefault(t.key, t.name.strip())
            subject = subjects.get(t.subject_id)
            if subject is not None:
                topic_subjects.setdefault(t.key, normalize_identity(subject.name))
        homework_titles: dict[str, str] = {}
        homework_subjects: dict[str, str] = {}
        for hw in request.homeworks:
            homework_titles.setdefault(hw.key, hw.title.strip())
            if hw.subject.strip():
                homework_subjects.setdefault(hw.key, normalize_identity(hw.subject))
        return cls(
            topics=frozenset(topic_names),
            homework=frozenset(homework_titles),
            events=frozenset(ev.key for ev in request.events if ev.key),
            topic_names=topic_names,
            homework_titles=homework_titles,
            topic_subjects=topic_subjects,
            homework_subjects=homework_subjects,
        )


# ─── Constraint set ───────────────────────────────────────────────────────────

class ConstraintSet(BaseModel):
    """Everything the later phases need, computed once per request."""

    model_config = _FROZEN

    start_date: date
    end_date: date
    baseline_tier: Optional[StudyMode] = None
    duration_mode: DurationMode
    session_minutes: int
    break_minutes: int
    daily_study_minutes: int
    time_windows: tuple[TimeWindow, ...]
    blocked_intervals: tuple[BlockedInterval, ...]
    test_days: dict[str, tuple[date, ...]]            # subject key → test dates
    topic_obligations: tuple[TopicObligation, ...]
    homework_obligations: tuple[HomeworkObligation, ...]
    excluded_homework: tuple[ExcludedHomework, ...]
    homework_due: dict[str, date]                      # homework key → due date
    homework_due_dates: frozenset[date]                # every due date, duplicates included
    identities: IdentitySet
    subject_names: dict[str, str]                      # subject key → display name
    subject_tiers: dict[str, Optional[StudyMode]]      # subject key → tier
    peak_signal: Optional[PeakPerformanceSignal] = None
    free_periods_homework: bool = False
    notes: Optional[str] = None

    # ─── Lookups ───

    def window_days(self) -> list[date]:
        n = (self.end_date - self.start_date).days + 1
        return [self.start_date + timedelta(days=i) for i in range(max(n, 0))]

    def topic(self, key: str) -> Optional[TopicObligation]:
        for ob in self.topic_obligations:
            if ob.key == key:
                return ob
        return None

    def homework(self, key: str) -> Optional[HomeworkObligation]:
        for ob in self.homework_obligations:
            if ob.key == key:
                return ob
        return None

    def is_test_day(self, subject_key: Optional[str], day: date) -> bool:
        if not subject_key:
            return False
        return day in self.test_days.get(subject_key, ())

    def blocked_on(self, day: date, subject_key: Optional[str] = None) -> list[BlockedInterval]:
        """Blocked intervals touching `day` that apply to `subject_key`."""
        return [
            b for b in self.blocked_intervals
            if b.touches(day) and b.applies_to(subject_key)
        ]

    def blocked_between(self, start: datetime, end: datetime,
                        subject_key: Optional[str] = None) -> list[BlockedInterval]:
        """Blocked intervals overlapping [start, end), which may cross midnight."""
        return [
            b for b in self.blocked_intervals
            if b.overlaps(start, end) and b.applies_to(subject_key)
        ]

    def windows_for(self, day: date) -> list[TimeWindow]:
        if not (self.start_date <= day <= self.end_date):
            return []
        return [w for w in self.time_windows if w.weekday == day.weekday()]

    def break_band(self, tier: Optional[StudyMode]) -> DurationBand:
        return duration_policy(
            self.duration_mode, EntryType.BREAK, tier,
            session_minutes=self.session_minutes, break_minutes=self.break_minutes,
        )

    def free_intervals(self, day: date) -> list[FreeInterval]:
        """Availability on `day` after removing event intervals, in time order."""
        return free_intervals_for(day, self.windows_for(day), self.blocked_intervals)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _from_minutes(m: int) -> str:
    return format_clock(time(m // 60, m % 60))


def _cut(start, end, cut_start, cut_end) -> list:
    """[start, end) minus [cut_start, cut_end). Works on minutes or datetimes."""
    if cut_end <= start or end <= cut_start:
        return [(start, end)]
    parts = []
    if start < cut_start:
        parts.append((start, cut_start))
    if cut_end < end:
        parts.append((cut_end, end))
    return parts


def free_intervals_for(day: date, windows: Iterable[TimeWindow],
                       blocked: Iterable[BlockedInterval]) -> list[FreeInterval]:
    """Windows of `day` (weekday already matched) minus the event intervals touching it."""
    events = [b for b in blocked if b.source == SOURCE_EVENT and b.touches(day)]
    result: list[FreeInterval] = []
    for w in windows:
        if w.weekday != day.weekday():
            continue
        pieces = [(combine(day, parse_clock(w.start)), combine(day, parse_clock(w.end)))]
        for ev in events:
            pieces = [part for s, e in pieces for part in _cut(s, e, ev.start, ev.end)]
        result.extend(FreeInterval(s, e, w.homework_only) for s, e in pieces)
    result.sort(key=lambda fi: fi.start)
    return result


def _build_time_windows(prefs: Preferences) -> tuple[tuple[TimeWindow, ...], bool]:
    """Weekly windows with school hours carved out (Mon–Fri).

    Returns (windows, free_periods_homework).
    """
    school = prefs.school_hours
    windows: list[TimeWindow] = []
    study_weekdays: set[int] = set()

    for slot in prefs.enabled_slots:
        wd = slot.weekday
        study_weekdays.add(wd)
        pieces = [(_to_minutes(parse_clock(slot.start_time)),
                   _to_minutes(parse_clock(slot.end_time)))]
        if school is not None and wd < 5:
            s0 = _to_minutes(parse_clock(school.school_start))
            s1 = _to_minutes(parse_clock(school.school_end))
            pieces = [p for s, e in pieces for p in _cut(s, e, s0, s1)]
        windows.extend(
            TimeWindow(weekday=wd, start=_from_minutes(s), end=_from_minutes(e))
            for s, e in pieces if e > s
        )

    if school is not None:
        extra: list[tuple[str, str]] = []
        if school.study_before_school:
            extra.append((school.before_school_start, school.before_school_end))
        if school.study_during_lunch:
            extra.append((school.lunch_start, school.lunch_end))
        for wd in sorted(d for d in study_weekdays if d < 5):
            regular = [w for w in windows if w.weekday == wd and not w.homework_only]
            for start, end in extra:
                pieces = [(_to_minutes(parse_clock(start)), _to_minutes(parse_clock(end)))]
                # Only the part not already regular study time
                for w in regular:
                    pieces = [
                        p for s, e in pieces
                        for p in _cut(s, e, _to_minutes(parse_clock(w.start)),
                                      _to_minutes(parse_clock(w.end)))
                    ]
                windows.extend(
                    TimeWindow(weekday=wd, start=_from_minutes(s), end=_from_minutes(e),
                               homework_only=True)
                    for s, e in pieces if e > s
                )

    windows.sort(key=lambda w: (w.weekday, w.start))
    free_periods = bool(school and school.study_during_free_periods)
    return tuple(windows), free_periods


def _build_blocked_intervals(request: StudyRequest) -> tuple[BlockedInterval, ...]:
    window_start = combine(request.start_date, time(0, 0))
    window_end = combine(request.end_date + timedelta(days=1), time(0, 0))
    subjects = request.subject_by_id()

    blocked: list[BlockedInterval] = []
    for ev in request.events:
        # Timezone-aware timestamps are compared on their wall-clock time
        start = ev.start_time.replace(tzinfo=None)
        end = ev.end_time.replace(tzinfo=None)
        if end <= window_start or start >= window_end:
            continue
        blocked.append(BlockedInterval(start=start, end=end, source=SOURCE_EVENT, label=ev.title))

    for test in request.test_dates:
        if not (request.start_date <= test.test_date <= request.end_date):
            continue
        subject = subjects.get(test.subject_id)
        if subject is None:
            continue
        day_start = combine(test.test_date, time(0, 0))
        blocked.append(BlockedInterval(
            start=day_start,
            end=day_start + timedelta(days=1),
            source=SOURCE_TEST_DAY,
            label=f"{subject.name} {test.test_type}",
            subject_key=normalize_identity(subject.name),
        ))

    blocked.sort(key=lambda b: (b.start, b.end))
    return tuple(blocked)


def _priority_scores(request: StudyRequest) -> dict[str, float]:
    """Topic key → priority score. Difficult topics without a score get a default."""
    scores: dict[str, float] = {}
    analysis = request.topic_analysis
    if analysis is None:
        return scores
    for p in analysis.priorities:
        scores[normalize_identity(p.topic_name)] = p.priority_score
    for d in analysis.difficult_topics:
        scores.setdefault(normalize_identity(d.topic_name), DIFFICULT_TOPIC_SCORE)
    return scores


def _build_topic_obligations(request: StudyRequest, config: PlannerConfig
                             ) -> tuple[TopicObligation, ...]:
    planning = config.planning
    prefs = request.preferences
    subjects = request.subject_by_id()
    scores = _priority_scores(request)

    obligations: list[TopicObligation] = []
    seen: set[str] = set()
    for topic in request.topics:
        subject = subjects.get(topic.subject_id)
        if subject is None or topic.key in seen:
            continue
        seen.add(topic.key)
        tier = subject.mode

        base = BASE_TOPIC_SESSIONS_NO_EXAM if tier == StudyMode.NO_EXAM else BASE_TOPIC_SESSIONS

        upcoming = sorted(
            t.test_date for t in request.test_dates
            if t.subject_id == subject.id and t.test_date >= request.start_date
        )
        deadline = upcoming[0] if upcoming else None

        test_target = 0
        final_week = False
        if deadline is not None:
            n_topics = max(1, len(request.topics_of(subject.id)))
            test_target = max(base, math.ceil(planning.test_subject_min_sessions / n_topics))
            if (deadline - request.start_date).days < planning.final_week_days:
                test_target += 1
                final_week = True

        score = scores.get(topic.key)
        priority_target = 0
        if score is not None:
            priority_target = max(planning.focus_session_floor,
                                  math.ceil(score / PRIORITY_SESSION_DIVISOR))

        # Larger target wins, boosts never add up
        target = min(max(base, test_target, priority_target), planning.max_topic_sessions)

        band = duration_policy(
            prefs.duration_mode, EntryType.STUDY, tier,
            session_minutes=prefs.session_duration, break_minutes=prefs.break_duration,
        )
        if prefs.duration_mode == DurationMode.FLEXIBLE:
            if deadline is not None:
                band = band.merge(tested_subject_band())
            if score is not None:
                band = band.merge(focus_band(score))

        obligations.append(TopicObligation(
            topic=topic.name.strip(),
            key=topic.key,
            subject_id=subject.id,
            subject=subject.name,
            subject_key=normalize_identity(subject.name),
            tier=tier,
            target_sessions=target,
            band=band,
            deadline=deadline,
            final_week=final_week,
            focus=score is not None,
            priority_score=score,
            resource_hints=tuple(resource_hints_for(subject.name)),
        ))
    return tuple(obligations)


def _build_homework(request: StudyRequest, config: PlannerConfig
                    ) -> tuple[tuple[HomeworkObligation, ...], tuple[ExcludedHomework, ...]]:
    obligations: list[HomeworkObligation] = []
    excluded: list[ExcludedHomework] = []
    for hw in sorted(request.homeworks, key=lambda h: h.due_date):
        latest = request.last_eligible_day(hw)
        if latest < request.start_date:
            excluded.append(ExcludedHomework(
                title=hw.title,
                due_date=hw.due_date,
                reason="no day inside the planning window precedes the due date",
            ))
            logger.info(f"Homework '{hw.title}' (due {hw.due_date}) excluded from obligations")
            continue
        obligations.append(HomeworkObligation(
            title=hw.title.strip(),
            key=hw.key,
            subject=hw.subject,
            due_date=hw.due_date,
            latest_date=latest,
            duration=hw.resolved_duration(config.planning.default_homework_minutes),
        ))
    return tuple(obligations), tuple(excluded)


# ─── Entry point ──────────────────────────────────────────────────────────────

def build_constraints(request: StudyRequest, config: PlannerConfig) -> ConstraintSet:
    """Normalize a request into the immutable constraint set."""
    prefs = request.preferences
    windows, free_periods = _build_time_windows(prefs)
    blocked = _build_blocked_intervals(request)
    topics = _build_topic_obligations(request, config)
    homework, excluded = _build_homework(request, config)

    subjects = request.subject_by_id()
    test_days: dict[str, list[date]] = {}
    for test in request.test_dates:
        subject = subjects.get(test.subject_id)
        if subject is None:
            continue
        test_days.setdefault(normalize_identity(subject.name), []).append(test.test_date)

    homework_due: dict[str, date] = {}
    for hw in request.homeworks:
        # Duplicate titles resolve to the latest due date
        if hw.key not in homework_due or hw.due_date > homework_due[hw.key]:
            homework_due[hw.key] = hw.due_date

    constraints = ConstraintSet(
        start_date=request.start_date,
        end_date=request.end_date,
        baseline_tier=request.timetable_mode,
        duration_mode=prefs.duration_mode,
        session_minutes=prefs.session_duration,
        break_minutes=prefs.break_duration,
        daily_study_minutes=round(prefs.daily_study_hours * 60),
        time_windows=windows,
        blocked_intervals=blocked,
        test_days={k: tuple(sorted(set(v))) for k, v in test_days.items()},
        topic_obligations=topics,
        homework_obligations=homework,
        excluded_homework=excluded,
        homework_due=homework_due,
        homework_due_dates=frozenset(hw.due_date for hw in request.homeworks),
        identities=IdentitySet.from_request(request),
        subject_names={normalize_identity(s.name): s.name for s in request.subjects},
        subject_tiers={normalize_identity(s.name): s.mode for s in request.subjects},
        peak_signal=request.peak_signal,
        free_periods_homework=free_periods,
        notes=request.ai_notes or prefs.ai_notes,
    )
    logger.info(
        f"Constraints: {len(windows)} weekly windows, {len(blocked)} blocked intervals, "
        f"{len(topics)} topic obligations, {len(homework)} homework obligations "
        f"({len(excluded)} excluded)"
    )
    return constraints
