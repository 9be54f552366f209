"""Context Compiler: ConstraintSet → GenerationBrief → prompt text.

The brief is everything a candidate source may know about the request. Both
steps are pure: the same constraint set always yields the same brief, and the
same brief always renders to the same text.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict

from config.defaults import (
    CADENCE,
    EXAM_QUESTION_RESOURCES,
    MODE_LABELS,
    SCHOOL_WINDOW_MAX_HOMEWORK_MINUTES,
)
from models.preferences import WEEKDAY_NAMES, DurationMode
from models.schedule import BREAK_TOPIC, TOPIC_TYPES, EntryType
from models.signals import PeakPerformanceSignal
from models.subject import StudyMode
from planner.constraints import (
    SOURCE_EVENT,
    BlockedInterval,
    ConstraintSet,
    ExcludedHomework,
    TimeWindow,
)
from planner.duration_policy import DurationBand, duration_policy

_FROZEN = ConfigDict(frozen=True)

ENTRY_FIELDS = (
    "time", "duration", "subject", "topic", "type", "notes",
    "testDate", "homeworkDueDate", "mode",
)

ALLOWED_TYPES = tuple(
    t.value for t in EntryType if t != EntryType.EVENT
)


class TopicDirective(BaseModel):
    model_config = _FROZEN

    topic: str
    subject: str
    tier: Optional[StudyMode]
    target_sessions: int
    band: DurationBand
    deadline: Optional[date] = None
    focus: bool = False
    priority_score: Optional[float] = None
    resource_hints: tuple[str, ...] = ()


class HomeworkDirective(BaseModel):
    model_config = _FROZEN

    title: str
    subject: str
    due_date: date
    latest_date: date
    duration: int


class TestDayDirective(BaseModel):
    model_config = _FROZEN

    __test__ = False  # keep pytest from collecting this model

    subject: str
    day: date


class IntensityDirective(BaseModel):
    model_config = _FROZEN

    tier: Optional[StudyMode]
    label: str
    session_band: DurationBand
    break_band: DurationBand
    cadence: str


class GenerationBrief(BaseModel):
    """The complete, closed instruction set handed to a candidate source."""

    model_config = _FROZEN

    start_date: date
    end_date: date
    baseline_tier: Optional[StudyMode] = None
    baseline_label: str
    duration_mode: DurationMode
    daily_study_minutes: int
    topics: tuple[str, ...]                # the only valid topic strings
    homework: tuple[str, ...]              # the only valid homework strings
    topic_directives: tuple[TopicDirective, ...]
    homework_directives: tuple[HomeworkDirective, ...]
    excluded_homework: tuple[ExcludedHomework, ...]
    availability: tuple[TimeWindow, ...]
    blocked_intervals: tuple[BlockedInterval, ...]
    test_days: tuple[TestDayDirective, ...]
    intensity: tuple[IntensityDirective, ...]
    peak_signal: Optional[PeakPerformanceSignal] = None
    free_periods_homework: bool = False
    school_window_max_homework: int = SCHOOL_WINDOW_MAX_HOMEWORK_MINUTES
    notes: Optional[str] = None
    entry_fields: tuple[str, ...] = ENTRY_FIELDS
    allowed_types: tuple[str, ...] = ALLOWED_TYPES


def _intensity(constraints: ConstraintSet) -> tuple[IntensityDirective, ...]:
    tiers: set[Optional[StudyMode]] = set(constraints.subject_tiers.values())
    tiers.add(constraints.baseline_tier)
    directives = []
    for tier in sorted(tiers, key=lambda t: t.value if t else ""):
        key = tier.value if tier else None
        directives.append(IntensityDirective(
            tier=tier,
            label=MODE_LABELS[key],
            session_band=duration_policy(
                constraints.duration_mode, EntryType.STUDY, tier,
                session_minutes=constraints.session_minutes,
                break_minutes=constraints.break_minutes,
            ),
            break_band=constraints.break_band(tier),
            cadence=CADENCE[key],
        ))
    return tuple(directives)


def compile_brief(constraints: ConstraintSet) -> GenerationBrief:
    """Build the generation brief. Pure and deterministic."""
    topic_directives = tuple(
        TopicDirective(
            topic=ob.topic,
            subject=ob.subject,
            tier=ob.tier,
            target_sessions=ob.target_sessions,
            band=ob.band,
            deadline=ob.deadline,
            focus=ob.focus,
            priority_score=ob.priority_score,
            resource_hints=ob.resource_hints,
        )
        for ob in sorted(constraints.topic_obligations, key=lambda o: (o.subject, o.topic))
    )
    homework_directives = tuple(
        HomeworkDirective(
            title=ob.title,
            subject=ob.subject,
            due_date=ob.due_date,
            latest_date=ob.latest_date,
            duration=ob.duration,
        )
        for ob in sorted(constraints.homework_obligations, key=lambda o: (o.due_date, o.title))
    )
    test_days = tuple(sorted(
        (
            TestDayDirective(subject=constraints.subject_names.get(key, key), day=day)
            for key, days in constraints.test_days.items()
            for day in days
            if constraints.start_date <= day <= constraints.end_date
        ),
        key=lambda t: (t.day, t.subject),
    ))
    baseline_key = constraints.baseline_tier.value if constraints.baseline_tier else None

    return GenerationBrief(
        start_date=constraints.start_date,
        end_date=constraints.end_date,
        baseline_tier=constraints.baseline_tier,
        baseline_label=MODE_LABELS[baseline_key],
        duration_mode=constraints.duration_mode,
        daily_study_minutes=constraints.daily_study_minutes,
        topics=tuple(sorted(constraints.identities.topic_names.values())),
        homework=tuple(sorted(ob.title for ob in constraints.homework_obligations)),
        topic_directives=topic_directives,
        homework_directives=homework_directives,
        excluded_homework=constraints.excluded_homework,
        availability=constraints.time_windows,
        blocked_intervals=constraints.blocked_intervals,
        test_days=test_days,
        intensity=_intensity(constraints),
        peak_signal=constraints.peak_signal,
        free_periods_homework=constraints.free_periods_homework,
        notes=constraints.notes,
    )


# ─── Prompt rendering ─────────────────────────────────────────────────────────

def _rule(title: str) -> list[str]:
    return ["", f"## {title}"]


def render_prompt(brief: GenerationBrief) -> str:
    """Render the brief as plain-text instructions for a language model."""
    lines: list[str] = [
        "You are an expert study planner for GCSE students. Create a revision "
        "timetable that follows every rule below exactly.",
        f"Planning window: {brief.start_date.isoformat()} to {brief.end_date.isoformat()} (inclusive).",
        f"Timetable mode: {brief.baseline_label}.",
        f"Duration mode: {brief.duration_mode.value}.",
        f"Daily study target: {brief.daily_study_minutes} minutes.",
    ]

    if brief.notes:
        lines += _rule("Student instructions (follow precisely)")
        lines.append(brief.notes.strip())

    lines += _rule("Valid topics (use these exact strings, nothing else)")
    lines += [f'- "{t}"' for t in brief.topics] or ["- (none)"]

    lines += _rule("Valid homework (use these exact strings, nothing else)")
    lines += [f'- "{h}"' for h in brief.homework] or ["- (none)"]

    lines += _rule("Topic sessions")
    for d in brief.topic_directives:
        tier = d.tier.value if d.tier else "default"
        parts = [
            f'- "{d.topic}" ({d.subject}, {tier}): {d.target_sessions} sessions of {d.band}',
        ]
        if d.deadline:
            parts.append(f"test on {d.deadline.isoformat()}, no sessions on or after it")
        if d.focus:
            parts.append(f"FOCUS topic, priority {d.priority_score:g}/10")
        parts.append("resources: " + ", ".join(d.resource_hints))
        lines.append("; ".join(parts))
    lines.append(
        "Alternate practice and exam_questions sessions per topic; exam questions "
        "come from " + ", ".join(EXAM_QUESTION_RESOURCES) + "."
    )

    lines += _rule("Homework (one session each, strictly BEFORE the due date)")
    for h in brief.homework_directives:
        lines.append(
            f'- "{h.title}" ({h.subject}): exactly {h.duration} minutes, due '
            f"{h.due_date.isoformat()}, schedule on {h.latest_date.isoformat()} or earlier, "
            f"never on {h.due_date.isoformat()}"
        )
    if not brief.homework_directives:
        lines.append("- (none)")
    for ex in brief.excluded_homework:
        lines.append(f'- do NOT schedule "{ex.title}": {ex.reason}')

    lines += _rule("Intensity")
    for i in brief.intensity:
        name = i.tier.value if i.tier else "default"
        lines.append(
            f"- {name} ({i.label}): sessions {i.session_band}, breaks {i.break_band}, "
            f"cadence: {i.cadence}"
        )

    lines += _rule("Availability (only schedule inside these windows)")
    for w in brief.availability:
        suffix = f" (homework only, max {brief.school_window_max_homework} min)" if w.homework_only else ""
        lines.append(f"- {WEEKDAY_NAMES[w.weekday]} {w.start}-{w.end}{suffix}")
    if brief.free_periods_homework:
        lines.append(
            f"- free periods at school: short homework only "
            f"(max {brief.school_window_max_homework} min)"
        )

    lines += _rule("Blocked time (never schedule anything here)")
    for b in brief.blocked_intervals:
        if b.source != SOURCE_EVENT:
            continue
        lines.append(
            f"- {b.start.date().isoformat()} {b.start.strftime('%H:%M')}-"
            f"{b.end.strftime('%H:%M')}: blocked"
        )
    for t in brief.test_days:
        lines.append(f"- {t.day.isoformat()}: {t.subject} test day, no {t.subject} sessions")
    lines.append("Blocked events are not sessions: never copy an event title into a topic.")

    if brief.peak_signal:
        p = brief.peak_signal
        lines += _rule("Peak performance (advisory)")
        lines.append(
            f"- best: {p.best.label} {p.best.start}-{p.best.end} "
            f"(completion {p.best.completion_rate:.0%}): put focus topics here"
        )
        lines.append(
            f"- worst: {p.worst.label} {p.worst.start}-{p.worst.end} "
            f"(completion {p.worst.completion_rate:.0%}): lighter review only"
        )
        if p.recommendation:
            lines.append(f"- {p.recommendation}")

    topic_types = ", ".join(sorted(t.value for t in TOPIC_TYPES))
    lines += _rule("Output format")
    lines += [
        'Return ONLY a JSON object: {"schedule": {"YYYY-MM-DD": [entry, ...]}}',
        "Entry fields: " + ", ".join(brief.entry_fields) + ".",
        'time is "HH:MM" (24h), duration is whole minutes.',
        f"type is one of: {topic_types} (topic sessions), homework, break.",
        f'Breaks use topic "{BREAK_TOPIC}". Homework entries carry homeworkDueDate.',
        "Every non-break entry carries a resource hint in notes.",
        "Never output entries of type event.",
    ]
    return "\n".join(lines) + "\n"
