"""Demo request generator for the revision timetable.

Produces a realistic GCSE request with deliberate edge cases for robust tests
and demo runs.

Deliberate edge cases:
  1. Short-term exam: Mathematics is tested early in the window, so its
     topics compete for the first days and its test day is blocked
  2. Overdue homework: one item is due on the first day and can never be
     scheduled (it is reported as excluded)
  3. Bait events: calendar events whose titles look like study items
     ("Biology revision club") and must never show up as sessions
  4. Lunch and before-school windows: only short homework may go there
  5. No-exam subject: History runs at the lighter no-exam cadence
"""

import random
from datetime import date, datetime, timedelta
from typing import Optional

from models.event import BlockedEvent
from models.homework import Homework
from models.preferences import DayTimeSlot, DurationMode, Preferences, SchoolHours
from models.request import StudyRequest
from models.signals import (
    DifficultTopic, PeakPerformanceSignal, TimeWindowStat, TopicAnalysis, TopicPriority,
)
from models.subject import StudyMode, Subject
from models.topic import TestDate, Topic

# ─── Curriculum ───────────────────────────────────────────────────────────────

_SUBJECTS: list[tuple[str, str, str, StudyMode]] = [
    # id, name, exam board, tier
    ("maths",   "Mathematics",        "AQA",     StudyMode.SHORT_TERM_EXAM),
    ("bio",     "Biology",            "AQA",     StudyMode.LONG_TERM_EXAM),
    ("chem",    "Chemistry",          "OCR",     StudyMode.LONG_TERM_EXAM),
    ("englit",  "English Literature", "Edexcel", StudyMode.LONG_TERM_EXAM),
    ("history", "History",            "AQA",     StudyMode.NO_EXAM),
]

_TOPICS: dict[str, list[str]] = {
    "maths": [
        "Quadratic equations", "Simultaneous equations", "Circle theorems",
        "Probability trees", "Vectors", "Trigonometry",
    ],
    "bio": [
        "Cell biology", "Organisation", "Infection and response",
        "Bioenergetics", "Homeostasis", "Inheritance",
    ],
    "chem": [
        "Atomic structure", "Bonding", "Quantitative chemistry",
        "Chemical changes", "Energy changes",
    ],
    "englit": [
        "Macbeth", "A Christmas Carol", "An Inspector Calls", "Power and conflict poetry",
    ],
    "history": [
        "Norman England", "Weimar Germany", "Cold War origins",
    ],
}

# Days after the window start on which each tested subject sits its test
_TEST_OFFSETS: dict[str, tuple[int, str]] = {
    "maths":  (6, "Mock paper 1"),
    "bio":    (18, "End of unit test"),
    "chem":   (24, "Mock paper"),
    "englit": (27, "Mock paper"),
}

_HOMEWORK: list[tuple[str, str, int, Optional[int]]] = [
    # title, subject, due offset, duration
    ("Algebra worksheet",        "Mathematics",        3,  30),
    ("Osmosis practical write-up", "Biology",          5,  45),
    ("Macbeth essay plan",       "English Literature", 9,  None),
    ("Vocabulary quiz prep",     "History",            2,  20),
    ("Overdue reading log",      "English Literature", 0,  15),
]

_BAIT_EVENTS: list[tuple[str, int, int, int]] = [
    # title, day offset, start hour, length in hours
    ("Biology revision club", 1, 16, 1),
    ("Football training",     2, 17, 2),
    ("Dentist",               4, 16, 1),
    ("Piano lesson",          8, 18, 1),
    ("Family dinner",         12, 18, 2),
]


class FakeRequestGenerator:
    """Builds a complete StudyRequest for demos and tests."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self.rng = random.Random(seed)

    def generate(self, start_date: Optional[date] = None, days: int = 28,
                 mode: Optional[StudyMode] = StudyMode.LONG_TERM_EXAM,
                 duration_mode: DurationMode = DurationMode.FLEXIBLE) -> StudyRequest:
        start = start_date or date.today()
        end = start + timedelta(days=days - 1)

        subjects = [
            Subject(id=sid, name=name, exam_board=board, mode=tier)
            for sid, name, board, tier in _SUBJECTS
        ]
        topics = [
            Topic(name=name, subject_id=sid)
            for sid, names in _TOPICS.items()
            for name in names
        ]
        test_dates = [
            TestDate(subject_id=sid, test_date=start + timedelta(days=offset), test_type=kind)
            for sid, (offset, kind) in _TEST_OFFSETS.items()
            if offset < days
        ]

        return StudyRequest(
            subjects=subjects,
            topics=topics,
            test_dates=test_dates,
            homeworks=self._homework(start, days),
            events=self._events(start, days),
            preferences=self._preferences(duration_mode),
            topic_analysis=self._topic_analysis(),
            peak_signal=self._peak_signal(),
            start_date=start,
            end_date=end,
            timetable_mode=mode,
        )

    # ─── Parts ────────────────────────────────────────────────────────────────

    def _homework(self, start: date, days: int) -> list[Homework]:
        items = []
        for i, (title, subject, offset, duration) in enumerate(_HOMEWORK):
            if offset >= days:
                continue
            items.append(Homework(
                id=f"hw-{i + 1}",
                title=title,
                subject=subject,
                due_date=start + timedelta(days=offset),
                duration=duration,
            ))
        return items

    def _events(self, start: date, days: int) -> list[BlockedEvent]:
        events = []
        for i, (title, offset, hour, length) in enumerate(_BAIT_EVENTS):
            if offset >= days:
                continue
            # Small jitter so seeds produce different afternoons
            minute = self.rng.choice([0, 15, 30])
            begin = datetime.combine(start + timedelta(days=offset), datetime.min.time())
            begin = begin.replace(hour=hour, minute=minute)
            events.append(BlockedEvent(
                id=f"ev-{i + 1}",
                title=title,
                start_time=begin,
                end_time=begin + timedelta(hours=length),
            ))
        return events

    def _preferences(self, duration_mode: DurationMode) -> Preferences:
        slots = [
            DayTimeSlot(day=day, start_time="16:00", end_time="20:00")
            for day in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
        ]
        slots += [
            DayTimeSlot(day="Saturday", start_time="10:00", end_time="16:00"),
            DayTimeSlot(day="Sunday", start_time="10:00", end_time="14:00"),
        ]
        return Preferences(
            daily_study_hours=self.rng.choice([2.0, 2.5, 3.0]),
            day_time_slots=slots,
            session_duration=45,
            break_duration=10,
            duration_mode=duration_mode,
            school_hours=SchoolHours(
                school_start="08:30",
                school_end="15:30",
                study_during_lunch=True,
                lunch_start="12:30",
                lunch_end="13:10",
            ),
        )

    def _topic_analysis(self) -> TopicAnalysis:
        pool = [name for names in _TOPICS.values() for name in names]
        picked = self.rng.sample(pool, 3)
        return TopicAnalysis(
            priorities=[
                TopicPriority(topic_name=name, priority_score=round(self.rng.uniform(6, 9.5), 1))
                for name in picked
            ],
            difficult_topics=[
                DifficultTopic(topic_name="Circle theorems",
                               reason="Low quiz scores",
                               study_suggestion="Work through past paper questions"),
            ],
        )

    def _peak_signal(self) -> PeakPerformanceSignal:
        return PeakPerformanceSignal(
            best=TimeWindowStat(label="late afternoon", start="16:00", end="18:00",
                                completion_rate=0.86, avg_difficulty=6.5),
            worst=TimeWindowStat(label="evening", start="19:00", end="21:00",
                                 completion_rate=0.41, avg_difficulty=4.0),
            recommendation="Put demanding topics straight after school.",
        )
