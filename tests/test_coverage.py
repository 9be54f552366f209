"""Tests for the coverage report."""

from datetime import date

import pytest

from config.defaults import default_planner_config
from models import (
    DayTimeSlot,
    Homework,
    Preferences,
    Schedule,
    StudyMode,
    StudyRequest,
    Subject,
    TestDate,
    Topic,
)
from analysis.coverage_report import CoverageAnalyzer
from planner.constraints import build_constraints


def _make_constraints():
    """Mon 2024-03-04 .. Sun 2024-03-10, weekday evenings only."""
    request = StudyRequest(
        subjects=[
            Subject(id="maths", name="Mathematics", mode=StudyMode.SHORT_TERM_EXAM),
            Subject(id="history", name="History", mode=StudyMode.NO_EXAM),
        ],
        topics=[
            Topic(name="Vectors", subject_id="maths"),
            Topic(name="Norman England", subject_id="history"),
        ],
        test_dates=[TestDate(subject_id="maths", test_date=date(2024, 3, 7))],
        homeworks=[
            Homework(title="Essay", subject="History", due_date=date(2024, 3, 8), duration=30),
            Homework(title="Worksheet", subject="Mathematics", due_date=date(2024, 3, 6)),
        ],
        preferences=Preferences(
            day_time_slots=[
                DayTimeSlot(day=d, start_time="16:00", end_time="19:00")
                for d in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
            ],
            daily_study_hours=2.0,
        ),
        start_date=date(2024, 3, 4),
        end_date=date(2024, 3, 10),
    )
    return build_constraints(request, default_planner_config())


def _make_schedule() -> Schedule:
    return Schedule.from_payload({
        "2024-03-04": [
            {"time": "16:00", "duration": 75, "subject": "Mathematics",
             "topic": "Vectors", "type": "practice"},
            {"time": "17:15", "duration": 8, "topic": "Break", "type": "break"},
            {"time": "17:23", "duration": 20, "subject": "History",
             "topic": "Norman England", "type": "revision", "overlapWarning": True},
        ],
        "2024-03-05": [
            {"time": "16:00", "duration": 75, "subject": "Mathematics",
             "topic": "vectors", "type": "exam_questions"},
            {"time": "17:30", "duration": 30, "subject": "History",
             "topic": "Essay", "type": "homework"},
        ],
        "2024-03-07": [
            {"time": "16:00", "duration": 30, "subject": "History",
             "topic": "Essay", "type": "homework"},
            {"time": "17:00", "duration": 60, "subject": "Mathematics",
             "topic": "Vectors", "type": "revision"},
        ],
        "2024-03-09": [
            {"time": "10:00", "duration": 15, "topic": "Stretching", "type": "study"},
        ],
    })


@pytest.fixture
def report():
    return CoverageAnalyzer().analyze(_make_schedule(), _make_constraints())


class TestTopicCoverage:
    def test_sessions_counted_by_identity(self, report):
        vectors = next(t for t in report.topics if t.topic == "Vectors")
        assert vectors.scheduled_sessions == 3
        assert vectors.after_deadline == 1
        assert vectors.deadline == date(2024, 3, 7)

    def test_fulfilled(self, report):
        history = next(t for t in report.topics if t.topic == "Norman England")
        assert history.target_sessions == 1
        assert history.fulfilled
        vectors = next(t for t in report.topics if t.topic == "Vectors")
        assert not vectors.fulfilled

    def test_fulfillment_rate(self, report):
        assert report.topic_fulfillment_rate == 0.5


class TestHomeworkCoverage:
    def test_earliest_session_counts(self, report):
        essay = next(h for h in report.homework if h.title == "Essay")
        assert essay.scheduled_on == date(2024, 3, 5)
        assert essay.minutes == 30
        assert essay.prepared

    def test_missing_homework(self, report):
        worksheet = next(h for h in report.homework if h.title == "Worksheet")
        assert worksheet.scheduled_on is None
        assert not worksheet.prepared
        assert report.homework_prepared_rate == 0.5


class TestLoad:
    def test_subject_minutes_exclude_breaks(self, report):
        assert report.subject_minutes == {
            "(none)": 15,
            "History": 80,
            "Mathematics": 210,
        }

    def test_day_loads(self, report):
        assert len(report.days) == 7
        monday = report.days[0]
        assert (monday.study_minutes, monday.break_minutes, monday.entries) == (95, 8, 3)
        assert monday.target_minutes == 120
        # No window on Saturday, so no target
        assert report.days[5].target_minutes == 0
        assert report.total_study_minutes == 305

    def test_overlap_flags(self, report):
        assert report.overlap_flags == 1


class TestEdgeCases:
    def test_empty_schedule(self):
        report = CoverageAnalyzer().analyze(Schedule(), _make_constraints())
        assert report.total_study_minutes == 0
        assert report.topic_fulfillment_rate == 0.0
        assert report.homework_prepared_rate == 0.0

    def test_print_rich_runs(self, report):
        CoverageAnalyzer().print_rich(report)
