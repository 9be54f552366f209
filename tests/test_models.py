"""Tests for the Pydantic models: identity, request check, schedule wire format."""

import json
from datetime import date, datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from models import (
    BlockedEvent,
    DayTimeSlot,
    EntryType,
    Homework,
    Preferences,
    Schedule,
    ScheduleEntry,
    SchoolHours,
    StudyMode,
    StudyRequest,
    Subject,
    TestDate,
    Topic,
    normalize_identity,
)
from models.request import MAX_SUBJECTS


# ─── Test data helpers ────────────────────────────────────────────────────────

def _prefs(**kw) -> Preferences:
    slots = kw.pop("slots", [DayTimeSlot(day="Monday", start_time="16:00", end_time="19:00")])
    return Preferences(day_time_slots=slots, **kw)


def _request(**kw) -> StudyRequest:
    base = dict(
        subjects=[Subject(id="maths", name="Mathematics", mode=StudyMode.SHORT_TERM_EXAM)],
        topics=[Topic(name="Vectors", subject_id="maths")],
        test_dates=[TestDate(subject_id="maths", test_date=date(2025, 3, 7))],
        preferences=_prefs(),
        start_date=date(2025, 3, 3),
        end_date=date(2025, 3, 9),
    )
    base.update(kw)
    return StudyRequest(**base)


# ─── IDENTITY ─────────────────────────────────────────────────────────────────

class TestIdentity:
    def test_whitespace_and_case_collapse(self):
        assert normalize_identity("  Quadratic   Equations ") == "quadratic equations"

    def test_tabs_and_newlines(self):
        assert normalize_identity("Cell\tbiology\n") == "cell biology"

    def test_casefold(self):
        assert normalize_identity("STRASSE") == normalize_identity("strasse")

    def test_empty(self):
        assert normalize_identity(None) == ""
        assert normalize_identity("   ") == ""

    def test_topic_and_homework_keys(self):
        assert Topic(name=" Vectors ", subject_id="m").key == "vectors"
        hw = Homework(title="Essay  Plan", subject="English", due_date=date(2025, 1, 1))
        assert hw.key == "essay plan"


# ─── PREFERENCES / EVENTS ─────────────────────────────────────────────────────

class TestInputModels:
    def test_unknown_weekday_rejected(self):
        with pytest.raises(ValidationError):
            DayTimeSlot(day="Funday", start_time="10:00", end_time="11:00")

    def test_weekday_short_names(self):
        assert DayTimeSlot(day="Wed", start_time="10:00", end_time="11:00").weekday == 2

    def test_clock_normalized(self):
        slot = DayTimeSlot(day="monday", start_time="9:05", end_time="10:00")
        assert slot.start_time == "09:05"

    def test_invalid_clock_rejected(self):
        with pytest.raises(ValidationError):
            DayTimeSlot(day="monday", start_time="25:00", end_time="26:00")

    def test_lunch_requires_window(self):
        with pytest.raises(ValidationError):
            SchoolHours(study_during_lunch=True)

    def test_school_end_after_start(self):
        with pytest.raises(ValidationError):
            SchoolHours(school_start="15:00", school_end="08:00")

    def test_event_end_after_start(self):
        with pytest.raises(ValidationError):
            BlockedEvent(id="e", title="x", start_time=datetime(2025, 1, 1, 18),
                         end_time=datetime(2025, 1, 1, 17))

    def test_homework_duration_default(self):
        hw = Homework(title="Essay", subject="English", due_date=date(2025, 1, 10))
        assert hw.resolved_duration(60) == 60
        hw = Homework(title="Essay", subject="English", due_date=date(2025, 1, 10), duration=25)
        assert hw.resolved_duration(60) == 25

    def test_duplicate_events_collapsed(self):
        ev = BlockedEvent(id="e1", title="Badminton", start_time=datetime(2025, 3, 4, 18),
                          end_time=datetime(2025, 3, 4, 19))
        request = _request(events=[ev, ev.model_copy()])
        assert len(request.events) == 1


# ─── REQUEST CHECK ────────────────────────────────────────────────────────────

class TestRequestCheck:
    def test_valid_request(self):
        report = _request().check()
        assert report.is_valid
        assert report.errors == []

    def test_window_reversed(self):
        report = _request(start_date=date(2025, 3, 9), end_date=date(2025, 3, 3)).check()
        assert not report.is_valid
        assert any("before it starts" in e for e in report.errors)

    def test_unknown_subject_on_topic(self):
        report = _request(topics=[Topic(name="Vectors", subject_id="physics")]).check()
        assert not report.is_valid
        assert any("unknown subject id 'physics'" in e for e in report.errors)

    def test_no_enabled_slot(self):
        slot = DayTimeSlot(day="Monday", start_time="16:00", end_time="19:00", enabled=False)
        report = _request(preferences=_prefs(slots=[slot])).check()
        assert not report.is_valid

    def test_slot_end_before_start(self):
        slot = DayTimeSlot(day="Monday", start_time="19:00", end_time="16:00")
        report = _request(preferences=_prefs(slots=[slot])).check()
        assert not report.is_valid

    def test_untested_subject_warns(self):
        report = _request(test_dates=[]).check()
        assert report.is_valid
        assert any("no test" in w for w in report.warnings)

    def test_unschedulable_homework_warns(self):
        hw = Homework(title="Essay", subject="English", due_date=date(2025, 3, 3))
        report = _request(homeworks=[hw]).check()
        assert report.is_valid
        assert any("Essay" in w for w in report.warnings)

    def test_test_outside_window_warns(self):
        tests = [TestDate(subject_id="maths", test_date=date(2025, 4, 1))]
        report = _request(test_dates=tests).check()
        assert any("outside the planning window" in w for w in report.warnings)

    def test_too_many_subjects(self):
        subjects = [Subject(id=f"s{i}", name=f"Subject {i}") for i in range(MAX_SUBJECTS + 1)]
        with pytest.raises(ValidationError):
            _request(subjects=subjects)

    def test_last_eligible_day(self):
        request = _request()
        hw = Homework(title="Essay", subject="English", due_date=date(2025, 3, 5))
        assert request.last_eligible_day(hw) == date(2025, 3, 4)
        late = Homework(title="Essay", subject="English", due_date=date(2025, 5, 1))
        assert request.last_eligible_day(late) == date(2025, 3, 9)

    def test_json_roundtrip(self, tmp_path: Path):
        request = _request()
        path = tmp_path / "request.json"
        request.save_json(path)
        assert StudyRequest.load_json(path) == request

    def test_print_rich_runs(self):
        _request(test_dates=[]).check().print_rich()


# ─── SCHEDULE ─────────────────────────────────────────────────────────────────

class TestSchedule:
    def _payload(self) -> dict:
        return {
            "2025-03-04": [
                {"time": "18:00", "duration": 60, "subject": "Mathematics",
                 "topic": "Vectors", "type": "practice", "testDate": "2025-03-07"},
                {"time": "17:00", "duration": 10, "topic": "Break", "type": "break"},
            ],
            "2025-03-03": [
                {"id": "sess-fixed", "time": "9:30", "duration": 30, "subject": "English",
                 "topic": "Essay", "type": "homework", "homeworkDueDate": "2025-03-05"},
            ],
            "2025-03-05": [],
        }

    def test_from_payload_parses_aliases(self):
        schedule = Schedule.from_payload(self._payload())
        entry = schedule.days[date(2025, 3, 4)][0]
        assert entry.test_date == date(2025, 3, 7)
        assert entry.type == EntryType.PRACTICE
        hw = schedule.days[date(2025, 3, 3)][0]
        assert hw.homework_due_date == date(2025, 3, 5)
        assert hw.time == "09:30"

    def test_empty_bucket_dropped(self):
        schedule = Schedule.from_payload(self._payload())
        assert date(2025, 3, 5) not in schedule.days

    def test_ids_stable_across_loads(self):
        a = Schedule.from_payload(self._payload())
        b = Schedule.from_payload(self._payload())
        assert [e.id for _, e in a.iter_entries()] == [e.id for _, e in b.iter_entries()]
        assert a.find("sess-fixed") is not None

    def test_wire_format_uses_camel_case(self):
        schedule = Schedule.from_payload(self._payload())
        payload = schedule.to_payload()
        assert list(payload) == ["2025-03-03", "2025-03-04"]
        practice = payload["2025-03-04"][0]
        assert practice["testDate"] == "2025-03-07"
        assert "test_date" not in practice
        assert practice["overlapWarning"] is False

    def test_find_missing(self):
        assert Schedule.from_payload(self._payload()).find("sess-42") is None

    def test_untimed_entries_sort_last(self):
        timed = ScheduleEntry(time="23:00", duration=10, topic="Break", type="break")
        untimed = ScheduleEntry(topic="Break", type="break")
        assert untimed.start_minutes > timed.start_minutes

    def test_save_and_load(self, tmp_path: Path):
        schedule = Schedule.from_payload(self._payload())
        path = tmp_path / "schedule.json"
        schedule.save_json(path)
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert "2025-03-03" in raw
        assert Schedule.load_json(path) == schedule

    def test_load_missing_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            Schedule.load_json(tmp_path / "nope.json")
