"""Tests for the schedule validator/repair pass and the assembler."""

from datetime import date, datetime

import pytest

from config.defaults import default_planner_config
from models import (
    BlockedEvent,
    DayTimeSlot,
    EntryType,
    Homework,
    Preferences,
    StudyMode,
    StudyRequest,
    Subject,
    TestDate,
    Topic,
    normalize_identity,
)
from planner.assembler import assemble
from planner.constraints import build_constraints
from planner.reconcile import move_entry
from planner.validator import RejectionLedger, ScheduleValidator, ViolationCode


# ─── Test data helpers ────────────────────────────────────────────────────────

def _make_constraints(start: date, end: date, *, homeworks=(), events=(), tests=()):
    request = StudyRequest(
        subjects=[
            Subject(id="maths", name="Mathematics", mode=StudyMode.SHORT_TERM_EXAM),
            Subject(id="bio", name="Biology", mode=StudyMode.LONG_TERM_EXAM),
        ],
        topics=[
            Topic(name="Vectors", subject_id="maths"),
            Topic(name="Cell biology", subject_id="bio"),
        ],
        test_dates=list(tests),
        homeworks=list(homeworks),
        events=list(events),
        preferences=Preferences(day_time_slots=[
            DayTimeSlot(day=d, start_time="16:00", end_time="20:00")
            for d in ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
        ]),
        start_date=start,
        end_date=end,
    )
    return build_constraints(request, default_planner_config())


def _entry(topic: str, entry_type: str = "practice", time: str = "16:00",
           duration: int = 60, **kw) -> dict:
    raw = {"time": time, "duration": duration, "topic": topic, "type": entry_type}
    raw.update(kw)
    return raw


def _validate(constraints, payload: dict):
    return ScheduleValidator(constraints).validate(payload)


def _codes(result) -> list[ViolationCode]:
    return [r.code for r in result.ledger.rejections]


# ─── SCENARIOS ────────────────────────────────────────────────────────────────

class TestScenarios:
    def test_homework_on_due_date_rejected(self):
        c = _make_constraints(
            date(2024, 1, 10), date(2024, 1, 16),
            homeworks=[Homework(title="Essay", subject="English", due_date=date(2024, 1, 15))],
        )
        result = _validate(c, {
            "2024-01-15": [_entry("Essay", "homework")],
            "2024-01-13": [_entry("Essay", "homework")],
        })
        assert _codes(result) == [ViolationCode.DEADLINE_VIOLATION]
        assert result.ledger.rejections[0].day == "2024-01-15"
        assert [e.topic for e in result.days[date(2024, 1, 13)]] == ["Essay"]

    def test_event_impersonation_without_overlap(self):
        c = _make_constraints(
            date(2024, 2, 1), date(2024, 2, 7),
            events=[BlockedEvent(id="ev-1", title="Badminton",
                                 start_time=datetime(2024, 2, 1, 18),
                                 end_time=datetime(2024, 2, 1, 19))],
        )
        # 10:00 is far away from the event's time
        result = _validate(c, {"2024-02-01": [_entry("Badminton", time="10:00")]})
        assert _codes(result) == [ViolationCode.EVENT_IMPERSONATION]
        assert result.days == {}

    def test_test_day_blackout(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 7),
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 5), test_type="Mock")],
        )
        result = _validate(c, {
            "2024-03-05": [_entry("Vectors")],
            "2024-03-04": [_entry("Vectors")],
        })
        assert _codes(result) == [ViolationCode.TEST_DAY_VIOLATION]
        assert "Mathematics test day" in result.ledger.rejections[0].reason
        assert len(result.days[date(2024, 3, 4)]) == 1

    def test_unknown_topic(self):
        c = _make_constraints(date(2024, 3, 1), date(2024, 3, 7))
        result = _validate(c, {"2024-03-02": [_entry("Photosynthesis", "study")]})
        assert _codes(result) == [ViolationCode.UNKNOWN_IDENTITY]

    def test_overlap_is_kept_and_flagged(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 7),
            events=[BlockedEvent(id="ev-1", title="Football",
                                 start_time=datetime(2024, 3, 3, 17),
                                 end_time=datetime(2024, 3, 3, 18))],
        )
        result = _validate(c, {"2024-03-03": [_entry("Vectors", time="17:30", duration=60)]})
        assert result.ledger.removed_count == 0
        assert [o.code for o in result.ledger.overlaps] == [ViolationCode.OVERLAP_WARNING]
        kept = result.days[date(2024, 3, 3)][0]
        assert kept.overlap_warning
        assert "Football" in result.ledger.overlaps[0].reason

    def test_overlap_past_midnight_is_flagged(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 7),
            events=[BlockedEvent(id="ev-1", title="Night ferry",
                                 start_time=datetime(2024, 3, 4, 0, 0),
                                 end_time=datetime(2024, 3, 4, 1, 0))],
        )
        result = _validate(c, {"2024-03-03": [_entry("Vectors", time="23:30", duration=60)]})
        assert result.ledger.removed_count == 0
        assert result.days[date(2024, 3, 3)][0].overlap_warning
        assert "Night ferry" in result.ledger.overlaps[0].reason


# ─── STRUCTURE ────────────────────────────────────────────────────────────────

class TestMalformed:
    @pytest.fixture
    def constraints(self):
        return _make_constraints(date(2024, 3, 1), date(2024, 3, 7))

    @pytest.mark.parametrize("raw", [
        "Vectors at 4pm",
        {"time": "16:00", "duration": 60, "topic": "Vectors"},
        {"time": "16:00", "duration": 60, "topic": "Vectors", "type": "lecture"},
        {"duration": 60, "topic": "Vectors", "type": "study"},
        {"time": "25:00", "duration": 60, "topic": "Vectors", "type": "study"},
        {"time": "16:00", "duration": "an hour", "topic": "Vectors", "type": "study"},
        {"time": "16:00", "duration": 0, "topic": "Vectors", "type": "study"},
        {"time": "16:00", "duration": True, "topic": "Vectors", "type": "study"},
        {"time": "16:00", "duration": 60, "topic": "  ", "type": "study"},
    ])
    def test_rejected_as_malformed(self, constraints, raw):
        result = _validate(constraints, {"2024-03-02": [raw]})
        assert _codes(result) == [ViolationCode.MALFORMED]

    def test_bad_date_key(self, constraints):
        result = _validate(constraints, {"next tuesday": [_entry("Vectors"), _entry("Vectors")]})
        assert _codes(result) == [ViolationCode.MALFORMED] * 2
        assert result.ledger.rejections[0].day == "next tuesday"

    def test_bucket_not_a_list(self, constraints):
        result = _validate(constraints, {"2024-03-02": _entry("Vectors")})
        assert _codes(result) == [ViolationCode.MALFORMED]

    def test_untimed_break_passes_through(self, constraints):
        result = _validate(constraints, {"2024-03-02": [{"topic": "Break", "type": "break"}]})
        assert result.ledger.removed_count == 0
        kept = result.days[date(2024, 3, 2)][0]
        assert kept.is_break
        assert kept.time is None
        assert kept.id.startswith("sess-")

    def test_numeric_strings_accepted(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("Vectors", duration="45")]})
        assert result.days[date(2024, 3, 2)][0].duration == 45


# ─── TYPES AND IDENTITY ───────────────────────────────────────────────────────

class TestIdentityChecks:
    @pytest.fixture
    def constraints(self):
        return _make_constraints(
            date(2024, 3, 1), date(2024, 3, 10),
            homeworks=[
                Homework(title="Worksheet", subject="Mathematics", due_date=date(2024, 3, 6)),
                Homework(title="Lab report", subject="Biology", due_date=date(2024, 3, 9)),
            ],
            events=[BlockedEvent(id="ev-1", title="Biology revision club",
                                 start_time=datetime(2024, 3, 4, 16),
                                 end_time=datetime(2024, 3, 4, 17))],
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 8))],
        )

    def test_event_typed_known_topic_is_forbidden_type(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("Vectors", "event")]})
        assert _codes(result) == [ViolationCode.FORBIDDEN_TYPE]

    def test_event_typed_event_title_is_impersonation(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("Biology Revision  Club", "event")]})
        assert _codes(result) == [ViolationCode.EVENT_IMPERSONATION]

    def test_topic_used_as_homework(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("Vectors", "homework")]})
        assert _codes(result) == [ViolationCode.UNKNOWN_IDENTITY]

    def test_homework_used_as_topic(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("Worksheet", "revision")]})
        assert _codes(result) == [ViolationCode.UNKNOWN_IDENTITY]

    def test_homework_on_another_due_date(self, constraints):
        # Lab report is due on the 9th but the 6th is the worksheet's due date
        result = _validate(constraints, {"2024-03-06": [_entry("Lab report", "homework")]})
        assert _codes(result) == [ViolationCode.DEADLINE_VIOLATION]

    def test_homework_subject_label_on_test_day(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 10),
            homeworks=[Homework(title="Worksheet", subject="Mathematics",
                                due_date=date(2024, 3, 10))],
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 8))],
        )
        result = _validate(c, {"2024-03-08": [
            _entry("Worksheet", "homework", subject="Mathematics"),
        ]})
        assert _codes(result) == [ViolationCode.TEST_DAY_VIOLATION]

    def test_unlabelled_homework_on_its_subject_test_day(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 10),
            homeworks=[Homework(title="Worksheet", subject="Mathematics",
                                due_date=date(2024, 3, 10))],
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 8))],
        )
        result = _validate(c, {"2024-03-08": [_entry("Worksheet", "homework")]})
        assert _codes(result) == [ViolationCode.TEST_DAY_VIOLATION]
        assert result.days == {}

    def test_homework_subject_wins_over_label(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 10),
            homeworks=[Homework(title="Worksheet", subject="Mathematics",
                                due_date=date(2024, 3, 10))],
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 8))],
        )
        result = _validate(c, {
            "2024-03-08": [_entry("Worksheet", "homework", subject="Biology")],
            "2024-03-07": [_entry("Worksheet", "homework", subject="Biology")],
        })
        assert _codes(result) == [ViolationCode.TEST_DAY_VIOLATION]
        assert result.days[date(2024, 3, 7)][0].subject == "Mathematics"

    def test_duplicate_title_due_dates_all_blacked_out(self):
        c = _make_constraints(
            date(2024, 1, 10), date(2024, 1, 21),
            homeworks=[
                Homework(title="Essay", subject="English", due_date=date(2024, 1, 15)),
                Homework(title="Essay", subject="English", due_date=date(2024, 1, 20)),
            ],
        )
        result = _validate(c, {
            "2024-01-15": [_entry("Essay", "homework")],
            "2024-01-14": [_entry("Essay", "homework")],
        })
        assert _codes(result) == [ViolationCode.DEADLINE_VIOLATION]
        assert result.ledger.rejections[0].day == "2024-01-15"
        assert list(result.days) == [date(2024, 1, 14)]

    def test_other_subject_allowed_on_test_day(self, constraints):
        result = _validate(constraints, {"2024-03-08": [_entry("Cell biology")]})
        assert result.ledger.removed_count == 0
        assert result.ledger.overlaps == []

    def test_topic_subject_wins_over_label(self, constraints):
        # Label says Biology but Vectors belongs to Mathematics
        result = _validate(constraints, {"2024-03-08": [_entry("Vectors", subject="Biology")]})
        assert _codes(result) == [ViolationCode.TEST_DAY_VIOLATION]

    def test_first_failing_check_wins(self, constraints):
        # Impersonation is reported before the test-day check
        result = _validate(constraints, {"2024-03-08": [
            _entry("Biology revision club", subject="Mathematics"),
        ]})
        assert _codes(result) == [ViolationCode.EVENT_IMPERSONATION]


# ─── REPAIR ───────────────────────────────────────────────────────────────────

class TestRepair:
    @pytest.fixture
    def constraints(self):
        return _make_constraints(
            date(2024, 3, 1), date(2024, 3, 10),
            homeworks=[Homework(title="Worksheet", subject="Mathematics",
                                due_date=date(2024, 3, 6))],
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 8))],
        )

    def test_topic_spelling_and_echoes(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("  vectors ", subject="maths")]})
        entry = result.days[date(2024, 3, 2)][0]
        assert entry.topic == "Vectors"
        assert entry.subject == "Mathematics"
        assert entry.test_date == date(2024, 3, 8)
        assert entry.mode == "short-term-exam"
        assert entry.notes.startswith("Resources: Dr Frost Maths")
        assert result.repaired == 1

    def test_homework_due_date_echo_corrected(self, constraints):
        result = _validate(constraints, {"2024-03-02": [
            _entry("worksheet", "homework", homeworkDueDate="2024-03-20"),
        ]})
        entry = result.days[date(2024, 3, 2)][0]
        assert entry.topic == "Worksheet"
        assert entry.homework_due_date == date(2024, 3, 6)
        assert entry.subject == "Mathematics"

    def test_exam_questions_get_exam_resources(self, constraints):
        result = _validate(constraints, {"2024-03-02": [_entry("Vectors", "exam_questions")]})
        assert "Study Mind" in result.days[date(2024, 3, 2)][0].notes

    def test_existing_notes_and_id_kept(self, constraints):
        result = _validate(constraints, {"2024-03-02": [
            _entry("Vectors", id="sess-keep", notes="Past paper Q4"),
        ]})
        entry = result.days[date(2024, 3, 2)][0]
        assert entry.id == "sess-keep"
        assert entry.notes == "Past paper Q4"

    def test_duplicate_ids_reissued(self, constraints):
        result = _validate(constraints, {
            "2024-03-02": [
                _entry("Vectors", id="sess-1", subject="Mathematics", testDate="2024-03-08",
                       mode="short-term-exam", notes="Corbett Maths"),
                _entry("Cell biology", id="sess-1", time="18:00", subject="Biology",
                       mode="long-term-exam", notes="SaveMyExams"),
            ],
        })
        ids = [e.id for e in result.days[date(2024, 3, 2)]]
        assert ids[0] == "sess-1"
        assert ids[1] != "sess-1"
        assert result.repaired == 1

        moved = move_entry(assemble(result.days), "sess-1", date(2024, 3, 4))
        assert [(d, e.topic) for d, e in moved.schedule.iter_entries()
                if e.id == "sess-1"] == [(date(2024, 3, 4), "Vectors")]
        assert [e.topic for e in moved.schedule.days[date(2024, 3, 2)]] == ["Cell biology"]

    def test_clean_entry_not_counted(self, constraints):
        result = _validate(constraints, {"2024-03-02": [
            _entry("Vectors", subject="Mathematics", testDate="2024-03-08",
                   mode="short-term-exam", notes="Corbett Maths"),
        ]})
        assert result.repaired == 0


# ─── LEDGER ───────────────────────────────────────────────────────────────────

class TestLedger:
    def test_summary_message(self):
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 7),
            events=[BlockedEvent(id="ev-1", title="Football",
                                 start_time=datetime(2024, 3, 3, 17),
                                 end_time=datetime(2024, 3, 3, 18))],
        )
        result = _validate(c, {"2024-03-03": [
            _entry("Photosynthesis"),
            _entry("Genetics"),
            _entry("Football"),
            _entry("Vectors", time="17:30"),
        ]})
        summary = result.ledger.summary()
        assert summary.removed == 3
        assert summary.overlaps == 1
        assert summary.by_code == {"EVENT_IMPERSONATION": 1, "UNKNOWN_IDENTITY": 2}
        assert summary.message.startswith("3 sessions removed: 2 unknown topic or homework")
        assert summary.message.endswith("; 1 overlap blocked time")

    def test_empty_ledger(self):
        assert RejectionLedger().summary().message == "No sessions removed"

    def test_save_and_load(self, tmp_path):
        ledger = RejectionLedger()
        ledger.record("2024-03-03", ViolationCode.UNKNOWN_IDENTITY, "unknown",
                      _entry("Photosynthesis"))
        path = tmp_path / "ledger.json"
        ledger.save_json(path)
        loaded = RejectionLedger.load_json(path)
        assert loaded.rejections[0].topic == "Photosynthesis"
        assert loaded.rejections[0].code == ViolationCode.UNKNOWN_IDENTITY

    def test_print_rich_runs(self):
        ledger = RejectionLedger()
        ledger.record("2024-03-03", ViolationCode.OVERLAP_WARNING, "overlap", _entry("Vectors"))
        ledger.print_rich()


# ─── END-TO-END PROPERTIES ────────────────────────────────────────────────────

class TestProperties:
    """Every guarantee checked over one candidate mixing good and bad entries."""

    @pytest.fixture
    def setup(self):
        homework = Homework(title="Worksheet", subject="Mathematics", due_date=date(2024, 3, 5))
        event = BlockedEvent(id="ev-1", title="Piano lesson",
                             start_time=datetime(2024, 3, 2, 18),
                             end_time=datetime(2024, 3, 2, 19))
        c = _make_constraints(
            date(2024, 3, 1), date(2024, 3, 7),
            homeworks=[homework], events=[event],
            tests=[TestDate(subject_id="maths", test_date=date(2024, 3, 6))],
        )
        payload = {
            "2024-03-02": [
                _entry("Vectors", time="19:30"),
                _entry("Cell biology", time="16:00"),
                _entry("Break", "break", time="17:00", duration=10),
                _entry("Piano lesson", time="18:00"),
                _entry("Cell biology", "revision", time="18:15", duration=30),
                {"topic": "Break", "type": "break"},
            ],
            "2024-03-04": [_entry("Worksheet", "homework", time="17:00", duration=40)],
            "2024-03-05": [_entry("Worksheet", "homework")],
            "2024-03-06": [_entry("Vectors"), _entry("Cell biology", "exam_questions")],
            "2024-03-07": [_entry("Mock results", "study"), _entry("Vectors", "event")],
        }
        result = _validate(c, payload)
        return c, result, assemble(result.days)

    def test_identity_closure(self, setup):
        c, _, schedule = setup
        for _, entry in schedule.iter_entries():
            if entry.is_break:
                continue
            key = normalize_identity(entry.topic)
            assert key in c.identities.topics or key in c.identities.homework

    def test_no_event_leakage(self, setup):
        c, _, schedule = setup
        for _, entry in schedule.iter_entries():
            assert normalize_identity(entry.topic) not in c.identities.events
            assert entry.type != EntryType.EVENT

    def test_deadline_ordering(self, setup):
        c, _, schedule = setup
        for day, entry in schedule.iter_entries():
            if entry.type == EntryType.HOMEWORK:
                assert day < c.homework_due[normalize_identity(entry.topic)]

    def test_test_day_blackout(self, setup):
        _, _, schedule = setup
        on_test_day = schedule.days.get(date(2024, 3, 6), [])
        assert all(e.subject != "Mathematics" for e in on_test_day)
        assert [e.topic for e in on_test_day] == ["Cell biology"]

    def test_overlap_retained(self, setup):
        _, result, schedule = setup
        flagged = [e for _, e in schedule.iter_entries() if e.overlap_warning]
        assert [(e.topic, e.time) for e in flagged] == [("Cell biology", "18:15")]
        assert len(result.ledger.overlaps) == 1

    def test_sorted_by_start_time(self, setup):
        _, _, schedule = setup
        for entries in schedule.days.values():
            starts = [e.start_minutes for e in entries]
            assert starts == sorted(starts)
        assert schedule.days[date(2024, 3, 2)][-1].time is None

    def test_rejection_counts(self, setup):
        _, result, schedule = setup
        assert result.ledger.counts() == {
            ViolationCode.EVENT_IMPERSONATION: 1,
            ViolationCode.DEADLINE_VIOLATION: 1,
            ViolationCode.TEST_DAY_VIOLATION: 1,
            ViolationCode.UNKNOWN_IDENTITY: 1,
            ViolationCode.FORBIDDEN_TYPE: 1,
        }
        assert schedule.dates() == [date(2024, 3, 2), date(2024, 3, 4), date(2024, 3, 6)]
