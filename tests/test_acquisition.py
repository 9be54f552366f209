"""Tests for candidate acquisition: bounded calls and payload extraction."""

import json
import threading

import pytest

from config.schema import AcquisitionConfig
from planner.acquisition import (
    GeminiCandidateSource,
    StaticCandidateSource,
    acquire_candidate,
    extract_candidate_payload,
)
from planner.errors import (
    AcquisitionError,
    AcquisitionTimeoutError,
    ParseFailureError,
)

_SCHEDULE = {
    "2024-03-01": [
        {"time": "16:00", "duration": 45, "subject": "Biology",
         "topic": "Photosynthesis", "type": "study"},
    ],
}


# ─── Stub sources ─────────────────────────────────────────────────────────────

class _SlowSource:
    name = "slow"

    def __init__(self):
        self.release = threading.Event()

    def propose(self, brief):
        self.release.wait(5)
        return json.dumps(_SCHEDULE)


class _FailingSource:
    name = "failing"

    def __init__(self, exc):
        self.exc = exc

    def propose(self, brief):
        raise self.exc


class _SilentSource:
    name = "silent"

    def propose(self, brief):
        return None


# ─── BOUNDED ACQUISITION ──────────────────────────────────────────────────────

class TestAcquireCandidate:
    def test_static_source_passes_through(self):
        raw = acquire_candidate(StaticCandidateSource(_SCHEDULE), None, 5)
        assert raw == _SCHEDULE

    def test_timeout(self):
        source = _SlowSource()
        try:
            with pytest.raises(AcquisitionTimeoutError) as exc_info:
                acquire_candidate(source, None, 0.05)
            assert exc_info.value.code == "ACQUISITION_TIMEOUT"
            assert "slow" in exc_info.value.message
        finally:
            source.release.set()

    def test_timeout_is_an_acquisition_error(self):
        assert issubclass(AcquisitionTimeoutError, AcquisitionError)

    def test_source_exception_wrapped(self):
        with pytest.raises(AcquisitionError) as exc_info:
            acquire_candidate(_FailingSource(ConnectionError("refused")), None, 5)
        assert exc_info.value.code == "ACQUISITION_FAILURE"
        assert "refused" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_planner_error_not_rewrapped(self):
        with pytest.raises(ParseFailureError):
            acquire_candidate(_FailingSource(ParseFailureError("bad")), None, 5)

    def test_none_result_is_failure(self):
        with pytest.raises(AcquisitionError, match="returned nothing"):
            acquire_candidate(_SilentSource(), None, 5)

    def test_static_from_file(self, tmp_path):
        path = tmp_path / "candidate.json"
        path.write_text(json.dumps({"schedule": _SCHEDULE}), encoding="utf-8")
        source = StaticCandidateSource.from_file(path)
        assert extract_candidate_payload(source.propose(None)) == _SCHEDULE

    def test_static_from_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            StaticCandidateSource.from_file(tmp_path / "missing.json")


class TestGeminiSource:
    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(AcquisitionError, match="GOOGLE_API_KEY"):
            GeminiCandidateSource(AcquisitionConfig())

    def test_custom_key_variable(self, monkeypatch):
        monkeypatch.delenv("PLANNER_KEY", raising=False)
        with pytest.raises(AcquisitionError, match="PLANNER_KEY"):
            GeminiCandidateSource(AcquisitionConfig(api_key_env="PLANNER_KEY"))


# ─── PAYLOAD EXTRACTION ───────────────────────────────────────────────────────

class TestExtractPayload:
    def test_wrapped_dict(self):
        assert extract_candidate_payload({"schedule": _SCHEDULE}) == _SCHEDULE

    def test_bare_date_mapping(self):
        assert extract_candidate_payload(_SCHEDULE) == _SCHEDULE

    def test_plain_json_text(self):
        assert extract_candidate_payload(json.dumps({"schedule": _SCHEDULE})) == _SCHEDULE

    def test_fenced_json_with_commentary(self):
        raw = (
            "Here is your timetable!\n```json\n"
            + json.dumps({"schedule": _SCHEDULE}, indent=2)
            + "\n```\nGood luck with the exams."
        )
        assert extract_candidate_payload(raw) == _SCHEDULE

    def test_prose_around_object(self):
        raw = "Sure. " + json.dumps(_SCHEDULE) + " Let me know if you need changes."
        assert extract_candidate_payload(raw) == _SCHEDULE

    def test_skips_unrelated_objects(self):
        raw = '{"note": "draft"} then ' + json.dumps({"schedule": _SCHEDULE})
        assert extract_candidate_payload(raw) == _SCHEDULE

    def test_empty_text(self):
        with pytest.raises(ParseFailureError):
            extract_candidate_payload("   ")

    def test_no_json(self):
        with pytest.raises(ParseFailureError) as exc_info:
            extract_candidate_payload("I cannot help with that.")
        assert exc_info.value.code == "PARSE_FAILURE"

    def test_truncated_json(self):
        with pytest.raises(ParseFailureError):
            extract_candidate_payload('{"schedule": {"2024-03-01": [')

    def test_dict_without_schedule(self):
        with pytest.raises(ParseFailureError):
            extract_candidate_payload({"message": "hello"})

    def test_schedule_not_a_mapping(self):
        with pytest.raises(ParseFailureError):
            extract_candidate_payload({"schedule": ["2024-03-01"]})
