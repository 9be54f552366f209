"""Planner: constraint model, brief, acquisition, validation, assembly, moves."""

from .errors import (
    PlannerError,
    InputInvalidError,
    AcquisitionError,
    AcquisitionTimeoutError,
    ParseFailureError,
    EmptyScheduleError,
    EntryNotFoundError,
)
from .duration_policy import DurationBand, duration_policy
from .constraints import ConstraintSet, build_constraints
from .brief import GenerationBrief, compile_brief, render_prompt
from .acquisition import (
    CandidateSource,
    GeminiCandidateSource,
    StaticCandidateSource,
    acquire_candidate,
    extract_candidate_payload,
)
from .local_solver import CpSatCandidateSource
from .validator import RejectionLedger, ScheduleValidator, ViolationCode
from .assembler import assemble
from .reconcile import MoveResult, MoveStatus, ScheduleStore, move_entry, move_event, move_homework
from .engine import GenerationResult, TimetableEngine, generate, move

__all__ = [
    "PlannerError",
    "InputInvalidError",
    "AcquisitionError",
    "AcquisitionTimeoutError",
    "ParseFailureError",
    "EmptyScheduleError",
    "EntryNotFoundError",
    "DurationBand",
    "duration_policy",
    "ConstraintSet",
    "build_constraints",
    "GenerationBrief",
    "compile_brief",
    "render_prompt",
    "CandidateSource",
    "GeminiCandidateSource",
    "StaticCandidateSource",
    "acquire_candidate",
    "extract_candidate_payload",
    "CpSatCandidateSource",
    "RejectionLedger",
    "ScheduleValidator",
    "ViolationCode",
    "assemble",
    "MoveResult",
    "MoveStatus",
    "ScheduleStore",
    "move_entry",
    "move_event",
    "move_homework",
    "GenerationResult",
    "TimetableEngine",
    "generate",
    "move",
]
