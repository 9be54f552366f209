"""Generation and move entry points.

    request → build_constraints → compile_brief → acquire_candidate
            → extract_candidate_payload → ScheduleValidator → assemble

Phases run strictly in sequence. The engine keeps no state between calls;
every request gets its own constraint set, brief and ledger.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel

from config.defaults import default_planner_config
from config.schema import PlannerConfig
from models.request import StudyRequest
from models.schedule import Schedule
from planner.acquisition import CandidateSource, acquire_candidate, extract_candidate_payload
from planner.assembler import assemble
from planner.brief import GenerationBrief, compile_brief
from planner.constraints import ConstraintSet, ExcludedHomework, build_constraints
from planner.errors import EmptyScheduleError, InputInvalidError
from planner.reconcile import MoveResult, move_entry
from planner.validator import RejectionLedger, ScheduleValidator

logger = logging.getLogger(__name__)


class GenerationResult(BaseModel):
    schedule: Schedule
    ledger: RejectionLedger
    excluded_homework: list[ExcludedHomework]
    repaired: int = 0
    brief: GenerationBrief
    constraints: ConstraintSet


class TimetableEngine:
    """Runs one generation request end to end.

    Usage:
        engine = TimetableEngine(config, source)
        result = engine.generate(request)
    """

    def __init__(self, config: Optional[PlannerConfig], source: CandidateSource) -> None:
        self.config = config or default_planner_config()
        self.source = source

    def prepare(self, request: StudyRequest) -> tuple[ConstraintSet, GenerationBrief]:
        """Input check, constraint model and brief. Nothing is acquired yet."""
        check = request.check()
        if not check.is_valid:
            logger.error(f"Request rejected: {len(check.errors)} input errors")
            raise InputInvalidError(
                "Request is invalid: " + "; ".join(check.errors), errors=check.errors
            )
        for warning in check.warnings:
            logger.warning(warning)

        logger.info(
            f"Generating {request.start_date} → {request.end_date}: "
            f"{len(request.subjects)} subjects, {len(request.topics)} topics, "
            f"{len(request.test_dates)} tests, {len(request.homeworks)} homework, "
            f"{len(request.events)} events"
        )
        constraints = build_constraints(request, self.config)
        return constraints, compile_brief(constraints)

    def generate(self, request: StudyRequest) -> GenerationResult:
        """Generate a validated schedule.

        Raises InputInvalidError, AcquisitionError / AcquisitionTimeoutError,
        ParseFailureError, or EmptyScheduleError when nothing survives.
        """
        constraints, brief = self.prepare(request)

        raw = acquire_candidate(self.source, brief, self.config.acquisition.timeout_seconds)
        payload = extract_candidate_payload(raw)

        validation = ScheduleValidator(constraints).validate(payload)
        schedule = assemble(validation.days)

        if schedule.is_empty:
            summary = validation.ledger.summary()
            logger.warning(f"Empty result: {summary.message}")
            raise EmptyScheduleError(
                f"No entries survived validation ({summary.message})", validation.ledger
            )

        return GenerationResult(
            schedule=schedule,
            ledger=validation.ledger,
            excluded_homework=list(constraints.excluded_homework),
            repaired=validation.repaired,
            brief=brief,
            constraints=constraints,
        )


# ─── Module-level entry points ────────────────────────────────────────────────

def generate(request: StudyRequest, source: CandidateSource,
             config: Optional[PlannerConfig] = None) -> GenerationResult:
    return TimetableEngine(config, source).generate(request)


def move(schedule: Schedule, entry_id: str, target_date: date,
         constraints: Optional[ConstraintSet] = None) -> MoveResult:
    """Move one entry. With `constraints`, the overlap flag is recomputed."""
    blocked = constraints.blocked_intervals if constraints is not None else ()
    return move_entry(schedule, entry_id, target_date, blocked_intervals=blocked)
