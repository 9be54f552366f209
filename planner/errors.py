"""Request-level errors of the planner.

Per-entry problems in a candidate schedule are never raised; they end up as
records in the rejection ledger. Only conditions that abort a whole request
(or a strict move) are exceptions.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from planner.validator import RejectionLedger


class PlannerError(Exception):
    """Base class. `code` is the stable, machine-readable error code."""

    code = "PLANNER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputInvalidError(PlannerError):
    """The request failed its input check; nothing was acquired."""

    code = "INPUT_INVALID"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class AcquisitionError(PlannerError):
    code = "ACQUISITION_FAILURE"


class AcquisitionTimeoutError(AcquisitionError):
    code = "ACQUISITION_TIMEOUT"


class ParseFailureError(PlannerError):
    """No structured schedule object could be recovered from the candidate."""

    code = "PARSE_FAILURE"


class EmptyScheduleError(PlannerError):
    """Every candidate entry was rejected; the ledger says why."""

    code = "EMPTY_RESULT"

    def __init__(self, message: str, ledger: "RejectionLedger") -> None:
        super().__init__(message)
        self.ledger = ledger


class EntryNotFoundError(PlannerError):
    code = "NOT_FOUND"

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"No schedule entry with id '{entry_id}'")
        self.entry_id = entry_id
