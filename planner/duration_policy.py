"""Duration policy: one pure function instead of per-call-site branching.

    duration_policy(mode, entry_type, tier, ...) -> DurationBand(min, max, default)

Fixed mode uses the student's own session/break lengths verbatim. Flexible
mode picks a band by intensity tier. Homework always gets its exact duration.
"""

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from config.defaults import (
    BREAK_BANDS,
    FOCUS_BAND,
    FOCUS_BASE_MINUTES,
    FOCUS_MINUTES_PER_POINT,
    TEST_SUBJECT_BAND,
    TOPIC_BANDS,
)
from models.preferences import DurationMode
from models.schedule import EntryType
from models.subject import StudyMode


class DurationBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int
    max: int
    default: int

    @model_validator(mode="after")
    def _ordered(self):
        if not (self.min <= self.default <= self.max):
            raise ValueError(f"Invalid band {self.min}/{self.default}/{self.max}")
        return self

    @classmethod
    def exact(cls, minutes: int) -> "DurationBand":
        return cls(min=minutes, max=minutes, default=minutes)

    def contains(self, minutes: int) -> bool:
        return self.min <= minutes <= self.max

    def merge(self, other: "DurationBand") -> "DurationBand":
        """Combine two bands by taking the larger of each bound."""
        lo = max(self.min, other.min)
        hi = max(self.max, other.max)
        return DurationBand(min=lo, max=hi, default=min(max(self.default, other.default), hi))

    def __str__(self) -> str:
        if self.min == self.max:
            return f"{self.min} min"
        return f"{self.min}-{self.max} min (default {self.default})"


def _band(bounds: tuple[int, int, int]) -> DurationBand:
    lo, hi, default = bounds
    return DurationBand(min=lo, max=hi, default=default)


def _tier_key(tier: Optional[StudyMode]) -> Optional[str]:
    return tier.value if tier is not None else None


def duration_policy(
    mode: DurationMode,
    entry_type: EntryType,
    intensity_tier: Optional[StudyMode],
    *,
    session_minutes: int,
    break_minutes: int,
    homework_minutes: Optional[int] = None,
) -> DurationBand:
    """Allowed duration band for one entry type.

    `homework_minutes` is required for homework entries. Event entries have no
    policy and raise ValueError.
    """
    if entry_type == EntryType.EVENT:
        raise ValueError("Event entries have no duration policy")

    if entry_type == EntryType.HOMEWORK:
        if homework_minutes is None:
            raise ValueError("homework_minutes is required for homework entries")
        return DurationBand.exact(homework_minutes)

    if mode == DurationMode.FIXED:
        if entry_type == EntryType.BREAK:
            return DurationBand.exact(break_minutes)
        return DurationBand.exact(session_minutes)

    key = _tier_key(intensity_tier)
    if entry_type == EntryType.BREAK:
        return _band(BREAK_BANDS[key])
    return _band(TOPIC_BANDS[key])


def focus_band(priority_score: float) -> DurationBand:
    """Flexible-mode band for a focus topic: 60-90, default 45 + 5/point capped at 90."""
    lo, hi = FOCUS_BAND
    default = min(hi, FOCUS_BASE_MINUTES + math.ceil(FOCUS_MINUTES_PER_POINT * priority_score))
    return DurationBand(min=lo, max=hi, default=max(lo, default))


def tested_subject_band() -> DurationBand:
    """Flexible-mode band for topics of a subject with a test."""
    return _band(TEST_SUBJECT_BAND)
