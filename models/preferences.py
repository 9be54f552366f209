"""Study preferences: weekly availability, durations and school hours (Pydantic v2)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.clock import parse_clock

# Day labels accepted in DayTimeSlot.day → weekday index (0=Monday)
WEEKDAY_INDEX: dict[str, int] = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
    "mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6,
}

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday",
                 "Friday", "Saturday", "Sunday"]


class DurationMode(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"


def _check_clock(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    return parse_clock(v).strftime("%H:%M")


class DayTimeSlot(BaseModel):
    """Available study window for one weekday."""
    # Weekday label, e.g. "monday" or "Mon"
    day: str
    # Window start "HH:MM"
    start_time: str
    # Window end "HH:MM"
    end_time: str
    enabled: bool = True

    @field_validator("day")
    @classmethod
    def _known_day(cls, v: str) -> str:
        if v.strip().lower() not in WEEKDAY_INDEX:
            raise ValueError(f"Unknown weekday '{v}'")
        return v.strip()

    @field_validator("start_time", "end_time")
    @classmethod
    def _clock(cls, v: str) -> str:
        return _check_clock(v)

    @property
    def weekday(self) -> int:
        return WEEKDAY_INDEX[self.day.lower()]


class SchoolHours(BaseModel):
    """School-day carve-out (Mon–Fri).

    School time is unavailable for study. The optional before-school and
    lunch windows, and free periods, only ever admit short homework sessions.
    """
    school_start: str = "08:30"
    school_end: str = "15:30"
    study_before_school: bool = False
    before_school_start: Optional[str] = None
    before_school_end: Optional[str] = None
    study_during_lunch: bool = False
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None
    study_during_free_periods: bool = False

    @field_validator("school_start", "school_end", "before_school_start",
                     "before_school_end", "lunch_start", "lunch_end")
    @classmethod
    def _clock(cls, v: Optional[str]) -> Optional[str]:
        return _check_clock(v)

    @model_validator(mode="after")
    def _check_windows(self):
        if parse_clock(self.school_end) <= parse_clock(self.school_start):
            raise ValueError("school_end must be after school_start")
        if self.study_before_school and not (self.before_school_start and self.before_school_end):
            raise ValueError("study_before_school requires before_school_start/end")
        if self.study_during_lunch and not (self.lunch_start and self.lunch_end):
            raise ValueError("study_during_lunch requires lunch_start/end")
        return self


class Preferences(BaseModel):
    """Student study preferences."""
    # Target study hours per day
    daily_study_hours: float = Field(3.0, ge=0, le=12)
    # Weekly availability, one entry per weekday
    day_time_slots: list[DayTimeSlot] = Field(default_factory=list)
    # Default session length in minutes (exact length in fixed mode)
    session_duration: int = Field(45, ge=15, le=180)
    # Default break length in minutes (exact length in fixed mode)
    break_duration: int = Field(10, ge=5, le=60)
    duration_mode: DurationMode = DurationMode.FLEXIBLE
    # Free-text directives from the student
    ai_notes: Optional[str] = None
    school_hours: Optional[SchoolHours] = None

    @property
    def enabled_slots(self) -> list[DayTimeSlot]:
        return [s for s in self.day_time_slots if s.enabled]
