"""Subject model and per-subject study mode (Pydantic v2)."""

from enum import Enum

from pydantic import BaseModel, Field


class StudyMode(str, Enum):
    """Intensity tier of a subject (also the overall timetable baseline)."""

    SHORT_TERM_EXAM = "short-term-exam"
    LONG_TERM_EXAM = "long-term-exam"
    NO_EXAM = "no-exam"


class Subject(BaseModel):
    """A subject the student revises, e.g. GCSE Mathematics (AQA)."""

    id: str
    name: str = Field(max_length=100)
    exam_board: str = Field("", max_length=50)
    mode: StudyMode = StudyMode.NO_EXAM
