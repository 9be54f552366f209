"""Advisory inputs: peak-performance signal and AI topic analysis (Pydantic v2)."""

from pydantic import BaseModel, Field, field_validator

from models.clock import parse_clock


class TimeWindowStat(BaseModel):
    """Historical performance in one time-of-day window."""

    label: str                     # "morning", "evening", ...
    start: str                     # "HH:MM"
    end: str                       # "HH:MM"
    completion_rate: float = Field(ge=0.0, le=1.0)
    avg_difficulty: float = Field(0.0, ge=0.0, le=10.0)

    @field_validator("start", "end")
    @classmethod
    def _clock(cls, v: str) -> str:
        parse_clock(v)
        return v.strip()

    def contains(self, clock: str) -> bool:
        """True if the clock time falls inside [start, end)."""
        t = parse_clock(clock)
        return parse_clock(self.start) <= t < parse_clock(self.end)


class PeakPerformanceSignal(BaseModel):
    """Best and worst time-of-day windows. Biases placement only."""

    best: TimeWindowStat
    worst: TimeWindowStat
    recommendation: str = ""


class TopicPriority(BaseModel):
    topic_name: str
    priority_score: float = Field(ge=0.0, le=10.0)
    reasoning: str = ""


class DifficultTopic(BaseModel):
    topic_name: str
    reason: str = ""
    study_suggestion: str = ""


class TopicAnalysis(BaseModel):
    """Prior topic analysis: focus priorities and known difficult topics."""

    priorities: list[TopicPriority] = Field(default_factory=list)
    difficult_topics: list[DifficultTopic] = Field(default_factory=list)
