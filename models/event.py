"""Blocked event model (Pydantic v2).

Events only carve unavailable time out of the calendar. They are never
schedule entries themselves.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, model_validator

from models.identity import normalize_identity


class BlockedEvent(BaseModel):
    """A user commitment (club, match, appointment) that blocks study time."""

    id: str
    title: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Event '{self.title}': end_time {self.end_time} is not after "
                f"start_time {self.start_time}"
            )
        return self

    @property
    def key(self) -> str:
        return normalize_identity(self.title)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)
