"""Homework model (Pydantic v2)."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from models.identity import normalize_identity


class Homework(BaseModel):
    """A homework assignment that must be worked on strictly before its due date."""

    id: Optional[str] = None
    title: str = Field(min_length=1)
    subject: str
    due_date: date
    duration: Optional[int] = Field(None, ge=5)   # minutes; None → configured default
    description: Optional[str] = None

    @property
    def key(self) -> str:
        return normalize_identity(self.title)

    def resolved_duration(self, default_minutes: int) -> int:
        """Duration in minutes, falling back to the configured default."""
        return self.duration or default_minutes
