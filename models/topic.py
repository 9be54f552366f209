"""Topic and test-date models (Pydantic v2)."""

from datetime import date

from pydantic import BaseModel, Field

from models.identity import normalize_identity


class Topic(BaseModel):
    """A revision topic. The name is the identity key for schedule entries."""

    name: str = Field(max_length=200)
    subject_id: str

    @property
    def key(self) -> str:
        return normalize_identity(self.name)


class TestDate(BaseModel):
    """A test for one subject. The test day is fully blocked for that subject."""

    __test__ = False  # keep pytest from collecting this model

    subject_id: str
    test_date: date
    test_type: str = Field("Test", max_length=50)
