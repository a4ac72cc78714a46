"""Catalog reference data and historical solve records."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

ACCEPTED = "Accepted"
RANDOM_CATEGORY = "Random"


class Difficulty(StrEnum):
    """Official difficulty label of a problem."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class Problem(BaseModel):
    """A catalog problem. Immutable reference data."""

    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    difficulty: Difficulty = Difficulty.MEDIUM
    rating: float | None = None
    tags: list[str] = Field(default_factory=list)
    is_paid: bool = False
    popularity: float = 0.0


class Solve(BaseModel):
    """A historical attempt. Append-only; never mutated."""

    model_config = ConfigDict(frozen=True)

    slug: str
    status: str
    timestamp: datetime
    rating: float | None = None
    tags: list[str] = Field(default_factory=list)
    time_used: float | None = None  # seconds

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED
