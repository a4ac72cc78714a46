"""Calibration and timed solve session models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from solve_rating.models.problem import Problem
from solve_rating.models.rating import UserRating


class TimedSolveAttempt(BaseModel):
    """One timed calibration problem. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    problem_rating: float
    category: str
    time_limit: float  # seconds
    time_used: float  # seconds
    completed: bool
    timestamp: datetime = Field(default_factory=datetime.now)


class CalibrationState(BaseModel):
    """Progress of an interactive calibration session."""

    username: str
    started_at: datetime = Field(default_factory=datetime.now)
    attempts: list[TimedSolveAttempt] = Field(default_factory=list)
    current_rating: UserRating = Field(default_factory=UserRating)
    is_complete: bool = False


class SolveSession(BaseModel):
    """The active timed solve for a user."""

    username: str
    problem: Problem
    time_limit: float  # seconds
    started_at: datetime = Field(default_factory=datetime.now)
    is_active: bool = True

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        """Seconds since the session started."""
        return ((now or datetime.now()) - self.started_at).total_seconds()


class EstimationMetadata(BaseModel):
    """Summary of a history-based rating estimate for display."""

    total_solves: int
    categories_with_data: list[str]
    confidence: Literal["low", "moderate", "high"]
