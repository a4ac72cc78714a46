from datetime import datetime

import pytest

from solve_rating.models.problem import Problem, Solve
from solve_rating.storage.store import MemoryStore

NOW = datetime(2026, 3, 1, 12, 0, 0)


def make_problem(slug: str, rating: float | None, tags=None, popularity=0.0, is_paid=False):
    return Problem(
        slug=slug,
        title=slug.replace("-", " ").title(),
        rating=rating,
        tags=tags or [],
        popularity=popularity,
        is_paid=is_paid,
    )


def make_solve(slug: str, day: int = 1, status="Accepted", rating=None, tags=None, time_used=None):
    return Solve(
        slug=slug,
        status=status,
        timestamp=datetime(2026, 1, day, 9, 0, 0),
        rating=rating,
        tags=tags or [],
        time_used=time_used,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return MemoryStore()
