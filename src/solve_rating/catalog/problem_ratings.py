"""Contest-based problem rating lookup.

Contest ratings are more precise than Easy/Medium/Hard. Problems that never
appeared in a contest get an estimate from their difficulty label.
"""

import json
from pathlib import Path
from typing import Literal

import structlog

from solve_rating.models.problem import Difficulty, Problem
from solve_rating.rating.glicko import round_half_up

logger = structlog.get_logger()

ESTIMATED_RATINGS: dict[Difficulty, int] = {
    Difficulty.EASY: 1300,
    Difficulty.MEDIUM: 1600,
    Difficulty.HARD: 2100,
}


class ProblemRatingCache:
    """Slug → contest rating map, owned and initialized by the caller.

    Args:
        ratings: Optional initial contents.
    """

    def __init__(self, ratings: dict[str, float] | None = None):
        self._ratings: dict[str, float] | None = dict(ratings) if ratings is not None else None

    @property
    def loaded(self) -> bool:
        return self._ratings is not None

    def load(self, path: Path) -> None:
        """Load ratings from a JSON object file once.

        A missing or malformed file leaves an empty map, so lookups fall
        back to difficulty estimates.
        """
        if self._ratings is not None:
            return
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("ratings file must hold a JSON object")
            self._ratings = {slug: float(r) for slug, r in data.items()}
        except (OSError, ValueError) as e:
            logger.warning("problem_ratings_load_failed", path=str(path), error=str(e))
            self._ratings = {}

    def seed(self, ratings: dict[str, float]) -> None:
        """Replace the contents without reading a file."""
        self._ratings = dict(ratings)

    def reset(self) -> None:
        self._ratings = None

    def get(self, slug: str) -> float | None:
        """Contest rating for ``slug``, or None without contest data."""
        if self._ratings is None:
            return None
        return self._ratings.get(slug)

    def get_or_estimate(self, slug: str, difficulty: Difficulty) -> float:
        rating = self.get(slug)
        return rating if rating is not None else ESTIMATED_RATINGS[difficulty]

    def format_rating(self, slug: str, difficulty: Difficulty) -> str:
        """Contest rating as text, or the capitalized difficulty label."""
        rating = self.get(slug)
        if rating is not None:
            return str(round_half_up(rating))
        return difficulty.value.capitalize()


def rating_to_color(rating: float) -> Literal["easy", "medium", "hard"]:
    """Difficulty color bucket: below 1400 easy, below 1900 medium, else hard."""
    if rating < 1400:
        return "easy"
    if rating < 1900:
        return "medium"
    return "hard"


def annotate_ratings(problems: list[Problem], cache: ProblemRatingCache) -> list[Problem]:
    """Fill in each problem's rating from the cache, estimating when absent."""
    return [
        p if p.rating else p.model_copy(
            update={"rating": cache.get_or_estimate(p.slug, p.difficulty)}
        )
        for p in problems
    ]
