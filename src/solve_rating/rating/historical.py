"""Initial ratings from past solve history.

Historical solve durations are not trustworthy, so each accepted solve only
says "the user could solve a problem near this difficulty". It is replayed
as a draw (0.5) against the problem rather than a win, which moves the
rating toward the problems solved and shrinks RD without inflating the mean.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime

import numpy as np
import structlog

from solve_rating.models.problem import RANDOM_CATEGORY, Problem, Solve
from solve_rating.models.rating import DEFAULT_RATING, UserRating, UserRatings
from solve_rating.models.session import EstimationMetadata
from solve_rating.rating.glicko import (
    ESTIMATED_RD,
    MIN_RATING,
    initialize_rating,
    round_half_up,
    update_rating,
)
from solve_rating.storage.ratings import save_ratings
from solve_rating.storage.store import KeyValueStore

logger = structlog.get_logger()

TIE_OUTCOME = 0.5
MIN_CATEGORY_SOLVES = 3
CATEGORY_JITTER = 50.0
CATEGORY_RATING_CEILING = 3000.0
CATEGORY_RD_PENALTY = 50.0


def _problem_rating(solve: Solve, problems: Mapping[str, Problem]) -> float | None:
    problem = problems.get(solve.slug)
    if problem is None or not problem.rating or problem.rating <= 0:
        return None
    return problem.rating


def rated_accepted_solves(
    solves: Iterable[Solve], problems: Mapping[str, Problem]
) -> list[Solve]:
    """Accepted solves whose problem has a known positive rating."""
    return [
        s for s in solves
        if s.accepted and _problem_rating(s, problems) is not None
    ]


def conservative_estimate(ratings: list[float]) -> float:
    """Mean minus half a population standard deviation; 1500 with no data."""
    if not ratings:
        return DEFAULT_RATING
    values = np.asarray(ratings, dtype=float)
    std = float(values.std()) if len(values) > 1 else 0.0
    return float(values.mean()) - 0.5 * std


def replay_as_ties(
    initial_rating: float,
    solves: Iterable[Solve],
    problems: Mapping[str, Problem],
    now: datetime | None = None,
) -> UserRating:
    """Replay solves in timestamp order as ties, starting from ``initial_rating``.

    Args:
        initial_rating: Starting mean; RD and volatility start at defaults.
        solves: Accepted, rated solves in any order.
        problems: Problem lookup by slug.
        now: Time stamped on every replayed update.

    Returns:
        The rating after the last replayed solve.
    """
    now = now or datetime.now()
    rating = initialize_rating(now).model_copy(update={"rating": initial_rating})
    for solve in sorted(solves, key=lambda s: s.timestamp):
        problem_rating = _problem_rating(solve, problems)
        if not solve.accepted or problem_rating is None:
            continue
        rating = update_rating(rating, problem_rating, TIE_OUTCOME, now=now)
    return rating


def group_solves_by_category(
    solves: Iterable[Solve], problems: Mapping[str, Problem]
) -> dict[str, list[Solve]]:
    """Accepted, rated solves keyed by every tag their problem carries."""
    groups: dict[str, list[Solve]] = defaultdict(list)
    for solve in rated_accepted_solves(solves, problems):
        for tag in problems[solve.slug].tags:
            if tag == RANDOM_CATEGORY:
                continue
            groups[tag].append(solve)
    return dict(groups)


def estimate_ratings_from_history(
    solves: list[Solve],
    problems: Mapping[str, Problem],
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> UserRatings:
    """Compute global and per-category ratings from solve history.

    Categories with at least three rated solves are replayed on their own.
    Categories with one or two inherit the global rating with a small random
    offset and extra uncertainty. Categories without solves get no entry.
    """
    rng = rng if rng is not None else np.random.default_rng()
    now = now or datetime.now()

    kept = rated_accepted_solves(solves, problems)
    ratings = [_problem_rating(s, problems) for s in kept]
    global_rating = replay_as_ties(conservative_estimate(ratings), kept, problems, now=now)

    categories: dict[str, UserRating] = {}
    for category, category_solves in group_solves_by_category(kept, problems).items():
        if len(category_solves) >= MIN_CATEGORY_SOLVES:
            category_ratings = [_problem_rating(s, problems) for s in category_solves]
            categories[category] = replay_as_ties(
                conservative_estimate(category_ratings), category_solves, problems, now=now
            )
        else:
            jitter = float(rng.uniform(-CATEGORY_JITTER, CATEGORY_JITTER))
            rating = min(CATEGORY_RATING_CEILING, max(MIN_RATING, global_rating.rating + jitter))
            categories[category] = global_rating.model_copy(update={
                "rating": round_half_up(rating),
                "rd": max(ESTIMATED_RD, global_rating.rd + CATEGORY_RD_PENALTY),
                "solve_count": len(category_solves),
            })

    return UserRatings(global_=global_rating, categories=categories)


async def initialize_ratings_from_history(
    username: str,
    solves: list[Solve],
    problems: Mapping[str, Problem],
    store: KeyValueStore,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> UserRatings:
    """Estimate ratings from history and persist them for ``username``."""
    ratings = estimate_ratings_from_history(solves, problems, rng=rng, now=now)
    await save_ratings(store, username, ratings)
    logger.info(
        "ratings_initialized_from_history",
        username=username,
        solves=ratings.global_.solve_count,
        global_rating=ratings.global_.rating,
        global_rd=ratings.global_.rd,
        categories=sorted(ratings.categories),
    )
    return ratings


def get_estimation_metadata(ratings: UserRatings, solves: list[Solve]) -> EstimationMetadata:
    """Describe how much history backs a set of ratings."""
    accepted = sum(1 for s in solves if s.accepted)
    if accepted < 10:
        confidence = "low"
    elif accepted < 30:
        confidence = "moderate"
    else:
        confidence = "high"
    return EstimationMetadata(
        total_solves=accepted,
        categories_with_data=list(ratings.categories),
        confidence=confidence,
    )
