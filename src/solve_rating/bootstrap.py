"""Startup rating backfill for users who already have solve history."""

from datetime import datetime

import numpy as np
import structlog

from solve_rating.catalog.problem_ratings import ProblemRatingCache, annotate_ratings
from solve_rating.catalog.problems import ProblemCatalog, problem_map
from solve_rating.config import Settings, get_settings
from solve_rating.models.rating import UserRatings
from solve_rating.rating.historical import initialize_ratings_from_history
from solve_rating.storage.ratings import has_ratings
from solve_rating.storage.store import KeyValueStore

logger = structlog.get_logger()


async def ensure_ratings(
    username: str,
    store: KeyValueStore,
    catalog: ProblemCatalog,
    rating_cache: ProblemRatingCache | None = None,
    settings: Settings | None = None,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> UserRatings | None:
    """Backfill ratings from history when the user has none yet.

    Users with fewer accepted solves than ``history_min_accepted_solves``
    are left without ratings; they need calibration instead.

    Args:
        username: User to initialize.
        store: Storage collaborator.
        catalog: Source of problems and the user's solves.
        rating_cache: Contest ratings used to fill unrated problems.
        settings: Application settings.
        rng: Random source for category jitter.
        now: Update time.

    Returns:
        The new ratings, or None if nothing was initialized.
    """
    settings = settings or get_settings()

    if await has_ratings(store, username):
        logger.debug("ratings_present", username=username)
        return None

    solves = await catalog.get_all_solves(username)
    accepted = [s for s in solves if s.accepted]
    if len(accepted) < settings.history_min_accepted_solves:
        logger.info(
            "calibration_needed",
            username=username,
            accepted_solves=len(accepted),
        )
        return None

    problems = await catalog.get_all_problems()
    if rating_cache is not None:
        problems = annotate_ratings(problems, rating_cache)

    return await initialize_ratings_from_history(
        username, solves, problem_map(problems), store, rng=rng, now=now
    )
