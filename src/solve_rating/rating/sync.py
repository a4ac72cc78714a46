"""Apply newly synced solves to a user's stored ratings."""

from datetime import datetime

import structlog

from solve_rating.events import RATINGS_UPDATED, EventHub
from solve_rating.models.problem import RANDOM_CATEGORY, Solve
from solve_rating.models.rating import UserRatings
from solve_rating.rating.glicko import (
    ESTIMATED_RD,
    calculate_partial_credit,
    determine_time_limit,
    initialize_rating,
    update_rating,
)
from solve_rating.storage.ratings import get_ratings, save_ratings
from solve_rating.storage.store import KeyValueStore

logger = structlog.get_logger()

ACCEPTED_OUTCOME = 1.0
# Harsh on purpose: an untimed failure should never inflate a rating
FAILED_OUTCOME = 0.1


def solve_outcome(solve: Solve) -> float:
    """Outcome score for a solve.

    Timed solves earn partial credit against the standard time limit.
    Untimed solves fall back to 1.0 when accepted and 0.1 otherwise.
    """
    if solve.time_used and solve.time_used > 0:
        time_limit = determine_time_limit(solve.rating)
        return calculate_partial_credit(solve.time_used, time_limit, solve.accepted)
    return ACCEPTED_OUTCOME if solve.accepted else FAILED_OUTCOME


def _is_rated(solve: Solve) -> bool:
    return bool(solve.rating) and solve.rating > 0


def apply_solve(ratings: UserRatings, solve: Solve, now: datetime | None = None) -> UserRatings:
    """Return ``ratings`` with the global and every tagged category updated.

    Missing categories are created from the current global rating with RD
    of at least 200. ``ratings`` itself is left untouched.
    """
    now = now or datetime.now()
    outcome = solve_outcome(solve)

    global_rating = update_rating(ratings.global_, solve.rating, outcome, now=now)
    categories = dict(ratings.categories)

    if not solve.tags:
        logger.warning("solve_without_tags", slug=solve.slug)

    for tag in solve.tags:
        if tag == RANDOM_CATEGORY:
            continue

        category_rating = categories.get(tag)
        if category_rating is None:
            category_rating = initialize_rating(now).model_copy(update={
                "rating": global_rating.rating,
                "rd": max(ESTIMATED_RD, global_rating.rd),
            })
            logger.debug(
                "category_rating_created",
                category=tag,
                rating=category_rating.rating,
                rd=category_rating.rd,
            )

        categories[tag] = update_rating(category_rating, solve.rating, outcome, now=now)

    return UserRatings(global_=global_rating, categories=categories)


async def update_ratings_from_solves(
    store: KeyValueStore,
    username: str,
    solves: list[Solve],
    events: EventHub | None = None,
    now: datetime | None = None,
) -> UserRatings | None:
    """Apply solves in order and persist once.

    Solves without a positive rating are skipped. Nothing is saved (and
    None is returned) when no solve could be applied. Storage errors
    propagate; nothing computed in memory is kept on failure.

    Args:
        store: Storage collaborator.
        username: User whose ratings to update.
        solves: New solves, oldest first.
        events: Hub notified with ``RATINGS_UPDATED`` after saving.
        now: Update time.

    Returns:
        The saved ratings, or None if nothing changed.
    """
    rated = [s for s in solves if _is_rated(s)]
    for solve in solves:
        if not _is_rated(solve):
            logger.info("solve_skipped_without_rating", slug=solve.slug)
    if not rated:
        return None

    ratings = await get_ratings(store, username)
    if ratings is None:
        logger.info("ratings_missing_using_defaults", username=username)
        ratings = UserRatings(global_=initialize_rating(now), categories={})

    for solve in rated:
        ratings = apply_solve(ratings, solve, now=now)

    await save_ratings(store, username, ratings)

    logger.info(
        "ratings_updated",
        username=username,
        solves=len(rated),
        global_rating=ratings.global_.rating,
        global_rd=ratings.global_.rd,
        categories=sorted(ratings.categories),
    )
    if events is not None:
        events.emit(RATINGS_UPDATED, username=username, ratings=ratings)
    return ratings


async def update_ratings_from_solve(
    store: KeyValueStore,
    username: str,
    solve: Solve,
    events: EventHub | None = None,
    now: datetime | None = None,
) -> UserRatings | None:
    """Apply a single solve. Replaying the same solve twice counts it twice."""
    return await update_ratings_from_solves(store, username, [solve], events=events, now=now)
