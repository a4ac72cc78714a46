"""Interactive calibration: a short run of timed problems that seeds ratings.

A session starts InProgress with a default rating, absorbs one timed attempt
at a time, and is finalized once into global and per-category ratings.
"""

from collections import defaultdict
from datetime import datetime

import numpy as np
import structlog

from solve_rating.errors import CalibrationStateError
from solve_rating.models.problem import RANDOM_CATEGORY, Problem
from solve_rating.models.rating import DEFAULT_RATING, UserRating, UserRatings
from solve_rating.models.session import CalibrationState, TimedSolveAttempt
from solve_rating.rating.glicko import (
    ESTIMATED_RD,
    MIN_RATING,
    calculate_partial_credit,
    determine_time_limit,
    initialize_rating,
    round_half_up,
    update_rating,
)
from solve_rating.storage.ratings import (
    clear_calibration_state,
    get_calibration_state,
    save_calibration_state,
    save_ratings,
)
from solve_rating.storage.store import KeyValueStore

logger = structlog.get_logger()

# Spread across the difficulty range to maximize information gain
CALIBRATION_TARGET_RATINGS = (1200, 1400, 1600, 1800, 2000, 2200)
CANDIDATE_MIN_RATING = 1100
CANDIDATE_MAX_RATING = 2300
TARGET_WINDOW = 100
DEFAULT_PROBLEM_COUNT = 8

MIN_CATEGORY_ATTEMPTS = 2
DEFAULT_CATEGORY = "Array"
CATEGORY_JITTER = 50.0
CATEGORY_RATING_CEILING = 3000.0
CATEGORY_RD_PENALTY = 50.0


def _primary_tag(problem: Problem) -> str | None:
    return problem.tags[0] if problem.tags else None


def _shuffle(items: list, rng: np.random.Generator) -> list:
    """Fisher-Yates shuffle returning a new list."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def select_calibration_problems(
    all_problems: list[Problem],
    count: int = DEFAULT_PROBLEM_COUNT,
    solved_slugs: set[str] | None = None,
    rng: np.random.Generator | None = None,
) -> list[Problem]:
    """Select a diverse set of unseen problems for calibration.

    One problem is picked near each target rating, preferring categories not
    yet used and then popularity. Remaining slots are filled with the most
    popular unused candidates. The result is shuffled so difficulty does not
    climb steadily through the session.

    Args:
        all_problems: Catalog problems.
        count: Number of problems wanted.
        solved_slugs: Slugs the user has already solved.
        rng: Random source for the final shuffle.

    Returns:
        Up to ``count`` problems; fewer when candidates run out.
    """
    solved_slugs = solved_slugs or set()
    rng = rng if rng is not None else np.random.default_rng()

    candidates = [
        p for p in all_problems
        if p.slug not in solved_slugs
        and not p.is_paid
        and p.rating
        and CANDIDATE_MIN_RATING <= p.rating <= CANDIDATE_MAX_RATING
    ]
    if not candidates:
        return []

    selected: list[Problem] = []
    used_categories: set[str] = set()

    for target in CALIBRATION_TARGET_RATINGS:
        if len(selected) >= count:
            break

        nearby = [
            p for p in candidates
            if abs(p.rating - target) <= TARGET_WINDOW and p not in selected
        ]
        if not nearby:
            continue

        preferred = [
            p for p in nearby
            if _primary_tag(p) and _primary_tag(p) not in used_categories
        ]
        pool = preferred or nearby
        chosen = max(pool, key=lambda p: p.popularity)

        selected.append(chosen)
        if _primary_tag(chosen):
            used_categories.add(_primary_tag(chosen))

    if len(selected) < count:
        selected_slugs = {p.slug for p in selected}
        remaining = sorted(
            (p for p in candidates if p.slug not in selected_slugs),
            key=lambda p: p.popularity,
            reverse=True,
        )
        selected.extend(remaining[: count - len(selected)])

    return _shuffle(selected, rng)


def initialize_calibration(username: str, now: datetime | None = None) -> CalibrationState:
    """Start a calibration session from the default rating."""
    now = now or datetime.now()
    return CalibrationState(
        username=username,
        started_at=now,
        attempts=[],
        current_rating=initialize_rating(now),
        is_complete=False,
    )


def create_timed_attempt(
    problem: Problem,
    time_used: float,
    completed: bool,
    now: datetime | None = None,
) -> TimedSolveAttempt:
    """Record a timed calibration attempt against ``problem``."""
    problem_rating = problem.rating or DEFAULT_RATING
    return TimedSolveAttempt(
        slug=problem.slug,
        title=problem.title,
        problem_rating=problem_rating,
        category=_primary_tag(problem) or DEFAULT_CATEGORY,
        time_limit=determine_time_limit(problem_rating),
        time_used=time_used,
        completed=completed,
        timestamp=now or datetime.now(),
    )


def _attempt_outcome(attempt: TimedSolveAttempt) -> float:
    return calculate_partial_credit(attempt.time_used, attempt.time_limit, attempt.completed)


def process_calibration_attempt(
    state: CalibrationState,
    attempt: TimedSolveAttempt,
    now: datetime | None = None,
) -> CalibrationState:
    """Fold one attempt into the session, returning the new state.

    Raises:
        CalibrationStateError: The session was already finalized.
    """
    if state.is_complete:
        raise CalibrationStateError(f"Calibration for {state.username} is already complete")

    new_rating = update_rating(
        state.current_rating, attempt.problem_rating, _attempt_outcome(attempt), now=now
    )
    return state.model_copy(update={
        "attempts": [*state.attempts, attempt],
        "current_rating": new_rating,
    })


def finalize_calibration(
    state: CalibrationState,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> UserRatings:
    """Turn a calibration session into global and per-category ratings.

    The global rating is the session's running rating. Categories with at
    least two attempts are replayed from a fresh default rating in the order
    the attempts were recorded. Single-attempt categories inherit the global
    rating with a random offset of up to 50 and RD raised by 50 (at least 200).
    """
    if not state.attempts:
        return UserRatings(global_=initialize_rating(now), categories={})

    rng = rng if rng is not None else np.random.default_rng()
    global_rating = state.current_rating.model_copy(
        update={"solve_count": len(state.attempts)}
    )

    by_category: dict[str, list[TimedSolveAttempt]] = defaultdict(list)
    for attempt in state.attempts:
        if attempt.category == RANDOM_CATEGORY:
            continue
        by_category[attempt.category].append(attempt)

    categories: dict[str, UserRating] = {}
    for category, attempts in by_category.items():
        if len(attempts) >= MIN_CATEGORY_ATTEMPTS:
            rating = initialize_rating(now)
            for attempt in attempts:
                rating = update_rating(
                    rating, attempt.problem_rating, _attempt_outcome(attempt), now=now
                )
            categories[category] = rating.model_copy(update={"solve_count": len(attempts)})
        else:
            jitter = float(rng.uniform(-CATEGORY_JITTER, CATEGORY_JITTER))
            rating_value = min(
                CATEGORY_RATING_CEILING, max(MIN_RATING, global_rating.rating + jitter)
            )
            categories[category] = global_rating.model_copy(update={
                "rating": round_half_up(rating_value),
                "rd": max(ESTIMATED_RD, global_rating.rd + CATEGORY_RD_PENALTY),
                "solve_count": len(attempts),
            })

    return UserRatings(global_=global_rating, categories=categories)


async def start_calibration(
    store: KeyValueStore, username: str, now: datetime | None = None
) -> CalibrationState:
    """Begin a calibration session and persist it."""
    state = initialize_calibration(username, now=now)
    await save_calibration_state(store, username, state)
    logger.info("calibration_started", username=username)
    return state


async def record_calibration_attempt(
    store: KeyValueStore,
    username: str,
    attempt: TimedSolveAttempt,
    now: datetime | None = None,
) -> CalibrationState:
    """Load the user's session, fold in ``attempt`` and save the result.

    Raises:
        CalibrationStateError: No calibration is in progress.
    """
    state = await get_calibration_state(store, username)
    if state is None:
        raise CalibrationStateError(f"No calibration in progress for {username}")

    state = process_calibration_attempt(state, attempt, now=now)
    await save_calibration_state(store, username, state)
    logger.info(
        "calibration_attempt_recorded",
        username=username,
        slug=attempt.slug,
        attempts=len(state.attempts),
        rating=state.current_rating.rating,
        rd=state.current_rating.rd,
    )
    return state


async def complete_calibration(
    store: KeyValueStore,
    username: str,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> UserRatings:
    """Finalize the user's session, save the ratings and mark the session complete.

    The completed session stays on record so late attempts are rejected;
    ``start_calibration`` replaces it with a fresh run.

    Raises:
        CalibrationStateError: No calibration is in progress, or it was
            already completed.
    """
    state = await get_calibration_state(store, username)
    if state is None:
        raise CalibrationStateError(f"No calibration in progress for {username}")
    if state.is_complete:
        raise CalibrationStateError(f"Calibration for {username} is already complete")

    ratings = finalize_calibration(state, rng=rng, now=now)
    await save_ratings(store, username, ratings)
    await save_calibration_state(
        store, username, state.model_copy(update={"is_complete": True})
    )
    logger.info(
        "calibration_completed",
        username=username,
        attempts=len(state.attempts),
        global_rating=ratings.global_.rating,
        global_rd=ratings.global_.rd,
        categories=sorted(ratings.categories),
    )
    return ratings


async def cancel_calibration(store: KeyValueStore, username: str) -> None:
    """Abandon the user's session without saving any ratings."""
    await clear_calibration_state(store, username)
    logger.info("calibration_cancelled", username=username)
