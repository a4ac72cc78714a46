"""User ratings and calibration state persistence."""

import structlog

from solve_rating.models.rating import UserRatings
from solve_rating.models.session import CalibrationState
from solve_rating.rating.glicko import initialize_rating
from solve_rating.storage.store import (
    CALIBRATION_STORE,
    RATINGS_STORE,
    KeyValueStore,
    calibration_key,
    ratings_key,
)

logger = structlog.get_logger()


async def get_ratings(store: KeyValueStore, username: str) -> UserRatings | None:
    """Load a user's ratings, or None if none were saved."""
    data = await store.get(RATINGS_STORE, ratings_key(username))
    if data is None:
        return None
    return UserRatings.model_validate(data)


async def save_ratings(store: KeyValueStore, username: str, ratings: UserRatings) -> None:
    await store.put(
        RATINGS_STORE, ratings.model_dump(mode="json", by_alias=True), ratings_key(username)
    )


async def initialize_ratings(store: KeyValueStore, username: str) -> UserRatings:
    """Save and return default ratings (global only, no categories)."""
    ratings = UserRatings(global_=initialize_rating(), categories={})
    await save_ratings(store, username, ratings)
    logger.info("ratings_initialized", username=username)
    return ratings


async def has_ratings(store: KeyValueStore, username: str) -> bool:
    return await get_ratings(store, username) is not None


async def get_calibration_state(store: KeyValueStore, username: str) -> CalibrationState | None:
    """Load the in-progress calibration, or None if there is none."""
    data = await store.get(CALIBRATION_STORE, calibration_key(username))
    if data is None:
        return None
    return CalibrationState.model_validate(data)


async def save_calibration_state(
    store: KeyValueStore, username: str, state: CalibrationState
) -> None:
    await store.put(CALIBRATION_STORE, state.model_dump(mode="json"), calibration_key(username))


async def clear_calibration_state(store: KeyValueStore, username: str) -> None:
    await store.delete(CALIBRATION_STORE, calibration_key(username))
