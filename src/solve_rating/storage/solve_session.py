"""Active solve session persistence."""

from datetime import datetime

import structlog

from solve_rating.events import SOLVE_SESSION_ENDED, SOLVE_SESSION_STARTED, EventHub
from solve_rating.models.problem import Problem
from solve_rating.models.rating import DEFAULT_RATING
from solve_rating.models.session import SolveSession
from solve_rating.rating.glicko import determine_time_limit
from solve_rating.storage.store import SESSION_STORE, KeyValueStore, session_key

logger = structlog.get_logger()


async def start_solve_session(
    store: KeyValueStore,
    username: str,
    problem: Problem,
    events: EventHub | None = None,
    now: datetime | None = None,
) -> SolveSession:
    """Start (or replace) the user's timed session for ``problem``."""
    session = SolveSession(
        username=username,
        problem=problem,
        time_limit=determine_time_limit(problem.rating or DEFAULT_RATING),
        started_at=now or datetime.now(),
        is_active=True,
    )
    await store.put(SESSION_STORE, session.model_dump(mode="json"), session_key(username))
    logger.info("solve_session_started", username=username, slug=problem.slug)
    if events is not None:
        events.emit(SOLVE_SESSION_STARTED, username=username, session=session)
    return session


async def get_active_solve_session(store: KeyValueStore, username: str) -> SolveSession | None:
    data = await store.get(SESSION_STORE, session_key(username))
    if data is None:
        return None
    return SolveSession.model_validate(data)


async def end_solve_session(
    store: KeyValueStore, username: str, events: EventHub | None = None
) -> None:
    await store.delete(SESSION_STORE, session_key(username))
    logger.info("solve_session_ended", username=username)
    if events is not None:
        events.emit(SOLVE_SESSION_ENDED, username=username)


async def mark_session_inactive(store: KeyValueStore, username: str) -> None:
    """Keep an aborted session on record but flag it inactive."""
    session = await get_active_solve_session(store, username)
    if session is not None:
        session.is_active = False
        await store.put(SESSION_STORE, session.model_dump(mode="json"), session_key(username))


async def has_active_solve_session(store: KeyValueStore, username: str) -> bool:
    session = await get_active_solve_session(store, username)
    return session is not None and session.is_active
