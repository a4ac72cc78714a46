"""REST API routes for ratings, calibration and solve sessions."""

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from solve_rating.bootstrap import ensure_ratings
from solve_rating.catalog.problem_ratings import (
    ProblemRatingCache,
    annotate_ratings,
    rating_to_color,
)
from solve_rating.catalog.problems import ProblemCatalog
from solve_rating.config import Settings, get_settings
from solve_rating.errors import CalibrationStateError
from solve_rating.events import EventHub
from solve_rating.models.problem import Problem, Solve
from solve_rating.rating.calibration import (
    cancel_calibration,
    complete_calibration,
    create_timed_attempt,
    record_calibration_attempt,
    select_calibration_problems,
    start_calibration,
)
from solve_rating.rating.glicko import (
    determine_time_limit,
    format_time_limit,
    get_lower_bound_rating,
    get_rating_display_text,
)
from solve_rating.rating.sync import update_ratings_from_solves
from solve_rating.storage.ratings import get_ratings
from solve_rating.storage.solve_session import end_solve_session, start_solve_session
from solve_rating.storage.store import KeyValueStore

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class AttemptRequest(BaseModel):
    slug: str
    time_used: float
    completed: bool


class SessionRequest(BaseModel):
    slug: str


def _store(request: Request) -> KeyValueStore:
    return request.app.state.store


def _catalog(request: Request) -> ProblemCatalog:
    return request.app.state.catalog


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _rating_cache(request: Request) -> ProblemRatingCache:
    cache = getattr(request.app.state, "rating_cache", None)
    return cache if cache is not None else ProblemRatingCache()


def _events(request: Request) -> EventHub | None:
    return getattr(request.app.state, "events", None)


async def _problem_or_404(request: Request, slug: str) -> Problem:
    problem = await _catalog(request).get_problem(slug)
    if problem is None:
        raise HTTPException(status_code=404, detail="Problem not found")
    return annotate_ratings([problem], _rating_cache(request))[0]


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/ratings/{username}")
async def read_ratings(username: str, request: Request) -> dict:
    """Stored ratings with display helpers for the global rating."""
    ratings = await get_ratings(_store(request), username)
    if ratings is None:
        raise HTTPException(status_code=404, detail="No ratings for user")
    data = ratings.model_dump(mode="json", by_alias=True)
    data["display"] = get_rating_display_text(ratings.global_.rating, ratings.global_.rd)
    data["lower_bound"] = get_lower_bound_rating(ratings.global_.rating, ratings.global_.rd)
    return data


@router.post("/ratings/{username}/solves")
async def sync_solves(username: str, solves: list[Solve], request: Request) -> dict:
    """Apply newly synced solves to the user's ratings."""
    ratings = await update_ratings_from_solves(
        _store(request), username, solves, events=_events(request)
    )
    if ratings is None:
        return {"updated": False}
    return {"updated": True, "ratings": ratings.model_dump(mode="json", by_alias=True)}


@router.post("/ratings/{username}/bootstrap")
async def bootstrap_ratings(username: str, request: Request) -> dict:
    """Backfill ratings from solve history if the user has none."""
    ratings = await ensure_ratings(
        username,
        _store(request),
        _catalog(request),
        rating_cache=_rating_cache(request),
        settings=_settings(request),
    )
    if ratings is None:
        return {"initialized": False}
    return {"initialized": True, "ratings": ratings.model_dump(mode="json", by_alias=True)}


@router.post("/calibration/{username}/start")
async def calibration_start(username: str, request: Request) -> dict:
    state = await start_calibration(_store(request), username)
    return state.model_dump(mode="json")


@router.get("/calibration/{username}/problems")
async def calibration_problems(
    username: str, request: Request, count: int | None = None
) -> list[dict]:
    """Pick calibration problems the user has not solved yet."""
    catalog = _catalog(request)
    cache = _rating_cache(request)
    solves = await catalog.get_all_solves(username)
    problems = select_calibration_problems(
        annotate_ratings(await catalog.get_all_problems(), cache),
        count=count or _settings(request).calibration_problem_count,
        solved_slugs={s.slug for s in solves if s.accepted},
    )
    return [
        {
            **p.model_dump(mode="json"),
            "rating_label": cache.format_rating(p.slug, p.difficulty),
            "color": rating_to_color(p.rating),
            "time_limit": format_time_limit(determine_time_limit(p.rating)),
        }
        for p in problems
    ]


@router.post("/calibration/{username}/attempts")
async def calibration_attempt(username: str, body: AttemptRequest, request: Request) -> dict:
    problem = await _problem_or_404(request, body.slug)
    attempt = create_timed_attempt(problem, body.time_used, body.completed)
    try:
        state = await record_calibration_attempt(_store(request), username, attempt)
    except CalibrationStateError as e:
        logger.warning("calibration_conflict", username=username, error=str(e))
        raise HTTPException(status_code=409, detail=str(e))
    return state.model_dump(mode="json")


@router.post("/calibration/{username}/finalize")
async def calibration_finalize(username: str, request: Request) -> dict:
    try:
        ratings = await complete_calibration(_store(request), username)
    except CalibrationStateError as e:
        logger.warning("calibration_conflict", username=username, error=str(e))
        raise HTTPException(status_code=409, detail=str(e))
    return ratings.model_dump(mode="json", by_alias=True)


@router.delete("/calibration/{username}")
async def calibration_cancel(username: str, request: Request) -> dict:
    await cancel_calibration(_store(request), username)
    return {"status": "cancelled"}


@router.post("/sessions/{username}")
async def session_start(username: str, body: SessionRequest, request: Request) -> dict:
    problem = await _problem_or_404(request, body.slug)
    session = await start_solve_session(
        _store(request), username, problem, events=_events(request)
    )
    return session.model_dump(mode="json")


@router.delete("/sessions/{username}")
async def session_end(username: str, request: Request) -> dict:
    await end_solve_session(_store(request), username, events=_events(request))
    return {"status": "ended"}
