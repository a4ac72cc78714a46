"""FastAPI application entry point."""

import logging
import os

import structlog
import uvicorn
from fastapi import FastAPI

from solve_rating.api.routes import router
from solve_rating.catalog.problem_ratings import ProblemRatingCache
from solve_rating.catalog.problems import ProblemCatalog, StaticCatalog
from solve_rating.config import Settings, get_settings
from solve_rating.events import EventHub
from solve_rating.storage.store import JsonFileStore, KeyValueStore

# Configure structlog based on environment
is_production = os.getenv("ENV", "development").lower() == "production"

if is_production:
    # Production: JSON format for machine parsing
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
else:
    # Development: console format for human readability
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_app(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    catalog: ProblemCatalog | None = None,
    rating_cache: ProblemRatingCache | None = None,
) -> FastAPI:
    """Build the API app around its storage and catalog collaborators."""
    settings = settings or get_settings()
    app = FastAPI(title="Solve Rating", version="0.1.0")
    app.state.settings = settings
    app.state.store = store or JsonFileStore(settings.store_dir)
    app.state.catalog = catalog or StaticCatalog()
    if rating_cache is None:
        rating_cache = ProblemRatingCache()
        if settings.problem_ratings_path:
            # Contest ratings must be in place before any problem is annotated
            rating_cache.load(settings.problem_ratings_path)
    app.state.rating_cache = rating_cache
    app.state.events = EventHub()
    app.include_router(router)
    return app


def main() -> None:
    """Run the application."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
