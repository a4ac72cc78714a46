"""Best-effort notifications for presentation layers."""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger()

RATINGS_UPDATED = "ratings-updated"
SOLVE_SESSION_STARTED = "solve-session-started"
SOLVE_SESSION_ENDED = "solve-session-ended"


class EventHub:
    """Dispatches named events to registered observers.

    Observers may be plain callables or coroutine functions. Coroutines are
    scheduled as background tasks when a loop is running, so ``emit`` never
    waits on them. Observer failures are logged and never reach the emitter.
    """

    def __init__(self) -> None:
        self._callbacks: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, name: str, callback: Callable[..., Any]) -> None:
        """Register a callback for an event.

        Args:
            name: Event name, e.g. ``RATINGS_UPDATED``.
            callback: Callable(**payload), sync or async.
        """
        self._callbacks[name].append(callback)

    def unsubscribe(self, name: str, callback: Callable[..., Any]) -> None:
        if callback in self._callbacks[name]:
            self._callbacks[name].remove(callback)

    def emit(self, name: str, **payload: Any) -> None:
        """Notify every observer of ``name``."""
        for callback in list(self._callbacks[name]):
            try:
                result = callback(**payload)
            except Exception:
                logger.exception("event_observer_failed", event_name=name)
                continue
            if inspect.isawaitable(result):
                self._schedule(name, result)

    def _schedule(self, name: str, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "event_observer_dropped", event_name=name, reason="No running event loop"
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = loop.create_task(self._run(name, awaitable))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, name: str, awaitable) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("event_observer_failed", event_name=name)

    async def drain(self) -> None:
        """Wait for scheduled observer tasks to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
