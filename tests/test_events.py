"""Tests for the event hub."""

from unittest.mock import MagicMock

from solve_rating.events import RATINGS_UPDATED, EventHub


async def test_sync_observer_receives_payload():
    hub = EventHub()
    observer = MagicMock()
    hub.subscribe(RATINGS_UPDATED, observer)

    hub.emit(RATINGS_UPDATED, username="alice")

    observer.assert_called_once_with(username="alice")


async def test_async_observer_scheduled():
    hub = EventHub()
    received = []

    async def observer(username):
        received.append(username)

    hub.subscribe(RATINGS_UPDATED, observer)
    hub.emit(RATINGS_UPDATED, username="alice")
    await hub.drain()

    assert received == ["alice"]


async def test_failing_observers_are_isolated():
    hub = EventHub()
    after = MagicMock()

    async def broken_async(username):
        raise RuntimeError("async boom")

    hub.subscribe(RATINGS_UPDATED, MagicMock(side_effect=RuntimeError("boom")))
    hub.subscribe(RATINGS_UPDATED, broken_async)
    hub.subscribe(RATINGS_UPDATED, after)

    hub.emit(RATINGS_UPDATED, username="alice")
    await hub.drain()

    after.assert_called_once_with(username="alice")


async def test_unsubscribe():
    hub = EventHub()
    observer = MagicMock()
    hub.subscribe(RATINGS_UPDATED, observer)
    hub.unsubscribe(RATINGS_UPDATED, observer)
    hub.unsubscribe(RATINGS_UPDATED, observer)

    hub.emit(RATINGS_UPDATED, username="alice")

    observer.assert_not_called()


def test_async_observer_without_loop_is_dropped():
    hub = EventHub()
    received = []

    async def observer(username):
        received.append(username)

    hub.subscribe(RATINGS_UPDATED, observer)
    hub.emit(RATINGS_UPDATED, username="alice")

    assert received == []


def test_emit_without_observers():
    EventHub().emit("unknown-event", value=1)
