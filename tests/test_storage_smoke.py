"""Smoke tests for the storage layer."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from conftest import make_problem
from solve_rating.events import SOLVE_SESSION_ENDED, SOLVE_SESSION_STARTED, EventHub
from solve_rating.models.rating import UserRating, UserRatings
from solve_rating.models.session import CalibrationState
from solve_rating.storage.ratings import (
    clear_calibration_state,
    get_calibration_state,
    get_ratings,
    has_ratings,
    initialize_ratings,
    save_calibration_state,
    save_ratings,
)
from solve_rating.storage.solve_session import (
    end_solve_session,
    get_active_solve_session,
    has_active_solve_session,
    mark_session_inactive,
    start_solve_session,
)
from solve_rating.storage.store import RATINGS_STORE, JsonFileStore, MemoryStore, ratings_key


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(tmp_path)


class TestKeyValueStores:
    async def test_get_missing_returns_none(self, any_store):
        assert await any_store.get("things", "nobody|ratings") is None

    async def test_put_get_delete(self, any_store):
        await any_store.put("things", {"a": [1, 2]}, "alice|ratings")
        assert await any_store.get("things", "alice|ratings") == {"a": [1, 2]}

        await any_store.delete("things", "alice|ratings")
        assert await any_store.get("things", "alice|ratings") is None

    async def test_delete_missing_is_noop(self, any_store):
        await any_store.delete("things", "ghost|ratings")

    async def test_stores_are_separate(self, any_store):
        await any_store.put("one", {"v": 1}, "k")
        await any_store.put("two", {"v": 2}, "k")
        assert await any_store.get("one", "k") == {"v": 1}
        assert await any_store.get("two", "k") == {"v": 2}

    async def test_memory_store_copies_values(self):
        store = MemoryStore()
        value = {"items": [1]}
        await store.put("things", value, "k")
        value["items"].append(2)
        loaded = await store.get("things", "k")
        loaded["items"].append(3)
        assert await store.get("things", "k") == {"items": [1]}

    async def test_json_store_file_layout(self, tmp_path):
        store = JsonFileStore(tmp_path)
        await store.put("user-ratings", {"x": 1}, "a/b|ratings")
        files = list((tmp_path / "user-ratings").glob("*.json"))
        assert len(files) == 1
        assert "/" not in files[0].name
        assert "|" not in files[0].name


class TestRatingsRepository:
    async def test_round_trip_uses_global_key(self, store, now):
        ratings = UserRatings(
            global_=UserRating(rating=1620, rd=140, last_updated=now, solve_count=3),
            categories={"Array": UserRating(rating=1700, rd=200, last_updated=now)},
        )
        await save_ratings(store, "alice", ratings)

        raw = await store.get(RATINGS_STORE, ratings_key("alice"))
        assert raw["global"]["rating"] == 1620
        assert await get_ratings(store, "alice") == ratings

    async def test_initialize_ratings(self, store):
        assert not await has_ratings(store, "alice")
        ratings = await initialize_ratings(store, "alice")
        assert ratings.global_.rating == 1500
        assert ratings.categories == {}
        assert await has_ratings(store, "alice")

    async def test_missing_ratings(self, store):
        assert await get_ratings(store, "nobody") is None

    async def test_calibration_state(self, store, now):
        state = CalibrationState(username="alice", started_at=now)
        await save_calibration_state(store, "alice", state)
        assert await get_calibration_state(store, "alice") == state

        await clear_calibration_state(store, "alice")
        assert await get_calibration_state(store, "alice") is None


class TestSolveSessions:
    async def test_lifecycle(self, store, now):
        events = EventHub()
        started, ended = MagicMock(), MagicMock()
        events.subscribe(SOLVE_SESSION_STARTED, started)
        events.subscribe(SOLVE_SESSION_ENDED, ended)
        problem = make_problem("two-sum", 1200, tags=["Array"])

        session = await start_solve_session(store, "alice", problem, events=events, now=now)

        assert session.time_limit == 1200
        assert session.elapsed_seconds(now + timedelta(minutes=5)) == 300
        assert await get_active_solve_session(store, "alice") == session
        assert await has_active_solve_session(store, "alice")
        started.assert_called_once_with(username="alice", session=session)

        await end_solve_session(store, "alice", events=events)

        assert await get_active_solve_session(store, "alice") is None
        ended.assert_called_once_with(username="alice")

    async def test_failing_observers_do_not_fail_session(self, store, now):
        events = EventHub()
        events.subscribe(SOLVE_SESSION_STARTED, MagicMock(side_effect=RuntimeError("ui gone")))
        events.subscribe(SOLVE_SESSION_ENDED, MagicMock(side_effect=RuntimeError("ui gone")))

        session = await start_solve_session(
            store, "alice", make_problem("p", 1500), events=events, now=now
        )
        assert await get_active_solve_session(store, "alice") == session

        await end_solve_session(store, "alice", events=events)
        assert await get_active_solve_session(store, "alice") is None

    async def test_mark_inactive(self, store, now):
        await start_solve_session(store, "alice", make_problem("p", None), now=now)
        await mark_session_inactive(store, "alice")

        session = await get_active_solve_session(store, "alice")
        assert session is not None
        assert session.is_active is False
        assert not await has_active_solve_session(store, "alice")

    async def test_mark_inactive_without_session(self, store):
        await mark_session_inactive(store, "nobody")
        assert await get_active_solve_session(store, "nobody") is None
