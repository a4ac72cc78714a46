"""Tests for contest rating lookup and problem annotation."""

import json

import pytest

from conftest import make_problem
from solve_rating.catalog.problem_ratings import (
    ProblemRatingCache,
    annotate_ratings,
    rating_to_color,
)
from solve_rating.models.problem import Difficulty


@pytest.fixture
def ratings_file(tmp_path):
    path = tmp_path / "ratings.json"
    path.write_text(json.dumps({"two-sum": 1200, "median-of-two-arrays": 2300.4}))
    return path


class TestProblemRatingCache:
    def test_unloaded_cache_has_no_ratings(self):
        cache = ProblemRatingCache()
        assert not cache.loaded
        assert cache.get("two-sum") is None

    def test_load_from_file(self, ratings_file):
        cache = ProblemRatingCache()
        cache.load(ratings_file)
        assert cache.loaded
        assert cache.get("two-sum") == 1200
        assert cache.get("unknown") is None

    def test_load_only_once(self, ratings_file, tmp_path):
        cache = ProblemRatingCache()
        cache.load(ratings_file)
        cache.load(tmp_path / "missing.json")
        assert cache.get("two-sum") == 1200

    @pytest.mark.parametrize("content", [None, "not json", "[1, 2]"])
    def test_bad_file_falls_back_to_estimates(self, tmp_path, content):
        path = tmp_path / "ratings.json"
        if content is not None:
            path.write_text(content)
        cache = ProblemRatingCache()
        cache.load(path)
        assert cache.loaded
        assert cache.get_or_estimate("two-sum", Difficulty.HARD) == 2100

    def test_seed_and_reset(self):
        cache = ProblemRatingCache()
        cache.seed({"a": 1450})
        assert cache.get("a") == 1450
        cache.reset()
        assert not cache.loaded
        assert cache.get("a") is None

    @pytest.mark.parametrize(
        ("difficulty", "expected"),
        [(Difficulty.EASY, 1300), (Difficulty.MEDIUM, 1600), (Difficulty.HARD, 2100)],
    )
    def test_estimates(self, difficulty, expected):
        assert ProblemRatingCache({}).get_or_estimate("x", difficulty) == expected

    def test_format_rating(self, ratings_file):
        cache = ProblemRatingCache()
        cache.load(ratings_file)
        assert cache.format_rating("median-of-two-arrays", Difficulty.HARD) == "2300"
        assert cache.format_rating("unknown", Difficulty.EASY) == "Easy"

    def test_format_rating_rounds_halves_up(self):
        cache = ProblemRatingCache({"two-sum": 1234.5})
        assert cache.format_rating("two-sum", Difficulty.EASY) == "1235"


class TestRatingColor:
    @pytest.mark.parametrize(
        ("rating", "color"),
        [(1200, "easy"), (1399, "easy"), (1400, "medium"), (1899, "medium"), (1900, "hard")],
    )
    def test_boundaries(self, rating, color):
        assert rating_to_color(rating) == color


def test_annotate_fills_missing_ratings():
    cache = ProblemRatingCache({"known": 1750})
    problems = [
        make_problem("known", None),
        make_problem("rated", 1900),
        make_problem("unknown", None).model_copy(update={"difficulty": Difficulty.EASY}),
    ]

    annotated = annotate_ratings(problems, cache)

    assert [p.rating for p in annotated] == [1750, 1900, 1300]
    assert problems[0].rating is None
