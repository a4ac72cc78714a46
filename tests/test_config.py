"""Tests for the settings layer."""

from solve_rating.config import Settings


def test_yaml_defaults():
    settings = Settings()
    assert settings.calibration_problem_count == 8
    assert settings.history_min_accepted_solves == 5


def test_env_overrides_yaml(monkeypatch):
    monkeypatch.setenv("SOLVE_RATING_PORT", "9001")
    monkeypatch.setenv("SOLVE_RATING_CALIBRATION_PROBLEM_COUNT", "6")
    settings = Settings()
    assert settings.port == 9001
    assert settings.calibration_problem_count == 6


def test_init_args_win(monkeypatch):
    monkeypatch.setenv("SOLVE_RATING_PORT", "9001")
    assert Settings(port=7000).port == 7000


def test_store_dir_created(tmp_path):
    settings = Settings(data_dir=tmp_path / "store")
    assert settings.store_dir == tmp_path / "store"
    assert settings.store_dir.is_dir()
