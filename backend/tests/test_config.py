from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from startlist_core.config import DEFAULT_RANKING_BASE_URL, EngineConfig
from startlist_core.settings import StartlistSettings

ENV_VARS = (
    "STARTLIST_RANKING_BASE_URL",
    "STARTLIST_HTTP_TIMEOUT",
    "STARTLIST_CONFLICT_SEARCH_LIMIT",
    "STARTLIST_DISPLAY_TIMEZONE",
)


@pytest.fixture(autouse=True)
def reset_env(monkeypatch: pytest.MonkeyPatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


def test_defaults_without_environment() -> None:
    config = EngineConfig.from_env()

    assert config == EngineConfig()
    assert config.ranking_base_url == DEFAULT_RANKING_BASE_URL
    assert config.conflict_search_limit == 20000
    assert config.display_timezone == "Asia/Tokyo"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARTLIST_RANKING_BASE_URL", "https://mirror.example/ranking")
    monkeypatch.setenv("STARTLIST_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("STARTLIST_CONFLICT_SEARCH_LIMIT", "0")
    monkeypatch.setenv("STARTLIST_DISPLAY_TIMEZONE", "Europe/Helsinki")

    config = EngineConfig.from_env()

    assert config.ranking_base_url == "https://mirror.example/ranking"
    assert config.http_timeout == 2.5
    assert config.conflict_search_limit == 0
    assert config.display_timezone == "Europe/Helsinki"


def test_invalid_number_falls_back_with_warning(monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    monkeypatch.setenv("STARTLIST_CONFLICT_SEARCH_LIMIT", "lots")

    with caplog.at_level(logging.WARNING, logger="startlist_core.config"):
        config = EngineConfig.from_env()

    assert config.conflict_search_limit == 20000
    assert "STARTLIST_CONFLICT_SEARCH_LIMIT" in caplog.text


def test_settings_accept_field_names_and_aliases() -> None:
    by_alias = StartlistSettings.model_validate({"laneCount": 3, "intervals": {"classPlayer": {"milliseconds": 30000}}})
    by_name = StartlistSettings(lane_count=3)

    assert by_alias.lane_count == by_name.lane_count == 3
    assert by_alias.class_player_interval_ms == 30000
    assert by_alias.lane_class_interval_ms == 0


def test_settings_reject_negative_intervals() -> None:
    with pytest.raises(ValidationError):
        StartlistSettings.model_validate({"intervals": {"laneClass": {"milliseconds": -5}}})
