from __future__ import annotations

from typing import Any, Dict, List

import httpx
import pytest

from startlist_core import ranking_fetch as fetch_module
from startlist_core.config import EngineConfig
from startlist_core.errors import RankingFetchError

BASE_URL = "https://ranking.example/ranking_index"

PAGE_ONE = """
<html><body>
<table class="nav"><tr><td>menu</td></tr></table>
<table>
  <thead><tr><th>順位</th><th>氏名</th><th>IOF ID</th></tr></thead>
  <tbody>
    <tr><td>1</td><td>Aki</td><td>jpn-001</td></tr>
    <tr><td>2</td><td>Ben</td><td>JPN002</td></tr>
  </tbody>
</table>
</body></html>
"""

PAGE_TWO = """
<table>
  <tr><th>Rank</th><th>Name</th><th>IOF</th></tr>
  <tr><td>1</td><td>Chie</td><td>c 1</td></tr>
  <tr><td></td><td>Dai</td><td>D1</td></tr>
  <tr><td>3</td><td>Ben again</td><td>JPN002</td></tr>
</table>
"""


class _DummyResponse:
    def __init__(self, text: str) -> None:
        self.text = text

    def raise_for_status(self) -> None:  # pragma: no cover - nothing to do
        return None


class _DummyClient:
    pages: Dict[str, str] = {}
    calls: List[str] = []
    timeouts: List[Any] = []

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        _DummyClient.timeouts.append(kwargs.get("timeout"))

    def __enter__(self) -> "_DummyClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - nothing to clean up
        return None

    def get(self, url: str) -> _DummyResponse:
        _DummyClient.calls.append(url)
        return _DummyResponse(_DummyClient.pages.get(url, "<html><body>No data</body></html>"))


class _FailingClient(_DummyClient):
    def get(self, url: str) -> _DummyResponse:
        raise httpx.ConnectError("connection refused")


class _DummyHTTPX:
    def __init__(self) -> None:  # pragma: no cover - never instantiated
        raise RuntimeError("Not expected to instantiate _DummyHTTPX directly")

    Client = _DummyClient
    HTTPError = httpx.HTTPError


class _FailingHTTPX(_DummyHTTPX):
    Client = _FailingClient


@pytest.fixture(autouse=True)
def reset_dummy_client():
    _DummyClient.pages = {}
    _DummyClient.calls = []
    _DummyClient.timeouts = []
    yield


def test_parse_html_uses_first_table_with_identifier_column() -> None:
    rows = fetch_module.parse_japan_ranking_html(PAGE_ONE)

    assert rows == [("JPN-001", 1), ("JPN002", 2)]


def test_parse_html_without_thead() -> None:
    rows = fetch_module.parse_japan_ranking_html(PAGE_TWO)

    assert rows == [("C1", 1), ("D1", None), ("JPN002", 3)]


def test_parse_html_without_table() -> None:
    assert fetch_module.parse_japan_ranking_html("<p>nothing here</p>") == []


def test_merge_assigns_synthetic_ranks() -> None:
    merged = fetch_module.merge_ranking_pages(
        [
            [("A", 1), ("B", 2)],
            [("C", 1), ("D", None), ("B", 3), ("E", 9)],
        ]
    )

    assert merged == {"A": 1, "B": 2, "C": 3, "D": 4, "E": 9}


def test_fetch_japan_ranking_merges_pages(monkeypatch: pytest.MonkeyPatch) -> None:
    _DummyClient.pages = {f"{BASE_URL}/7/1": PAGE_ONE, f"{BASE_URL}/7/2": PAGE_TWO}
    monkeypatch.setattr(fetch_module, "httpx", _DummyHTTPX)
    config = EngineConfig(ranking_base_url=BASE_URL + "/", http_timeout=3.5)

    ranking = fetch_module.fetch_japan_ranking("7", pages=5, config=config)

    assert ranking == {"JPN-001": 1, "JPN002": 2, "C1": 3, "D1": 4}
    assert _DummyClient.calls == [f"{BASE_URL}/7/1", f"{BASE_URL}/7/2", f"{BASE_URL}/7/3"]
    assert _DummyClient.timeouts == [3.5]


def test_fetch_japan_ranking_defaults_category(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetch_module, "httpx", _DummyHTTPX)

    ranking = fetch_module.fetch_japan_ranking(" ", pages=0, config=EngineConfig(ranking_base_url=BASE_URL))

    assert ranking == {}
    assert _DummyClient.calls == [f"{BASE_URL}/1/1"]


def test_fetch_japan_ranking_wraps_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetch_module, "httpx", _FailingHTTPX)

    with pytest.raises(RankingFetchError) as excinfo:
        fetch_module.fetch_japan_ranking("7", pages=2, config=EngineConfig(ranking_base_url=BASE_URL))

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert "category 7" in str(excinfo.value)
