"""Fetch the Japanese orienteering ranking from its paged HTML listing."""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from .config import EngineConfig
from .errors import RankingFetchError
from .ranking import IDENTIFIER_COLUMN, RANK_COLUMN, normalize_identifier

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"[^0-9]+")

_HEADER_ALIASES: Dict[str, str] = {
    "rank": RANK_COLUMN,
    "rank.": RANK_COLUMN,
    "ranking": RANK_COLUMN,
    "ranking position": RANK_COLUMN,
    "position": RANK_COLUMN,
    "順位": RANK_COLUMN,
    "iof id": IDENTIFIER_COLUMN,
    "iofid": IDENTIFIER_COLUMN,
    "iof": IDENTIFIER_COLUMN,
    "iof-id": IDENTIFIER_COLUMN,
    "iof 番号": IDENTIFIER_COLUMN,
    "iof番号": IDENTIFIER_COLUMN,
    "会員番号": IDENTIFIER_COLUMN,
}

RankingRow = Tuple[str, Optional[int]]


def _clean_text(value: str) -> str:
    return _WHITESPACE.sub(" ", unicodedata.normalize("NFKC", value)).strip()


def _map_header(value: str) -> Optional[str]:
    normalized = _clean_text(value).lower()
    if normalized in _HEADER_ALIASES:
        return _HEADER_ALIASES[normalized]
    if "iof" in normalized:
        return IDENTIFIER_COLUMN
    if "rank" in normalized or "順位" in normalized:
        return RANK_COLUMN
    return None


def _parse_rank(value: str) -> Optional[int]:
    digits = _NON_DIGITS.sub("", unicodedata.normalize("NFKC", value))
    return int(digits) if digits else None


def parse_japan_ranking_html(html: str) -> List[RankingRow]:
    """Return ``(identifier, rank)`` rows from the first usable table.

    A table is usable when its header row has an identifier column. Ranks are
    ``None`` where the page leaves the position blank.
    """

    soup = BeautifulSoup(html, "html.parser")
    for table in soup.find_all("table"):
        header_row = table.select_one("thead tr")
        if header_row is None:
            header_row = next((row for row in table.find_all("tr") if row.find("th")), None)
        if header_row is None:
            continue
        header_cells = header_row.find_all("th") or header_row.find_all(recursive=False)
        columns = [_map_header(cell.get_text()) for cell in header_cells]
        if IDENTIFIER_COLUMN not in columns:
            continue

        rows: List[RankingRow] = []
        for row in table.find_all("tr"):
            if row is header_row:
                continue
            cells = row.find_all("td")
            if not cells or not _clean_text(row.get_text()):
                continue
            identifier = ""
            rank: Optional[int] = None
            for column, cell in zip(columns, cells):
                if column == IDENTIFIER_COLUMN:
                    identifier = normalize_identifier(cell.get_text())
                elif column == RANK_COLUMN:
                    rank = _parse_rank(cell.get_text())
            if identifier:
                rows.append((identifier, rank))
        if rows:
            return rows
    return []


def merge_ranking_pages(pages: List[List[RankingRow]]) -> Dict[str, int]:
    """Merge page rows into one ranking, keeping positions strictly increasing.

    Rows without a rank, or whose rank restarts below the last assigned one,
    get the next synthetic position. Identifiers already seen are skipped.
    """

    ranking: Dict[str, int] = {}
    highest_observed = 0
    last_assigned = 0
    for rows in pages:
        for identifier, rank in rows:
            if rank is not None and rank > highest_observed:
                highest_observed = rank
            if not identifier or identifier in ranking:
                continue
            if rank is None:
                rank = max(last_assigned, highest_observed) + 1
            elif rank <= last_assigned:
                rank = last_assigned + 1
            ranking[identifier] = rank
            last_assigned = rank
            highest_observed = max(highest_observed, rank)
    return ranking


def fetch_japan_ranking(
    category_id: str,
    pages: int,
    config: Optional[EngineConfig] = None,
) -> Dict[str, int]:
    """Download up to ``pages`` ranking pages for a category and merge them.

    Stops early at the first page without ranking rows. HTTP failures raise
    :class:`RankingFetchError`; no partial ranking is returned.
    """

    config = config or EngineConfig.from_env()
    category = (category_id or "").strip() or "1"
    base_url = config.ranking_base_url.rstrip("/")
    fetched: List[List[RankingRow]] = []

    try:
        with httpx.Client(timeout=config.http_timeout) as client:
            for page in range(1, max(1, pages or 1) + 1):
                url = f"{base_url}/{quote(category, safe='')}/{page}"
                response = client.get(url)
                response.raise_for_status()
                rows = parse_japan_ranking_html(response.text)
                logger.info("Fetched ranking page %d for category %s (%d rows)", page, category, len(rows))
                if not rows:
                    break
                fetched.append(rows)
    except httpx.HTTPError as exc:
        raise RankingFetchError(f"Failed to fetch ranking for category {category}: {exc}") from exc

    return merge_ranking_pages(fetched)
