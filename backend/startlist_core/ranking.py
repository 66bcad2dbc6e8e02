from __future__ import annotations

import csv
import io
import math
import re
import unicodedata
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .entry import Entry
from .errors import RankingParseError
from .models import RankingByClass, RankingMap, StartOrderRule, text_sort_key
from .seeding import Mulberry32, shuffle

IDENTIFIER_COLUMN = "iofId"
RANK_COLUMN = "rank"

_HEADER_ALIASES: Dict[str, str] = {
    "iof id": IDENTIFIER_COLUMN,
    "iofid": IDENTIFIER_COLUMN,
    "iof": IDENTIFIER_COLUMN,
    "athlete id": IDENTIFIER_COLUMN,
    "athleteid": IDENTIFIER_COLUMN,
    "athlete no": IDENTIFIER_COLUMN,
    "athlete number": IDENTIFIER_COLUMN,
    "runner id": IDENTIFIER_COLUMN,
    "runnerid": IDENTIFIER_COLUMN,
    "runner no": IDENTIFIER_COLUMN,
    "runner number": IDENTIFIER_COLUMN,
    "ranking position": RANK_COLUMN,
    "rank": RANK_COLUMN,
    "ranking": RANK_COLUMN,
    "world ranking": RANK_COLUMN,
    "wr rank": RANK_COLUMN,
    "position": RANK_COLUMN,
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_identifier(value: str) -> str:
    return _WHITESPACE.sub("", unicodedata.normalize("NFKC", value)).upper()


def lookup_position(ranking: RankingMap, iof_id: Optional[str]) -> Optional[int]:
    if not iof_id:
        return None
    position = ranking.get(iof_id)
    if position is None:
        position = ranking.get(normalize_identifier(iof_id))
    return position


def ranking_order(
    entries: Sequence[Entry],
    generator: Mulberry32,
    ranking: Optional[RankingMap],
) -> Optional[List[str]]:
    """Order a class by ranking: unranked first, then weakest to strongest.

    Unranked members are shuffled. Ranked members are sorted by position
    descending so the best-ranked competitor starts last; ties are broken by a
    random draw per entry, then by id. Returns ``None`` when no member has a
    ranking so the caller can fall back to its usual ordering.
    """

    if not ranking:
        return None

    ranked = []
    unranked: List[Entry] = []
    for entry in entries:
        position = lookup_position(ranking, entry.iof_id)
        if position is None:
            unranked.append(entry)
        else:
            ranked.append((entry, position))

    if not ranked:
        return None

    unranked_order = [entry.id for entry in shuffle(unranked, generator)]
    with_tie_breakers = [(entry, position, generator.next_float()) for entry, position in ranked]
    with_tie_breakers.sort(key=lambda item: (-item[1], item[2], text_sort_key(item[0].id)))
    return unranked_order + [entry.id for entry, _, _ in with_tie_breakers]


def ranking_target_class_ids(rules: Iterable[StartOrderRule]) -> Set[str]:
    return {rule.class_id.strip() for rule in rules if rule.class_id.strip() and rule.method.uses_ranking}


def find_missing_ranking_classes(
    rules: Iterable[StartOrderRule],
    rankings: Optional[RankingByClass],
) -> List[str]:
    """Classes that want ranking order but have nothing loaded to order by."""

    missing: Set[str] = set()
    for rule in rules:
        class_id = rule.class_id.strip()
        if not class_id or not rule.method.uses_ranking:
            continue
        if not rule.csv_name or not (rankings or {}).get(class_id):
            missing.add(class_id)
    return sorted(missing, key=text_sort_key)


def _normalize_header(value: str) -> str:
    cleaned = value.lstrip("\ufeff").strip().lower()
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub(" ", cleaned)).strip()


def _detect_delimiter(text: str) -> str:
    in_quotes = False
    index = 0
    while index < len(text):
        char = text[index]
        if char in "\r\n" and not in_quotes:
            break
        if char == '"':
            if in_quotes and text[index + 1 : index + 2] == '"':
                index += 1
            else:
                in_quotes = not in_quotes
        elif not in_quotes and char in ",\t":
            return char
        index += 1
    return ","


def _parse_rank(value: str) -> Optional[int]:
    cleaned = re.sub(r"[^0-9.,-]+", "", value)
    cleaned = re.sub(r",(?=[0-9])", ".", cleaned).strip()
    if not cleaned:
        return None
    try:
        return math.floor(float(cleaned) + 0.5)
    except ValueError:
        return None


def parse_ranking_csv(text: str) -> Dict[str, int]:
    """Parse a comma or tab separated ranking export into ``{id: rank}``.

    The header row must contain an identifier column and a rank column;
    header matching ignores case, punctuation and surrounding whitespace.
    Rows without an id or a numeric rank are skipped, and an id listed twice
    keeps its best (lowest) rank.
    """

    text = text.lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text), delimiter=_detect_delimiter(text))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return {}

    columns = [_HEADER_ALIASES.get(_normalize_header(cell)) for cell in rows[0]]
    missing = {IDENTIFIER_COLUMN, RANK_COLUMN} - set(columns)
    if missing:
        raise RankingParseError(missing)

    ranking: Dict[str, int] = {}
    for row in rows[1:]:
        identifier = ""
        rank: Optional[int] = None
        for index, column in enumerate(columns):
            if column is None:
                continue
            cell = row[index] if index < len(row) else ""
            if column == IDENTIFIER_COLUMN:
                identifier = normalize_identifier(cell)
            else:
                rank = _parse_rank(cell)
        if not identifier or rank is None:
            continue
        existing = ranking.get(identifier)
        if existing is None or rank < existing:
            ranking[identifier] = rank
    return ranking


def ranking_for_class(rankings: Optional[RankingByClass], class_id: str) -> Mapping[str, int]:
    return (rankings or {}).get(class_id) or {}
