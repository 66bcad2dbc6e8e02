from __future__ import annotations

import csv
import io
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from .entry import RENTAL_CARD_LABEL, Entry
from .errors import EntryImportError

logger = logging.getLogger(__name__)

HEADER_SCAN_LIMIT = 10
REQUIRED_FIELDS = ("name", "class_id", "card_no")

_HEADER_SEPARATORS = re.compile(r"[\s_-]+")
_WHITESPACE = re.compile(r"\s+")

_HEADER_MAP: Dict[str, str] = {
    "id": "id",
    "entryid": "id",
    "name": "name",
    "club": "club",
    "class": "class_id",
    "classid": "class_id",
    "classname": "class_id",
    "card": "card_no",
    "cardno": "card_no",
    "cardnumber": "card_no",
    "iofid": "iof_id",
    "iof": "iof_id",
    "チーム名(氏名)": "name",
    "チーム名（氏名）": "name",
    "氏名": "name",
    "所属": "club",
    "クラス": "class_id",
    "カード番号": "card_no",
    "カード番号:": "card_no",
    "カード番号：": "card_no",
    "iof番号": "iof_id",
}


def _header_key(value: str) -> str:
    cleaned = value.lstrip("\ufeff").strip().lower()
    return _HEADER_SEPARATORS.sub("", cleaned)


def _map_headers(cells: Sequence[str]) -> List[Optional[str]]:
    return [_HEADER_MAP.get(_header_key(cell)) for cell in cells]


def _has_required(columns: Sequence[Optional[str]]) -> bool:
    return all(field in columns for field in REQUIRED_FIELDS)


def _normalize_text(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def _normalize_card(value: str) -> str:
    return _WHITESPACE.sub("", value)


def parse_entries_csv(text: str, existing_entries: Iterable[Entry] = ()) -> List[Entry]:
    """Read competitors from a comma separated registration export.

    The header row may be preceded by title lines; the first of the opening
    rows that names the name, class and card number columns is used. Entries
    without an id column are keyed by card number. Card numbers must be
    unique within the file and against ``existing_entries``, except for
    rental cards.
    """

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return []

    header_index = next(
        (index for index, row in enumerate(rows[:HEADER_SCAN_LIMIT]) if _has_required(_map_headers(row))),
        None,
    )
    if header_index is None:
        raise EntryImportError("CSV is missing a required column (name, class, card number)")
    columns = _map_headers(rows[header_index])

    entries: List[Entry] = []
    for offset, row in enumerate(rows[header_index + 1 :]):
        row_number = header_index + offset + 2
        values: Dict[str, str] = {}
        for index, field in enumerate(columns):
            if field is None or field in values:
                continue
            raw = row[index] if index < len(row) else ""
            values[field] = _normalize_card(raw) if field == "card_no" else _normalize_text(raw)
        for field in REQUIRED_FIELDS:
            if not values.get(field):
                raise EntryImportError(f"CSV row {row_number}: required field {field} is empty")

        card_no = values["card_no"]
        entry_id = values.get("id") or (f"rental-{row_number}" if card_no == RENTAL_CARD_LABEL else card_no)
        entries.append(
            Entry(
                id=entry_id,
                name=values["name"],
                class_id=values["class_id"],
                card_no=card_no,
                club=values.get("club", ""),
                iof_id=values.get("iof_id") or None,
            )
        )

    _ensure_unique_cards(entries, existing_entries)
    logger.info("Imported %d entries from CSV", len(entries))
    return entries


def _ensure_unique_cards(entries: Sequence[Entry], existing_entries: Iterable[Entry]) -> None:
    existing = {entry.card_no.strip() for entry in existing_entries if not entry.has_rental_card}
    seen = set()
    for entry in entries:
        if entry.has_rental_card:
            continue
        if entry.card_no in existing:
            raise EntryImportError(f"Card number {entry.card_no} is already registered")
        if entry.card_no in seen:
            raise EntryImportError(f"Card number {entry.card_no} appears more than once in the CSV")
        seen.add(entry.card_no)
