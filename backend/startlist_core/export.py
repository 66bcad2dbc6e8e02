"""Rows and CSV text for handing a finished startlist to timing systems."""

from __future__ import annotations

import csv
import datetime as dt
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

from .config import DEFAULT_DISPLAY_TIMEZONE
from .entry import Entry
from .errors import StartNumberCapacityError
from .models import ClassAssignment, StartTimeRecord

logger = logging.getLogger(__name__)

DEFAULT_START_NUMBER_OFFSET = 1
MAX_START_NUMBER = 999
SECONDS_LABEL_INTERVAL_MS = 30_000
UNKNOWN_CLASS_LABEL = "(unknown)"
MISSING_NAME_LABEL = "(no name)"
CRLF = "\r\n"

CSV_HEADER: Tuple[str, ...] = ("class", "start number", "name", "club", "start time", "card number")
CSV_HEADER_JA: Tuple[str, ...] = ("クラス", "スタート番号", "氏名", "所属", "スタート時刻", "カード番号")


@dataclass(frozen=True)
class ExportRow:
    class_id: str
    start_number: str
    name: str
    club: str
    start_time: str
    card_no: str

    def values(self) -> List[str]:
        return [self.class_id, self.start_number, self.name, self.club, self.start_time, self.card_no]


def parse_timestamp(value: Union[dt.datetime, str]) -> Optional[dt.datetime]:
    """Aware datetime for a record's start time, or ``None`` if unreadable."""

    if isinstance(value, dt.datetime):
        parsed = value
    else:
        text = (value or "").strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def format_start_time(moment: dt.datetime, interval_ms: int, timezone: str = DEFAULT_DISPLAY_TIMEZONE) -> str:
    local = moment.astimezone(ZoneInfo(timezone))
    if interval_ms == SECONDS_LABEL_INTERVAL_MS:
        return local.strftime("%H:%M:%S")
    return local.strftime("%H:%M")


def build_export_rows(
    entries: Sequence[Entry],
    start_times: Sequence[StartTimeRecord],
    class_assignments: Sequence[ClassAssignment],
    start_number_offset: int = DEFAULT_START_NUMBER_OFFSET,
    default_interval_ms: int = 0,
    timezone: str = DEFAULT_DISPLAY_TIMEZONE,
) -> List[ExportRow]:
    """Number and label every scheduled competitor.

    Records are ordered by lane, then start time, with unreadable times at
    the end of their lane; ties keep their input order. Start numbers run
    per lane and are prefixed with the lane number (``1001``, ``1002``,
    ``2001``). More than 999 starts in one lane raises
    :class:`StartNumberCapacityError`.
    """

    entry_map = {entry.id: entry for entry in entries}
    player_classes: Dict[str, ClassAssignment] = {}
    for assignment in class_assignments:
        for player_id in assignment.player_order:
            player_classes.setdefault(player_id, assignment)

    indexed = [(record, index, parse_timestamp(record.start_time)) for index, record in enumerate(start_times)]
    indexed.sort(
        key=lambda item: (
            item[0].lane_number,
            item[2] is None,
            item[2].timestamp() if item[2] is not None else 0.0,
            item[1],
        )
    )

    rows: List[ExportRow] = []
    lane_counts: Dict[int, int] = {}
    for record, _, moment in indexed:
        lane_number = record.lane_number
        start_number = start_number_offset + lane_counts.get(lane_number, 0)
        if start_number > MAX_START_NUMBER:
            raise StartNumberCapacityError(lane_number, start_number)
        lane_counts[lane_number] = lane_counts.get(lane_number, 0) + 1

        entry = entry_map.get(record.player_id)
        assignment = player_classes.get(record.player_id)
        if assignment is not None:
            class_id = assignment.class_id
        elif entry is not None:
            class_id = entry.class_id
        else:
            class_id = UNKNOWN_CLASS_LABEL

        interval_ms = (assignment.interval_ms if assignment is not None else 0) or default_interval_ms
        if moment is None:
            label = str(record.start_time)
        else:
            label = format_start_time(moment, interval_ms, timezone)

        if entry is None:
            card_no = record.player_id
        else:
            card_no = "" if entry.has_rental_card else entry.card_no

        rows.append(
            ExportRow(
                class_id=class_id,
                start_number=f"{lane_number}{start_number:03d}",
                name=(entry.name if entry is not None else "") or MISSING_NAME_LABEL,
                club=entry.club if entry is not None else "",
                start_time=label,
                card_no=card_no,
            )
        )

    logger.debug("Built %d export rows over %d lanes", len(rows), len(lane_counts))
    return rows


def export_row_to_csv_line(row: ExportRow) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator=CRLF).writerow(row.values())
    return buffer.getvalue()[: -len(CRLF)]


def startlist_to_csv(rows: Sequence[ExportRow], header: Sequence[str] = CSV_HEADER) -> str:
    """CSV text with a leading byte-order mark and CRLF line endings."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator=CRLF)
    writer.writerow(list(header))
    for row in rows:
        writer.writerow(row.values())
    return "\ufeff" + buffer.getvalue()
