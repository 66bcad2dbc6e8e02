from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional, Sequence, Set

from .models import ClassAssignment, LaneAssignment, StartTimeRecord
from .settings import StartlistSettings

logger = logging.getLogger(__name__)


def calculate_start_times(
    settings: Optional[StartlistSettings],
    lane_assignments: Sequence[LaneAssignment],
    class_assignments: Sequence[ClassAssignment],
) -> List[StartTimeRecord]:
    """Walk lanes, then classes, then players, handing out start times.

    Each lane keeps its own offset from the event start. A player advances it
    by the class interval (the settings default when the class has none);
    between two classes of a lane the lane gap is added when positive. A
    class whose interval is not positive emits nobody. Players start at most
    once, in the first lane and class that lists them, and players without a
    class assignment are not scheduled. Without a start time or a positive
    default player interval the result is empty.
    """

    if settings is None or settings.start_time is None:
        return []
    base_time = settings.start_time
    default_lane_gap = settings.lane_class_interval_ms
    default_player_interval = settings.class_player_interval_ms
    if default_player_interval <= 0:
        return []

    classes = {assignment.class_id: assignment for assignment in class_assignments}
    seen: Set[str] = set()
    records: List[StartTimeRecord] = []

    for lane in lane_assignments:
        offset = 0
        lane_gap = lane.interval_ms or default_lane_gap
        for class_index, class_id in enumerate(lane.class_order):
            if class_index > 0 and lane_gap > 0:
                offset += lane_gap
            assignment = classes.get(class_id)
            if assignment is None:
                logger.warning("Lane %d lists class %s without a class assignment", lane.lane_number, class_id)
                continue
            player_interval = assignment.interval_ms or default_player_interval
            if player_interval <= 0:
                continue
            for player_id in assignment.player_order:
                if not player_id or player_id in seen:
                    continue
                seen.add(player_id)
                records.append(
                    StartTimeRecord(
                        player_id=player_id,
                        lane_number=lane.lane_number,
                        start_time=base_time + dt.timedelta(milliseconds=offset),
                    )
                )
                offset += player_interval

    return records
