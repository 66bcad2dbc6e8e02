from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .entry import Entry
from .models import (
    ClassSplitRule,
    LaneAssignment,
    LaneGenerationResult,
    RankingByClass,
    StartOrderRule,
    text_sort_key,
)
from .splitting import prepare_class_splits

logger = logging.getLogger(__name__)


def generate_lane_assignments(
    entries: Sequence[Entry],
    lane_count: Optional[int],
    lane_interval_ms: int,
    split_rules: Iterable[ClassSplitRule] = (),
    start_order_rules: Iterable[StartOrderRule] = (),
    rankings: Optional[RankingByClass] = None,
) -> LaneGenerationResult:
    """Distribute (split) classes over lanes, largest class first.

    Each class goes to the lane with the lowest running entry count, ties to
    the lowest lane number. Lanes that receive nothing are left out. Without
    lanes or with a non-positive interval nothing can be computed and the
    result carries no assignments.
    """

    preparation = prepare_class_splits(entries, split_rules, start_order_rules, rankings)
    empty = LaneGenerationResult(
        assignments=[], split_signature=preparation.signature, split_result=preparation.result
    )
    if not lane_count or lane_count <= 0 or lane_interval_ms <= 0:
        return empty

    groups = preparation.non_empty_groups()
    if not groups:
        return empty

    groups.sort(key=lambda group: (-len(group.entries), text_sort_key(group.class_id)))
    loads = [0] * lane_count
    class_orders: List[List[str]] = [[] for _ in range(lane_count)]
    for group in groups:
        lane_index = min(range(lane_count), key=lambda index: (loads[index], index))
        class_orders[lane_index].append(group.class_id)
        loads[lane_index] += len(group.entries)

    assignments = [
        LaneAssignment(lane_number=index + 1, class_order=tuple(order), interval_ms=lane_interval_ms)
        for index, order in enumerate(class_orders)
        if order
    ]
    logger.debug("Assigned %d classes to %d of %d lanes", len(groups), len(assignments), lane_count)
    return LaneGenerationResult(
        assignments=assignments, split_signature=preparation.signature, split_result=preparation.result
    )


def _move(values: Sequence[str], from_index: int, to_index: int) -> List[str]:
    items = list(values)
    if not 0 <= from_index < len(items):
        return items
    moved = items.pop(from_index)
    items.insert(to_index, moved)
    return items


def reorder_lane_class(
    assignments: Sequence[LaneAssignment],
    lane_number: int,
    from_index: int,
    to_index: int,
) -> List[LaneAssignment]:
    """Move a class within one lane's sequence; other lanes are returned as is."""

    return [
        LaneAssignment(
            lane_number=lane.lane_number,
            class_order=tuple(_move(lane.class_order, from_index, to_index)),
            interval_ms=lane.interval_ms,
        )
        if lane.lane_number == lane_number
        else lane
        for lane in assignments
    ]


def move_class_to_lane(
    assignments: Sequence[LaneAssignment],
    class_id: str,
    target_lane_number: int,
    position: Optional[int] = None,
    interval_ms: Optional[int] = None,
) -> List[LaneAssignment]:
    """Take a class out of whichever lane holds it and put it on another lane.

    The class is appended unless ``position`` is given. A target lane that
    does not exist yet is created with ``interval_ms`` (or the interval of the
    lane the class came from). Lanes left empty are dropped.
    """

    source_interval = 0
    updated: List[LaneAssignment] = []
    for lane in assignments:
        if class_id in lane.class_order:
            source_interval = lane.interval_ms
            lane = LaneAssignment(
                lane_number=lane.lane_number,
                class_order=tuple(value for value in lane.class_order if value != class_id),
                interval_ms=lane.interval_ms,
            )
        updated.append(lane)

    target = next((lane for lane in updated if lane.lane_number == target_lane_number), None)
    if target is None:
        if interval_ms is None:
            interval_ms = source_interval
        target = LaneAssignment(lane_number=target_lane_number, class_order=(), interval_ms=interval_ms)
        updated.append(target)

    order = list(target.class_order)
    order.insert(len(order) if position is None else position, class_id)
    moved = LaneAssignment(lane_number=target.lane_number, class_order=tuple(order), interval_ms=target.interval_ms)

    result = [moved if lane.lane_number == target_lane_number else lane for lane in updated]
    return sorted((lane for lane in result if lane.class_order), key=lambda lane: lane.lane_number)


def lanes_for_display(
    assignments: Sequence[LaneAssignment],
    lane_count: int,
    interval_ms: int = 0,
) -> List[LaneAssignment]:
    """Every lane from 1 to ``lane_count``, with empty placeholders filled in."""

    by_number = {lane.lane_number: lane for lane in assignments}
    highest = max([lane_count, *by_number]) if by_number else lane_count
    lanes = []
    for lane_number in range(1, highest + 1):
        lane = by_number.get(lane_number)
        if lane is None:
            lane = LaneAssignment(lane_number=lane_number, class_order=(), interval_ms=interval_ms)
        lanes.append(lane)
    return lanes
