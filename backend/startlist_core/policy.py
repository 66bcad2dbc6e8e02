"""Per-class start orders.

A policy turns the groups of a startlist into one player order per class. Both
shipped policies draw from a single Mulberry32 generator seeded once per run,
so the classes must be visited in the same order every time for the result
to be reproducible. Classes that opted into ranking order are ordered by
ranking first; the rest are shuffled, optionally keeping competitors of the
same club apart.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .clubs import (
    build_order_with_minimal_conflicts,
    calculate_warnings,
    find_conflict_free_order,
    prepare_group,
)
from .config import EngineConfig
from .entry import Entry
from .models import (
    ClassAssignment,
    ClassAssignmentResult,
    ClassGroup,
    ClassOrderResult,
    ClassOrderWarning,
    ClassSplitRule,
    LaneAssignment,
    RankingByClass,
    StartOrderRule,
)
from .ranking import ranking_for_class, ranking_order, ranking_target_class_ids
from .seeding import Mulberry32, derive_seed, shuffle
from .splitting import prepare_class_splits

logger = logging.getLogger(__name__)


class ClassOrderPolicy:
    def __init__(self, policy_id: str, label: str, avoid_consecutive_clubs: bool) -> None:
        self.id = policy_id
        self.label = label
        self.avoid_consecutive_clubs = avoid_consecutive_clubs

    def __repr__(self) -> str:
        return f"ClassOrderPolicy({self.id!r})"

    def derive_seed(
        self,
        startlist_id: Optional[str],
        entries: Sequence[Entry],
        lane_assignments: Sequence[LaneAssignment] = (),
        seed: Optional[str] = None,
        rankings: Optional[RankingByClass] = None,
        target_class_ids: Optional[Iterable[str]] = None,
    ) -> str:
        return derive_seed(startlist_id, entries, lane_assignments, seed, rankings, target_class_ids)

    def execute(
        self,
        groups: Sequence[ClassGroup],
        seed: str,
        rankings: Optional[RankingByClass] = None,
        target_class_ids: Optional[Iterable[str]] = None,
        max_steps: int = 0,
    ) -> ClassOrderResult:
        """Order every group with one generator seeded from ``seed``.

        ``max_steps`` bounds the conflict-free search per class; once it is
        exhausted the greedy minimal-conflict order is used instead. Warnings
        are only reported by the club-aware policy.
        """

        generator = Mulberry32.from_seed(seed)
        targets = set(target_class_ids or ())
        player_orders: Dict[str, List[str]] = {}

        for group in groups:
            if not group.entries:
                player_orders[group.class_id] = []
                continue

            if group.class_id in targets or group.base_class_id in targets:
                ranking = ranking_for_class(rankings, group.class_id) or ranking_for_class(
                    rankings, group.base_class_id
                )
                order = ranking_order(group.entries, generator, ranking)
                if order is not None:
                    player_orders[group.class_id] = order
                    continue
                logger.debug("No ranked members in %s; using random order", group.class_id)

            if not self.avoid_consecutive_clubs:
                player_orders[group.class_id] = [entry.id for entry in shuffle(group.entries, generator)]
                continue

            prepared = prepare_group(group)
            indices = find_conflict_free_order(prepared, generator, max_steps)
            if indices is None:
                indices = build_order_with_minimal_conflicts(prepared, generator)
            player_orders[group.class_id] = [group.entries[index].id for index in indices]

        warnings = calculate_warnings(groups, player_orders) if self.avoid_consecutive_clubs else {}
        return ClassOrderResult(player_orders=player_orders, warnings=warnings)


SEEDED_RANDOM_POLICY = ClassOrderPolicy(
    "seeded-random-entry-order", "Random entry order (club aware)", avoid_consecutive_clubs=True
)
SEEDED_RANDOM_UNCONSTRAINED_POLICY = ClassOrderPolicy(
    "seeded-random-entry-order-unconstrained", "Random entry order", avoid_consecutive_clubs=False
)


def create_class_assignments_from_orders(
    groups: Sequence[ClassGroup],
    player_orders: Mapping[str, Sequence[str]],
    interval_ms: int,
) -> List[ClassAssignment]:
    return [
        ClassAssignment(
            class_id=group.class_id,
            player_order=tuple(player_orders.get(group.class_id) or [entry.id for entry in group.entries]),
            interval_ms=interval_ms,
        )
        for group in groups
    ]


def create_default_class_assignments(
    entries: Sequence[Entry],
    player_interval_ms: int,
    seed: Optional[str] = None,
    startlist_id: Optional[str] = None,
    lane_assignments: Sequence[LaneAssignment] = (),
    policy: ClassOrderPolicy = SEEDED_RANDOM_POLICY,
    start_order_rules: Iterable[StartOrderRule] = (),
    rankings: Optional[RankingByClass] = None,
    split_rules: Iterable[ClassSplitRule] = (),
    config: Optional[EngineConfig] = None,
) -> ClassAssignmentResult:
    """Player orders for every non-empty (split) class.

    Ranking data is not validated here; callers that require it should check
    :func:`startlist_core.ranking.find_missing_ranking_classes` first.
    """

    config = config or EngineConfig.from_env()
    start_order_rules = list(start_order_rules)
    preparation = prepare_class_splits(entries, split_rules, start_order_rules, rankings)
    groups = preparation.non_empty_groups()
    targets = ranking_target_class_ids(start_order_rules)

    derived_seed = policy.derive_seed(startlist_id, entries, lane_assignments, seed, rankings, targets)
    result = policy.execute(groups, derived_seed, rankings, targets, config.conflict_search_limit)
    logger.info(
        "Ordered %d classes with %s (seed %s, %d warnings)",
        len(groups),
        policy.id,
        derived_seed,
        len(result.warnings),
    )
    return ClassAssignmentResult(
        assignments=create_class_assignments_from_orders(groups, result.player_orders, player_interval_ms),
        seed=derived_seed,
        warnings=list(result.warnings.values()),
        split_signature=preparation.signature,
        split_result=preparation.result,
    )


def derive_class_order_warnings(
    assignments: Sequence[ClassAssignment],
    entries: Sequence[Entry],
    split_rules: Iterable[ClassSplitRule] = (),
    start_order_rules: Iterable[StartOrderRule] = (),
    rankings: Optional[RankingByClass] = None,
) -> List[ClassOrderWarning]:
    """Recompute club warnings for orders that may have been edited by hand."""

    if not assignments:
        return []
    preparation = prepare_class_splits(entries, split_rules, start_order_rules, rankings)
    orders = {assignment.class_id: list(assignment.player_order) for assignment in assignments}
    return list(calculate_warnings(preparation.non_empty_groups(), orders).values())


def update_class_player_order(
    assignments: Sequence[ClassAssignment],
    class_id: str,
    from_index: int,
    to_index: int,
) -> List[ClassAssignment]:
    updated: List[ClassAssignment] = []
    for assignment in assignments:
        if assignment.class_id == class_id and 0 <= from_index < len(assignment.player_order):
            order = list(assignment.player_order)
            order.insert(to_index, order.pop(from_index))
            assignment = ClassAssignment(
                class_id=assignment.class_id, player_order=tuple(order), interval_ms=assignment.interval_ms
            )
        updated.append(assignment)
    return updated
