"""Club tokens and the search for start orders without same-club neighbours."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple

from .entry import Entry
from .models import ClassGroup, ClassOrderWarning, WarningOccurrence
from .seeding import Mulberry32, shuffle

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def club_tokens(club: Optional[str]) -> Tuple[str, ...]:
    """Split a club field on ``/`` into normalised, de-duplicated names."""

    if not club:
        return ()
    tokens: List[str] = []
    for part in club.split("/"):
        token = _WHITESPACE.sub(" ", part.strip())
        if token and token not in tokens:
            tokens.append(token)
    return tuple(tokens)


def shares_club(left: FrozenSet[str], right: FrozenSet[str]) -> bool:
    if not left or not right:
        return False
    return not left.isdisjoint(right)


def shared_clubs(left: Sequence[str], right: FrozenSet[str]) -> List[str]:
    # Keeps the left-hand token order so warnings read like the club field.
    return [token for token in left if token in right]


@dataclass(frozen=True)
class ClubEntry:
    entry: Entry
    tokens: Tuple[str, ...]
    token_set: FrozenSet[str]

    @classmethod
    def from_entry(cls, entry: Entry) -> "ClubEntry":
        tokens = club_tokens(entry.club)
        return cls(entry=entry, tokens=tokens, token_set=frozenset(tokens))


def prepare_group(group: ClassGroup) -> List[ClubEntry]:
    return [ClubEntry.from_entry(entry) for entry in group.entries]


def find_conflict_free_order(
    items: Sequence[ClubEntry],
    generator: Mulberry32,
    max_steps: int = 0,
) -> Optional[List[int]]:
    """Backtracking search for an order with no adjacent shared clubs.

    Each starting item is tried in shuffled order; at every position only
    unplaced items that share no club with the previous item are candidates,
    visited in freshly shuffled order. Returns indices into ``items`` or
    ``None`` when no such order exists or ``max_steps`` search nodes (when
    positive) were expanded without finding one.
    """

    count = len(items)
    if count <= 1:
        return list(range(count))

    visited = [False] * count
    steps = 0

    def candidates(last_index: int) -> Iterator[int]:
        last_set = items[last_index].token_set
        safe = [
            index
            for index in range(count)
            if not visited[index] and not shares_club(last_set, items[index].token_set)
        ]
        return iter(shuffle(safe, generator))

    for start_index in shuffle(range(count), generator):
        visited[:] = [False] * count
        visited[start_index] = True
        order = [start_index]
        stack = [candidates(start_index)]
        steps += 1

        while stack:
            candidate = next(stack[-1], None)
            if candidate is None:
                stack.pop()
                visited[order.pop()] = False
                continue
            visited[candidate] = True
            order.append(candidate)
            if len(order) == count:
                return order
            if max_steps > 0 and steps >= max_steps:
                logger.debug("Conflict-free search stopped after %d steps for %d entries", steps, count)
                return None
            stack.append(candidates(candidate))
            steps += 1

    logger.debug("No conflict-free order exists for %d entries", count)
    return None


def build_order_with_minimal_conflicts(items: Sequence[ClubEntry], generator: Mulberry32) -> List[int]:
    """Greedy fallback that keeps same-club neighbours to a minimum."""

    remaining = list(range(len(items)))
    order: List[int] = []
    last_set: FrozenSet[str] = frozenset()
    last_tokens: Tuple[str, ...] = ()

    while remaining:
        safe = [index for index in remaining if not shares_club(last_set, items[index].token_set)]
        if safe:
            selected = shuffle(safe, generator)[0]
        else:
            scored = [
                (
                    len(shared_clubs(last_tokens, items[index].token_set)),
                    len(items[index].token_set),
                    generator.next_float(),
                    index,
                )
                for index in remaining
            ]
            scored.sort(key=lambda item: item[:3])
            selected = scored[0][3]
        order.append(selected)
        remaining.remove(selected)
        last_set = items[selected].token_set
        last_tokens = items[selected].tokens

    return order


def calculate_warnings(
    groups: Sequence[ClassGroup],
    player_orders: Mapping[str, Sequence[str]],
) -> Dict[str, ClassOrderWarning]:
    """Report every adjacent same-club pair in the realised orders."""

    warnings: Dict[str, ClassOrderWarning] = {}
    for group in groups:
        if len(group.entries) <= 1:
            continue
        info = {entry.id: ClubEntry.from_entry(entry) for entry in group.entries}
        order = player_orders.get(group.class_id) or [entry.id for entry in group.entries]
        occurrences: List[WarningOccurrence] = []
        for previous_id, next_id in zip(order, order[1:]):
            previous = info.get(previous_id)
            current = info.get(next_id)
            if previous is None or current is None:
                continue
            overlap = shared_clubs(previous.tokens, current.token_set)
            if overlap:
                occurrences.append(
                    WarningOccurrence(
                        previous_player_id=previous_id,
                        next_player_id=next_id,
                        clubs=tuple(overlap),
                    )
                )
        if occurrences:
            warnings[group.class_id] = ClassOrderWarning(class_id=group.class_id, occurrences=tuple(occurrences))
    return warnings
