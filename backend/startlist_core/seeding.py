"""Deterministic randomness for start order generation.

Every "random" choice in a generated startlist comes from a Mulberry32
generator seeded from a short hex string. The seed is either supplied by the
caller (to keep the current order on regeneration) or derived by hashing a
canonical signature of the inputs, so identical inputs always give identical
startlists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .entry import Entry
from .models import LaneAssignment, RankingByClass, text_sort_key

T = TypeVar("T")

MASK_32 = 0xFFFFFFFF
FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
MULBERRY_INCREMENT = 0x6D2B79F5


def _code_units(value: str) -> Iterator[int]:
    # UTF-16 code units; identical to bytes for ASCII text.
    for char in value:
        code_point = ord(char)
        if code_point > 0xFFFF:
            code_point -= 0x10000
            yield 0xD800 + (code_point >> 10)
            yield 0xDC00 + (code_point & 0x3FF)
        else:
            yield code_point


def fnv1a_hash(value: str) -> int:
    """32-bit FNV-1a hash."""

    hashed = FNV_OFFSET_BASIS
    for unit in _code_units(value):
        hashed ^= unit
        hashed = (hashed * FNV_PRIME) & MASK_32
    return hashed


def hash_string(value: str) -> str:
    return f"{fnv1a_hash(value):08x}"


@dataclass(frozen=True)
class Signature:
    """Canonical description of a set of inputs, compared by equality.

    ``parts`` must already be in canonical (sorted) order. Empty parts are
    dropped before joining, and ``digest`` is the FNV-1a hash of the joined
    text. Downstream results cached against one signature are stale as soon as
    the freshly computed signature differs.
    """

    parts: Tuple[str, ...]
    separator: str = "#"
    prefix: str = ""

    @property
    def text(self) -> str:
        return self.separator.join(part for part in self.parts if part)

    @property
    def digest(self) -> str:
        return hash_string(self.prefix + self.text)

    def __str__(self) -> str:
        return self.digest


def string_to_seed(seed: str) -> int:
    """Turn a seed string into a non-zero 32-bit generator state."""

    if not seed:
        return 1
    digits = "".join(char for char in seed if char in "0123456789abcdefABCDEF")
    parsed = int(digits, 16) & MASK_32 if digits else 0
    if parsed == 0:
        return fnv1a_hash(seed) or 1
    return parsed


class Mulberry32:
    """Small deterministic PRNG with an explicit 32-bit state."""

    def __init__(self, seed: int) -> None:
        self.state = seed & MASK_32

    @classmethod
    def from_seed(cls, seed: str) -> "Mulberry32":
        return cls(string_to_seed(seed))

    def next_float(self) -> float:
        self.state = (self.state + MULBERRY_INCREMENT) & MASK_32
        state = self.state
        t = ((state ^ (state >> 15)) * (1 | state)) & MASK_32
        t = ((t + (((t ^ (t >> 7)) * (61 | t)) & MASK_32)) & MASK_32) ^ t
        return ((t ^ (t >> 14)) & MASK_32) / 0x100000000

    __call__ = next_float


def shuffle(values: Iterable[T], generator: Mulberry32) -> List[T]:
    """Fisher-Yates shuffle into a new list; the input is left untouched."""

    items = list(values)
    for index in range(len(items) - 1, 0, -1):
        swap = int(generator.next_float() * (index + 1))
        items[index], items[swap] = items[swap], items[index]
    return items


def lane_signature(lane_assignments: Sequence[LaneAssignment]) -> str:
    return ";".join(
        f"{lane.lane_number}:{lane.interval_ms}:{'|'.join(lane.class_order)}"
        for lane in sorted(lane_assignments, key=lambda lane: lane.lane_number)
    )


def entry_signature(entries: Sequence[Entry]) -> str:
    ordered = sorted(entries, key=lambda entry: text_sort_key(entry.id))
    return ";".join(f"{entry.id}:{entry.card_no}" for entry in ordered)


def ranking_signature(
    rankings: Optional[RankingByClass] = None,
    target_class_ids: Optional[Iterable[str]] = None,
) -> str:
    ranking_parts: List[str] = []
    for class_id in sorted(rankings or {}, key=text_sort_key):
        ranking = rankings[class_id]
        ordered = sorted(ranking.items(), key=lambda item: text_sort_key(item[0]))
        detail = "|".join(f"{iof_id}:{position}" for iof_id, position in ordered)
        ranking_parts.append(f"{class_id}#{detail}")
    target_part = "|".join(sorted(set(target_class_ids or ()), key=text_sort_key))
    return "#".join(part for part in ("|".join(ranking_parts), target_part) if part)


def seed_signature(
    startlist_id: Optional[str],
    entries: Sequence[Entry],
    lane_assignments: Sequence[LaneAssignment] = (),
    rankings: Optional[RankingByClass] = None,
    target_class_ids: Optional[Iterable[str]] = None,
) -> Signature:
    return Signature(
        parts=(
            startlist_id or "startlist",
            lane_signature(lane_assignments),
            entry_signature(entries),
            ranking_signature(rankings, target_class_ids),
        )
    )


def derive_seed(
    startlist_id: Optional[str],
    entries: Sequence[Entry],
    lane_assignments: Sequence[LaneAssignment] = (),
    explicit_seed: Optional[str] = None,
    rankings: Optional[Mapping[str, Mapping[str, int]]] = None,
    target_class_ids: Optional[Iterable[str]] = None,
) -> str:
    """Return the seed for a class order run.

    An explicit seed is passed through unchanged. Otherwise the seed is the
    hash of the inputs' signature, which ignores the order of the input
    collections but changes whenever a card number, a lane's class sequence or
    the ranking data changes.
    """

    if explicit_seed:
        return explicit_seed
    return seed_signature(startlist_id, entries, lane_assignments, rankings, target_class_ids).digest
