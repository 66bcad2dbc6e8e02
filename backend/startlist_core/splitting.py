"""Splitting oversized classes into independently ordered parts."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .entry import Entry
from .models import (
    ClassAssignment,
    ClassGroup,
    ClassSplitResult,
    ClassSplitRule,
    RankingByClass,
    RankingMap,
    SplitClass,
    SplitMethod,
    StartOrderMethod,
    StartOrderRule,
    text_sort_key,
)
from .ranking import lookup_position
from .seeding import Mulberry32, Signature, hash_string, ranking_signature, shuffle

logger = logging.getLogger(__name__)

NO_SPLIT_SIGNATURE = "no-split"


def group_entries_by_class(entries: Iterable[Entry]) -> Dict[str, List[Entry]]:
    grouped: Dict[str, List[Entry]] = {}
    for entry in entries:
        grouped.setdefault(entry.class_id.strip(), []).append(entry)
    return grouped


def split_class_id(base_class_id: str, index: int) -> str:
    return f"{base_class_id}{index + 1}"


def split_display_name(method: SplitMethod, index: int) -> str:
    if method is SplitMethod.BALANCED:
        return f"Balanced {index + 1}"
    return str(index + 1)


def normalize_split_rules(rules: Iterable[ClassSplitRule]) -> List[ClassSplitRule]:
    normalized: List[ClassSplitRule] = []
    for rule in rules:
        if not rule.part_count or rule.part_count <= 1 or not rule.base_class_id.strip():
            continue
        normalized.append(
            ClassSplitRule(
                base_class_id=rule.base_class_id.strip(),
                part_count=max(2, int(math.floor(rule.part_count))),
                method=SplitMethod(rule.method),
            )
        )
    return normalized


def _ranking_position(ranking: Optional[RankingMap], entry: Entry) -> Optional[int]:
    if not ranking:
        return None
    return lookup_position(ranking, entry.iof_id)


def _format_position(position: Optional[int]) -> str:
    return "NA" if position is None else str(position)


def deterministic_shuffle(entries: Sequence[Entry], base_class_id: str) -> Tuple[List[Entry], str]:
    """Shuffle a roster with a seed derived from the class and its members only.

    Returns the shuffled roster and the seed, so split membership does not
    move when unrelated classes or the start order seed change.
    """

    normalized = sorted(entries, key=lambda entry: text_sort_key(entry.id))
    seed_base = "|".join(f"{base_class_id}#{entry.id}" for entry in normalized)
    seed = hash_string(f"split-random#{seed_base}")
    generator = Mulberry32(int(seed, 16) or 1)
    return shuffle(normalized, generator), seed


def split_into_chunks(entries: Sequence[Entry], part_count: int) -> List[List[Entry]]:
    """Slice into contiguous near-equal parts; earlier parts take the remainder."""

    base, remainder = divmod(len(entries), part_count)
    parts: List[List[Entry]] = []
    start = 0
    for index in range(part_count):
        size = base + (1 if index < remainder else 0)
        parts.append(list(entries[start : start + size]))
        start += size
    return parts


def distribute_round_robin(entries: Sequence[Entry], part_count: int) -> List[List[Entry]]:
    parts: List[List[Entry]] = [[] for _ in range(part_count)]
    for index, entry in enumerate(entries):
        parts[index % part_count].append(entry)
    return parts


def _least_filled_parts(counts: Sequence[int], max_size: int) -> List[int]:
    indexed = list(enumerate(counts))
    available = [item for item in indexed if max_size == 0 or item[1] < max_size]
    candidates = available or indexed
    lowest = min(count for _, count in candidates)
    return sorted(index for index, count in candidates if count == lowest)


def ranking_balanced_split(
    entries: Sequence[Entry],
    part_count: int,
    ranking: RankingMap,
) -> List[List[Entry]]:
    """Spread ranked competitors so each part carries a similar rank total.

    Ranked entries (best first) go to the least-filled part with the lowest
    accumulated rank score; unranked entries then top up the least-filled
    parts in id order.
    """

    def sort_key(entry: Entry):
        position = _ranking_position(ranking, entry)
        return (position is None, position or 0, text_sort_key(entry.id))

    ordered = sorted(entries, key=sort_key)
    parts: List[List[Entry]] = [[] for _ in range(part_count)]
    scores = [0] * part_count
    counts = [0] * part_count
    max_size = math.ceil(len(entries) / part_count)

    for entry in ordered:
        position = _ranking_position(ranking, entry)
        candidates = _least_filled_parts(counts, max_size)
        if position is not None:
            best = min(candidates, key=lambda index: (scores[index], counts[index], index))
            scores[best] += position
        else:
            best = candidates[0]
        parts[best].append(entry)
        counts[best] += 1
    return parts


@dataclass
class ClassSplitPreparation:
    signature: str
    groups: List[ClassGroup]
    entry_to_split_id: Dict[str, str] = field(default_factory=dict)
    split_id_to_base_class_id: Dict[str, str] = field(default_factory=dict)
    split_id_to_entry_ids: Dict[str, List[str]] = field(default_factory=dict)
    result: Optional[ClassSplitResult] = None

    def non_empty_groups(self) -> List[ClassGroup]:
        return [group for group in self.groups if group.entries]


def prepare_class_splits(
    entries: Sequence[Entry],
    split_rules: Iterable[ClassSplitRule] = (),
    start_order_rules: Iterable[StartOrderRule] = (),
    rankings: Optional[RankingByClass] = None,
) -> ClassSplitPreparation:
    """Group entries by class, splitting the classes that have a rule.

    The returned signature is ``"no-split"`` when no rule applies, otherwise a
    hash over the sorted rules and the resulting distribution. Any change in
    rules or roster changes the signature and invalidates assignments that
    were computed for the previous one.
    """

    grouped = group_entries_by_class(entries)
    rules_by_base = {rule.base_class_id: rule for rule in normalize_split_rules(split_rules)}
    rules = list(rules_by_base.values())
    start_order_methods: Dict[str, StartOrderMethod] = {
        rule.class_id.strip(): StartOrderMethod(rule.method) for rule in start_order_rules if rule.class_id.strip()
    }

    base_ids = sorted(set(grouped) | set(rules_by_base), key=text_sort_key)
    preparation = ClassSplitPreparation(signature=NO_SPLIT_SIGNATURE, groups=[])
    base_entry_ids: Dict[str, List[str]] = {}
    shuffle_parts: List[str] = []
    ranking_parts: List[str] = []

    for base_class_id in base_ids:
        class_entries = grouped.get(base_class_id, [])
        rule = rules_by_base.get(base_class_id)
        if rule is None:
            entry_ids = [entry.id for entry in class_entries]
            for entry_id in entry_ids:
                preparation.entry_to_split_id[entry_id] = base_class_id
            preparation.split_id_to_base_class_id[base_class_id] = base_class_id
            preparation.split_id_to_entry_ids[base_class_id] = entry_ids
            base_entry_ids[base_class_id] = entry_ids
            preparation.groups.append(
                ClassGroup(class_id=base_class_id, entries=tuple(class_entries), base_class_id=base_class_id)
            )
            continue

        ranking = (rankings or {}).get(base_class_id)
        method = start_order_methods.get(base_class_id)
        use_ranking = (
            rule.method is SplitMethod.BALANCED
            and method is not None
            and method.uses_ranking
            and bool(ranking)
            and bool(class_entries)
        )

        if use_ranking:
            parts = ranking_balanced_split(class_entries, rule.part_count, ranking)
            detail = "|".join(
                f"{index}:" + ",".join(f"{entry.id}:{_format_position(_ranking_position(ranking, entry))}" for entry in part)
                for index, part in enumerate(parts)
            )
            ranking_parts.append(f"{base_class_id}:balanced:{detail}")
            base_order = [entry.id for part in parts for entry in part]
        else:
            if rule.method is SplitMethod.BALANCED:
                if method is None or not method.uses_ranking:
                    reason = "start-order"
                elif not ranking:
                    reason = "ranking-data"
                else:
                    reason = "entries"
                logger.debug("Balanced split for %s falls back to shuffle (%s)", base_class_id, reason)
                ranking_parts.append(f"{base_class_id}:fallback:{rule.method.value}:{reason}")
            roster: List[Entry] = list(class_entries)
            if len(roster) > 1:
                roster, seed = deterministic_shuffle(roster, base_class_id)
                shuffle_parts.append(f"{base_class_id}:{seed}:{','.join(entry.id for entry in roster)}")
            if rule.method is SplitMethod.RANDOM:
                parts = split_into_chunks(roster, rule.part_count)
            else:
                parts = distribute_round_robin(roster, rule.part_count)
            base_order = [entry.id for entry in roster]

        for index, part in enumerate(parts):
            class_id = split_class_id(base_class_id, index)
            entry_ids = [entry.id for entry in part]
            for entry_id in entry_ids:
                preparation.entry_to_split_id[entry_id] = class_id
            preparation.split_id_to_base_class_id[class_id] = base_class_id
            preparation.split_id_to_entry_ids[class_id] = entry_ids
            preparation.groups.append(ClassGroup(class_id=class_id, entries=tuple(part), base_class_id=base_class_id))
        base_entry_ids[base_class_id] = base_order

    for base_class_id, entry_ids in base_entry_ids.items():
        preparation.split_id_to_entry_ids[base_class_id] = entry_ids
        preparation.split_id_to_base_class_id.setdefault(base_class_id, base_class_id)

    if not rules:
        return preparation

    rule_parts = sorted(
        (f"{rule.base_class_id}:{rule.part_count}:{rule.method.value}" for rule in rules), key=text_sort_key
    )
    distribution_parts = sorted(
        (
            f"{group.class_id}:{group.base_class_id}:"
            + ",".join(sorted((entry.id for entry in group.entries), key=text_sort_key))
            for group in preparation.groups
        ),
        key=text_sort_key,
    )
    signature = Signature(
        parts=(
            *rule_parts,
            *sorted(shuffle_parts, key=text_sort_key),
            *distribution_parts,
            *sorted(ranking_parts, key=text_sort_key),
            ranking_signature(rankings),
        ),
        separator="|",
        prefix="split#",
    ).digest

    split_classes = tuple(
        SplitClass(
            class_id=split_class_id(rule.base_class_id, index),
            base_class_id=rule.base_class_id,
            split_index=index,
            display_name=split_display_name(rule.method, index),
        )
        for rule in rules
        for index in range(rule.part_count)
    )
    preparation.signature = signature
    preparation.result = ClassSplitResult(
        signature=signature,
        split_classes=split_classes,
        entry_to_split_id=dict(preparation.entry_to_split_id),
        split_id_to_entry_ids={key: list(value) for key, value in preparation.split_id_to_entry_ids.items()},
    )
    return preparation


class SplitClassLookup:
    """Answers which (split) class a player starts in and how to label it."""

    def __init__(
        self,
        class_assignments: Sequence[ClassAssignment],
        entries: Sequence[Entry],
        split_result: Optional[ClassSplitResult] = None,
    ) -> None:
        entry_classes = {entry.id: entry.class_id for entry in entries}
        self._player_class: Dict[str, str] = {}
        self._base_class: Dict[str, str] = {}
        self._display_name: Dict[str, str] = {}

        if split_result is not None:
            for meta in split_result.split_classes:
                self._base_class[meta.class_id] = meta.base_class_id
                self._display_name[meta.class_id] = meta.display_name

        for assignment in class_assignments:
            for player_id in assignment.player_order:
                self._player_class.setdefault(player_id, assignment.class_id)
            if assignment.class_id not in self._base_class:
                base = next(
                    (entry_classes[player_id] for player_id in assignment.player_order if player_id in entry_classes),
                    assignment.class_id,
                )
                self._base_class[assignment.class_id] = base

        if split_result is not None:
            for entry_id, split_id in split_result.entry_to_split_id.items():
                self._player_class.setdefault(entry_id, split_id)
        for entry in entries:
            self._player_class.setdefault(entry.id, entry.class_id)
            self._base_class.setdefault(entry.class_id, entry.class_id)

    def player_class_id(self, player_id: str) -> Optional[str]:
        return self._player_class.get(player_id)

    def base_class_id(self, class_id: str) -> str:
        return self._base_class.get(class_id, class_id)

    def player_base_class_id(self, player_id: str) -> Optional[str]:
        class_id = self.player_class_id(player_id)
        return self.base_class_id(class_id) if class_id else None

    def classes_for_base(self, base_class_id: str) -> List[str]:
        return sorted(
            (class_id for class_id, base in self._base_class.items() if base == base_class_id),
            key=text_sort_key,
        )

    def class_label(self, class_id: str) -> str:
        base = self.base_class_id(class_id)
        if base == class_id:
            return class_id
        display_name = self._display_name.get(class_id)
        helper = f"{base}, split {display_name}" if display_name else base
        return f"{class_id} ({helper})"
