from __future__ import annotations

from typing import List

from startlist_core.entry import Entry
from startlist_core.models import (
    ClassAssignment,
    ClassSplitRule,
    SplitMethod,
    StartOrderMethod,
    StartOrderRule,
)
from startlist_core.splitting import (
    NO_SPLIT_SIGNATURE,
    SplitClassLookup,
    deterministic_shuffle,
    distribute_round_robin,
    group_entries_by_class,
    prepare_class_splits,
    split_into_chunks,
)


def _entries() -> List[Entry]:
    men = [Entry(id=f"E{index}", name=f"Runner {index}", class_id="M21", card_no=str(index)) for index in range(1, 6)]
    women = [Entry(id="W1", name="Aya", class_id="W21 "), Entry(id="W2", name="Eri", class_id="W21")]
    return men + women


def test_group_entries_by_class_trims_keys() -> None:
    grouped = group_entries_by_class(_entries())

    assert list(grouped) == ["M21", "W21"]
    assert [entry.id for entry in grouped["W21"]] == ["W1", "W2"]


def test_chunks_and_round_robin_put_remainder_first() -> None:
    entries = _entries()[:5]

    assert [len(part) for part in split_into_chunks(entries, 2)] == [3, 2]
    assert [[entry.id for entry in part] for part in distribute_round_robin(entries, 2)] == [
        ["E1", "E3", "E5"],
        ["E2", "E4"],
    ]


def test_no_rules_keeps_classes_whole() -> None:
    preparation = prepare_class_splits(_entries())

    assert preparation.signature == NO_SPLIT_SIGNATURE
    assert preparation.result is None
    assert [group.class_id for group in preparation.groups] == ["M21", "W21"]
    assert preparation.entry_to_split_id["W1"] == "W21"


def test_rules_below_two_parts_are_ignored() -> None:
    preparation = prepare_class_splits(_entries(), [ClassSplitRule(base_class_id="M21", part_count=1)])

    assert preparation.signature == NO_SPLIT_SIGNATURE


def test_random_split_partitions_class() -> None:
    preparation = prepare_class_splits(_entries(), [ClassSplitRule(base_class_id="M21", part_count=2)])

    assert [group.class_id for group in preparation.groups] == ["M211", "M212", "W21"]
    first, second, women = preparation.groups
    assert (len(first.entries), len(second.entries)) == (3, 2)
    assert first.base_class_id == "M21" and women.base_class_id == "W21"
    assert sorted(entry.id for entry in first.entries + second.entries) == ["E1", "E2", "E3", "E4", "E5"]
    for group in (first, second):
        for entry in group.entries:
            assert preparation.entry_to_split_id[entry.id] == group.class_id
    assert sorted(preparation.split_id_to_entry_ids["M21"]) == ["E1", "E2", "E3", "E4", "E5"]

    result = preparation.result
    assert result is not None
    assert result.signature == preparation.signature
    assert len(preparation.signature) == 8
    assert [(meta.class_id, meta.display_name) for meta in result.split_classes] == [("M211", "1"), ("M212", "2")]


def test_split_is_independent_of_input_order() -> None:
    rules = [ClassSplitRule(base_class_id="M21", part_count=2)]
    forward = prepare_class_splits(_entries(), rules)
    backward = prepare_class_splits(list(reversed(_entries())), rules)

    assert forward.signature == backward.signature
    assert forward.entry_to_split_id == backward.entry_to_split_id
    assert [group.entries[0].id for group in backward.groups if group.class_id == "W21"] == ["W2"]


def test_split_signature_tracks_roster_and_rules() -> None:
    rules = [ClassSplitRule(base_class_id="M21", part_count=2)]
    base = prepare_class_splits(_entries(), rules).signature
    more = prepare_class_splits(_entries() + [Entry(id="E6", name="New", class_id="M21")], rules).signature
    three = prepare_class_splits(_entries(), [ClassSplitRule(base_class_id="M21", part_count=3)]).signature

    assert len({base, more, three}) == 3


def test_balanced_split_without_ranking_deals_round_robin() -> None:
    rules = [ClassSplitRule(base_class_id="M21", part_count=2, method=SplitMethod.BALANCED)]
    preparation = prepare_class_splits(_entries(), rules)

    sizes = [len(group.entries) for group in preparation.groups if group.base_class_id == "M21"]
    assert sizes == [3, 2]
    assert preparation.result is not None
    assert preparation.result.split_classes[0].display_name == "Balanced 1"

    men = [entry for entry in _entries() if entry.class_id == "M21"]
    shuffled, _ = deterministic_shuffle(men, "M21")
    assert preparation.split_id_to_entry_ids["M21"] == [entry.id for entry in shuffled]


def test_balanced_split_spreads_ranked_entries() -> None:
    entries = [
        Entry(id="A", name="A", class_id="M21", iof_id="R1"),
        Entry(id="B", name="B", class_id="M21", iof_id="R2"),
        Entry(id="C", name="C", class_id="M21", iof_id="R3"),
        Entry(id="D", name="D", class_id="M21", iof_id="R4"),
    ]
    rules = [ClassSplitRule(base_class_id="M21", part_count=2, method=SplitMethod.BALANCED)]
    order_rules = [StartOrderRule(class_id="M21", method=StartOrderMethod.WORLD_RANKING, csv_name="wr.csv")]
    rankings = {"M21": {"R1": 1, "R2": 2, "R3": 3, "R4": 4}}

    preparation = prepare_class_splits(entries, rules, order_rules, rankings)

    assert preparation.split_id_to_entry_ids["M211"] == ["A", "C"]
    assert preparation.split_id_to_entry_ids["M212"] == ["B", "D"]
    fallback = prepare_class_splits(entries, rules)
    assert fallback.signature != preparation.signature


def test_split_class_lookup_labels() -> None:
    entries = _entries()
    preparation = prepare_class_splits(entries, [ClassSplitRule(base_class_id="M21", part_count=2)])
    assignments = [
        ClassAssignment(class_id=group.class_id, player_order=tuple(entry.id for entry in group.entries))
        for group in preparation.groups
    ]
    lookup = SplitClassLookup(assignments, entries, preparation.result)

    assert lookup.class_label("M211") == "M211 (M21, split 1)"
    assert lookup.class_label("W21") == "W21"
    assert lookup.base_class_id("M212") == "M21"
    assert lookup.classes_for_base("M21") == ["M21", "M211", "M212"]
    player = preparation.groups[1].entries[0].id
    assert lookup.player_class_id(player) == "M212"
    assert lookup.player_base_class_id(player) == "M21"
    assert lookup.player_class_id("nobody") is None
