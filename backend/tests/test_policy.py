from __future__ import annotations

from typing import List

from startlist_core.config import EngineConfig
from startlist_core.entry import Entry
from startlist_core.models import (
    ClassGroup,
    ClassSplitRule,
    LaneAssignment,
    StartOrderMethod,
    StartOrderRule,
)
from startlist_core.policy import (
    SEEDED_RANDOM_POLICY,
    SEEDED_RANDOM_UNCONSTRAINED_POLICY,
    create_default_class_assignments,
    derive_class_order_warnings,
    update_class_player_order,
)
from startlist_core.seeding import derive_seed

CONFIG = EngineConfig()


def _entry(entry_id: str, class_id: str, club: str = "", iof_id: str | None = None) -> Entry:
    return Entry(id=entry_id, name=entry_id, class_id=class_id, card_no=f"c-{entry_id}", club=club, iof_id=iof_id)


def _club_group() -> ClassGroup:
    return ClassGroup(
        class_id="M21",
        entries=(_entry("A", "M21", "ClubX"), _entry("B", "M21", "ClubY"), _entry("C", "M21", "ClubX")),
    )


def _large_group() -> ClassGroup:
    clubs = ["North", "South", "East", "North", "South", "West", "North", "East", "South", "Lone"]
    return ClassGroup(
        class_id="W21",
        entries=tuple(_entry(f"W{index}", "W21", club) for index, club in enumerate(clubs)),
    )


def test_club_safe_policy_separates_same_club_runners() -> None:
    for seed in ["1", "2", "abc", "deadbeef", "0"]:
        result = SEEDED_RANDOM_POLICY.execute([_club_group()], seed)

        assert result.player_orders["M21"][1] == "B"
        assert result.warnings == {}


def test_policy_is_deterministic_and_permutes_members() -> None:
    groups = [_club_group(), _large_group()]
    first = SEEDED_RANDOM_POLICY.execute(groups, "5eed")
    second = SEEDED_RANDOM_POLICY.execute(groups, "5eed")

    assert first == second
    for group in groups:
        assert sorted(first.player_orders[group.class_id]) == sorted(entry.id for entry in group.entries)


def test_unconstrained_policy_never_warns() -> None:
    group = ClassGroup(class_id="M21", entries=tuple(_entry(f"P{index}", "M21", "Same") for index in range(4)))
    result = SEEDED_RANDOM_UNCONSTRAINED_POLICY.execute([group], "42")

    assert sorted(result.player_orders["M21"]) == ["P0", "P1", "P2", "P3"]
    assert result.warnings == {}


def test_unavoidable_conflicts_are_reported() -> None:
    group = ClassGroup(class_id="M21", entries=tuple(_entry(f"P{index}", "M21", "Same") for index in range(3)))
    result = SEEDED_RANDOM_POLICY.execute([group], "42", max_steps=100)

    assert len(result.warnings["M21"].occurrences) == 2


def test_empty_group_gets_empty_order() -> None:
    result = SEEDED_RANDOM_POLICY.execute([ClassGroup(class_id="M10", entries=())], "1")

    assert result.player_orders == {"M10": []}
    assert result.warnings == {}


def test_ranking_target_uses_ranking_order() -> None:
    group = ClassGroup(
        class_id="M21",
        entries=(_entry("P1", "M21", iof_id="I1"), _entry("P2", "M21", iof_id="I2"), _entry("P3", "M21")),
    )
    result = SEEDED_RANDOM_POLICY.execute([group], "7", rankings={"M21": {"I1": 1, "I2": 5}}, target_class_ids={"M21"})

    assert result.player_orders["M21"] == ["P3", "P2", "P1"]


def test_split_class_reads_ranking_of_base_class() -> None:
    group = ClassGroup(
        class_id="M211",
        base_class_id="M21",
        entries=(_entry("P1", "M21", iof_id="I1"), _entry("P2", "M21", iof_id="I2")),
    )
    result = SEEDED_RANDOM_POLICY.execute([group], "7", rankings={"M21": {"I1": 2, "I2": 9}}, target_class_ids={"M21"})

    assert result.player_orders["M211"] == ["P2", "P1"]


def test_create_default_class_assignments() -> None:
    entries = list(_club_group().entries) + list(_large_group().entries)
    lanes = [LaneAssignment(lane_number=1, class_order=("W21", "M21"), interval_ms=60000)]

    result = create_default_class_assignments(
        entries, 60000, startlist_id="sl-1", lane_assignments=lanes, config=CONFIG
    )

    assert [assignment.class_id for assignment in result.assignments] == ["M21", "W21"]
    assert all(assignment.interval_ms == 60000 for assignment in result.assignments)
    assert result.seed == derive_seed("sl-1", entries, lanes)
    assert result.split_signature == "no-split"

    kept = create_default_class_assignments(entries, 60000, seed=result.seed, config=CONFIG)
    assert kept.seed == result.seed
    assert kept.assignments == result.assignments


def test_create_default_class_assignments_with_splits_and_ranking() -> None:
    entries = [_entry(f"P{index}", "M21", iof_id=f"I{index}") for index in range(6)]
    rankings = {"M21": {f"I{index}": index + 1 for index in range(6)}}
    rules = [StartOrderRule(class_id="M21", method=StartOrderMethod.JAPAN_RANKING, csv_name="jp")]

    result = create_default_class_assignments(
        entries,
        30000,
        start_order_rules=rules,
        rankings=rankings,
        split_rules=[ClassSplitRule(base_class_id="M21", part_count=2)],
        config=CONFIG,
    )

    assert [assignment.class_id for assignment in result.assignments] == ["M211", "M212"]
    for assignment in result.assignments:
        positions: List[int] = [rankings["M21"][f"I{player_id[1:]}"] for player_id in assignment.player_order]
        assert positions == sorted(positions, reverse=True)
    assert result.split_result is not None


def test_manual_reorder_and_warning_refresh() -> None:
    entries = list(_club_group().entries)
    result = create_default_class_assignments(entries, 60000, seed="1", config=CONFIG)
    order = list(result.assignments[0].player_order)
    assert order[1] == "B"

    edited = update_class_player_order(result.assignments, "M21", from_index=1, to_index=2)

    assert list(edited[0].player_order) == [order[0], order[2], "B"]
    warnings = derive_class_order_warnings(edited, entries)
    assert len(warnings) == 1
    assert warnings[0].occurrences[0].clubs == ("ClubX",)
    assert derive_class_order_warnings(result.assignments, entries) == []
    assert derive_class_order_warnings([], entries) == []
