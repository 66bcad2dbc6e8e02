from __future__ import annotations

import datetime as dt
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .entry import Entry

RankingMap = Mapping[str, int]
RankingByClass = Mapping[str, RankingMap]


def text_sort_key(value: str) -> Tuple[str, str]:
    """Stable, locale-independent ordering key for ids and class names."""

    return unicodedata.normalize("NFKC", value).casefold(), value


class SplitMethod(str, Enum):
    RANDOM = "random"
    BALANCED = "balanced"


class StartOrderMethod(str, Enum):
    RANDOM = "random"
    WORLD_RANKING = "worldRanking"
    JAPAN_RANKING = "japanRanking"

    @property
    def uses_ranking(self) -> bool:
        return self is not StartOrderMethod.RANDOM


@dataclass(frozen=True)
class ClassSplitRule:
    base_class_id: str
    part_count: int
    method: SplitMethod = SplitMethod.RANDOM


@dataclass(frozen=True)
class SplitClass:
    class_id: str
    base_class_id: str
    split_index: int
    display_name: str


@dataclass(frozen=True)
class ClassSplitResult:
    signature: str
    split_classes: Tuple[SplitClass, ...]
    entry_to_split_id: Dict[str, str]
    split_id_to_entry_ids: Dict[str, List[str]]


@dataclass(frozen=True)
class ClassGroup:
    """Competitors that start together as one (possibly split) class."""

    class_id: str
    entries: Tuple[Entry, ...]
    base_class_id: str = ""

    def __post_init__(self) -> None:
        if not self.base_class_id:
            object.__setattr__(self, "base_class_id", self.class_id)


@dataclass(frozen=True)
class StartOrderRule:
    class_id: str
    method: StartOrderMethod = StartOrderMethod.RANDOM
    csv_name: str = ""  # Marks where the ranking data came from; empty until loaded.


@dataclass(frozen=True)
class LaneAssignment:
    lane_number: int
    class_order: Tuple[str, ...]
    interval_ms: int = 0


@dataclass(frozen=True)
class ClassAssignment:
    class_id: str
    player_order: Tuple[str, ...]
    interval_ms: int = 0


@dataclass(frozen=True)
class StartTimeRecord:
    player_id: str
    lane_number: int
    start_time: Union[dt.datetime, str]


@dataclass(frozen=True)
class WarningOccurrence:
    previous_player_id: str
    next_player_id: str
    clubs: Tuple[str, ...]


@dataclass(frozen=True)
class ClassOrderWarning:
    class_id: str
    occurrences: Tuple[WarningOccurrence, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ClassOrderResult:
    player_orders: Dict[str, List[str]]
    warnings: Dict[str, ClassOrderWarning]


@dataclass(frozen=True)
class LaneGenerationResult:
    assignments: List[LaneAssignment]
    split_signature: str
    split_result: Optional[ClassSplitResult] = None


@dataclass(frozen=True)
class ClassAssignmentResult:
    assignments: List[ClassAssignment]
    seed: str
    warnings: List[ClassOrderWarning]
    split_signature: str
    split_result: Optional[ClassSplitResult] = None
