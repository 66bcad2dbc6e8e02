from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import EngineConfig
from .entry import Entry
from .errors import RankingDataMissingError
from .export import DEFAULT_START_NUMBER_OFFSET, ExportRow, build_export_rows
from .lanes import generate_lane_assignments
from .models import (
    ClassAssignment,
    ClassOrderWarning,
    ClassSplitResult,
    ClassSplitRule,
    LaneAssignment,
    RankingByClass,
    StartOrderRule,
    StartTimeRecord,
)
from .payloads import (
    ClassAssignmentModel,
    ClassOrderWarningModel,
    ClassSplitResultModel,
    LaneAssignmentModel,
    StartlistSnapshot,
    StartTimeModel,
)
from .policy import SEEDED_RANDOM_POLICY, ClassOrderPolicy, create_default_class_assignments
from .ranking import find_missing_ranking_classes
from .scheduler import calculate_start_times
from .settings import StartlistSettings

logger = logging.getLogger(__name__)


@dataclass
class StartlistPlan:
    startlist_id: str
    settings: StartlistSettings
    lane_assignments: List[LaneAssignment] = field(default_factory=list)
    class_assignments: List[ClassAssignment] = field(default_factory=list)
    start_times: List[StartTimeRecord] = field(default_factory=list)
    warnings: List[ClassOrderWarning] = field(default_factory=list)
    seed: str = ""
    split_signature: str = ""
    split_result: Optional[ClassSplitResult] = None
    conflict_search_limit: int = 0

    def export_rows(
        self,
        entries: Sequence[Entry],
        start_number_offset: int = DEFAULT_START_NUMBER_OFFSET,
        config: Optional[EngineConfig] = None,
    ) -> List[ExportRow]:
        config = config or EngineConfig.from_env()
        return build_export_rows(
            entries,
            self.start_times,
            self.class_assignments,
            start_number_offset=start_number_offset,
            default_interval_ms=self.settings.class_player_interval_ms,
            timezone=config.display_timezone,
        )

    def snapshot(self, status: str = "draft") -> Dict[str, Any]:
        """camelCase document for the persistence layer."""

        snapshot = StartlistSnapshot(
            id=self.startlist_id,
            status=status,
            settings=self.settings,
            lane_assignments=[LaneAssignmentModel.from_assignment(lane) for lane in self.lane_assignments],
            class_assignments=[ClassAssignmentModel.from_assignment(item) for item in self.class_assignments],
            start_times=[StartTimeModel.from_record(record) for record in self.start_times],
            warnings=[ClassOrderWarningModel.from_warning(warning) for warning in self.warnings],
            seed=self.seed,
            split_signature=self.split_signature,
            conflict_search_limit=self.conflict_search_limit,
            class_split_result=ClassSplitResultModel.from_result(self.split_result) if self.split_result else None,
        )
        return snapshot.model_dump(by_alias=True, mode="json")


def generate_startlist(
    entries: Sequence[Entry],
    settings: StartlistSettings,
    split_rules: Iterable[ClassSplitRule] = (),
    start_order_rules: Iterable[StartOrderRule] = (),
    rankings: Optional[RankingByClass] = None,
    startlist_id: Optional[str] = None,
    seed: Optional[str] = None,
    policy: ClassOrderPolicy = SEEDED_RANDOM_POLICY,
    config: Optional[EngineConfig] = None,
) -> StartlistPlan:
    """Lanes, class orders and start times for one startlist in a single pass.

    Raises :class:`RankingDataMissingError` when a class is set to a ranking
    start order but no ranking is loaded for it. Incomplete settings leave
    the affected stages empty instead of raising.
    """

    config = config or EngineConfig.from_env()
    split_rules = list(split_rules)
    start_order_rules = list(start_order_rules)

    missing = find_missing_ranking_classes(start_order_rules, rankings)
    if missing:
        raise RankingDataMissingError(missing)

    startlist_id = startlist_id or settings.event_id or "startlist"
    lanes = generate_lane_assignments(
        entries,
        settings.lane_count,
        settings.lane_class_interval_ms,
        split_rules,
        start_order_rules,
        rankings,
    )
    classes = create_default_class_assignments(
        entries,
        settings.class_player_interval_ms,
        seed=seed,
        startlist_id=startlist_id,
        lane_assignments=lanes.assignments,
        policy=policy,
        start_order_rules=start_order_rules,
        rankings=rankings,
        split_rules=split_rules,
        config=config,
    )
    start_times = calculate_start_times(settings, lanes.assignments, classes.assignments)

    logger.info(
        "Generated startlist %s: %d lanes, %d classes, %d start times",
        startlist_id,
        len(lanes.assignments),
        len(classes.assignments),
        len(start_times),
    )
    return StartlistPlan(
        startlist_id=startlist_id,
        settings=settings,
        lane_assignments=lanes.assignments,
        class_assignments=classes.assignments,
        start_times=start_times,
        warnings=classes.warnings,
        seed=classes.seed,
        split_signature=classes.split_signature,
        split_result=classes.split_result,
        conflict_search_limit=config.conflict_search_limit,
    )
