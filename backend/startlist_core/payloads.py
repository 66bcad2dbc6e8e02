"""JSON-facing models for generation requests and startlist snapshots.

Field names follow the camelCase used by the surrounding application; the
snake_case names are accepted too.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .entry import Entry
from .models import (
    ClassAssignment,
    ClassOrderWarning,
    ClassSplitResult,
    ClassSplitRule,
    LaneAssignment,
    SplitMethod,
    StartOrderMethod,
    StartOrderRule,
    StartTimeRecord,
)
from .settings import IntervalSetting, StartlistSettings


class EntryPayload(BaseModel):
    id: str
    name: str = ""
    class_id: str = Field(alias="classId")
    card_no: str = Field(default="", alias="cardNo")
    club: str = ""
    iof_id: Optional[str] = Field(default=None, alias="iofId")

    model_config = ConfigDict(populate_by_name=True)

    def to_entry(self) -> Entry:
        return Entry(
            id=self.id,
            name=self.name,
            class_id=self.class_id,
            card_no=self.card_no,
            club=self.club,
            iof_id=self.iof_id or None,
        )


class ClassSplitRulePayload(BaseModel):
    base_class_id: str = Field(alias="baseClassId")
    part_count: int = Field(alias="partCount", ge=2)
    method: SplitMethod = SplitMethod.RANDOM

    model_config = ConfigDict(populate_by_name=True)

    def to_rule(self) -> ClassSplitRule:
        return ClassSplitRule(base_class_id=self.base_class_id, part_count=self.part_count, method=self.method)


class StartOrderRulePayload(BaseModel):
    class_id: str = Field(alias="classId")
    method: StartOrderMethod = StartOrderMethod.RANDOM
    csv_name: str = Field(default="", alias="csvName")

    model_config = ConfigDict(populate_by_name=True)

    def to_rule(self) -> StartOrderRule:
        return StartOrderRule(class_id=self.class_id, method=self.method, csv_name=self.csv_name)


class StartlistRequest(BaseModel):
    startlist_id: Optional[str] = Field(default=None, alias="startlistId")
    settings: StartlistSettings = Field(default_factory=StartlistSettings)
    entries: List[EntryPayload] = Field(default_factory=list)
    split_rules: List[ClassSplitRulePayload] = Field(default_factory=list, alias="splitRules")
    start_order_rules: List[StartOrderRulePayload] = Field(default_factory=list, alias="startOrderRules")
    ranking_by_class: Dict[str, Dict[str, int]] = Field(default_factory=dict, alias="rankingByClass")
    seed: Optional[str] = None
    avoid_consecutive_clubs: bool = Field(default=True, alias="avoidConsecutiveClubs")
    start_number_offset: int = Field(default=1, alias="startNumberOffset", ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def to_entries(self) -> List[Entry]:
        return [payload.to_entry() for payload in self.entries]

    def to_split_rules(self) -> List[ClassSplitRule]:
        return [payload.to_rule() for payload in self.split_rules]

    def to_start_order_rules(self) -> List[StartOrderRule]:
        return [payload.to_rule() for payload in self.start_order_rules]


class LaneAssignmentModel(BaseModel):
    lane_number: int = Field(alias="laneNumber")
    class_order: List[str] = Field(alias="classOrder")
    interval: IntervalSetting

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_assignment(cls, lane: LaneAssignment) -> "LaneAssignmentModel":
        return cls(
            lane_number=lane.lane_number,
            class_order=list(lane.class_order),
            interval=IntervalSetting(milliseconds=lane.interval_ms),
        )


class ClassAssignmentModel(BaseModel):
    class_id: str = Field(alias="classId")
    player_order: List[str] = Field(alias="playerOrder")
    interval: IntervalSetting

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_assignment(cls, assignment: ClassAssignment) -> "ClassAssignmentModel":
        return cls(
            class_id=assignment.class_id,
            player_order=list(assignment.player_order),
            interval=IntervalSetting(milliseconds=assignment.interval_ms),
        )


class StartTimeModel(BaseModel):
    player_id: str = Field(alias="playerId")
    lane_number: int = Field(alias="laneNumber")
    start_time: Union[dt.datetime, str] = Field(alias="startTime")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: StartTimeRecord) -> "StartTimeModel":
        return cls(player_id=record.player_id, lane_number=record.lane_number, start_time=record.start_time)


class WarningOccurrenceModel(BaseModel):
    previous_player_id: str = Field(alias="previousPlayerId")
    next_player_id: str = Field(alias="nextPlayerId")
    clubs: List[str]

    model_config = ConfigDict(populate_by_name=True)


class ClassOrderWarningModel(BaseModel):
    class_id: str = Field(alias="classId")
    occurrences: List[WarningOccurrenceModel]

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_warning(cls, warning: ClassOrderWarning) -> "ClassOrderWarningModel":
        return cls(
            class_id=warning.class_id,
            occurrences=[
                WarningOccurrenceModel(
                    previous_player_id=item.previous_player_id,
                    next_player_id=item.next_player_id,
                    clubs=list(item.clubs),
                )
                for item in warning.occurrences
            ],
        )


class SplitClassModel(BaseModel):
    class_id: str = Field(alias="classId")
    base_class_id: str = Field(alias="baseClassId")
    split_index: int = Field(alias="splitIndex")
    display_name: str = Field(alias="displayName")

    model_config = ConfigDict(populate_by_name=True)


class ClassSplitResultModel(BaseModel):
    signature: str
    split_classes: List[SplitClassModel] = Field(alias="splitClasses")
    entry_to_split_id: Dict[str, str] = Field(alias="entryToSplitId")
    split_id_to_entry_ids: Dict[str, List[str]] = Field(alias="splitIdToEntryIds")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ClassSplitResult) -> "ClassSplitResultModel":
        return cls(
            signature=result.signature,
            split_classes=[
                SplitClassModel(
                    class_id=meta.class_id,
                    base_class_id=meta.base_class_id,
                    split_index=meta.split_index,
                    display_name=meta.display_name,
                )
                for meta in result.split_classes
            ],
            entry_to_split_id=dict(result.entry_to_split_id),
            split_id_to_entry_ids={key: list(value) for key, value in result.split_id_to_entry_ids.items()},
        )


class StartlistSnapshot(BaseModel):
    """What the persistence layer stores for one version of a startlist."""

    id: str
    status: str
    settings: StartlistSettings
    lane_assignments: List[LaneAssignmentModel] = Field(alias="laneAssignments")
    class_assignments: List[ClassAssignmentModel] = Field(alias="classAssignments")
    start_times: List[StartTimeModel] = Field(alias="startTimes")
    warnings: List[ClassOrderWarningModel] = Field(default_factory=list)
    seed: str = ""
    split_signature: str = Field(default="", alias="splitSignature")
    conflict_search_limit: int = Field(default=0, alias="conflictSearchLimit")
    class_split_result: Optional[ClassSplitResultModel] = Field(default=None, alias="classSplitResult")

    model_config = ConfigDict(populate_by_name=True)
