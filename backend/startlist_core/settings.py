from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IntervalSetting(BaseModel):
    milliseconds: int = Field(default=0, ge=0)


class SettingsIntervals(BaseModel):
    lane_class: IntervalSetting = Field(default_factory=IntervalSetting, alias="laneClass")
    class_player: IntervalSetting = Field(default_factory=IntervalSetting, alias="classPlayer")

    model_config = ConfigDict(populate_by_name=True)


class StartlistSettings(BaseModel):
    """Event-wide schedule settings.

    Every field is optional: a half-configured startlist is valid input and
    simply produces empty lanes or start times until it is completed.
    """

    event_id: Optional[str] = Field(default=None, alias="eventId")
    start_time: Optional[dt.datetime] = Field(default=None, alias="startTime")
    lane_count: Optional[int] = Field(default=None, alias="laneCount")
    intervals: SettingsIntervals = Field(default_factory=SettingsIntervals)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("start_time")
    @classmethod
    def _assume_utc(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value

    @property
    def lane_class_interval_ms(self) -> int:
        return self.intervals.lane_class.milliseconds

    @property
    def class_player_interval_ms(self) -> int:
        return self.intervals.class_player.milliseconds
