"""Deterministic startlist generation for orienteering events."""

from .entry import Entry
from .errors import (
    EntryImportError,
    RankingDataMissingError,
    RankingFetchError,
    RankingParseError,
    StartlistError,
    StartNumberCapacityError,
)
from .settings import StartlistSettings
from .startlist import StartlistPlan, generate_startlist

__all__ = [
    "Entry",
    "EntryImportError",
    "RankingDataMissingError",
    "RankingFetchError",
    "RankingParseError",
    "StartlistError",
    "StartNumberCapacityError",
    "StartlistPlan",
    "StartlistSettings",
    "generate_startlist",
]
