from __future__ import annotations

from typing import Iterable


class StartlistError(Exception):
    """Base class for errors raised by the startlist engine."""


class StartNumberCapacityError(StartlistError, ValueError):
    """A lane ran out of three-digit start numbers during export."""

    def __init__(self, lane_number: int, start_number: int) -> None:
        self.lane_number = lane_number
        self.start_number = start_number
        super().__init__(
            f"start number range exceeded for lane {lane_number}: {start_number} is above 999"
        )


class RankingParseError(StartlistError, ValueError):
    """A ranking file is missing the columns needed to build a ranking map."""

    def __init__(self, missing_columns: Iterable[str]) -> None:
        self.missing_columns = frozenset(missing_columns)
        names = ", ".join(sorted(self.missing_columns))
        super().__init__(f"ranking file is missing required columns: {names}")


class RankingFetchError(StartlistError, RuntimeError):
    """Fetching a ranking page over HTTP failed."""


class RankingDataMissingError(StartlistError, ValueError):
    """Classes are configured for ranking order but no ranking data is loaded."""

    def __init__(self, class_ids: Iterable[str]) -> None:
        self.class_ids = tuple(class_ids)
        super().__init__(
            "ranking data must be loaded before generating start orders for: "
            + ", ".join(self.class_ids)
        )


class EntryImportError(StartlistError, ValueError):
    """An entry file could not be imported."""
