from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_RANKING_BASE_URL = "https://japan-o-entry.com/ranking/ranking/ranking_index"
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_CONFLICT_SEARCH_LIMIT = 20000
DEFAULT_DISPLAY_TIMEZONE = "Asia/Tokyo"


@dataclass(frozen=True)
class EngineConfig:
    """Runtime knobs for the engine that do not belong to a single startlist.

    Values are read from the environment so deployments can tune them without
    code changes. ``conflict_search_limit`` caps the number of search nodes the
    club-conflict search may expand per class; ``0`` or less disables the cap.
    """

    ranking_base_url: str = DEFAULT_RANKING_BASE_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    conflict_search_limit: int = DEFAULT_CONFLICT_SEARCH_LIMIT
    display_timezone: str = DEFAULT_DISPLAY_TIMEZONE

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            ranking_base_url=os.getenv("STARTLIST_RANKING_BASE_URL", "").strip() or DEFAULT_RANKING_BASE_URL,
            http_timeout=_env_number("STARTLIST_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, float),
            conflict_search_limit=_env_number(
                "STARTLIST_CONFLICT_SEARCH_LIMIT", DEFAULT_CONFLICT_SEARCH_LIMIT, int
            ),
            display_timezone=os.getenv("STARTLIST_DISPLAY_TIMEZONE", "").strip() or DEFAULT_DISPLAY_TIMEZONE,
        )


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
