from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Card value used when a competitor borrows a timing card at the event.
RENTAL_CARD_LABEL = "レンタル"


@dataclass(frozen=True)
class Entry:
    """A registered competitor.

    Entry IDs are unique within a startlist. ``club`` may hold several club
    names separated by ``/`` for competitors representing more than one club.
    ``iof_id`` is the external identifier used to look up ranking positions.
    """

    id: str
    name: str
    class_id: str
    card_no: str = ""
    club: str = ""
    iof_id: Optional[str] = None

    def __post_init__(self) -> None:
        # Grouping keys never carry surrounding whitespace.
        object.__setattr__(self, "class_id", self.class_id.strip())

    @property
    def has_rental_card(self) -> bool:
        return self.card_no == RENTAL_CARD_LABEL
