# tracker_ingest/models.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

PLAYLIST_SLOTS = ("1v1", "2v2", "3v3", "4v4")


class ScrapingStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# target -> statuses it may be entered from
ALLOWED_TRANSITIONS = {
    ScrapingStatus.IN_PROGRESS: {
        ScrapingStatus.PENDING,
        ScrapingStatus.COMPLETED,
        ScrapingStatus.FAILED,
    },
    ScrapingStatus.COMPLETED: {ScrapingStatus.IN_PROGRESS},
    ScrapingStatus.FAILED: {ScrapingStatus.IN_PROGRESS},
}


def can_transition(current: Any, target: Any) -> bool:
    return ScrapingStatus(current) in ALLOWED_TRANSITIONS.get(ScrapingStatus(target), set())


@dataclass
class PlaylistRecord:
    """Ranking snapshot for one competitive playlist in one season."""

    rank: Optional[str] = None
    rank_value: Optional[int] = None
    division: Optional[str] = None
    division_value: Optional[int] = None
    rating: Optional[int] = None
    matches_played: Optional[int] = None
    win_streak: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PlaylistRecord"]:
        if not data:
            return None
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass
class SeasonRecord:
    """All four ranked playlist slots for one season of one profile."""

    season_number: int
    season_name: Optional[str] = None
    playlist_1v1: Optional[PlaylistRecord] = None
    playlist_2v2: Optional[PlaylistRecord] = None
    playlist_3v3: Optional[PlaylistRecord] = None
    playlist_4v4: Optional[PlaylistRecord] = None

    def get_slot(self, slot: str) -> Optional[PlaylistRecord]:
        return getattr(self, f"playlist_{slot}")

    def set_slot(self, slot: str, record: Optional[PlaylistRecord]) -> None:
        if slot not in PLAYLIST_SLOTS:
            raise ValueError(f"Unknown playlist slot '{slot}'")
        setattr(self, f"playlist_{slot}", record)

    def filled_slots(self) -> Dict[str, PlaylistRecord]:
        return {slot: self.get_slot(slot) for slot in PLAYLIST_SLOTS if self.get_slot(slot) is not None}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "season_number": self.season_number,
            "season_name": self.season_name,
        }
        for slot in PLAYLIST_SLOTS:
            record = self.get_slot(slot)
            out[f"playlist_{slot}"] = record.to_dict() if record else None
        return out
