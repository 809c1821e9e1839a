# tests/helpers.py

import json
import os
from typing import Any, Dict, List, Optional

from tracker_ingest.database import Database

PROFILE_URL = "https://rocketleague.tracker.network/rocket-league/profile/steam/76561198000000000/overview"


def fixture_path(filename: str) -> str:
    return os.path.join(os.path.dirname(__file__), "fixtures", filename)


def load_fixture(filename: str) -> Any:
    with open(fixture_path(filename), "r", encoding="utf-8") as f:
        return json.load(f)


def stat(value: Any, name: Optional[str] = None, display: Optional[str] = None) -> Dict[str, Any]:
    node: Dict[str, Any] = {"value": value, "displayValue": display if display is not None else str(value)}
    if name is not None:
        node["metadata"] = {"name": name}
    return node


def playlist_segment(playlist_id: Any, season: int, rating: Any = 1000, tier: Any = 15,
                     tier_name: str = "Champion III", division: Any = 2,
                     division_name: str = "Division III", matches: Any = 50,
                     streak: Any = 1) -> Dict[str, Any]:
    """A tracker.gg playlist segment with the stats the extractor reads."""
    return {
        "type": "playlist",
        "attributes": {"playlistId": playlist_id, "season": season},
        "metadata": {"name": f"Playlist {playlist_id}"},
        "stats": {
            "tier": stat(tier, tier_name),
            "division": stat(division, division_name),
            "rating": stat(rating),
            "matchesPlayed": stat(matches),
            "winStreak": stat(streak),
        },
    }


def overview_segment(name: str = "Lifetime") -> Dict[str, Any]:
    return {"type": "overview", "attributes": {}, "metadata": {"name": name}, "stats": {}}


def available_season(season: int, name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "playlist",
        "attributes": {"season": season},
        "metadata": {"name": name or f"Season {season}"},
    }


def profile_body(current_season: int, segments: List[Dict[str, Any]],
                 available: List[Dict[str, Any]]) -> Dict[str, Any]:
    """tracker.gg profile body as the proxy returns it inside `content`."""
    data = {
        "platformInfo": {"platformSlug": "steam", "platformUserId": "76561198000000000",
                         "platformUserHandle": "tester"},
        "userInfo": {"userId": 7, "isPremium": False},
        "metadata": {"lastUpdated": "2025-01-01T00:00:00Z", "playerId": 99,
                     "currentSeason": current_season},
        "segments": segments,
        "availableSegments": available,
    }
    return {"content": json.dumps({"data": data})}


def add_tracker(db: Database, url: str = PROFILE_URL, user_id: str = "user-1") -> str:
    return db.add_tracker(url, "steam", "76561198000000000", user_id)
