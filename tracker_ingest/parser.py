# tracker_ingest/parser.py

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from tracker_ingest.config import DEFAULT_PLAYLIST_ID_MAP
from tracker_ingest.models import PlaylistRecord, SeasonRecord
from tracker_ingest.scraper.validation import (
    describe_segment,
    is_number,
    segment_attributes,
    segment_metadata,
    validate_segment_stats,
)

logger = logging.getLogger(__name__)

PLAYLIST_SEGMENT_TYPE = "playlist"
OVERVIEW_SEGMENT_TYPE = "overview"


def _numeric(value: Any) -> Optional[int]:
    if not is_number(value):
        return None
    # records hold ints; tracker.gg sends ratings like 1542.0 and the odd 1542.6
    if isinstance(value, float):
        return int(round(value)) if math.isfinite(value) else None
    return int(value)


def _stat_value(stats: Mapping[str, Any], key: str) -> Optional[int]:
    node = stats.get(key)
    if not isinstance(node, dict):
        return None
    return _numeric(node.get("value"))


def _stat_name(stats: Mapping[str, Any], key: str) -> Optional[str]:
    node = stats.get(key)
    if not isinstance(node, dict):
        return None
    metadata = node.get("metadata")
    if not isinstance(metadata, dict):
        return None
    return metadata.get("name") or None


def extract_playlist(segment: Dict[str, Any]) -> Optional[PlaylistRecord]:
    """
    Build a PlaylistRecord from one raw playlist segment.

    Returns None only when the segment fails the structural check; missing
    or null stats just leave the matching field as None.
    """
    stats = segment.get("stats") if isinstance(segment, dict) else None
    is_valid, errors = validate_segment_stats(stats)
    if not is_valid:
        segment_type, playlist_id = describe_segment(segment)
        logger.warning(
            "Invalid stats structure in segment (type: %s, playlistId: %s): %s. "
            "The tracker.gg response structure may have changed.",
            segment_type,
            playlist_id,
            "; ".join(errors),
        )
        return None

    stats = stats or {}
    return PlaylistRecord(
        rank=_stat_name(stats, "tier"),
        rank_value=_stat_value(stats, "tier"),
        division=_stat_name(stats, "division"),
        division_value=_stat_value(stats, "division"),
        rating=_stat_value(stats, "rating"),
        matches_played=_stat_value(stats, "matchesPlayed"),
        win_streak=_stat_value(stats, "winStreak"),
    )


def season_name_for(
    segments: Iterable[Dict[str, Any]],
    season_number: int,
    available_segments: Optional[Iterable[Dict[str, Any]]] = None,
) -> str:
    for entry in available_segments or ():
        if segment_attributes(entry).get("season") == season_number:
            name = segment_metadata(entry).get("name")
            if name:
                return name

    for segment in segments:
        if isinstance(segment, dict) and segment.get("type") == OVERVIEW_SEGMENT_TYPE:
            name = segment_metadata(segment).get("name")
            if name:
                return name

    return f"Season {season_number}"


def build_season_record(
    segments: List[Dict[str, Any]],
    season_number: int,
    available_segments: Optional[List[Dict[str, Any]]] = None,
    playlist_map: Optional[Mapping[int, str]] = None,
) -> SeasonRecord:
    """Fill a SeasonRecord for `season_number` from the playlist segments of one response."""
    playlist_map = DEFAULT_PLAYLIST_ID_MAP if playlist_map is None else playlist_map
    record = SeasonRecord(
        season_number=season_number,
        season_name=season_name_for(segments, season_number, available_segments),
    )

    for segment in segments:
        if not isinstance(segment, dict) or segment.get("type") != PLAYLIST_SEGMENT_TYPE:
            continue
        attributes = segment_attributes(segment)
        if attributes.get("season") != season_number:
            continue

        playlist_id = attributes.get("playlistId")
        if not is_number(playlist_id):
            continue
        slot = playlist_map.get(int(playlist_id))
        if slot is None:
            # casual, extra modes and tournaments
            continue

        playlist = extract_playlist(segment)
        if playlist is not None:
            record.set_slot(slot, playlist)

    return record
