from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from tracker_ingest.api_client import ProxyScrapeClient
from tracker_ingest.config import (
    DEFAULT_PLAYLIST_ID_MAP,
    FIRST_RUN_HISTORICAL_SEASONS,
    INCREMENTAL_HISTORICAL_SEASONS,
)
from tracker_ingest.models import SeasonRecord
from tracker_ingest.parser import PLAYLIST_SEGMENT_TYPE, build_season_record
from tracker_ingest.scraper.validation import is_number, segment_attributes

logger = logging.getLogger(__name__)


def historical_bound(is_first_run: bool) -> int:
    """How many past seasons a caller should request besides the current one."""
    return FIRST_RUN_HISTORICAL_SEASONS if is_first_run else INCREMENTAL_HISTORICAL_SEASONS


def available_seasons(available_segments: List[Dict[str, Any]]) -> List[int]:
    """Season numbers advertised by `availableSegments`, newest first."""
    seasons = set()
    for entry in available_segments:
        if not isinstance(entry, dict) or entry.get("type") != PLAYLIST_SEGMENT_TYPE:
            continue
        season = segment_attributes(entry).get("season")
        if is_number(season):
            seasons.add(int(season))
    return sorted(seasons, reverse=True)


class SeasonOrchestrator:
    """
    Assemble per-season records for one profile.

    The base request already carries the active season, so that record is
    built without another round-trip. Older seasons are fetched one at a time
    through the shared rate limiter; a failed season is logged and dropped.
    """

    def __init__(self, client: ProxyScrapeClient, playlist_map: Optional[Mapping[int, str]] = None):
        self.client = client
        self.playlist_map = dict(DEFAULT_PLAYLIST_ID_MAP) if playlist_map is None else dict(playlist_map)

    def collect(self, profile_url: str, max_historical_seasons: int) -> List[SeasonRecord]:
        base = self.client.fetch_profile(profile_url)
        available_segments = base["availableSegments"]
        seasons = available_seasons(available_segments)

        current = base["metadata"].get("currentSeason")
        current = int(current) if is_number(current) and current else None

        if not seasons:
            logger.warning("No seasons available for %s", profile_url)
            return []

        records: List[SeasonRecord] = []
        if current is not None:
            records.append(
                build_season_record(base["segments"], current, available_segments, self.playlist_map)
            )

        history = [s for s in seasons if s != current][: max(0, max_historical_seasons)]
        fetched = 0
        for season_number in history:
            record = self._fetch_season(profile_url, season_number, available_segments)
            if record is not None:
                records.append(record)
                fetched += 1

        records.sort(key=lambda r: r.season_number, reverse=True)
        logger.info(
            "Collected %s season(s) for %s: current=%s, history %s/%s (%s advertised)",
            len(records),
            profile_url,
            current,
            fetched,
            len(history),
            len(seasons),
        )
        return records

    def _fetch_season(
        self,
        profile_url: str,
        season_number: int,
        available_segments: List[Dict[str, Any]],
    ) -> Optional[SeasonRecord]:
        try:
            data = self.client.fetch_profile(profile_url, season=season_number)
            return build_season_record(data["segments"], season_number, available_segments, self.playlist_map)
        except Exception as exc:
            logger.error("Failed to scrape season %s for %s: %s", season_number, profile_url, exc)
            return None
