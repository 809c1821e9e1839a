# tracker_ingest/config.py
"""
Runtime settings for the tracker ingestion pipeline.

Everything is read from environment variables so the same code runs under
the web app, a job worker or the tests. Only numeric/string knobs live here;
none of them changes pipeline behavior beyond the limits they set.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

PROFILE_HOST = "rocketleague.tracker.network"
PROFILE_GAME_SEGMENT = "rocket-league"
API_PROFILE_BASE = "https://api.tracker.gg/api/v2/rocket-league/standard/profile"
SUPPORTED_PLATFORMS = ("steam", "epic", "xbl", "psn", "switch")

# Ranked playlist ids as seen on tracker.gg. The second group shows up in some
# responses for the same playlists and is not a documented contract.
DEFAULT_PLAYLIST_ID_MAP: Dict[int, str] = {
    1: "1v1",
    2: "2v2",
    3: "3v3",
    8: "4v4",
    10: "1v1",
    11: "2v2",
    13: "3v3",
    61: "4v4",
}

FIRST_RUN_HISTORICAL_SEASONS = 3
INCREMENTAL_HISTORICAL_SEASONS = 0
MAX_ERROR_MESSAGE_LENGTH = 1000


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = str(env.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def parse_playlist_id_map(raw: Optional[str]) -> Dict[int, str]:
    """Parse a JSON object of playlist id -> slot, e.g. '{"1": "1v1", "27": "2v2"}'."""
    if not raw or not raw.strip():
        return dict(DEFAULT_PLAYLIST_ID_MAP)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"TRACKER_PLAYLIST_ID_MAP is not valid JSON: {exc}")
    if not isinstance(parsed, dict):
        raise ValueError("TRACKER_PLAYLIST_ID_MAP must be a JSON object")

    out: Dict[int, str] = {}
    for key, slot in parsed.items():
        try:
            playlist_id = int(key)
        except (TypeError, ValueError):
            raise ValueError(f"TRACKER_PLAYLIST_ID_MAP key {key!r} is not an integer")
        if slot not in ("1v1", "2v2", "3v3", "4v4"):
            raise ValueError(f"TRACKER_PLAYLIST_ID_MAP value {slot!r} is not a playlist slot")
        out[playlist_id] = slot
    return out


@dataclass
class ProxyConfig:
    api_url: str = "https://scraper-api.decodo.com/v2/scrape"
    api_key: str = ""
    timeout_seconds: float = 60.0
    retry_attempts: int = 2
    retry_delay_seconds: float = 1.0
    rate_limit_per_minute: int = 30
    transport: str = "proxy"


@dataclass
class Settings:
    db_path: str = "data/tracker_ingest.db"
    log_level: str = "INFO"
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    playlist_id_map: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_PLAYLIST_ID_MAP))


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    rate_limit = _env_int(env, "SCRAPER_PROXY_RATE_LIMIT_PER_MINUTE", 30)
    if rate_limit == 0:
        raise ValueError("SCRAPER_PROXY_RATE_LIMIT_PER_MINUTE must be at least 1")

    transport = str(env.get("TRACKER_SCRAPE_TRANSPORT", "") or "proxy").strip().lower()
    if transport not in ("proxy", "browser"):
        raise ValueError(f"TRACKER_SCRAPE_TRANSPORT must be 'proxy' or 'browser', got {transport!r}")

    proxy = ProxyConfig(
        api_url=str(env.get("SCRAPER_PROXY_API_URL", "") or ProxyConfig.api_url).strip(),
        api_key=str(env.get("SCRAPER_PROXY_API_KEY", "") or "").strip(),
        timeout_seconds=_env_int(env, "SCRAPER_PROXY_TIMEOUT_MS", 60000) / 1000.0,
        retry_attempts=_env_int(env, "SCRAPER_PROXY_RETRY_ATTEMPTS", 2),
        retry_delay_seconds=_env_int(env, "SCRAPER_PROXY_RETRY_DELAY_MS", 1000) / 1000.0,
        rate_limit_per_minute=rate_limit,
        transport=transport,
    )

    return Settings(
        db_path=str(env.get("TRACKER_DB_PATH", "") or Settings.db_path).strip(),
        log_level=str(env.get("TRACKER_LOG_LEVEL", "") or "INFO").strip().upper(),
        proxy=proxy,
        playlist_id_map=parse_playlist_id_map(env.get("TRACKER_PLAYLIST_ID_MAP")),
    )
