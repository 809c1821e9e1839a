# tracker_ingest/url_normalizer.py

from __future__ import annotations

import logging
from typing import NamedTuple
from urllib.parse import quote, urlsplit

from tracker_ingest.config import (
    API_PROFILE_BASE,
    PROFILE_GAME_SEGMENT,
    PROFILE_HOST,
    SUPPORTED_PLATFORMS,
)
from tracker_ingest.errors import MalformedProfileUrl

logger = logging.getLogger(__name__)


class ProfileRef(NamedTuple):
    platform: str
    username: str


def parse_profile_url(url: object) -> ProfileRef:
    """
    Split a public tracker profile URL into (platform, username).

    Accepts https://rocketleague.tracker.network/rocket-league/profile/<platform>/<username>
    followed by any number of extra segments (overview, matches, ...).

    Raises:
        MalformedProfileUrl: with a human-readable reason for any mismatch
    """
    if not isinstance(url, str):
        raise MalformedProfileUrl("url must be a string", url)
    text = url.strip()
    if not text:
        raise MalformedProfileUrl("url is empty", url)

    try:
        parts = urlsplit(text)
        hostname = parts.hostname
    except ValueError as exc:
        raise MalformedProfileUrl(f"url could not be parsed ({exc})", url)

    if parts.scheme.lower() != "https":
        raise MalformedProfileUrl("url must use https", url)
    if (hostname or "").lower() != PROFILE_HOST:
        raise MalformedProfileUrl(f"host must be {PROFILE_HOST}", url)

    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2 or segments[0].lower() != PROFILE_GAME_SEGMENT or segments[1].lower() != "profile":
        raise MalformedProfileUrl(f"path must start with /{PROFILE_GAME_SEGMENT}/profile/", url)
    if len(segments) < 3:
        raise MalformedProfileUrl("missing platform segment", url)
    if len(segments) < 4:
        raise MalformedProfileUrl("missing username segment", url)

    platform = segments[2].lower()
    if platform not in SUPPORTED_PLATFORMS:
        raise MalformedProfileUrl(
            f"unsupported platform '{segments[2]}' (supported: {', '.join(SUPPORTED_PLATFORMS)})",
            url,
        )
    return ProfileRef(platform=platform, username=segments[3])


def normalize_profile_url(url: object) -> str:
    """Turn a public profile URL into the tracker.gg profile API URL."""
    ref = parse_profile_url(url)
    # The path segment is encoded again on purpose: the API expects an
    # already percent-encoded handle to arrive double-encoded.
    api_url = f"{API_PROFILE_BASE}/{ref.platform}/{quote(ref.username, safe='')}"
    logger.debug("Converted profile URL %s -> %s", url, api_url)
    return api_url


def is_valid_profile_url(url: object) -> bool:
    try:
        parse_profile_url(url)
    except MalformedProfileUrl:
        return False
    return True


def with_season(api_url: str, season: int | None) -> str:
    if season is None:
        return api_url
    separator = "&" if "?" in api_url else "?"
    return f"{api_url}{separator}season={int(season)}"
