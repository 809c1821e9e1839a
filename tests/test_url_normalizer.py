# tests/test_url_normalizer.py

import pytest

from tracker_ingest.errors import MalformedProfileUrl
from tracker_ingest.url_normalizer import (
    ProfileRef,
    is_valid_profile_url,
    normalize_profile_url,
    parse_profile_url,
    with_season,
)

API_BASE = "https://api.tracker.gg/api/v2/rocket-league/standard/profile"


@pytest.mark.parametrize(
    "url, expected",
    [
        (
            "https://rocketleague.tracker.network/rocket-league/profile/steam/76561198000000000/overview",
            f"{API_BASE}/steam/76561198000000000",
        ),
        (
            "https://rocketleague.tracker.network/rocket-league/profile/epic/SomePlayer",
            f"{API_BASE}/epic/SomePlayer",
        ),
        (
            "https://rocketleague.tracker.network/rocket-league/profile/psn/Name%20With%20Space/overview",
            f"{API_BASE}/psn/Name%2520With%2520Space",
        ),
        (
            "  https://RocketLeague.Tracker.Network/rocket-league/profile/XBL/gamer/matches?x=1  ",
            f"{API_BASE}/xbl/gamer",
        ),
    ],
)
def test_normalize_valid_urls(url, expected):
    assert normalize_profile_url(url) == expected
    assert is_valid_profile_url(url)


@pytest.mark.parametrize(
    "url, reason_fragment",
    [
        (None, "must be a string"),
        ("", "empty"),
        ("   ", "empty"),
        ("http://rocketleague.tracker.network/rocket-league/profile/steam/x", "https"),
        ("https://example.com/rocket-league/profile/steam/x", "host"),
        ("https://rocketleague.tracker.network/r6siege/profile/steam/x", "path"),
        ("https://rocketleague.tracker.network/rocket-league/profile/", "missing platform"),
        ("https://rocketleague.tracker.network/rocket-league/profile/steam", "missing username"),
        ("https://rocketleague.tracker.network/rocket-league/profile/stadia/x", "unsupported platform"),
    ],
)
def test_invalid_urls_raise_with_reason(url, reason_fragment):
    with pytest.raises(MalformedProfileUrl) as excinfo:
        normalize_profile_url(url)
    assert reason_fragment in excinfo.value.reason
    assert not is_valid_profile_url(url)


def test_parse_profile_url_lowercases_platform_only():
    ref = parse_profile_url("https://rocketleague.tracker.network/rocket-league/profile/Epic/MixedCase")
    assert ref == ProfileRef(platform="epic", username="MixedCase")


def test_malformed_url_is_not_retryable():
    with pytest.raises(MalformedProfileUrl) as excinfo:
        normalize_profile_url("not a url")
    assert excinfo.value.retryable is False


def test_with_season():
    assert with_season(f"{API_BASE}/steam/1", None) == f"{API_BASE}/steam/1"
    assert with_season(f"{API_BASE}/steam/1", 28) == f"{API_BASE}/steam/1?season=28"
    assert with_season(f"{API_BASE}/steam/1?a=b", 28) == f"{API_BASE}/steam/1?a=b&season=28"
