# tests/test_parser.py

import logging

from tests.helpers import available_season, load_fixture, overview_segment, playlist_segment
from tracker_ingest.models import PlaylistRecord
from tracker_ingest.parser import build_season_record, extract_playlist, season_name_for


def test_extract_playlist_reads_all_fields():
    record = extract_playlist(playlist_segment(11, 29, rating=1542.0, tier=17, tier_name="Grand Champion II",
                                               division=3, division_name="Division IV", matches=210, streak=-1))

    assert record == PlaylistRecord(
        rank="Grand Champion II",
        rank_value=17,
        division="Division IV",
        division_value=3,
        rating=1542,
        matches_played=210,
        win_streak=-1,
    )
    assert isinstance(record.rating, int)


def test_extract_playlist_missing_stats_are_none():
    segment = {"type": "playlist", "attributes": {"playlistId": 13, "season": 29},
               "stats": {"rating": {"value": 800, "displayValue": "800"}, "tier": {"value": None}}}

    record = extract_playlist(segment)

    assert record.rating == 800
    assert record.rank is None
    assert record.rank_value is None
    assert record.division is None
    assert record.matches_played is None


def test_extract_playlist_without_stats():
    record = extract_playlist({"type": "playlist", "attributes": {"playlistId": 13, "season": 29}})
    assert record == PlaylistRecord()


def test_extract_playlist_rejects_string_tier_and_warns(caplog):
    segment = playlist_segment(11, 29)
    segment["stats"]["tier"]["value"] = "Champion"

    with caplog.at_level(logging.WARNING, logger="tracker_ingest.parser"):
        assert extract_playlist(segment) is None

    assert "Invalid stats structure in segment (type: playlist, playlistId: 11)" in caplog.text
    assert "stats.tier.value must be a number or null" in caplog.text


def test_build_season_record_maps_playlists_to_slots():
    segments = [
        playlist_segment(1, 29, rating=900),
        playlist_segment(2, 29, rating=1100),
        playlist_segment(3, 29, rating=1200),
        playlist_segment(8, 29, rating=700),
        playlist_segment(42, 29, rating=9999),
        playlist_segment(2, 28, rating=5),
    ]

    record = build_season_record(segments, 29)

    assert record.season_number == 29
    assert record.playlist_1v1.rating == 900
    assert record.playlist_2v2.rating == 1100
    assert record.playlist_3v3.rating == 1200
    assert record.playlist_4v4.rating == 700
    assert all(slot.rating != 9999 for slot in record.filled_slots().values())


def test_unmapped_playlist_is_skipped():
    record = build_season_record([playlist_segment(42, 29)], 29)

    assert record.filled_slots() == {}


def test_invalid_segment_leaves_slot_empty():
    bad = playlist_segment(2, 29)
    bad["stats"]["tier"]["value"] = "Champion"

    record = build_season_record([bad, playlist_segment(3, 29)], 29)

    assert record.playlist_2v2 is None
    assert record.playlist_3v3 is not None


def test_custom_playlist_map():
    record = build_season_record([playlist_segment(27, 29, rating=905)], 29, playlist_map={27: "2v2"})
    assert record.playlist_2v2.rating == 905


def test_fixture_current_season():
    data = load_fixture("profile_steam.json")["data"]

    record = build_season_record(data["segments"], 29, data["availableSegments"])

    assert record.season_name == "Season 14 (F2P)"
    assert record.playlist_1v1.rank == "Champion II"
    assert record.playlist_2v2.rating == 1542
    assert record.playlist_3v3.division_value == 0
    assert record.playlist_4v4 is None


def test_season_name_fallbacks():
    assert season_name_for([], 20, [available_season(20, "Season 5")]) == "Season 5"
    assert season_name_for([overview_segment("Competitive")], 20, [available_season(19)]) == "Competitive"
    assert season_name_for([playlist_segment(1, 20)], 20, []) == "Season 20"


def test_non_integral_values_are_rounded():
    segment = playlist_segment(11, 29, rating=1542.6, matches=88.2, streak=-1.0)
    segment["stats"]["division"]["value"] = float("nan")

    record = extract_playlist(segment)

    assert record.rating == 1543
    assert record.matches_played == 88
    assert record.win_streak == -1
    assert record.division_value is None
    assert all(isinstance(v, int) for v in (record.rating, record.matches_played, record.win_streak))
