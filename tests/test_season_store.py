# tests/test_season_store.py

import os
import tempfile

import pytest

from tests.helpers import add_tracker
from tracker_ingest.database import Database
from tracker_ingest.models import PlaylistRecord, SeasonRecord
from tracker_ingest.season_store import store_seasons


@pytest.fixture
def temp_db():
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    database = Database(db_path)
    try:
        yield database
    finally:
        database.close()
        if os.path.exists(db_path):
            os.remove(db_path)


class FlakyStore:
    """Bulk writes always fail; single writes fail for the listed seasons."""

    def __init__(self, failing_seasons=()):
        self.failing_seasons = set(failing_seasons)
        self.bulk_calls = 0
        self.single_calls = []

    def bulk_upsert_seasons(self, tracker_id, seasons):
        self.bulk_calls += 1
        raise RuntimeError("database is locked")

    def upsert_season(self, tracker_id, season):
        self.single_calls.append(season.season_number)
        if season.season_number in self.failing_seasons:
            raise RuntimeError(f"constraint failed for {season.season_number}")


def _seasons(*numbers):
    return [SeasonRecord(season_number=n, playlist_2v2=PlaylistRecord(rating=1000 + n)) for n in numbers]


def test_empty_list_writes_nothing():
    store = FlakyStore()

    assert store_seasons(store, "t1", []) == {"seasons_scraped": 0, "seasons_failed": 0}
    assert store.bulk_calls == 0
    assert store.single_calls == []


def test_bulk_success(temp_db):
    tracker_id = add_tracker(temp_db)

    result = store_seasons(temp_db, tracker_id, _seasons(29, 28, 27))

    assert result == {"seasons_scraped": 3, "seasons_failed": 0}
    assert temp_db.count_seasons(tracker_id) == 3


def test_fallback_counts_every_season():
    store = FlakyStore(failing_seasons={28})

    result = store_seasons(store, "t1", _seasons(29, 28, 27, 26))

    assert result == {"seasons_scraped": 3, "seasons_failed": 1}
    assert store.single_calls == [29, 28, 27, 26]


def test_fallback_when_every_write_fails():
    seasons = _seasons(29, 28)
    store = FlakyStore(failing_seasons={29, 28})

    result = store_seasons(store, "t1", seasons)

    assert result["seasons_scraped"] + result["seasons_failed"] == len(seasons)
    assert result == {"seasons_scraped": 0, "seasons_failed": 2}


def test_bad_record_only_costs_itself(temp_db):
    tracker_id = add_tracker(temp_db)
    seasons = _seasons(29, 28) + [SeasonRecord(season_number=None)]

    result = store_seasons(temp_db, tracker_id, seasons)

    assert result == {"seasons_scraped": 2, "seasons_failed": 1}
    assert [s["season_number"] for s in temp_db.get_seasons(tracker_id)] == [29, 28]


def test_storing_twice_is_idempotent(temp_db):
    tracker_id = add_tracker(temp_db)
    seasons = _seasons(29, 28, 27)

    first = store_seasons(temp_db, tracker_id, seasons)
    rows_after_first = temp_db.get_seasons(tracker_id)
    second = store_seasons(temp_db, tracker_id, seasons)
    rows_after_second = temp_db.get_seasons(tracker_id)

    assert first == second == {"seasons_scraped": 3, "seasons_failed": 0}
    assert temp_db.count_seasons(tracker_id) == len(seasons)

    def content(rows):
        return [
            {k: v for k, v in row.items() if k not in ("scraped_at", "updated_at")}
            for row in rows
        ]

    assert content(rows_after_first) == content(rows_after_second)
