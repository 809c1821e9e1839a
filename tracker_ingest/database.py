# tracker_ingest/database.py

import json
import logging
import os
import sqlite3
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from tracker_ingest.errors import InvalidStatusTransition
from tracker_ingest.models import PLAYLIST_SLOTS, PlaylistRecord, ScrapingStatus, SeasonRecord, can_transition

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """Persistence for trackers, their season records and scraping runs."""

    def __init__(self, db_path: str = 'data/tracker_ingest.db'):
        self.db_path = self._resolve_db_path(db_path)
        self.conn = None
        self._lock = threading.RLock()
        self.init_database()

    @staticmethod
    def _resolve_db_path(db_path: str) -> str:
        """Return an absolute database path anchored to project root when relative."""
        if db_path == ":memory:":
            return db_path
        path = Path(db_path)
        if path.is_absolute():
            return str(path)

        project_root = Path(__file__).resolve().parents[1]
        return str(project_root / path)

    def init_database(self):
        """Create tables if they don't exist."""
        try:
            db_dir = os.path.dirname(self.db_path) if self.db_path != ":memory:" else ""
            if db_dir:
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except OSError as e:
                    raise RuntimeError(f"Failed to create database directory '{db_dir}': {e}")

            # Shared between the web event loop and pipeline worker threads;
            # every access goes through self._lock.
            self.conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA busy_timeout = 30000")
            self.conn.execute("PRAGMA foreign_keys = ON")
            self._set_wal_mode_best_effort()

            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trackers (
                    id                  TEXT PRIMARY KEY,
                    url                 TEXT UNIQUE NOT NULL,
                    platform            TEXT NOT NULL,
                    username            TEXT NOT NULL,
                    user_id             TEXT NOT NULL,
                    last_scraped_at     TEXT,
                    scraping_status     TEXT NOT NULL DEFAULT 'PENDING',
                    scraping_error      TEXT,
                    scraping_attempts   INTEGER NOT NULL DEFAULT 0,
                    created_at          TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at          TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tracker_seasons (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    tracker_id      TEXT NOT NULL,
                    season_number   INTEGER NOT NULL,
                    season_name     TEXT,

                    -- PlaylistRecord JSON, NULL when the playlist was not played
                    playlist_1v1    TEXT,
                    playlist_2v2    TEXT,
                    playlist_3v3    TEXT,
                    playlist_4v4    TEXT,

                    scraped_at      TEXT NOT NULL,
                    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at      TEXT NOT NULL,

                    UNIQUE (tracker_id, season_number),
                    FOREIGN KEY (tracker_id) REFERENCES trackers(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tracker_scraping_logs (
                    id              TEXT PRIMARY KEY,
                    tracker_id      TEXT NOT NULL,
                    status          TEXT NOT NULL,
                    seasons_scraped INTEGER NOT NULL DEFAULT 0,
                    seasons_failed  INTEGER NOT NULL DEFAULT 0,
                    error_message   TEXT,
                    started_at      TEXT NOT NULL,
                    completed_at    TEXT,
                    FOREIGN KEY (tracker_id) REFERENCES trackers(id)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_trackers_status ON trackers(scraping_status)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_trackers_last_scraped ON trackers(last_scraped_at)")
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_scraping_logs_tracker ON tracker_scraping_logs(tracker_id, started_at)"
            )

            self._commit_with_retry(context="init schema commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to initialize database at '{self.db_path}': {e}")

    def _commit_with_retry(self, retries: int = 8, delay_seconds: float = 0.25, context: str = "commit") -> None:
        """
        Retry commit on transient SQLITE_BUSY/locked errors.
        """
        last_error = None
        for attempt in range(retries):
            try:
                self.conn.commit()
                return
            except sqlite3.OperationalError as e:
                last_error = e
                if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                    raise
                if attempt == retries - 1:
                    break
                time.sleep(delay_seconds)
        # the uncommitted statements must not ride along with a later commit
        self.conn.rollback()
        raise RuntimeError(
            f"Failed to {context}: database remained locked after {retries} attempts ({last_error})"
        )

    def _set_wal_mode_best_effort(self, retries: int = 5, delay_seconds: float = 0.2) -> None:
        """Try to enable WAL without failing startup if the DB is temporarily locked."""
        if self.db_path == ":memory:":
            return
        for attempt in range(retries):
            try:
                self.conn.execute("PRAGMA journal_mode = WAL")
                return
            except sqlite3.OperationalError as e:
                msg = str(e).lower()
                if "locked" not in msg and "busy" not in msg:
                    raise
                if attempt == retries - 1:
                    logger.warning("Could not enable WAL mode (database locked); continuing. (%s)", e)
                    return
                time.sleep(delay_seconds)

    def close(self) -> None:
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    # --- Trackers ---

    def add_tracker(self, url: str, platform: str, username: str, user_id: str,
                    tracker_id: Optional[str] = None) -> str:
        """Register a tracker and return its id."""
        new_id = tracker_id or str(uuid.uuid4())
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO trackers (id, url, platform, username, user_id)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (new_id, url, platform, username, user_id),
                )
                self.conn.commit()
                return new_id
            except sqlite3.Error as e:
                self.conn.rollback()
                raise RuntimeError(f"Failed to add tracker '{url}': {e}")

    def get_tracker(self, tracker_id: str) -> Optional[Dict]:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("SELECT * FROM trackers WHERE id = ?", (tracker_id,))
                row = cursor.fetchone()
                return dict(row) if row else None
            except sqlite3.Error as e:
                raise RuntimeError(f"Failed to get tracker '{tracker_id}': {e}")

    def get_tracker_by_url(self, url: str) -> Optional[Dict]:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM trackers WHERE url = ?", (url,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def _transition(self, tracker_id: str, target: ScrapingStatus, assignments: str,
                    params: tuple, allow_reentry: bool = False) -> None:
        """
        Move a tracker to `target`, refusing transitions outside the scraping state machine.

        With allow_reentry a tracker already in `target` is updated in place.
        """
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("SELECT scraping_status FROM trackers WHERE id = ?", (tracker_id,))
                row = cursor.fetchone()
                if row is None:
                    raise RuntimeError(f"Tracker '{tracker_id}' does not exist")
                current = row["scraping_status"]
                reentry = allow_reentry and current == target.value
                if reentry:
                    logger.warning("Tracker %s is already %s; taking over the previous run", tracker_id, current)
                elif not can_transition(current, target):
                    raise InvalidStatusTransition(tracker_id, current, target.value)

                cursor.execute(
                    f"""
                    UPDATE trackers
                    SET scraping_status = ?, {assignments}, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ? AND scraping_status = ?
                    """,
                    (target.value, *params, tracker_id, current),
                )
                if cursor.rowcount != 1:
                    self.conn.rollback()
                    raise InvalidStatusTransition(tracker_id, current, target.value)
                self._commit_with_retry(context=f"update tracker {tracker_id}")
            except sqlite3.Error as e:
                self.conn.rollback()
                raise RuntimeError(f"Failed to update tracker '{tracker_id}': {e}")

    def mark_tracker_in_progress(self, tracker_id: str, take_over: bool = False) -> None:
        """Enter IN_PROGRESS; take_over also accepts a tracker left IN_PROGRESS by a run that never finished."""
        self._transition(
            tracker_id, ScrapingStatus.IN_PROGRESS, "scraping_error = NULL", (), allow_reentry=take_over
        )

    def mark_tracker_completed(self, tracker_id: str, scraped_at: Optional[str] = None) -> None:
        self._transition(
            tracker_id,
            ScrapingStatus.COMPLETED,
            "last_scraped_at = ?, scraping_error = NULL, scraping_attempts = 0",
            (scraped_at or utc_now(),),
        )

    def mark_tracker_failed(self, tracker_id: str, error: str) -> None:
        """Record a failed scrape; attempts are incremented in SQL so concurrent writers don't lose counts."""
        self._transition(
            tracker_id,
            ScrapingStatus.FAILED,
            "scraping_error = ?, scraping_attempts = scraping_attempts + 1",
            (error,),
        )

    # --- Scraping runs ---

    def create_scraping_log(self, tracker_id: str, started_at: Optional[str] = None) -> str:
        log_id = str(uuid.uuid4())
        with self._lock:
            try:
                self.conn.execute(
                    """
                    INSERT INTO tracker_scraping_logs
                        (id, tracker_id, status, seasons_scraped, seasons_failed, started_at)
                    VALUES (?, ?, ?, 0, 0, ?)
                    """,
                    (log_id, tracker_id, ScrapingStatus.IN_PROGRESS.value, started_at or utc_now()),
                )
                self._commit_with_retry(context="create scraping log")
                return log_id
            except sqlite3.Error as e:
                self.conn.rollback()
                raise RuntimeError(f"Failed to create scraping log for '{tracker_id}': {e}")

    def finish_scraping_log(self, log_id: str, status: ScrapingStatus, seasons_scraped: int = 0,
                            seasons_failed: int = 0, error_message: Optional[str] = None,
                            completed_at: Optional[str] = None) -> None:
        with self._lock:
            try:
                self.conn.execute(
                    """
                    UPDATE tracker_scraping_logs
                    SET status = ?, seasons_scraped = ?, seasons_failed = ?,
                        error_message = ?, completed_at = ?
                    WHERE id = ?
                    """,
                    (
                        ScrapingStatus(status).value,
                        max(0, int(seasons_scraped)),
                        max(0, int(seasons_failed)),
                        error_message,
                        completed_at or utc_now(),
                        log_id,
                    ),
                )
                self._commit_with_retry(context="finish scraping log")
            except sqlite3.Error as e:
                self.conn.rollback()
                raise RuntimeError(f"Failed to update scraping log '{log_id}': {e}")

    def get_scraping_log(self, log_id: str) -> Optional[Dict]:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM tracker_scraping_logs WHERE id = ?", (log_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_scraping_logs(self, tracker_id: str, limit: int = 20) -> List[Dict]:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                SELECT * FROM tracker_scraping_logs
                WHERE tracker_id = ?
                ORDER BY started_at DESC
                LIMIT ?
                """,
                (tracker_id, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    # --- Seasons ---

    @staticmethod
    def _season_params(tracker_id: str, season: SeasonRecord, now: str) -> tuple:
        def _encode(record: Optional[PlaylistRecord]) -> Optional[str]:
            return json.dumps(record.to_dict()) if record is not None else None

        return (
            tracker_id,
            int(season.season_number),
            season.season_name,
            *(_encode(season.get_slot(slot)) for slot in PLAYLIST_SLOTS),
            now,
            now,
        )

    _UPSERT_SEASON_SQL = """
        INSERT INTO tracker_seasons (
            tracker_id, season_number, season_name,
            playlist_1v1, playlist_2v2, playlist_3v3, playlist_4v4,
            scraped_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(tracker_id, season_number)
        DO UPDATE SET
            season_name = excluded.season_name,
            playlist_1v1 = excluded.playlist_1v1,
            playlist_2v2 = excluded.playlist_2v2,
            playlist_3v3 = excluded.playlist_3v3,
            playlist_4v4 = excluded.playlist_4v4,
            scraped_at = excluded.scraped_at,
            updated_at = excluded.updated_at
    """

    def upsert_season(self, tracker_id: str, season: SeasonRecord) -> None:
        """Create or replace one season for a tracker, keyed by (tracker_id, season_number)."""
        with self._lock:
            try:
                self.conn.execute(self._UPSERT_SEASON_SQL, self._season_params(tracker_id, season, utc_now()))
                self._commit_with_retry(context="upsert season")
            except (sqlite3.Error, TypeError, ValueError) as e:
                self.conn.rollback()
                raise RuntimeError(
                    f"Failed to upsert season {getattr(season, 'season_number', '?')} for '{tracker_id}': {e}"
                )

    def bulk_upsert_seasons(self, tracker_id: str, seasons: List[SeasonRecord]) -> int:
        """Upsert all seasons in a single transaction; nothing is written if any row fails."""
        now = utc_now()
        with self._lock:
            try:
                cursor = self.conn.cursor()
                for season in seasons:
                    cursor.execute(self._UPSERT_SEASON_SQL, self._season_params(tracker_id, season, now))
                self._commit_with_retry(context="bulk upsert seasons")
                return len(seasons)
            except (sqlite3.Error, TypeError, ValueError) as e:
                self.conn.rollback()
                raise RuntimeError(f"Failed to bulk upsert {len(seasons)} seasons for '{tracker_id}': {e}")

    def get_seasons(self, tracker_id: str) -> List[Dict]:
        """Stored seasons for a tracker, newest first, with playlist JSON decoded."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                "SELECT * FROM tracker_seasons WHERE tracker_id = ? ORDER BY season_number DESC",
                (tracker_id,),
            )
            rows = [dict(row) for row in cursor.fetchall()]
        for row in rows:
            for slot in PLAYLIST_SLOTS:
                key = f"playlist_{slot}"
                row[key] = json.loads(row[key]) if row.get(key) else None
        return rows

    def count_seasons(self, tracker_id: str) -> int:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT COUNT(*) AS n FROM tracker_seasons WHERE tracker_id = ?", (tracker_id,))
            return int(cursor.fetchone()["n"])
