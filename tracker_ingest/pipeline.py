# tracker_ingest/pipeline.py

import logging
from typing import Any, Dict, Optional

from tracker_ingest.api_client import ProxyScrapeClient
from tracker_ingest.config import MAX_ERROR_MESSAGE_LENGTH, Settings, load_settings
from tracker_ingest.database import Database
from tracker_ingest.errors import TrackerNotFound
from tracker_ingest.models import ScrapingStatus
from tracker_ingest.rate_limiter import shared_rate_limiter
from tracker_ingest.season_orchestrator import SeasonOrchestrator, historical_bound
from tracker_ingest.season_store import store_seasons
from tracker_ingest.side_effects import LoggingSideEffects, SideEffectDispatcher, SideEffects

logger = logging.getLogger(__name__)


def truncate_error(message: Any, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    text = str(message) if message is not None else ""
    if not text:
        text = "Unknown error"
    return text[:limit]


class ScrapeJobPipeline:
    """
    One scrape job for one tracker: fetch seasons, persist them, record the run.

    run() only raises for an unknown tracker. Every other failure is turned
    into a FAILED tracker/run pair and reported in the result dict.
    """

    def __init__(
        self,
        db: Database,
        orchestrator: SeasonOrchestrator,
        side_effects: Optional[SideEffects] = None,
        dispatcher: Optional[SideEffectDispatcher] = None,
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.side_effects = side_effects or LoggingSideEffects()
        self.dispatcher = dispatcher or SideEffectDispatcher()

    def run(self, tracker_id: str) -> Dict[str, Any]:
        tracker = self.db.get_tracker(tracker_id)
        if tracker is None:
            raise TrackerNotFound(tracker_id)

        log_id = self.db.create_scraping_log(tracker_id)
        started = False
        try:
            # same-tracker serialization belongs to the job dispatcher; a tracker
            # still IN_PROGRESS here was left behind by a run that died
            self.db.mark_tracker_in_progress(tracker_id, take_over=True)
            started = True

            is_first_run = self.db.count_seasons(tracker_id) == 0
            bound = historical_bound(is_first_run)
            logger.info(
                "Scraping tracker %s (%s, first run: %s, history bound: %s)",
                tracker_id,
                tracker["url"],
                is_first_run,
                bound,
            )

            seasons = self.orchestrator.collect(tracker["url"], bound)
            counts = store_seasons(self.db, tracker_id, seasons)

            self.db.mark_tracker_completed(tracker_id)
            self.db.finish_scraping_log(
                log_id,
                ScrapingStatus.COMPLETED,
                seasons_scraped=counts["seasons_scraped"],
                seasons_failed=counts["seasons_failed"],
            )
        except Exception as exc:
            error = truncate_error(exc)
            logger.error("Scrape job failed for tracker %s: %s", tracker_id, error)
            self._record_failure(tracker_id, log_id, error, started)
            self._dispatch(
                "notify_scrape_failed",
                self.side_effects.notify_scrape_failed,
                tracker_id,
                tracker["user_id"],
                error,
            )
            return {"success": False, "seasons_scraped": 0, "seasons_failed": 0, "error": error}

        logger.info(
            "Scrape job completed for tracker %s: %s stored, %s failed",
            tracker_id,
            counts["seasons_scraped"],
            counts["seasons_failed"],
        )
        self._dispatch(
            "notify_scrape_complete",
            self.side_effects.notify_scrape_complete,
            tracker_id,
            tracker["user_id"],
            counts["seasons_scraped"],
            counts["seasons_failed"],
        )
        self._dispatch(
            "recompute_derived_score",
            self.side_effects.recompute_derived_score,
            tracker["user_id"],
            tracker_id,
        )
        return {
            "success": True,
            "seasons_scraped": counts["seasons_scraped"],
            "seasons_failed": counts["seasons_failed"],
            "error": None,
        }

    def _record_failure(self, tracker_id: str, log_id: str, error: str, started: bool) -> None:
        # The tracker row is only touched once this run moved it to IN_PROGRESS.
        if started:
            try:
                self.db.mark_tracker_failed(tracker_id, error)
            except Exception as exc:
                logger.error("Could not mark tracker %s as failed: %s", tracker_id, exc)
        try:
            self.db.finish_scraping_log(log_id, ScrapingStatus.FAILED, error_message=error)
        except Exception as exc:
            logger.error("Could not close scraping log %s: %s", log_id, exc)

    def _dispatch(self, name: str, func, *args) -> None:
        try:
            self.dispatcher.submit(name, func, *args)
        except Exception as exc:
            logger.error("Could not schedule side effect %s: %s", name, exc)


def build_client(settings: Settings) -> ProxyScrapeClient:
    """Proxy client wired to the process-wide limiter and the configured transport."""
    transport = None
    if settings.proxy.transport == "browser":
        from tracker_ingest.scraper.session import BrowserTransport

        transport = BrowserTransport(timeout_seconds=settings.proxy.timeout_seconds)
    return ProxyScrapeClient(
        settings.proxy,
        shared_rate_limiter(settings.proxy.rate_limit_per_minute),
        transport=transport,
    )


def build_pipeline(settings: Optional[Settings] = None, db: Optional[Database] = None,
                   side_effects: Optional[SideEffects] = None) -> ScrapeJobPipeline:
    settings = settings or load_settings()
    db = db or Database(settings.db_path)
    orchestrator = SeasonOrchestrator(build_client(settings), playlist_map=settings.playlist_id_map)
    return ScrapeJobPipeline(db, orchestrator, side_effects=side_effects)
