import logging
from typing import Dict, List

from tracker_ingest.database import Database
from tracker_ingest.models import SeasonRecord

logger = logging.getLogger(__name__)


def store_seasons(db: Database, tracker_id: str, seasons: List[SeasonRecord]) -> Dict[str, int]:
    """
    Persist seasons for a tracker and report how many landed.

    All seasons are first written in one transaction. If that fails the
    batch is retried one season at a time so a single bad row only costs
    itself. seasons_scraped + seasons_failed always equals len(seasons).
    """
    if not seasons:
        return {"seasons_scraped": 0, "seasons_failed": 0}

    try:
        db.bulk_upsert_seasons(tracker_id, seasons)
        logger.info("Stored %s season(s) for tracker %s in one batch", len(seasons), tracker_id)
        return {"seasons_scraped": len(seasons), "seasons_failed": 0}
    except Exception as exc:
        logger.warning(
            "Bulk season upsert failed for tracker %s (%s); falling back to per-season writes",
            tracker_id,
            exc,
        )

    scraped = 0
    failed = 0
    for season in seasons:
        try:
            db.upsert_season(tracker_id, season)
            scraped += 1
        except Exception as exc:
            failed += 1
            logger.error(
                "Failed to store season %s for tracker %s: %s",
                getattr(season, "season_number", "?"),
                tracker_id,
                exc,
            )

    logger.info("Stored %s/%s season(s) for tracker %s", scraped, len(seasons), tracker_id)
    return {"seasons_scraped": scraped, "seasons_failed": failed}
