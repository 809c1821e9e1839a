from fastapi import FastAPI, HTTPException, Request
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tracker_ingest.config import load_settings
from tracker_ingest.database import Database
from tracker_ingest.errors import MalformedProfileUrl, TrackerNotFound
from tracker_ingest.logging_setup import configure_logging
from tracker_ingest.pipeline import ScrapeJobPipeline, build_pipeline
from tracker_ingest.rate_limiter import shared_rate_limiter
from tracker_ingest.url_normalizer import parse_profile_url

logger = logging.getLogger(__name__)

app = FastAPI(title="Tracker season ingest")
settings = load_settings()

# Created on first request so importing the app does not touch the database.
db: Database | None = None
pipeline: ScrapeJobPipeline | None = None


def get_db() -> Database:
    global db
    if db is None:
        db = Database(settings.db_path)
        logger.info("Using database at: %s", os.path.abspath(db.db_path))
    return db


def get_pipeline() -> ScrapeJobPipeline:
    global pipeline
    if pipeline is None:
        pipeline = build_pipeline(settings, db=get_db())
    return pipeline


def _require_tracker(tracker_id: str) -> dict:
    tracker = get_db().get_tracker(tracker_id)
    if tracker is None:
        raise HTTPException(status_code=404, detail=f"Tracker {tracker_id} not found")
    return tracker


@app.get("/api/rate-status")
async def rate_status() -> dict:
    return shared_rate_limiter(settings.proxy.rate_limit_per_minute).status()


@app.post("/api/trackers")
async def register_tracker(request: Request) -> dict:
    try:
        payload = await request.json()
    except Exception:
        payload = {}
    url = str((payload or {}).get("url") or "").strip()
    user_id = str((payload or {}).get("user_id") or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    try:
        ref = parse_profile_url(url)
    except MalformedProfileUrl as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = get_db()
    existing = store.get_tracker_by_url(url)
    if existing is not None:
        return {"ok": True, "created": False, "tracker": existing}
    try:
        tracker_id = store.add_tracker(url, ref.platform, ref.username, user_id)
        return {"ok": True, "created": True, "tracker": store.get_tracker(tracker_id)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to register tracker: {str(e)}")


@app.get("/api/trackers/{tracker_id}")
async def get_tracker(tracker_id: str) -> dict:
    return {"tracker": _require_tracker(tracker_id)}


@app.get("/api/trackers/{tracker_id}/seasons")
async def tracker_seasons(tracker_id: str) -> dict:
    _require_tracker(tracker_id)
    seasons = get_db().get_seasons(tracker_id)
    return {"tracker_id": tracker_id, "seasons": seasons, "count": len(seasons)}


@app.get("/api/trackers/{tracker_id}/scraping-logs")
async def tracker_scraping_logs(tracker_id: str, limit: int = 20) -> dict:
    _require_tracker(tracker_id)
    safe_limit = max(1, min(limit, 200))
    logs = get_db().get_scraping_logs(tracker_id, safe_limit)
    return {"tracker_id": tracker_id, "logs": logs, "count": len(logs)}


@app.post("/api/trackers/{tracker_id}/scrape")
async def scrape_tracker(tracker_id: str) -> dict:
    job = get_pipeline()
    try:
        result = await asyncio.to_thread(job.run, tracker_id)
    except TrackerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to run scrape job: {str(e)}")
    return {"tracker_id": tracker_id, **result}


if __name__ == "__main__":
    import uvicorn

    configure_logging(settings.log_level)
    logger.info("Starting tracker ingest web server on http://127.0.0.1:5000")
    uvicorn.run(app, host="127.0.0.1", port=5000)
