"""
Fire-and-forget collaborators notified after a scrape finishes.

The pipeline submits these to a SideEffectDispatcher and never waits on
the result. A failing notification is logged from the future's
done-callback and cannot change the run's outcome.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

MAX_WORKERS = 4


class SideEffects(Protocol):
    def notify_scrape_complete(self, tracker_id: str, user_id: str,
                               seasons_scraped: int, seasons_failed: int) -> None: ...

    def notify_scrape_failed(self, tracker_id: str, user_id: str, error_message: str) -> None: ...

    def recompute_derived_score(self, user_id: str, tracker_id: str) -> None: ...


class LoggingSideEffects:
    """Default collaborator: records each notification in the log."""

    def notify_scrape_complete(self, tracker_id, user_id, seasons_scraped, seasons_failed):
        logger.info(
            "Scrape complete for tracker %s (user %s): %s season(s) stored, %s failed",
            tracker_id,
            user_id,
            seasons_scraped,
            seasons_failed,
        )

    def notify_scrape_failed(self, tracker_id, user_id, error_message):
        logger.info("Scrape failed for tracker %s (user %s): %s", tracker_id, user_id, error_message)

    def recompute_derived_score(self, user_id, tracker_id):
        logger.info("Derived score recompute requested for user %s (tracker %s)", user_id, tracker_id)


class SideEffectDispatcher:
    """Bounded thread pool that runs side effects in the background."""

    def __init__(self, max_workers: int = MAX_WORKERS):
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {"submitted": 0, "completed": 0, "errors": 0}

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="tracker_side_effects",
                )
            return self._executor

    def submit(self, name: str, func: Callable[..., Any], *args, **kwargs) -> Future:
        with self._lock:
            self._stats["submitted"] += 1
        future = self._get_executor().submit(func, *args, **kwargs)
        future.add_done_callback(lambda f: self._on_done(name, f))
        return future

    def _on_done(self, name: str, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        with self._lock:
            if exc is None:
                self._stats["completed"] += 1
            else:
                self._stats["errors"] += 1
        if exc is not None:
            logger.error("Side effect %s failed: %s", name, exc)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
