# tracker_ingest/errors.py

from __future__ import annotations

from typing import Optional


class TrackerIngestError(Exception):
    """Base class for classified ingestion failures."""

    retryable = False


class MalformedProfileUrl(TrackerIngestError):
    """Raised when a profile URL cannot be turned into an API URL."""

    def __init__(self, reason: str, url: object = None):
        self.reason = reason
        self.url = url
        super().__init__(f"Malformed tracker profile URL: {reason}")


class InvalidUpstreamPayload(TrackerIngestError):
    """Raised when the unwrapped upstream body does not have the expected shape."""


class RateLimited(TrackerIngestError):
    """Raised when the scraping proxy answers HTTP 429."""

    retryable = True


class UpstreamUnavailable(TrackerIngestError):
    """Raised for proxy 5xx, timeouts and application-level failures in a 200 body."""

    retryable = True

    def __init__(
        self,
        message: str,
        timeout: bool = False,
        task_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.timeout = timeout
        self.task_id = task_id
        self.status_code = status_code
        super().__init__(message)


class TrackerNotFound(TrackerIngestError):
    """Raised when a scrape is requested for an unknown tracker."""

    def __init__(self, tracker_id: str):
        self.tracker_id = tracker_id
        super().__init__(f"Tracker {tracker_id} not found")


class InvalidStatusTransition(TrackerIngestError):
    """Raised when a tracker status change breaks the scraping state machine."""

    def __init__(self, tracker_id: str, current: str, target: str):
        self.tracker_id = tracker_id
        self.current = current
        self.target = target
        super().__init__(f"Tracker {tracker_id}: cannot move from {current} to {target}")
