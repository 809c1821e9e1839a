from __future__ import annotations

import json
import logging
import socket
import time
from typing import Any, Callable, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from tracker_ingest.config import ProxyConfig
from tracker_ingest.errors import RateLimited, UpstreamUnavailable
from tracker_ingest.rate_limiter import RateLimiter
from tracker_ingest.scraper.unwrap import unwrap_response
from tracker_ingest.url_normalizer import normalize_profile_url, with_season

logger = logging.getLogger(__name__)

FAILED_BODY_STATUSES = ("failed", "error")


class UrlLibProxyTransport:
    """POST {"url": target} to the scraping proxy and return the decoded JSON body."""

    def __init__(self, config: ProxyConfig):
        self.config = config

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Basic {self.config.api_key}",
        }

    def __call__(self, target_url: str) -> Any:
        body = json.dumps({"url": target_url}).encode("utf-8")
        req = Request(self.config.api_url, data=body, headers=self._headers(), method="POST")
        with urlopen(req, timeout=self.config.timeout_seconds) as resp:
            raw = resp.read().decode("utf-8")
        try:
            return json.loads(raw)
        except ValueError:
            # some proxy plans hand back the page itself
            return raw


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return True
    reason = getattr(exc, "reason", None)
    if isinstance(reason, (socket.timeout, TimeoutError)):
        return True
    return "timed out" in str(reason or exc).lower()


def _read_error_body(exc: BaseException) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, str):
        return body[:500]
    try:
        return exc.read().decode("utf-8", errors="replace")[:500]
    except Exception:
        return ""


class ProxyScrapeClient:
    """
    Outbound requests to the scraping proxy.

    request() waits on the shared rate limiter, calls the transport with a
    bounded fixed-delay retry, then classifies the outcome into the error
    taxonomy. fetch_profile() adds URL normalization and unwrapping.
    """

    def __init__(
        self,
        config: ProxyConfig,
        rate_limiter: RateLimiter,
        transport: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self.transport = transport or UrlLibProxyTransport(config)
        self._sleep = sleep

    def fetch_profile(self, profile_url: str, season: Optional[int] = None) -> Dict[str, Any]:
        """Scrape one profile (optionally for a specific season) and return the unwrapped document."""
        target = with_season(normalize_profile_url(profile_url), season)
        logger.debug("Scraping tracker data from %s", target)
        data = unwrap_response(self.request(target))
        logger.debug(
            "Scraped %s segments, %s available seasons from %s",
            len(data["segments"]),
            len(data["availableSegments"]),
            target,
        )
        return data

    def request(self, target_url: str) -> Any:
        self.rate_limiter.acquire()

        attempts = self.config.retry_attempts + 1
        last_error: Optional[BaseException] = None
        body: Any = None
        for attempt in range(1, attempts + 1):
            try:
                body = self.transport(target_url)
                last_error = None
                break
            except Exception as exc:
                last_error = exc
                if attempt < attempts:
                    logger.debug(
                        "Proxy attempt %s/%s for %s failed (%s); retrying in %.1fs",
                        attempt,
                        attempts,
                        target_url,
                        exc,
                        self.config.retry_delay_seconds,
                    )
                    self._sleep(self.config.retry_delay_seconds)

        if last_error is not None:
            classified = self._classify(last_error)
            if classified is last_error:
                raise last_error
            raise classified from last_error

        self._check_body_status(body)
        return body

    def _classify(self, exc: BaseException) -> BaseException:
        code = getattr(exc, "code", None)
        if isinstance(exc, HTTPError) or isinstance(code, int):
            if code == 429:
                logger.warning("Rate limit hit from scraping proxy")
                return RateLimited("Rate limit exceeded. Please try again later.")
            if code is not None and code >= 500:
                logger.error("Scraping proxy server error: %s", code)
                return UpstreamUnavailable("Scraping proxy service unavailable", status_code=code)
            if code == 400:
                logger.error("Scraping proxy 400 error: %s", _read_error_body(exc))
            else:
                logger.error("Scraping proxy request failed with HTTP %s", code)
            return exc

        if _is_timeout(exc):
            logger.error("Timed out waiting for scraping proxy")
            return UpstreamUnavailable("Request timeout while connecting to scraping proxy", timeout=True)
        if isinstance(exc, URLError):
            logger.error("Could not reach scraping proxy: %s", exc.reason)
            return UpstreamUnavailable(f"Could not reach scraping proxy: {exc.reason}")

        logger.error("Scraping proxy request failed: %s", exc)
        return exc

    @staticmethod
    def _check_body_status(body: Any) -> None:
        if not isinstance(body, dict):
            return
        status = body.get("status")
        if not isinstance(status, str) or status.lower() not in FAILED_BODY_STATUSES:
            return
        status_code = body.get("status_code") or body.get("statusCode")
        message = body.get("message") or f"Scraping failed with status code: {status_code or 'unknown'}"
        task_id = body.get("task_id") or body.get("taskId")
        logger.error("Proxy scraping failed: %s (Task ID: %s)", message, task_id or "unknown")
        raise UpstreamUnavailable(
            f"Failed to scrape target: {message}",
            task_id=task_id,
            status_code=status_code if isinstance(status_code, int) else None,
        )
