# tracker_ingest/scraper/__init__.py
"""
Upstream payload handling for tracker.gg profile scrapes.

Unwraps proxy envelopes, guards segment stats before extraction and
provides the optional Playwright transport.
"""

from .unwrap import unwrap_response, extract_pre_json
from .validation import validate_segment_stats, describe_segment
from .session import BrowserTransport, BrowserHTTPError, PLAYWRIGHT_AVAILABLE

__all__ = [
    'unwrap_response',
    'extract_pre_json',
    'validate_segment_stats',
    'describe_segment',
    'BrowserTransport',
    'BrowserHTTPError',
    'PLAYWRIGHT_AVAILABLE',
]
