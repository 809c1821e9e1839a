# tracker_ingest/scraper/unwrap.py
"""
Peel proxy envelopes off a scrape response.

The proxy may return any of:
  - {"content": "<json string>", ...}                  (scraper API)
  - {"solution": {"response": "<html><pre>{...}</pre>"}}  (browser solvers)
  - "<html>...<pre>{...}</pre>..."                     (raw page from a browser)
  - the tracker.gg body itself, usually {"data": {...}}
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from bs4 import BeautifulSoup

from tracker_ingest.errors import InvalidUpstreamPayload

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_INFO = {"platformSlug": "", "platformUserId": "", "platformUserHandle": ""}
DEFAULT_USER_INFO = {"userId": 0, "isPremium": False}
DEFAULT_METADATA = {"lastUpdated": "", "playerId": 0, "currentSeason": 0}


def _parse_json_text(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise InvalidUpstreamPayload(f"Invalid API response: failed to parse {source} as JSON ({exc})")


def _looks_like_markup(text: str) -> bool:
    return "<" in text and ">" in text


def extract_pre_json(markup: str) -> Any:
    """Return the JSON document rendered inside the first <pre> block of an HTML page."""
    soup = BeautifulSoup(markup, "html.parser")
    pre = soup.find("pre")
    if pre is None:
        raise InvalidUpstreamPayload("Invalid API response: no <pre> block in markup response")
    return _parse_json_text(pre.get_text(), "<pre> block")


def _strip_envelopes(body: Any) -> Any:
    working = body

    if isinstance(working, (bytes, bytearray)):
        working = working.decode("utf-8", errors="replace")

    if isinstance(working, dict) and "content" in working:
        content = working.get("content")
        if isinstance(content, str) and content.strip():
            logger.debug("Unwrapping proxy 'content' field (%s chars)", len(content))
            if _looks_like_markup(content) and not content.lstrip().startswith(("{", "[")):
                working = extract_pre_json(content)
            else:
                working = _parse_json_text(content, "proxy content")

    if isinstance(working, dict) and "solution" in working and "segments" not in working:
        solution = working.get("solution")
        markup = solution.get("response") if isinstance(solution, dict) else None
        if not isinstance(markup, str) or not markup.strip():
            raise InvalidUpstreamPayload("Invalid API response: solution.response is missing")
        working = extract_pre_json(markup)
    elif isinstance(working, str):
        stripped = working.strip()
        if stripped.startswith(("{", "[")):
            working = _parse_json_text(stripped, "response body")
        elif _looks_like_markup(stripped):
            working = extract_pre_json(stripped)
        else:
            raise InvalidUpstreamPayload("Invalid API response: body is neither JSON nor markup")

    if isinstance(working, dict) and isinstance(working.get("data"), dict):
        working = working["data"]

    return working


def unwrap_response(body: Any) -> Dict[str, Any]:
    """
    Recover the tracker.gg profile document from a raw proxy body.

    Only `segments` and `availableSegments` are load-bearing; the other
    top-level fields are defaulted so a sparse body still parses.

    Raises:
        InvalidUpstreamPayload: when the envelope cannot be parsed or the
            document lacks the two segment arrays
    """
    data = _strip_envelopes(body)

    if not isinstance(data, dict):
        raise InvalidUpstreamPayload(
            f"Invalid API response: expected an object, got {type(data).__name__}"
        )
    if not isinstance(data.get("segments"), list):
        raise InvalidUpstreamPayload("Invalid API response: missing or invalid segments array")
    if not isinstance(data.get("availableSegments"), list):
        raise InvalidUpstreamPayload("Invalid API response: missing or invalid availableSegments array")

    platform_info = data.get("platformInfo") if isinstance(data.get("platformInfo"), dict) else {}
    user_info = data.get("userInfo") if isinstance(data.get("userInfo"), dict) else {}
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}

    return {
        "platformInfo": {**DEFAULT_PLATFORM_INFO, **platform_info},
        "userInfo": {**DEFAULT_USER_INFO, **user_info},
        "metadata": {**DEFAULT_METADATA, **metadata},
        "segments": data["segments"],
        "availableSegments": data["availableSegments"],
    }
