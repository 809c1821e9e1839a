# tracker_ingest/scraper/validation.py
"""
Structural checks for tracker.gg stat segments.

tracker.gg does not publish a schema for its profile API and the shape has
drifted before. Every segment goes through validate_segment_stats() before
any typed access so a drifted field drops one segment instead of a run.
"""

from numbers import Number
from typing import Any, Dict, List, Optional, Tuple

KNOWN_STAT_KEYS = ("tier", "division", "rating", "matchesPlayed", "winStreak")
STRING_METADATA_KEYS = ("name", "iconUrl", "tierName")


def is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _check_stat(key: str, node: Any, errors: List[str]) -> None:
    path = f"stats.{key}"
    if not isinstance(node, dict):
        errors.append(f"{path} must be an object or null, got {type(node).__name__}")
        return

    if "value" in node and node["value"] is not None and not is_number(node["value"]):
        errors.append(f"{path}.value must be a number or null, got {type(node['value']).__name__}")

    display = node.get("displayValue")
    if display is not None and not isinstance(display, str):
        errors.append(f"{path}.displayValue must be a string or null, got {type(display).__name__}")

    metadata = node.get("metadata")
    if metadata is None:
        return
    if not isinstance(metadata, dict):
        errors.append(f"{path}.metadata must be an object or null, got {type(metadata).__name__}")
        return
    for meta_key in STRING_METADATA_KEYS:
        meta_value = metadata.get(meta_key)
        if meta_value is not None and not isinstance(meta_value, str):
            errors.append(
                f"{path}.metadata.{meta_key} must be a string or null, got {type(meta_value).__name__}"
            )


def validate_segment_stats(stats: Any) -> Tuple[bool, List[str]]:
    """
    Validate the `stats` bag of one raw segment.

    Unknown stat keys and unknown metadata keys are accepted so new upstream
    fields do not break ingestion. All violations are collected.

    Args:
        stats: the segment's `stats` value (None is treated as empty)

    Returns:
        (is_valid: bool, errors: List[str])

    Examples:
        >>> validate_segment_stats({'tier': {'value': 'Champion'}})
        (False, ['stats.tier.value must be a number or null, got str'])
        >>> validate_segment_stats({'rating': {'value': 1250, 'displayValue': '1,250'}})
        (True, [])
    """
    if stats is None:
        return (True, [])
    if not isinstance(stats, dict):
        return (False, [f"stats must be an object, got {type(stats).__name__}"])

    errors: List[str] = []
    for key in KNOWN_STAT_KEYS:
        node = stats.get(key)
        if node is None:
            continue
        _check_stat(key, node, errors)

    return (not errors, errors)


def describe_segment(segment: Any) -> Tuple[str, Optional[Any]]:
    """Return (type, playlistId) of a raw segment for diagnostics."""
    if not isinstance(segment, dict):
        return ("unknown", None)
    attributes = segment.get("attributes")
    playlist_id = attributes.get("playlistId") if isinstance(attributes, dict) else None
    return (str(segment.get("type") or "unknown"), playlist_id)


def segment_attributes(segment: Dict[str, Any]) -> Dict[str, Any]:
    attributes = segment.get("attributes") if isinstance(segment, dict) else None
    return attributes if isinstance(attributes, dict) else {}


def segment_metadata(segment: Dict[str, Any]) -> Dict[str, Any]:
    metadata = segment.get("metadata") if isinstance(segment, dict) else None
    return metadata if isinstance(metadata, dict) else {}
