"""
Detection Batch Parsing.

Turns the raw per-frame detector payload into clamped Detection records.
Malformed entries are dropped, never raised: detector jitter produces
partial frames all the time.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Mapping, Optional

from loguru import logger

from walkguide.core.contracts import Detection, Rect


_EDGES = ("left", "top", "right", "bottom")


def _read_edges(source: Mapping[str, Any]) -> Optional[List[float]]:
    values = []
    for key in _EDGES:
        value = source.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        value = float(value)
        if not math.isfinite(value):
            return None
        values.append(value)
    return values


def clamp_box(box: Rect, view_width: int, view_height: int) -> Optional[Rect]:
    """
    Clamp a box into the view with a minimum 1-pixel extent.

    Returns:
        The clamped box, or None when the box lies entirely outside the view
    """
    box = box.sorted()
    width = float(view_width)
    height = float(view_height)

    if box.right < 0 or box.bottom < 0 or box.left > width or box.top > height:
        return None

    left = min(max(box.left, 0.0), max(width - 1.0, 0.0))
    top = min(max(box.top, 0.0), max(height - 1.0, 0.0))
    right = min(max(box.right, left + 1.0), width)
    bottom = min(max(box.bottom, top + 1.0), height)
    return Rect(left, top, right, bottom)


def parse_detection(
    entry: Any,
    view_width: int,
    view_height: int,
) -> Optional[Detection]:
    """
    Parse one detector entry.

    Accepts an existing Detection, or a mapping with `label`, `score` and
    either pixel edges (`left`, `top`, `right`, `bottom`) or a `normalized`
    mapping holding the same edges in [0, 1].
    """
    if isinstance(entry, Detection):
        label, score, box = entry.label, entry.score, entry.box
    elif isinstance(entry, Mapping):
        label = entry.get("label")
        if not isinstance(label, str):
            return None

        score = entry.get("score", 0.0)
        score = float(score) if isinstance(score, (int, float)) else 0.0

        edges = _read_edges(entry)
        if edges is None:
            normalized = entry.get("normalized")
            if not isinstance(normalized, Mapping):
                return None
            edges = _read_edges(normalized)
            if edges is None:
                return None
            edges = [
                edges[0] * view_width,
                edges[1] * view_height,
                edges[2] * view_width,
                edges[3] * view_height,
            ]
        box = Rect(*edges)
    else:
        return None

    if not label or not label.strip():
        return None

    clamped = clamp_box(box, view_width, view_height)
    if clamped is None:
        return None
    return Detection(label=label, box=clamped, score=score)


def parse_detections(
    raw: Optional[Iterable[Any]],
    view_width: int,
    view_height: int,
) -> List[Detection]:
    """Parse a detection batch, silently dropping malformed entries."""
    if raw is None or view_width <= 0 or view_height <= 0:
        return []
    if isinstance(raw, (Mapping, str, bytes)) or not isinstance(raw, Iterable):
        logger.debug(f"Ignoring detection batch of type {type(raw).__name__}")
        return []

    detections = []
    dropped = 0
    for entry in raw:
        detection = parse_detection(entry, view_width, view_height)
        if detection is None:
            dropped += 1
            continue
        detections.append(detection)

    if dropped:
        logger.debug(f"Dropped {dropped} malformed detection(s)")
    return detections
