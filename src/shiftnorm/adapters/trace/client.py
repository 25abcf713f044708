"""Layout-shift trace parsing: performance-entry exports and DevTools traces.

Provides two file formats:

* **Performance entries** -- :func:`parse_entries` reads a JSON list (or
  ``{"entries": [...]}``) of serialized ``PerformanceEntry`` objects as
  produced by ``JSON.stringify(performance.getEntriesByType("layout-shift"))``.
  Records of the form ``{"lifecycle": "hidden"}`` or
  ``{"lifecycle": "restore"}`` may be interleaved to replay page lifecycle
  transitions.
* **DevTools traces** -- :func:`parse_devtools_trace` reads a Chrome
  performance-panel trace (``{"traceEvents": [...]}`` or a bare list) and
  extracts its ``LayoutShift`` events.  Trace timestamps are microseconds;
  they are converted to milliseconds relative to ``navigationStart`` (or
  the earliest trace event if there is none).

:func:`load_timeline` sniffs the format and returns a :data:`Timeline`.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Union

from shiftnorm.core.defaults import (
    DEVTOOLS_LAYOUT_SHIFT_EVENT,
    DEVTOOLS_NAVIGATION_START_EVENT,
    LAYOUT_SHIFT_ENTRY_TYPE,
)
from shiftnorm.core.types import LifecycleSignal, ShiftEvent

logger = logging.getLogger(__name__)

TimelineItem = Union[ShiftEvent, LifecycleSignal]
Timeline = list[TimelineItem]

_US_PER_MS = 1000.0


def _as_records(raw: Any, key: str) -> list[dict[str, Any]]:
    if isinstance(raw, dict):
        if key not in raw:
            raise ValueError(f"Expected a list or an object with {key!r}")
        raw = raw[key]
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of records, got {type(raw).__name__}")
    for i, rec in enumerate(raw):
        if not isinstance(rec, dict):
            raise ValueError(f"Record {i} is not an object (got {type(rec).__name__})")
    return raw


# ---------------------------------------------------------------------------
# Performance entries
# ---------------------------------------------------------------------------


def _entry_to_shift(rec: dict[str, Any], index: int) -> ShiftEvent:
    try:
        start_time = float(rec["startTime"])
        value = float(rec["value"])
    except KeyError as exc:
        raise ValueError(f"layout-shift entry {index} missing field {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise ValueError(f"layout-shift entry {index} has a non-numeric startTime or value") from exc
    return ShiftEvent(
        start_time=start_time,
        value=value,
        excluded=bool(rec.get("hadRecentInput", False)),
    )


def parse_entries(raw: Any) -> Timeline:
    """Convert decoded performance-entry JSON into a :data:`Timeline`.

    Entries of other types (``paint``, ``largest-contentful-paint``, ...)
    are skipped.

    Raises:
        ValueError: On malformed records or unknown lifecycle markers.
    """
    timeline: Timeline = []
    skipped = 0
    for i, rec in enumerate(_as_records(raw, "entries")):
        if "lifecycle" in rec:
            try:
                timeline.append(LifecycleSignal(rec["lifecycle"]))
            except ValueError as exc:
                raise ValueError(f"Unknown lifecycle marker {rec['lifecycle']!r}") from exc
            continue
        entry_type = rec.get("entryType", LAYOUT_SHIFT_ENTRY_TYPE)
        if entry_type != LAYOUT_SHIFT_ENTRY_TYPE:
            logger.debug("Skipping %s entry %d url=%s", entry_type, i, rec.get("name"))
            skipped += 1
            continue
        timeline.append(_entry_to_shift(rec, i))
    if skipped:
        logger.debug("Skipped %d non-layout-shift entries", skipped)
    return timeline


# ---------------------------------------------------------------------------
# DevTools traces
# ---------------------------------------------------------------------------


def _event_ts(event: dict[str, Any]) -> float | None:
    try:
        return float(event["ts"])
    except (KeyError, TypeError, ValueError):
        return None


def _event_data(event: dict[str, Any]) -> dict[str, Any] | None:
    args = event.get("args")
    if not isinstance(args, dict):
        return None
    data = args.get("data")
    return data if isinstance(data, dict) else None


def parse_devtools_trace(raw: Any) -> list[ShiftEvent]:
    """Extract layout shifts from a decoded Chrome DevTools trace.

    Uses ``args.data.weighted_score_delta`` when present (the score
    contribution after frame weighting), falling back to ``args.data.score``.
    Events other than ``LayoutShift`` without a numeric ``ts`` are ignored
    when picking the time origin.

    Returns:
        Shifts sorted by ``start_time``.

    Raises:
        ValueError: If the trace is malformed, or a LayoutShift event has
            no numeric ``ts``, no ``args.data`` object, or no numeric score.
    """
    events = _as_records(raw, "traceEvents")
    timestamps = [ts for ts in map(_event_ts, events) if ts is not None]
    if not timestamps:
        return []

    nav_starts: list[float] = []
    for e in events:
        ts = _event_ts(e)
        if e.get("name") == DEVTOOLS_NAVIGATION_START_EVENT and ts is not None:
            nav_starts.append(ts)
            data = _event_data(e) or {}
            logger.debug("navigationStart ts=%s url=%s", ts, data.get("documentLoaderURL"))
    origin_us = min(nav_starts) if nav_starts else min(timestamps)

    shifts: list[ShiftEvent] = []
    for i, e in enumerate(events):
        if e.get("name") != DEVTOOLS_LAYOUT_SHIFT_EVENT:
            continue
        ts = _event_ts(e)
        if ts is None:
            raise ValueError(f"LayoutShift event {i} has no numeric ts")
        data = _event_data(e)
        if data is None:
            raise ValueError(f"LayoutShift event {i} has no args.data object")
        score = data.get("weighted_score_delta", data.get("score"))
        if score is None:
            raise ValueError(f"LayoutShift event {i} has no score")
        try:
            value = float(score)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"LayoutShift event {i} has a non-numeric score") from exc
        logger.debug("LayoutShift ts=%s score=%s frame=%s", ts, value, e["args"].get("frame"))
        shifts.append(ShiftEvent(
            start_time=max(0.0, (ts - origin_us) / _US_PER_MS),
            value=value,
            excluded=bool(data.get("had_recent_input", False)),
        ))

    shifts.sort(key=lambda s: s.start_time)
    return shifts


# ---------------------------------------------------------------------------
# File entry point
# ---------------------------------------------------------------------------


def _is_devtools_trace(raw: Any) -> bool:
    if isinstance(raw, dict):
        return "traceEvents" in raw
    return bool(raw) and isinstance(raw, list) and isinstance(raw[0], dict) and "ph" in raw[0]


def load_timeline(path: Path) -> Timeline:
    """Load a layout-shift timeline from a JSON file in either supported format.

    Args:
        path: Path to a performance-entry export or a DevTools trace.

    Returns:
        Ordered shifts and lifecycle signals.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not valid JSON or not a supported format.
    """
    try:
        raw = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc

    if _is_devtools_trace(raw):
        timeline: Timeline = list(parse_devtools_trace(raw))
        fmt = "devtools"
    else:
        timeline = parse_entries(raw)
        fmt = "entries"

    logger.info("Loaded %d timeline items from %s (format=%s)", len(timeline), path, fmt)
    return timeline
