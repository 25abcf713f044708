"""Centralised default constants for shiftnorm.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Observation ──
LAYOUT_SHIFT_ENTRY_TYPE: Final[str] = "layout-shift"
DEVTOOLS_LAYOUT_SHIFT_EVENT: Final[str] = "LayoutShift"
DEVTOOLS_NAVIGATION_START_EVENT: Final[str] = "navigationStart"

# ── Session windows (milliseconds) ──
SESSION_GAP_5S_MS: Final[float] = 5000.0
SESSION_GAP_1S_MS: Final[float] = 1000.0
SESSION_LIMIT_5S_MS: Final[float] = 5000.0

# ── Sliding windows (milliseconds) ──
SLIDING_LIMIT_1S_MS: Final[float] = 1000.0
SLIDING_LIMIT_300MS_MS: Final[float] = 300.0

# ── Metric names ──
METRIC_AVG_SESSION_GAP5S: Final[str] = "LSN-avg-session-gap5s"
METRIC_MAX_SESSION_GAP1S: Final[str] = "LSN-max-session-gap1s"
METRIC_MAX_SESSION_GAP1S_LIMIT5S: Final[str] = "LSN-max-session-gap1s-limit5s"
METRIC_MAX_SLIDING1S: Final[str] = "LSN-max-sliding1s"
METRIC_MAX_SLIDING300MS: Final[str] = "LSN-max-sliding-300ms"

# ── Reporting ──
DEFAULT_REPORT_ALL_CHANGES: Final[bool] = False

# ── Paths ──
DEFAULT_OUT_DIR: Final[str] = "artifacts"
DEFAULT_METRICS_FILENAME: Final[str] = "metrics.json"
