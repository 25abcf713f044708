"""Shared fixtures for the shiftnorm test suite."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture()
def entry_records() -> list[dict[str, Any]]:
    """Performance-entry export with one excluded shift, one paint entry, and a restore."""
    return [
        {"entryType": "paint", "name": "first-paint", "startTime": 50.0},
        {"entryType": "layout-shift", "startTime": 100.0, "value": 0.1, "hadRecentInput": False},
        {"entryType": "layout-shift", "startTime": 300.0, "value": 0.2, "hadRecentInput": False},
        {"entryType": "layout-shift", "startTime": 350.0, "value": 0.5, "hadRecentInput": True},
        {"entryType": "layout-shift", "startTime": 2500.0, "value": 0.05, "hadRecentInput": False},
        {"lifecycle": "restore"},
        {"entryType": "layout-shift", "startTime": 9000.0, "value": 0.3, "hadRecentInput": False},
    ]


@pytest.fixture()
def entries_file(tmp_path: Path, entry_records: list[dict[str, Any]]) -> Path:
    f = tmp_path / "entries.json"
    f.write_text(json.dumps(entry_records))
    return f


@pytest.fixture()
def devtools_trace() -> dict[str, Any]:
    """Minimal DevTools trace: navigationStart at 1 s, two shifts after it."""
    return {
        "traceEvents": [
            {"name": "TracingStartedInBrowser", "ph": "I", "ts": 500_000},
            {"name": "navigationStart", "ph": "R", "ts": 1_000_000},
            {
                "name": "LayoutShift", "ph": "I", "ts": 1_250_000,
                "args": {"data": {"score": 0.4, "weighted_score_delta": 0.25, "had_recent_input": False}},
            },
            {
                "name": "LayoutShift", "ph": "I", "ts": 1_100_000,
                "args": {"data": {"score": 0.1, "had_recent_input": True}},
            },
        ]
    }


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers the CLI callback attaches so no test logs to a stale stream."""
    pkg_logger = logging.getLogger("shiftnorm")
    saved_handlers, saved_level = list(pkg_logger.handlers), pkg_logger.level
    yield
    pkg_logger.handlers = saved_handlers
    pkg_logger.setLevel(saved_level)
