"""Metric export utilities: JSON for final values, CSV and Parquet for timelines."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import pandas as pd

from shiftnorm.adapters.trace.client import Timeline
from shiftnorm.core.config import NormalizationConfig
from shiftnorm.core.types import LifecycleSignal, Metric
from shiftnorm.metrics.aggregate import ShiftAggregator

_TIMELINE_META_COLUMNS = ["start_time", "value", "event"]


def export_metrics_json(metrics: Sequence[Metric], path: Path, *, include_entries: bool = False) -> Path:
    """Write final metric values to a JSON file.

    Args:
        metrics: Metrics to serialize, in output order.
        path: Destination JSON file path.
        include_entries: Also write each metric's contributing shifts.

    Returns:
        The *path* that was written.
    """
    exclude = None if include_entries else {"entries"}
    data = [m.model_dump(mode="json", exclude=exclude) for m in metrics]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def build_timeline_frame(timeline: Timeline, config: NormalizationConfig | None = None) -> pd.DataFrame:
    """Run *timeline* through a fresh aggregator and tabulate metric values.

    One row per qualifying shift and one per restore signal, with columns
    ``start_time``, ``value``, ``event`` (``shift`` or ``restore``) and
    one column per metric holding its value after that row.  Excluded
    shifts and hidden signals do not change any value and produce no row.

    Args:
        timeline: Ordered shifts and lifecycle signals.
        config: Window configuration.  Defaults to the five-window set.

    Returns:
        A DataFrame with the columns described above.
    """
    aggregator = ShiftAggregator(config)
    names = aggregator.config.metric_names
    rows: list[dict[str, object]] = []
    last_ts: float | None = None

    for item in timeline:
        if isinstance(item, LifecycleSignal):
            if item == LifecycleSignal.RESTORE:
                aggregator.reset_outputs()
                rows.append({
                    "start_time": last_ts,
                    "value": None,
                    "event": "restore",
                    **aggregator.bundle.values(),
                })
            continue
        if aggregator.add_shift(item):
            last_ts = item.start_time
            rows.append({
                "start_time": item.start_time,
                "value": item.value,
                "event": "shift",
                **aggregator.bundle.values(),
            })

    return pd.DataFrame(rows, columns=_TIMELINE_META_COLUMNS + names)


def export_timeline_csv(timeline: Timeline, path: Path, config: NormalizationConfig | None = None) -> Path:
    """Write the per-shift metric timeline as CSV.

    Returns:
        The *path* that was written.
    """
    df = build_timeline_frame(timeline, config)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path


def export_timeline_parquet(timeline: Timeline, path: Path, config: NormalizationConfig | None = None) -> Path:
    """Write the per-shift metric timeline as Parquet.

    Schema matches :func:`export_timeline_csv`.

    Returns:
        The *path* that was written.
    """
    df = build_timeline_frame(timeline, config)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=False)
    return path
