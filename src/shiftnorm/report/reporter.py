"""Change-detecting delivery of metric values to a report callback."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, Sequence

from shiftnorm.core.types import Metric

logger = logging.getLogger(__name__)

ReportCallback = Callable[[Metric], None]


class ReportFunction(Protocol):
    def __call__(self, force: bool = False) -> None: ...


def bind_reporter(
    callback: ReportCallback,
    metrics: Sequence[Metric],
    report_all_changes: bool = False,
) -> ReportFunction:
    """Bind *callback* to *metrics* and return a report function.

    Calling ``report()`` considers every metric in *metrics*.  A metric is
    considered only when ``force=True`` or *report_all_changes* is set.
    Its ``delta`` is then recomputed against the last value handed to
    *callback*, and *callback* runs if the delta is non-zero or the metric
    has never been reported.

    Args:
        callback: Receives one :class:`Metric` per delivery.
        metrics: The metric instances to watch.  Read at call time, so
            in-place value updates are picked up.
        report_all_changes: Deliver every change instead of only forced
            reports.

    Returns:
        ``report(force=False)``.
    """
    bound = list(metrics)
    prev_values: dict[str, float] = {}

    def report(force: bool = False) -> None:
        if not (force or report_all_changes):
            return
        for metric in bound:
            if metric.value < 0:
                continue
            prev = prev_values.get(metric.id)
            metric.delta = metric.value - (prev or 0.0)
            if metric.delta or prev is None:
                prev_values[metric.id] = metric.value
                logger.debug("Reporting %s=%.6f (delta=%.6f)", metric.name, metric.value, metric.delta)
                callback(metric)

    return report
