"""Layout-shift normalization: fan shifts out to windowers and fold their scores.

A single cumulative layout-shift score grows without bound as a page
stays open.  The aggregator instead runs several windowers in parallel
over the same qualifying shifts and folds each one's output into a
bounded metric:

- the mean of session scores for the 5 s-gap session window, counting
  the still-open session as a provisional sample;
- the running maximum for every other window.

:class:`ShiftAggregator` is the pure computation.  :func:`observe_lsn`
wires it to a :class:`~shiftnorm.observe.source.ShiftObserver`, a
:class:`~shiftnorm.observe.lifecycle.PageLifecycle` and a report callback.

Typical flow::

    observer = ShiftObserver()
    lifecycle = PageLifecycle()
    session = observe_lsn(print, observer, lifecycle, report_all_changes=True)
    observer.push(ShiftEvent(start_time=120.0, value=0.05))
    observer.dispatch()
    lifecycle.hide()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Union

from shiftnorm.core.config import Combinator, NormalizationConfig, WindowKind, WindowSpec, default_config
from shiftnorm.core.defaults import LAYOUT_SHIFT_ENTRY_TYPE
from shiftnorm.core.types import Metric, ShiftEvent
from shiftnorm.observe.lifecycle import PageLifecycle
from shiftnorm.observe.source import ShiftObserver, Subscription
from shiftnorm.report.reporter import ReportCallback, ReportFunction, bind_reporter
from shiftnorm.windows.session import SessionScore, SessionWindow
from shiftnorm.windows.sliding import SlidingWindow

logger = logging.getLogger(__name__)

Windower = Union[SessionWindow, SlidingWindow]


def build_window(spec: WindowSpec) -> Windower:
    """Instantiate the windower described by *spec*."""
    if spec.kind == WindowKind.SESSION:
        assert spec.gap_ms is not None
        return SessionWindow(spec.gap_ms, spec.limit)
    return SlidingWindow(spec.limit)


# ---------------------------------------------------------------------------
# Output bundle
# ---------------------------------------------------------------------------


@dataclass
class SessionTally:
    """Closed-session accumulator backing a ``mean`` metric."""

    total: float = 0.0
    count: int = 0


@dataclass
class OutputBundle:
    """Everything that is recreated on a back/forward-cache restore.

    Holds one :class:`Metric` per window spec (same order) and a
    :class:`SessionTally` per ``mean`` metric.
    """

    metrics: list[Metric]
    tallies: dict[str, SessionTally] = field(default_factory=dict)

    @classmethod
    def fresh(cls, config: NormalizationConfig) -> OutputBundle:
        return cls(
            metrics=[Metric(name=spec.name) for spec in config.windows],
            tallies={
                spec.name: SessionTally()
                for spec in config.windows
                if spec.combinator == Combinator.MEAN
            },
        )

    def metric(self, name: str) -> Metric:
        for m in self.metrics:
            if m.name == name:
                return m
        raise KeyError(name)

    def values(self) -> dict[str, float]:
        return {m.name: m.value for m in self.metrics}


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class ShiftAggregator:
    """Owns the windowers and the current :class:`OutputBundle`.

    Only :meth:`add_shift` and :meth:`reset_outputs` mutate state.  Windowers
    live for the whole observation session; the bundle is replaced
    wholesale by :meth:`reset_outputs`.
    """

    def __init__(self, config: NormalizationConfig | None = None) -> None:
        self._config = config or default_config()
        self._specs: list[WindowSpec] = list(self._config.windows)
        self._windows: list[Windower] = [build_window(spec) for spec in self._specs]
        self._bundle = OutputBundle.fresh(self._config)
        self._last_ts: float | None = None

    @property
    def config(self) -> NormalizationConfig:
        return self._config

    @property
    def bundle(self) -> OutputBundle:
        return self._bundle

    @property
    def metrics(self) -> list[Metric]:
        return self._bundle.metrics

    @property
    def windows(self) -> dict[str, Windower]:
        return {spec.name: window for spec, window in zip(self._specs, self._windows)}

    def add_shift(self, shift: ShiftEvent) -> bool:
        """Feed one shift to every windower and update every metric.

        Shifts with ``excluded=True`` are ignored entirely.

        Returns:
            ``True`` if *shift* qualified and the metrics were updated.
        """
        if shift.excluded:
            return False

        if self._last_ts is not None and shift.start_time < self._last_ts:
            logger.warning(
                "Out-of-order shift: start_time=%s after %s; sliding windows assume time order",
                shift.start_time, self._last_ts,
            )
        self._last_ts = shift.start_time

        bundle = self._bundle
        for metric in bundle.metrics:
            metric.entries.append(shift)

        for spec, window, metric in zip(self._specs, self._windows, bundle.metrics):
            result = window.add_shift(shift)
            if spec.combinator == Combinator.MEAN:
                prev_score, score = result
                tally = bundle.tallies[spec.name]
                if prev_score:
                    tally.total += prev_score
                    tally.count += 1
                metric.value = (tally.total + score) / (tally.count + 1)
            else:
                score = result.score if isinstance(result, SessionScore) else result
                metric.value = max(metric.value, score)

        return True

    def reset_outputs(self) -> OutputBundle:
        """Replace the metrics and tallies with zeroed ones.  Windowers are kept."""
        self._bundle = OutputBundle.fresh(self._config)
        return self._bundle


# ---------------------------------------------------------------------------
# Observation wiring
# ---------------------------------------------------------------------------


class ShiftNormalizationSession:
    """A live aggregator bound to a subscription, a reporter and lifecycle hooks."""

    def __init__(
        self,
        subscription: Subscription,
        on_report: ReportCallback,
        *,
        config: NormalizationConfig,
        report_all_changes: bool,
    ) -> None:
        self._subscription = subscription
        self._on_report = on_report
        self._report_all_changes = report_all_changes
        self._aggregator = ShiftAggregator(config)
        self._report: ReportFunction = bind_reporter(
            on_report, self._aggregator.metrics, report_all_changes,
        )

    @property
    def aggregator(self) -> ShiftAggregator:
        return self._aggregator

    @property
    def metrics(self) -> list[Metric]:
        return self._aggregator.metrics

    def handle_shift(self, shift: ShiftEvent) -> None:
        if self._aggregator.add_shift(shift):
            self._report()

    def handle_hidden(self) -> None:
        """Drain undelivered records through :meth:`handle_shift`, then force a report."""
        pending = self._subscription.take_records()
        if pending:
            logger.debug("Flushing %d pending shift records on hide", len(pending))
        for shift in pending:
            self.handle_shift(shift)
        self._report(force=True)

    def handle_restore(self) -> None:
        """Recreate all metrics and tallies and re-bind the reporter to them."""
        bundle = self._aggregator.reset_outputs()
        self._report = bind_reporter(self._on_report, bundle.metrics, self._report_all_changes)
        logger.info("Page restored from back/forward cache; %d metrics reset", len(bundle.metrics))


def observe_lsn(
    on_report: ReportCallback,
    observer: ShiftObserver,
    lifecycle: PageLifecycle,
    *,
    report_all_changes: bool | None = None,
    config: NormalizationConfig | None = None,
) -> ShiftNormalizationSession | None:
    """Start layout-shift normalization against *observer*.

    Args:
        on_report: Receives each reported :class:`Metric`.
        observer: Source of layout-shift records.
        lifecycle: Page lifecycle signals to hook.
        report_all_changes: Report every change rather than only on hide.
            Defaults to ``config.report_all_changes``.
        config: Window configuration.  Defaults to :func:`default_config`.

    Returns:
        The live session, or ``None`` if *observer* cannot observe layout
        shifts.  In that case no metrics are created and nothing is reported.
    """
    config = config or default_config()
    if report_all_changes is None:
        report_all_changes = config.report_all_changes

    session: ShiftNormalizationSession | None = None

    def entry_handler(shift: ShiftEvent) -> None:
        assert session is not None
        session.handle_shift(shift)

    subscription = observer.observe(LAYOUT_SHIFT_ENTRY_TYPE, entry_handler)
    if subscription is None:
        return None

    session = ShiftNormalizationSession(
        subscription,
        on_report,
        config=config,
        report_all_changes=report_all_changes,
    )
    lifecycle.on_hidden(session.handle_hidden)
    lifecycle.on_restore(session.handle_restore)
    return session
