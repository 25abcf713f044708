"""Tests for the layout-shift normalization aggregator and its observation wiring.

Covers:
- Default five-metric layout and names
- Mean-of-sessions formula with the open session as a provisional sample
- Max metrics are non-decreasing
- Excluded shifts have no effect at all
- Restore resets metrics/tallies but keeps windower state
- observe_lsn: unsupported source, hidden flush, restore re-binding
"""

from __future__ import annotations

import random

import pytest

from shiftnorm.core.config import Combinator, NormalizationConfig, WindowKind, WindowSpec
from shiftnorm.core.defaults import (
    METRIC_AVG_SESSION_GAP5S,
    METRIC_MAX_SESSION_GAP1S,
    METRIC_MAX_SESSION_GAP1S_LIMIT5S,
    METRIC_MAX_SLIDING1S,
    METRIC_MAX_SLIDING300MS,
)
from shiftnorm.core.types import Metric, ShiftEvent
from shiftnorm.metrics.aggregate import ShiftAggregator, observe_lsn
from shiftnorm.observe.lifecycle import PageLifecycle
from shiftnorm.observe.source import ShiftObserver
from shiftnorm.windows.session import SessionWindow
from shiftnorm.windows.sliding import SlidingWindow

ALL_NAMES = [
    METRIC_AVG_SESSION_GAP5S,
    METRIC_MAX_SESSION_GAP1S,
    METRIC_MAX_SESSION_GAP1S_LIMIT5S,
    METRIC_MAX_SLIDING1S,
    METRIC_MAX_SLIDING300MS,
]


def _shift(t: float, value: float = 1.0, excluded: bool = False) -> ShiftEvent:
    return ShiftEvent(start_time=t, value=value, excluded=excluded)


class TestDefaultLayout:
    def test_five_metrics_in_order(self) -> None:
        agg = ShiftAggregator()
        assert [m.name for m in agg.metrics] == ALL_NAMES
        assert all(m.value == 0 and m.entries == [] for m in agg.metrics)

    def test_window_types(self) -> None:
        windows = ShiftAggregator().windows
        assert isinstance(windows[METRIC_AVG_SESSION_GAP5S], SessionWindow)
        assert windows[METRIC_MAX_SESSION_GAP1S_LIMIT5S].limit == 5000
        assert isinstance(windows[METRIC_MAX_SLIDING300MS], SlidingWindow)
        assert windows[METRIC_MAX_SLIDING300MS].limit == 300


class TestAverageMetric:
    def test_single_session_average_is_open_score(self) -> None:
        agg = ShiftAggregator()
        agg.add_shift(_shift(100, 0.2))
        agg.add_shift(_shift(200, 0.3))
        assert agg.bundle.metric(METRIC_AVG_SESSION_GAP5S).value == pytest.approx(0.5)

    def test_closed_sessions_averaged_with_open_session(self) -> None:
        agg = ShiftAggregator()
        agg.add_shift(_shift(100, 0.4))
        agg.add_shift(_shift(6000, 0.1))   # closes 0.4
        agg.add_shift(_shift(6500, 0.1))
        agg.add_shift(_shift(20000, 0.6))  # closes 0.2
        # (0.4 + 0.2 + 0.6) / 3
        assert agg.bundle.metric(METRIC_AVG_SESSION_GAP5S).value == pytest.approx(0.4)
        tally = agg.bundle.tallies[METRIC_AVG_SESSION_GAP5S]
        assert tally.count == 2
        assert tally.total == pytest.approx(0.6)

    def test_average_formula_over_random_stream(self) -> None:
        rng = random.Random(5)
        agg = ShiftAggregator()
        reference = SessionWindow(5000)
        closed: list[float] = []
        t = 0.0
        for _ in range(300):
            t += rng.choice([100.0, 1000.0, 4000.0, 7000.0])
            s = _shift(t, rng.random() * 0.2)
            agg.add_shift(s)
            prev, score = reference.add_shift(s)
            if prev:
                closed.append(prev)
            expected = (sum(closed) + score) / (len(closed) + 1)
            assert agg.bundle.metric(METRIC_AVG_SESSION_GAP5S).value == pytest.approx(expected)

    def test_zero_score_close_is_not_counted(self) -> None:
        agg = ShiftAggregator()
        agg.add_shift(_shift(100, 0.0))
        agg.add_shift(_shift(9000, 0.5))  # closes a 0-score session: nothing to fold
        assert agg.bundle.tallies[METRIC_AVG_SESSION_GAP5S].count == 0
        assert agg.bundle.metric(METRIC_AVG_SESSION_GAP5S).value == pytest.approx(0.5)


class TestMaxMetrics:
    def test_max_metrics_non_decreasing(self) -> None:
        rng = random.Random(11)
        agg = ShiftAggregator()
        previous = {name: 0.0 for name in ALL_NAMES[1:]}
        t = 0.0
        for _ in range(300):
            t += rng.choice([20.0, 250.0, 900.0, 1200.0, 6000.0])
            agg.add_shift(_shift(t, rng.random() * 0.3))
            for name in ALL_NAMES[1:]:
                value = agg.bundle.metric(name).value
                assert value >= previous[name]
                previous[name] = value

    def test_burst_then_quiet(self) -> None:
        agg = ShiftAggregator()
        for t in (0, 100, 200):
            agg.add_shift(_shift(float(t), 0.1))
        agg.add_shift(_shift(3000, 0.05))
        values = agg.bundle.values()
        assert values[METRIC_MAX_SLIDING300MS] == pytest.approx(0.3)
        assert values[METRIC_MAX_SLIDING1S] == pytest.approx(0.3)
        assert values[METRIC_MAX_SESSION_GAP1S] == pytest.approx(0.3)
        assert values[METRIC_MAX_SESSION_GAP1S_LIMIT5S] == pytest.approx(0.3)
        # a single 5 s-gap session: 0.3 + 0.05
        assert values[METRIC_AVG_SESSION_GAP5S] == pytest.approx(0.35)

    def test_session_max_over_sliding_for_long_trickle(self) -> None:
        agg = ShiftAggregator()
        for t in range(0, 4000, 800):
            agg.add_shift(_shift(float(t), 0.1))
        values = agg.bundle.values()
        assert values[METRIC_MAX_SESSION_GAP1S] == pytest.approx(0.5)
        assert values[METRIC_MAX_SLIDING1S] == pytest.approx(0.2)
        assert values[METRIC_MAX_SLIDING300MS] == pytest.approx(0.1)


class TestExcludedShifts:
    def test_excluded_shift_is_ignored(self) -> None:
        agg = ShiftAggregator()
        agg.add_shift(_shift(100, 0.1))
        before = agg.bundle.values()
        sliding = agg.windows[METRIC_MAX_SLIDING1S]
        assert agg.add_shift(_shift(150, 5.0, excluded=True)) is False
        assert agg.bundle.values() == before
        assert all(len(m.entries) == 1 for m in agg.metrics)
        assert len(sliding.shifts) == 1

    def test_entries_appended_to_every_metric(self) -> None:
        agg = ShiftAggregator()
        s = _shift(100, 0.1)
        assert agg.add_shift(s) is True
        assert all(m.entries == [s] for m in agg.metrics)


class TestResetOutputs:
    def test_restore_resets_metrics_but_not_windowers(self) -> None:
        agg = ShiftAggregator()
        agg.add_shift(_shift(100, 0.2))
        agg.add_shift(_shift(200, 0.3))
        old_ids = [m.id for m in agg.metrics]

        agg.reset_outputs()
        assert all(m.value == 0 and m.entries == [] for m in agg.metrics)
        assert [m.id for m in agg.metrics] != old_ids
        assert agg.windows[METRIC_MAX_SESSION_GAP1S].score == pytest.approx(0.5)
        assert len(agg.windows[METRIC_MAX_SLIDING300MS].shifts) == 2

        # windower state carries over: the open session still holds 0.5
        agg.add_shift(_shift(250, 0.1))
        values = agg.bundle.values()
        assert values[METRIC_MAX_SESSION_GAP1S] == pytest.approx(0.6)
        assert values[METRIC_MAX_SLIDING300MS] == pytest.approx(0.6)
        assert values[METRIC_AVG_SESSION_GAP5S] == pytest.approx(0.6)
        assert agg.bundle.tallies[METRIC_AVG_SESSION_GAP5S].count == 0
        assert all(len(m.entries) == 1 for m in agg.metrics)


class TestCustomConfig:
    def test_single_sliding_window(self) -> None:
        config = NormalizationConfig(windows=[
            WindowSpec(name="sliding-50", kind=WindowKind.SLIDING, limit_ms=50),
        ])
        agg = ShiftAggregator(config)
        agg.add_shift(_shift(0, 0.1))
        agg.add_shift(_shift(40, 0.1))
        agg.add_shift(_shift(200, 0.1))
        assert [m.name for m in agg.metrics] == ["sliding-50"]
        assert agg.metrics[0].value == pytest.approx(0.2)
        assert agg.bundle.tallies == {}

    def test_two_mean_metrics_keep_separate_tallies(self) -> None:
        config = NormalizationConfig(windows=[
            WindowSpec(name="a", kind=WindowKind.SESSION, gap_ms=100, combinator=Combinator.MEAN),
            WindowSpec(name="b", kind=WindowKind.SESSION, gap_ms=10_000, combinator=Combinator.MEAN),
        ])
        agg = ShiftAggregator(config)
        agg.add_shift(_shift(10, 0.2))
        agg.add_shift(_shift(500, 0.4))
        assert agg.bundle.metric("a").value == pytest.approx(0.3)
        assert agg.bundle.metric("b").value == pytest.approx(0.6)

    def test_unknown_metric_name_raises(self) -> None:
        with pytest.raises(KeyError):
            ShiftAggregator().bundle.metric("CLS")


class TestObserveLsn:
    def _wire(self, report_all_changes: bool = False):
        observer = ShiftObserver()
        lifecycle = PageLifecycle()
        reports: list[tuple[str, float, float]] = []

        def on_report(metric: Metric) -> None:
            reports.append((metric.name, metric.value, metric.delta))

        session = observe_lsn(on_report, observer, lifecycle, report_all_changes=report_all_changes)
        assert session is not None
        return observer, lifecycle, session, reports

    def test_unsupported_source_is_inert(self) -> None:
        observer = ShiftObserver(supported_entry_types=("paint",))
        lifecycle = PageLifecycle()
        reports: list[Metric] = []
        assert observe_lsn(reports.append, observer, lifecycle) is None
        observer.push(_shift(100, 0.5))
        observer.dispatch()
        lifecycle.hide()
        lifecycle.restore()
        assert reports == []

    def test_no_reports_until_hidden_by_default(self) -> None:
        observer, lifecycle, session, reports = self._wire()
        observer.push(_shift(100, 0.2))
        observer.dispatch()
        assert reports == []
        lifecycle.hide()
        assert [r[0] for r in reports] == ALL_NAMES
        assert all(r[1] == pytest.approx(0.2) for r in reports)

    def test_hidden_flushes_pending_records(self) -> None:
        observer, lifecycle, session, reports = self._wire()
        observer.push(_shift(100, 0.2))
        observer.push(_shift(150, 0.3))
        assert all(m.entries == [] for m in session.metrics)
        lifecycle.hide()
        assert all(len(m.entries) == 2 for m in session.metrics)
        assert dict((n, v) for n, v, _ in reports)[METRIC_MAX_SLIDING300MS] == pytest.approx(0.5)
        # nothing left to deliver after the flush
        assert observer.dispatch() == 0

    def test_report_all_changes_reports_each_change(self) -> None:
        observer, lifecycle, session, reports = self._wire(report_all_changes=True)
        observer.push(_shift(100, 0.2))
        observer.dispatch()
        assert len(reports) == 5
        observer.push(_shift(5000, 0.1))
        observer.dispatch()
        changed = {name for name, _, _ in reports[5:]}
        # sliding maxima and the gap1s session max are unchanged (0.2 >= 0.1)
        assert changed == {METRIC_AVG_SESSION_GAP5S}
        lifecycle.hide()
        assert len(reports) == 6

    def test_restore_rebinds_reporter_to_new_metrics(self) -> None:
        observer, lifecycle, session, reports = self._wire(report_all_changes=True)
        observer.push(_shift(100, 0.4))
        observer.dispatch()
        old_metrics = list(session.metrics)
        old_ids = {m.id for m in old_metrics}

        lifecycle.restore()
        assert not old_ids & {m.id for m in session.metrics}
        assert all(m.value == 0 for m in session.metrics)
        reports.clear()

        observer.push(_shift(5000, 0.1))
        observer.dispatch()
        by_name = {name: (value, delta) for name, value, delta in reports}
        assert set(by_name) == set(ALL_NAMES)
        assert by_name[METRIC_MAX_SLIDING1S] == (pytest.approx(0.1), pytest.approx(0.1))
        # old metrics are no longer touched
        assert all(len(m.entries) == 1 for m in old_metrics)
