"""Replay a recorded timeline through an observer and lifecycle."""

from __future__ import annotations

import logging

from shiftnorm.adapters.trace.client import Timeline
from shiftnorm.core.types import LifecycleSignal
from shiftnorm.observe.lifecycle import PageLifecycle
from shiftnorm.observe.source import ShiftObserver

logger = logging.getLogger(__name__)


def replay_timeline(
    timeline: Timeline,
    observer: ShiftObserver,
    lifecycle: PageLifecycle,
    *,
    dispatch_every: int = 1,
    hide_at_end: bool = True,
) -> int:
    """Push *timeline* into *observer*, firing lifecycle signals in place.

    Shifts are dispatched in batches of *dispatch_every*; ``0`` leaves
    them queued until a lifecycle signal.  Queued shifts are drained
    before a restore signal, so shifts recorded before a restore never
    land in the post-restore metrics.

    Args:
        timeline: Ordered shifts and lifecycle signals.
        observer: Source to push shifts into.
        lifecycle: Lifecycle to emit signals on.
        dispatch_every: Batch size for :meth:`ShiftObserver.dispatch`.
        hide_at_end: Emit a final hidden signal (page unload).

    Returns:
        Number of shifts pushed.
    """
    if dispatch_every < 0:
        raise ValueError(f"dispatch_every must be >= 0, got {dispatch_every}")

    pushed = 0
    for item in timeline:
        if isinstance(item, LifecycleSignal):
            if item is LifecycleSignal.RESTORE:
                observer.dispatch()
            lifecycle.emit(item)
            continue
        observer.push(item)
        pushed += 1
        if dispatch_every and pushed % dispatch_every == 0:
            observer.dispatch()

    if hide_at_end:
        lifecycle.hide()

    logger.debug("Replayed %d shifts (%d timeline items)", pushed, len(timeline))
    return pushed
