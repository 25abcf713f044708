"""Trailing time-bounded window over a stream of layout shifts."""

from __future__ import annotations

import math
from collections import deque

from shiftnorm.core.types import ShiftEvent


class SlidingWindow:
    """Sum of shift values within ``limit`` ms of the newest shift.

    Shifts are kept in arrival order and evicted from the front only, so
    inputs must arrive with non-decreasing ``start_time``.  The window total
    is maintained incrementally on insert and evict.
    """

    def __init__(self, limit: float = math.inf) -> None:
        self._limit = limit
        self._shifts: deque[ShiftEvent] = deque()
        self._total = 0.0

    @property
    def limit(self) -> float:
        return self._limit

    @property
    def shifts(self) -> list[ShiftEvent]:
        """Shifts currently inside the window, oldest first."""
        return list(self._shifts)

    def add_shift(self, shift: ShiftEvent) -> float:
        """Evict stale shifts, append *shift*, and return the window total.

        A queued shift is stale when ``shift.start_time`` is more than
        ``limit`` ms after it; a gap of exactly ``limit`` is retained.
        """
        while self._shifts and shift.start_time - self._shifts[0].start_time > self._limit:
            self._total -= self._shifts.popleft().value

        if not self._shifts:
            # window drained; discard rounding residue
            self._total = 0.0

        self._shifts.append(shift)
        self._total += shift.value

        return self._total
