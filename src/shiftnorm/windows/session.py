"""Session windows over a stream of layout shifts.

A *session* is a contiguous run of shifts with no idle gap longer than
``gap`` milliseconds between consecutive shifts, optionally capped at
``limit`` milliseconds of total duration measured from its first shift.
A new session starts whenever the incoming shift would violate either
constraint relative to the existing session.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

from shiftnorm.core.types import ShiftEvent

logger = logging.getLogger(__name__)


class SessionScore(NamedTuple):
    """Result of feeding one shift into a :class:`SessionWindow`.

    ``prev_score`` is the score of the session that this shift closed, or
    ``0.0`` if none closed.  A closed session whose true score is zero is
    indistinguishable from "no close"; callers treat both as nothing to fold.
    """

    prev_score: float
    score: float


class SessionWindow:
    """Running score of the current session.

    Timestamps start at ``0`` so the first shift with ``start_time > gap``
    closes an empty session (``prev_score == 0``) before opening its own.
    """

    def __init__(self, gap: float, limit: float = math.inf) -> None:
        self._gap = gap
        self._limit = limit

        self._first_ts = 0.0
        self._prev_ts = 0.0
        self._score = 0.0

    @property
    def gap(self) -> float:
        return self._gap

    @property
    def limit(self) -> float:
        return self._limit

    @property
    def score(self) -> float:
        """Score of the current, still-open session."""
        return self._score

    def add_shift(self, shift: ShiftEvent) -> SessionScore:
        """Fold *shift* into the window and report any session it closed.

        Args:
            shift: The next shift, with ``start_time`` not earlier than the
                previous one.

        Returns:
            ``SessionScore(prev_score, score)`` where *score* includes
            *shift*.
        """
        prev_score = 0.0
        if (
            shift.start_time - self._prev_ts > self._gap
            or shift.start_time - self._first_ts > self._limit
        ):
            prev_score = self._score
            self._first_ts = shift.start_time
            self._score = 0.0
            if prev_score:
                logger.debug(
                    "Session closed (gap=%s, limit=%s): score=%.6f",
                    self._gap, self._limit, prev_score,
                )

        self._prev_ts = shift.start_time
        self._score += shift.value

        return SessionScore(prev_score, self._score)
