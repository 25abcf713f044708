"""In-process shift source modelled on a buffered performance observer.

Producers :meth:`ShiftObserver.push` shift records; they are queued per
subscription and only reach handlers on :meth:`ShiftObserver.dispatch`,
the way a browser delivers observer callbacks asynchronously.  Records
still queued when the page is hidden can be drained synchronously with
:meth:`Subscription.take_records`.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Iterable

from shiftnorm.core.defaults import LAYOUT_SHIFT_ENTRY_TYPE
from shiftnorm.core.types import ShiftEvent

logger = logging.getLogger(__name__)

ShiftHandler = Callable[[ShiftEvent], None]


class Subscription:
    """One handler bound to one entry type on a :class:`ShiftObserver`."""

    def __init__(self, entry_type: str, handler: ShiftHandler) -> None:
        self._entry_type = entry_type
        self._handler = handler
        self._pending: deque[ShiftEvent] = deque()
        self._connected = True

    @property
    def entry_type(self) -> str:
        return self._entry_type

    @property
    def connected(self) -> bool:
        return self._connected

    def take_records(self) -> list[ShiftEvent]:
        """Return and clear records queued but not yet delivered."""
        records = list(self._pending)
        self._pending.clear()
        return records

    def disconnect(self) -> None:
        """Stop delivery and drop anything still queued."""
        self._connected = False
        self._pending.clear()

    def _enqueue(self, shift: ShiftEvent) -> None:
        if self._connected:
            self._pending.append(shift)

    def _deliver(self) -> int:
        delivered = 0
        while self._connected and self._pending:
            self._handler(self._pending.popleft())
            delivered += 1
        return delivered


class ShiftObserver:
    """Fan-out point between a shift producer and its subscriptions.

    Args:
        supported_entry_types: Entry types this source can observe.
            :meth:`observe` returns ``None`` for anything else.
    """

    def __init__(self, supported_entry_types: Iterable[str] = (LAYOUT_SHIFT_ENTRY_TYPE,)) -> None:
        self._supported = frozenset(supported_entry_types)
        self._subscriptions: list[Subscription] = []

    @property
    def supported_entry_types(self) -> frozenset[str]:
        return self._supported

    def observe(self, entry_type: str, handler: ShiftHandler) -> Subscription | None:
        """Subscribe *handler* to *entry_type*.

        Returns:
            The new :class:`Subscription`, or ``None`` if *entry_type* is
            not supported by this source.
        """
        if entry_type not in self._supported:
            logger.warning("Entry type %r is not supported by this source", entry_type)
            return None
        sub = Subscription(entry_type, handler)
        self._subscriptions.append(sub)
        return sub

    def push(self, shift: ShiftEvent, entry_type: str = LAYOUT_SHIFT_ENTRY_TYPE) -> None:
        """Queue *shift* on every connected subscription for *entry_type*."""
        for sub in self._subscriptions:
            if sub.entry_type == entry_type:
                sub._enqueue(shift)

    def dispatch(self) -> int:
        """Deliver all queued records.  Returns the number delivered."""
        delivered = 0
        for sub in list(self._subscriptions):
            delivered += sub._deliver()
        self._subscriptions = [s for s in self._subscriptions if s.connected]
        return delivered
