"""Page lifecycle signals: hidden and back/forward-cache restore."""

from __future__ import annotations

import logging
from typing import Callable

from shiftnorm.core.types import LifecycleSignal

logger = logging.getLogger(__name__)

LifecycleCallback = Callable[[], None]


class PageLifecycle:
    """Synchronous pub/sub for :class:`LifecycleSignal` transitions.

    Callbacks run in registration order on the caller's thread, so a
    signal is fully handled before the next shift is delivered.
    """

    def __init__(self) -> None:
        self._callbacks: dict[LifecycleSignal, list[LifecycleCallback]] = {
            signal: [] for signal in LifecycleSignal
        }

    def subscribe(self, signal: LifecycleSignal, callback: LifecycleCallback) -> None:
        self._callbacks[signal].append(callback)

    def on_hidden(self, callback: LifecycleCallback) -> None:
        """Run *callback* every time the page becomes hidden."""
        self.subscribe(LifecycleSignal.HIDDEN, callback)

    def on_restore(self, callback: LifecycleCallback) -> None:
        """Run *callback* every time the page is restored from the back/forward cache."""
        self.subscribe(LifecycleSignal.RESTORE, callback)

    def emit(self, signal: LifecycleSignal) -> None:
        logger.debug("Lifecycle signal: %s", signal.value)
        for callback in self._callbacks[signal]:
            callback()

    def hide(self) -> None:
        self.emit(LifecycleSignal.HIDDEN)

    def restore(self) -> None:
        self.emit(LifecycleSignal.RESTORE)
