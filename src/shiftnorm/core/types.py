"""Core data contracts: shift events, output metrics, and lifecycle signals."""

from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, Field


class ShiftEvent(BaseModel, frozen=True):
    """A single layout-shift occurrence.

    ``start_time`` is a monotonic timestamp in milliseconds relative to the
    page's time origin.  ``excluded`` marks shifts caused by recent user
    input; those never reach the windowers.
    """

    start_time: float = Field(ge=0.0, description="Monotonic timestamp (ms).")
    value: float = Field(ge=0.0, description="Shift magnitude (score contribution).")
    excluded: bool = Field(default=False, description="True if the shift had recent user input.")


def _new_metric_id() -> str:
    return f"v1-{uuid.uuid4().hex}"


class Metric(BaseModel):
    """A named, mutable output value plus the shifts that contributed to it.

    Created with ``value=0`` and no entries.  The aggregation driver
    mutates ``value`` and ``entries`` once per qualifying shift; the
    reporter owns ``delta``.  A fresh instance (with a new ``id``) replaces
    the old one when the page is restored from the back/forward cache.

    ``entries`` grows for the lifetime of the instance -- acceptable for
    page-length observation sessions, not for unbounded streams.
    """

    name: str = Field(min_length=1, description="Metric name, e.g. 'LSN-max-sliding1s'.")
    value: float = Field(default=0.0, description="Current metric value.")
    delta: float = Field(default=0.0, description="Change since the last reported value.")
    entries: list[ShiftEvent] = Field(default_factory=list, description="Contributing shifts.")
    id: str = Field(default_factory=_new_metric_id, description="Unique per metric instance.")


class LifecycleSignal(StrEnum):
    """Page lifecycle transitions that affect metric observation."""

    HIDDEN = "hidden"
    RESTORE = "restore"
