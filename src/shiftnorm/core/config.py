"""Window configuration: which windowers to run and how to fold their output.

Each :class:`WindowSpec` describes one windower (session or sliding) and
the combinator that turns its per-shift output into a metric value.  The
default configuration is the five-window layout-shift normalization set.

Typical flow::

    config = load_config(Path("configs/windows.yaml"))
    aggregator = ShiftAggregator(config)

The YAML format mirrors :meth:`NormalizationConfig.model_dump`::

    report_all_changes: false
    windows:
      - name: LSN-avg-session-gap5s
        kind: session
        gap_ms: 5000
        limit_ms: null      # unbounded
        combinator: mean
"""

from __future__ import annotations

import logging
import math
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from shiftnorm.core.defaults import (
    DEFAULT_REPORT_ALL_CHANGES,
    METRIC_AVG_SESSION_GAP5S,
    METRIC_MAX_SESSION_GAP1S,
    METRIC_MAX_SESSION_GAP1S_LIMIT5S,
    METRIC_MAX_SLIDING1S,
    METRIC_MAX_SLIDING300MS,
    SESSION_GAP_1S_MS,
    SESSION_GAP_5S_MS,
    SESSION_LIMIT_5S_MS,
    SLIDING_LIMIT_1S_MS,
    SLIDING_LIMIT_300MS_MS,
)

logger = logging.getLogger(__name__)


class WindowKind(StrEnum):
    SESSION = "session"
    SLIDING = "sliding"


class Combinator(StrEnum):
    """How a windower's output is folded into its metric.

    ``MEAN``
        Running average of closed session scores, counting the still-open
        session as a provisional extra sample.  Session windows only.

    ``MAX``
        Running maximum of the window's current score.
    """

    MEAN = "mean"
    MAX = "max"


# ---------------------------------------------------------------------------
# Config models
# ---------------------------------------------------------------------------


class WindowSpec(BaseModel, frozen=True):
    """One windower plus the metric it feeds."""

    name: str = Field(min_length=1, description="Name of the metric this window feeds.")
    kind: WindowKind = Field(description="Windowing strategy.")
    gap_ms: float | None = Field(
        default=None, gt=0, description="Max idle gap between shifts (session windows only)."
    )
    limit_ms: float | None = Field(
        default=None,
        gt=0,
        description="Max session duration, or sliding window length.  None means unbounded.",
    )
    combinator: Combinator = Field(default=Combinator.MAX, description="Fold applied to the window output.")

    @model_validator(mode="after")
    def _validate(self) -> WindowSpec:
        if self.kind == WindowKind.SESSION and self.gap_ms is None:
            raise ValueError(f"Session window {self.name!r} requires gap_ms")
        if self.kind == WindowKind.SLIDING:
            if self.gap_ms is not None:
                raise ValueError(f"Sliding window {self.name!r} does not take gap_ms")
            if self.limit_ms is None:
                raise ValueError(f"Sliding window {self.name!r} requires limit_ms")
        if self.combinator == Combinator.MEAN and self.kind != WindowKind.SESSION:
            raise ValueError(
                f"Combinator 'mean' is only defined for session windows, "
                f"got {self.kind.value!r} for {self.name!r}"
            )
        return self

    @property
    def limit(self) -> float:
        """``limit_ms`` with ``None`` mapped to positive infinity."""
        return math.inf if self.limit_ms is None else self.limit_ms


class NormalizationConfig(BaseModel, frozen=True):
    """Full windower set for one observation session."""

    version: str = "1.0"
    report_all_changes: bool = DEFAULT_REPORT_ALL_CHANGES
    windows: list[WindowSpec] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_config(self) -> NormalizationConfig:
        names = [w.name for w in self.windows]
        if len(names) != len(set(names)):
            seen: set[str] = set()
            dupes = [n for n in names if n in seen or seen.add(n)]  # type: ignore[func-returns-value]
            raise ValueError(f"Duplicate window names: {dupes}")
        return self

    @property
    def metric_names(self) -> list[str]:
        return [w.name for w in self.windows]


def default_config() -> NormalizationConfig:
    """The five-window layout-shift normalization configuration."""
    return NormalizationConfig(
        windows=[
            WindowSpec(
                name=METRIC_AVG_SESSION_GAP5S,
                kind=WindowKind.SESSION,
                gap_ms=SESSION_GAP_5S_MS,
                combinator=Combinator.MEAN,
            ),
            WindowSpec(
                name=METRIC_MAX_SESSION_GAP1S,
                kind=WindowKind.SESSION,
                gap_ms=SESSION_GAP_1S_MS,
            ),
            WindowSpec(
                name=METRIC_MAX_SESSION_GAP1S_LIMIT5S,
                kind=WindowKind.SESSION,
                gap_ms=SESSION_GAP_1S_MS,
                limit_ms=SESSION_LIMIT_5S_MS,
            ),
            WindowSpec(
                name=METRIC_MAX_SLIDING1S,
                kind=WindowKind.SLIDING,
                limit_ms=SLIDING_LIMIT_1S_MS,
            ),
            WindowSpec(
                name=METRIC_MAX_SLIDING300MS,
                kind=WindowKind.SLIDING,
                limit_ms=SLIDING_LIMIT_300MS_MS,
            ),
        ]
    )


# ---------------------------------------------------------------------------
# YAML I/O
# ---------------------------------------------------------------------------


def load_config(path: Path) -> NormalizationConfig:
    """Load and validate a window configuration from a YAML file.

    Args:
        path: Path to a YAML file matching the config schema.

    Returns:
        Validated ``NormalizationConfig``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError / ValidationError: If the YAML is malformed or invalid.
    """
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ValueError(f"Malformed YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Config at {path} must be a mapping, got {type(raw).__name__}")
    if "version" in raw:
        raw["version"] = str(raw["version"])
    config = NormalizationConfig.model_validate(raw)
    logger.info("Loaded %d window specs from %s", len(config.windows), path)
    return config


def save_config(config: NormalizationConfig, path: Path) -> Path:
    """Serialize a window configuration to YAML.

    Args:
        config: Validated config to write.
        path: Destination file path.

    Returns:
        The *path* that was written.
    """
    data = config.model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path
