"""Progress reporting for rendition encodes.

Encoders report a completion fraction for the rendition they are working
on through the single-method ProgressListener protocol. ProgressAggregator
folds those fractions into a whole-job percentage weighted by each
rendition's relative cost.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressListener(Protocol):
    """Receives completion updates for one unit of work."""

    def on_fraction(self, fraction: float) -> None:
        """Report progress.

        Args:
            fraction: Completion in [0.0, 1.0]. Values outside the range are
                clamped by the receiver.
        """
        ...


class NullProgressListener:
    """Listener that discards all updates."""

    def on_fraction(self, fraction: float) -> None:
        pass


class _RenditionListener:
    """Listener bound to one rendition index of an aggregator."""

    def __init__(self, aggregator: ProgressAggregator, index: int) -> None:
        self._aggregator = aggregator
        self._index = index

    def on_fraction(self, fraction: float) -> None:
        self._aggregator.update(self._index, fraction)


class ProgressAggregator:
    """Weighted, monotonic job progress across sequential renditions.

    percent = (sum of completed weights + current weight * fraction)
              / sum of all weights * 100

    The result is clamped to [0, 100] and never decreases, even if an
    encoder reports a lower fraction than before.

    Example:
        aggregator = ProgressAggregator([0.3, 0.6], on_percent=publish)
        listener = aggregator.listener_for(0)
        listener.on_fraction(0.5)   # 16.67%
        aggregator.complete(0)      # 33.33%
    """

    def __init__(
        self,
        weights: Sequence[float],
        on_percent: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            weights: Relative cost of each rendition, in encode order.
            on_percent: Called with the new percentage whenever it rises.

        Raises:
            ValueError: If weights is empty or any weight is not positive.
        """
        if not weights:
            raise ValueError("At least one weight is required")
        if any(w <= 0 for w in weights):
            raise ValueError(f"Weights must be positive, got {list(weights)}")
        self._weights = list(weights)
        self._total = sum(self._weights)
        self._completed_weight = 0.0
        self._completed: set[int] = set()
        self._on_percent = on_percent
        self._percent = 0.0

    @property
    def percent(self) -> float:
        """Current job percentage (0-100)."""
        return self._percent

    def listener_for(self, index: int) -> ProgressListener:
        """Get the listener an encoder should report rendition index to."""
        if not 0 <= index < len(self._weights):
            raise IndexError(f"No rendition at index {index}")
        return _RenditionListener(self, index)

    def update(self, index: int, fraction: float) -> None:
        """Record in-flight progress for the rendition at index."""
        if index in self._completed:
            return
        fraction = max(0.0, min(1.0, fraction))
        current = self._weights[index] * fraction
        self._set((self._completed_weight + current) / self._total * 100)

    def complete(self, index: int) -> None:
        """Mark the rendition at index as fully encoded."""
        if index in self._completed:
            return
        self._completed.add(index)
        self._completed_weight += self._weights[index]
        self._set(self._completed_weight / self._total * 100)

    def _set(self, percent: float) -> None:
        percent = max(0.0, min(100.0, percent))
        if percent <= self._percent:
            return
        self._percent = percent
        if self._on_percent is not None:
            self._on_percent(percent)
