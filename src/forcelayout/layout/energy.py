"""
Energy history used to estimate layout stabilization.

Each step accumulates force magnitudes into a pending value which is then
committed into a fixed-size circular buffer. Stabilization compares the
latest committed energy with the average of three older samples.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

__all__ = ["EnergyTracker", "STABILIZATION_LOOKBACK"]

# Look-back offsets averaged by the stabilization estimate
STABILIZATION_LOOKBACK = (200, 190, 180)

# Randomized history values are drawn uniformly from [-RANDOM_SPAN, RANDOM_SPAN]
RANDOM_SPAN = 1000.0


class EnergyTracker:
    """Circular history of per-step total energy."""

    def __init__(self, buffer_size: int = 256):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self._values: NDArray[np.float64] = np.zeros(buffer_size, dtype=np.float64)
        self._cursor = 0
        self._pending = 0.0
        self._last = 0.0

    @property
    def buffer_size(self) -> int:
        return len(self._values)

    @property
    def energy(self) -> float:
        """The last committed energy value."""
        return self._last

    def accumulate(self, value: float) -> None:
        """Add to the current step's running energy."""
        self._pending += value

    def commit(self) -> None:
        """Push the running energy into the history, overwriting the oldest slot."""
        self._cursor = (self._cursor + 1) % len(self._values)
        self._values[self._cursor] = self._pending
        self._last = self._pending
        self._pending = 0.0

    def value_at(self, steps_back: int) -> float:
        """
        Energy committed ``steps_back`` steps ago (0 is the latest).

        Look-backs beyond the buffer are clamped to the oldest slot.
        """
        size = len(self._values)
        steps_back = min(max(steps_back, 0), size - 1)
        return float(self._values[(self._cursor - steps_back) % size])

    def stabilization(self) -> float:
        """
        Reciprocal of the distance between the latest energy and older samples.

        The difference is floored at 1 before inversion, so the result lies in
        (0, 1] and reaches 1 whenever the energy drifted by less than one unit.
        """
        previous = sum(self.value_at(back) for back in STABILIZATION_LOOKBACK) / len(
            STABILIZATION_LOOKBACK
        )
        diff = abs(self._last - previous)
        if diff < 1.0:
            diff = 1.0
        return 1.0 / diff

    def randomize(self, rng: np.random.Generator) -> None:
        """Fill the history with noise so no stale plateau reads as stable."""
        self._values = rng.uniform(-RANDOM_SPAN, RANDOM_SPAN, size=len(self._values))
