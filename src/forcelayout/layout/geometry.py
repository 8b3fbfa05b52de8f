"""
Geometry primitives for the layout engine.

Provides the 3D vector used on the public surface of the engine: node
positions, bounding box corners and move notifications. Inner loops work
on numpy rows directly; Vector3D is what callers receive.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

__all__ = ["Vector3D"]


@dataclass(frozen=True)
class Vector3D:
    """3D vector; z stays 0 for 2D layouts."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_array(cls, values: NDArray[np.float64]) -> Vector3D:
        """Build from a numpy row of length 3."""
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def __sub__(self, other: Vector3D) -> Vector3D:
        return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)
