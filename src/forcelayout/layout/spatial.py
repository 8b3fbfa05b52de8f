"""
Spatial index for Barnes-Hut repulsion queries.

Provides a quadtree (2D) or octree (3D) over the particle arena. Cells are
stored in dense arrays addressed by integer handles; the children of an
internal cell are allocated contiguously, so a cell only records the handle
of its first child. Every cell keeps the aggregate centre of mass and total
weight of the particles beneath it.

Repulsion queries explore cells near the particle exactly (inside the view
zone) and replace distant, compact cells by their aggregate, which keeps the
per-step cost near O(n log n) instead of O(n^2).

Usage::

    index = SpatialIndex(arena, dimensions=2, cell_capacity=10)
    index.rebuild()
    result = index.force_on(handle, view_zone=2.0, theta=0.7)
    print(result.force, result.interactions)
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, NamedTuple

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from forcelayout.layout.components import ParticleArena

logger = logging.getLogger(__name__)

__all__ = ["SpatialIndex", "RepulsionResult"]

# Half thickness of the z slab covered by 2D cells
_FLAT_HALF_DEPTH = 0.01

# Relative padding applied around the particle extents when sizing the root
_ROOT_PADDING = 0.01


class RepulsionResult(NamedTuple):
    """Outcome of a repulsion query for one particle."""

    force: NDArray[np.float64]
    energy: float
    interactions: int


class SpatialIndex:
    """
    Recursive space partition over the live particles of an arena.

    Leaves hold particle handles directly and subdivide once they hold more
    than ``cell_capacity`` particles. Subdivision stops at ``max_depth`` so
    that coincident particles cannot split forever.

    Coincident particles push each other apart in a direction drawn from
    ``rng``, with the strength of two particles at ``min_distance``.
    """

    def __init__(
        self,
        arena: ParticleArena,
        dimensions: int = 2,
        cell_capacity: int = 10,
        repulsion: float = 0.024,
        min_distance: float = 1.0,
        max_depth: int = 24,
        rng: np.random.Generator | None = None,
    ):
        if dimensions not in (2, 3):
            raise ValueError(f"dimensions must be 2 or 3, got {dimensions}")
        self.arena = arena
        self.dimensions = dimensions
        self.cell_capacity = max(1, cell_capacity)
        self.repulsion = repulsion
        self.min_distance = min_distance
        self.max_depth = max_depth
        self.rng = rng if rng is not None else np.random.default_rng()
        self._fanout = 1 << dimensions

        self._reserve(64)
        self._cell_total = 0
        self._leaf_of: dict[int, int] = {}
        self.low_point: NDArray[np.float64] = np.zeros(3, dtype=np.float64)
        self.high_point: NDArray[np.float64] = np.zeros(3, dtype=np.float64)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def particle_count(self) -> int:
        """Number of particles currently stored in the index."""
        return len(self._leaf_of)

    @property
    def cell_count(self) -> int:
        return self._cell_total

    def __contains__(self, handle: object) -> bool:
        return handle in self._leaf_of

    def depth(self) -> int:
        """Depth of the deepest allocated cell (root is 0)."""
        if self._cell_total == 0:
            return 0
        return int(self._depth[: self._cell_total].max())

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def rebuild(self) -> None:
        """Rebuild the whole tree from the arena's current positions."""
        arena = self.arena
        handles = arena.handles()
        self._cell_total = 0
        self._leaf_of.clear()

        if not handles:
            self.low_point = np.zeros(3, dtype=np.float64)
            self.high_point = np.zeros(3, dtype=np.float64)
            lo = np.full(3, -1.0)
            hi = np.full(3, 1.0)
            if self.dimensions == 2:
                lo[2], hi[2] = -_FLAT_HALF_DEPTH, _FLAT_HALF_DEPTH
            self._alloc_cell(lo, hi, parent=-1, depth=0)
            return

        points = arena.positions[handles]
        self.low_point = points.min(axis=0)
        self.high_point = points.max(axis=0)

        lo, hi = self._root_bounds(self.low_point, self.high_point)
        self._alloc_cell(lo, hi, parent=-1, depth=0)

        positions = arena.positions
        for handle in handles:
            self._insert_from(0, handle, positions[handle])

        logger.debug(
            "Rebuilt spatial index: %d particles, %d cells, depth %d",
            len(handles),
            self.cell_count,
            self.depth(),
        )

    def insert(self, handle: int) -> None:
        """Add a live arena particle to the index."""
        if handle in self._leaf_of:
            return
        position = self.arena.positions[handle]
        if self._cell_total == 0 or not self._contains_point(0, position):
            self.rebuild()
            return
        self._insert_from(0, handle, position)
        self.low_point = np.minimum(self.low_point, position)
        self.high_point = np.maximum(self.high_point, position)
        if self.particle_count == 1:
            self.low_point = position.copy()
            self.high_point = position.copy()

    def remove(self, handle: int) -> None:
        """
        Remove a particle from the index.

        Must be called while the particle's arena row is still alive. The
        bounding box shrinks to the remaining particles; cell bounds are
        kept until the next rebuild.
        """
        cell = self._leaf_of.pop(handle, None)
        if cell is None:
            return
        self._members[cell].remove(handle)
        while cell >= 0:
            self._recompute(cell)
            cell = int(self._parent[cell])

        if self._leaf_of:
            points = self.arena.positions[list(self._leaf_of)]
            self.low_point = points.min(axis=0)
            self.high_point = points.max(axis=0)
        else:
            self.low_point = np.zeros(3, dtype=np.float64)
            self.high_point = np.zeros(3, dtype=np.float64)

    def update(self, handle: int) -> None:
        """Re-file a particle after its position changed outside a step."""
        self.remove(handle)
        self.insert(handle)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def force_on(self, handle: int, view_zone: float, theta: float) -> RepulsionResult:
        """
        Compute the repulsion acting on one particle.

        Cells intersecting the cube of half-size ``view_zone`` around the
        particle are explored exactly. Other cells contribute their aggregate
        when they are leaves or when ``size / distance <= theta``; otherwise
        the traversal descends into their children.

        Args:
            handle: Arena handle of the particle
            view_zone: Half-size of the exact exploration zone
            theta: Barnes-Hut admissibility threshold

        Returns:
            RepulsionResult with the force vector, the summed force
            magnitudes and the number of particles or aggregates touched
        """
        arena = self.arena
        positions = arena.positions
        weights = arena.weights
        px, py, pz = (float(v) for v in positions[handle])
        weight = float(weights[handle])

        fx = fy = fz = 0.0
        energy = 0.0
        interactions = 0

        if self._cell_total == 0:
            return RepulsionResult(np.zeros(3, dtype=np.float64), 0.0, 0)

        lo = self._lo
        hi = self._hi
        center = self._center
        mass = self._mass
        count = self._count
        first_child = self._first_child
        members = self._members
        fanout = self._fanout

        stack = [0]
        while stack:
            cell = stack.pop()
            if count[cell] == 0:
                continue

            first = int(first_child[cell])
            in_view = not (
                hi[cell, 0] < px - view_zone
                or lo[cell, 0] > px + view_zone
                or hi[cell, 1] < py - view_zone
                or lo[cell, 1] > py + view_zone
                or hi[cell, 2] < pz - view_zone
                or lo[cell, 2] > pz + view_zone
            )

            if in_view:
                if first < 0:
                    for other in members[cell]:
                        if other == handle:
                            continue
                        interactions += 1
                        ox, oy, oz = positions[other]
                        factor, dx, dy, dz = self._repel(
                            px, py, pz, weight, ox, oy, oz, float(weights[other])
                        )
                        fx -= dx
                        fy -= dy
                        fz -= dz
                        energy += factor
                else:
                    stack.extend(range(first, first + fanout))
                continue

            cx, cy, cz = center[cell]
            if first >= 0:
                distance = math.sqrt((cx - px) ** 2 + (cy - py) ** 2 + (cz - pz) ** 2)
                size = hi[cell, 0] - lo[cell, 0]
                if distance == 0.0 or size / distance > theta:
                    stack.extend(range(first, first + fanout))
                    continue

            interactions += 1
            factor, dx, dy, dz = self._repel(px, py, pz, weight, cx, cy, cz, float(mass[cell]))
            fx -= dx
            fy -= dy
            fz -= dz
            energy += factor

        return RepulsionResult(np.array([fx, fy, fz], dtype=np.float64), energy, interactions)

    def exact_force_on(self, handle: int) -> RepulsionResult:
        """
        Compute the repulsion on one particle from every other live particle.

        This is the O(n) per particle (O(n^2) per step) baseline used at the
        exact quality level.
        """
        arena = self.arena
        mask = arena.alive.copy()
        mask[handle] = False
        interactions = int(mask.sum())
        if interactions == 0:
            return RepulsionResult(np.zeros(3, dtype=np.float64), 0.0, 0)

        position = arena.positions[handle]
        delta = arena.positions[mask] - position
        distance = np.sqrt((delta * delta).sum(axis=1))
        valid = distance > 0.0
        coincident = ~valid

        unit = np.zeros_like(delta)
        unit[valid] = delta[valid] / distance[valid][:, None]
        if coincident.any():
            unit[coincident] = self._random_directions(int(coincident.sum()))

        clamped = np.maximum(distance, self.min_distance)
        factor = self.repulsion / (clamped * clamped) * arena.weights[handle] * arena.weights[mask]
        force = -(unit * factor[:, None]).sum(axis=0)
        return RepulsionResult(force, float(factor.sum()), interactions)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _repel(
        self,
        px: float,
        py: float,
        pz: float,
        weight: float,
        ox: float,
        oy: float,
        oz: float,
        other_weight: float,
    ) -> tuple[float, float, float, float]:
        """Inverse-square repulsion; returns (magnitude, dx, dy, dz) toward the source."""
        dx = ox - px
        dy = oy - py
        dz = oz - pz
        distance = math.sqrt(dx * dx + dy * dy + dz * dz)
        if distance <= 0.0:
            nearest = self.min_distance * self.min_distance
            factor = self.repulsion / nearest * weight * other_weight
            ux, uy, uz = (float(v) for v in self._random_directions(1)[0])
            return factor, ux * factor, uy * factor, uz * factor
        clamped = max(distance, self.min_distance)
        factor = self.repulsion / (clamped * clamped) * weight * other_weight
        scale = factor / distance
        return factor, dx * scale, dy * scale, dz * scale

    def _random_directions(self, count: int) -> NDArray[np.float64]:
        """Unit vectors with random orientation, flat in 2D."""
        directions = self.rng.normal(size=(count, 3))
        if self.dimensions == 2:
            directions[:, 2] = 0.0
        norms = np.sqrt((directions * directions).sum(axis=1))
        norms[norms == 0.0] = 1.0
        return directions / norms[:, None]

    def _root_bounds(
        self, low: NDArray[np.float64], high: NDArray[np.float64]
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Square (or cubic) root cell enclosing the given extents."""
        dims = self.dimensions
        extent = float((high[:dims] - low[:dims]).max())
        side = max(extent, self.min_distance) * (1.0 + _ROOT_PADDING)
        middle = (low + high) / 2.0
        lo = middle - side / 2.0
        hi = middle + side / 2.0
        if dims == 2:
            lo[2], hi[2] = -_FLAT_HALF_DEPTH, _FLAT_HALF_DEPTH
        return lo, hi

    def _contains_point(self, cell: int, position: NDArray[np.float64]) -> bool:
        return bool(np.all(position >= self._lo[cell]) and np.all(position <= self._hi[cell]))

    def _insert_from(self, cell: int, handle: int, position: NDArray[np.float64]) -> None:
        """File a particle under ``cell``, updating aggregates on the way down."""
        weight = float(self.arena.weights[handle])
        while True:
            self._add_mass(cell, position, weight)
            first = int(self._first_child[cell])
            if first < 0:
                self._members[cell].append(handle)
                self._leaf_of[handle] = cell
                if (
                    len(self._members[cell]) > self.cell_capacity
                    and self._depth[cell] < self.max_depth
                ):
                    self._split(cell)
                return
            cell = first + self._octant(cell, position)

    def _split(self, cell: int) -> None:
        """Turn a leaf into an internal cell and push its members down."""
        lo = self._lo[cell].copy()
        hi = self._hi[cell].copy()
        mid = (lo + hi) / 2.0
        depth = int(self._depth[cell]) + 1

        first = -1
        for octant in range(self._fanout):
            child_lo = lo.copy()
            child_hi = hi.copy()
            for axis in range(self.dimensions):
                if octant & (1 << axis):
                    child_lo[axis] = mid[axis]
                else:
                    child_hi[axis] = mid[axis]
            child = self._alloc_cell(child_lo, child_hi, parent=cell, depth=depth)
            if first < 0:
                first = child

        members = self._members[cell]
        self._members[cell] = []
        self._first_child[cell] = first

        positions = self.arena.positions
        for handle in members:
            position = positions[handle]
            self._insert_from(first + self._octant(cell, position), handle, position)

    def _octant(self, cell: int, position: NDArray[np.float64]) -> int:
        mid = (self._lo[cell] + self._hi[cell]) / 2.0
        octant = 0
        for axis in range(self.dimensions):
            if position[axis] >= mid[axis]:
                octant |= 1 << axis
        return octant

    def _add_mass(self, cell: int, position: NDArray[np.float64], weight: float) -> None:
        total = self._mass[cell] + weight
        self._center[cell] = (self._center[cell] * self._mass[cell] + position * weight) / total
        self._mass[cell] = total
        self._count[cell] += 1

    def _recompute(self, cell: int) -> None:
        """Recompute a cell's aggregate from its members or children."""
        first = int(self._first_child[cell])
        if first < 0:
            handles = self._members[cell]
            if handles:
                weights = self.arena.weights[handles]
                total = float(weights.sum())
                self._center[cell] = (self.arena.positions[handles] * weights[:, None]).sum(
                    axis=0
                ) / total
                self._mass[cell] = total
            else:
                self._center[cell] = 0.0
                self._mass[cell] = 0.0
            self._count[cell] = len(handles)
            return

        children = slice(first, first + self._fanout)
        masses = self._mass[children]
        total = float(masses.sum())
        self._count[cell] = int(self._count[children].sum())
        self._mass[cell] = total
        if total > 0.0:
            self._center[cell] = (self._center[children] * masses[:, None]).sum(axis=0) / total
        else:
            self._center[cell] = 0.0

    def _alloc_cell(
        self, lo: NDArray[np.float64], hi: NDArray[np.float64], parent: int, depth: int
    ) -> int:
        if self._cell_total >= len(self._mass):
            self._reserve(len(self._mass) * 2)
        cell = self._cell_total
        self._cell_total += 1
        self._lo[cell] = lo
        self._hi[cell] = hi
        self._center[cell] = 0.0
        self._mass[cell] = 0.0
        self._count[cell] = 0
        self._first_child[cell] = -1
        self._parent[cell] = parent
        self._depth[cell] = depth
        self._members[cell] = []
        return cell

    def _reserve(self, capacity: int) -> None:
        """Allocate (or grow) the cell arrays, keeping existing cells."""
        old = getattr(self, "_mass", None)
        used = 0 if old is None else len(old)

        def grow(array, shape, dtype, fill=0):
            fresh = np.full(shape, fill, dtype=dtype)
            if array is not None:
                fresh[:used] = array
            return fresh

        self._lo = grow(getattr(self, "_lo", None), (capacity, 3), np.float64)
        self._hi = grow(getattr(self, "_hi", None), (capacity, 3), np.float64)
        self._center = grow(getattr(self, "_center", None), (capacity, 3), np.float64)
        self._mass = grow(old, capacity, np.float64)
        self._count = grow(getattr(self, "_count", None), capacity, np.int64)
        self._first_child = grow(getattr(self, "_first_child", None), capacity, np.int64, -1)
        self._parent = grow(getattr(self, "_parent", None), capacity, np.int64, -1)
        self._depth = grow(getattr(self, "_depth", None), capacity, np.int64)
        members = getattr(self, "_members", [])
        self._members: list[list[int]] = members + [[] for _ in range(capacity - len(members))]
