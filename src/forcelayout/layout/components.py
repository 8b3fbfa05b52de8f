"""
Element model classes for the spring layout engine.

Node particles live in a dense arena: parallel numpy arrays indexed by a
stable integer handle, with a free list for reuse. Edge springs refer to
their endpoints by node id, and each particle row keeps the ids of its
incident springs, so there is no object graph between nodes and edges.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from forcelayout.layout.geometry import Vector3D

__all__ = ["ParticleArena", "NodeParticle", "EdgeSpring"]


@dataclass
class EdgeSpring:
    """
    A spring connecting two node particles.

    The spring's rest length is the layout unit length scaled by
    ``weight``. Ignored springs stay registered but exert no force.
    """

    id: Hashable
    source: Hashable
    target: Hashable
    weight: float = 1.0
    ignored: bool = False

    @property
    def is_loop(self) -> bool:
        return self.source == self.target


@dataclass(frozen=True)
class NodeParticle:
    """Read-only snapshot of a particle, as handed out to callers."""

    id: Hashable
    position: Vector3D
    weight: float = 1.0
    frozen: bool = False
    edges: tuple[Hashable, ...] = field(default_factory=tuple)


class ParticleArena:
    """
    Dense storage for node particles.

    Each live particle owns one row in ``positions``, ``displacements``,
    ``weights``, ``frozen`` and ``alive``. Rows of removed particles are
    recycled; a handle is stable for as long as its particle is alive.
    """

    def __init__(self, capacity: int = 64):
        capacity = max(1, capacity)
        self.positions: NDArray[np.float64] = np.zeros((capacity, 3), dtype=np.float64)
        self.displacements: NDArray[np.float64] = np.zeros((capacity, 3), dtype=np.float64)
        self.weights: NDArray[np.float64] = np.ones(capacity, dtype=np.float64)
        self.frozen: NDArray[np.bool_] = np.zeros(capacity, dtype=bool)
        self.alive: NDArray[np.bool_] = np.zeros(capacity, dtype=bool)
        self.ids: list[Hashable | None] = [None] * capacity
        self.edges: list[list[Hashable]] = [[] for _ in range(capacity)]
        self._handles: dict[Hashable, int] = {}
        self._free: list[int] = []
        self._next = 0

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._handles

    @property
    def capacity(self) -> int:
        return len(self.ids)

    def allocate(self, node_id: Hashable, position: tuple[float, float, float]) -> int:
        """Create a particle row and return its handle."""
        if self._free:
            handle = self._free.pop()
        else:
            if self._next >= self.capacity:
                self._grow()
            handle = self._next
            self._next += 1

        self.positions[handle] = position
        self.displacements[handle] = 0.0
        self.weights[handle] = 1.0
        self.frozen[handle] = False
        self.alive[handle] = True
        self.ids[handle] = node_id
        self.edges[handle] = []
        self._handles[node_id] = handle
        return handle

    def release(self, handle: int) -> None:
        """Free a particle row; its handle may be reused later."""
        node_id = self.ids[handle]
        self._handles.pop(node_id, None)
        self.alive[handle] = False
        self.ids[handle] = None
        self.edges[handle] = []
        self.displacements[handle] = 0.0
        self._free.append(handle)

    def clear(self) -> None:
        self.alive[:] = False
        self.displacements[:] = 0.0
        self.ids = [None] * self.capacity
        self.edges = [[] for _ in range(self.capacity)]
        self._handles.clear()
        self._free.clear()
        self._next = 0

    def handle_of(self, node_id: Hashable) -> int | None:
        return self._handles.get(node_id)

    def handles(self) -> list[int]:
        """Handles of all live particles, in row order."""
        return [int(h) for h in np.flatnonzero(self.alive)]

    def node_ids(self) -> Iterator[Hashable]:
        return iter(self._handles)

    def register_edge(self, handle: int, edge_id: Hashable) -> None:
        incident = self.edges[handle]
        if edge_id not in incident:
            incident.append(edge_id)

    def unregister_edge(self, handle: int, edge_id: Hashable) -> None:
        incident = self.edges[handle]
        if edge_id in incident:
            incident.remove(edge_id)

    def snapshot(self, handle: int) -> NodeParticle:
        return NodeParticle(
            id=self.ids[handle],
            position=Vector3D.from_array(self.positions[handle]),
            weight=float(self.weights[handle]),
            frozen=bool(self.frozen[handle]),
            edges=tuple(self.edges[handle]),
        )

    def _grow(self) -> None:
        """Double the row capacity."""
        old = self.capacity
        new = old * 2
        self.positions = np.resize(self.positions, (new, 3))
        self.displacements = np.resize(self.displacements, (new, 3))
        self.weights = np.concatenate([self.weights, np.ones(new - old, dtype=np.float64)])
        self.frozen = np.concatenate([self.frozen, np.zeros(new - old, dtype=bool)])
        self.alive = np.concatenate([self.alive, np.zeros(new - old, dtype=bool)])
        self.ids.extend([None] * (new - old))
        self.edges.extend([] for _ in range(new - old))
