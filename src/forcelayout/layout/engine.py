"""
Spring layout engine.

Provides the SpringLayout class that lays out a dynamically changing graph
with a force simulation. Nodes are particles repelling each other with an
inverse-square law while edges act as springs pulling their endpoints toward
an ideal separation. A spatial index keeps repulsion near O(n log n) per
step by approximating distant clusters with their centre of mass.

The engine consumes graph-mutation events (it implements the GraphSink
protocol), applies them, and forwards each event unchanged to its own
subscribers. An external driver calls ``compute()`` repeatedly and uses
``get_stabilization()`` to decide when the layout has settled.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Hashable, Sequence
from typing import Any

import numpy as np

from forcelayout.exceptions import AttributeValueError
from forcelayout.layout.attributes import (
    AttributeKey,
    AttributeScope,
    AttributeSetting,
    parse_attribute,
)
from forcelayout.layout.components import EdgeSpring, NodeParticle, ParticleArena
from forcelayout.layout.config import EXACT_QUALITY, QUALITY_VIEW_ZONES, LayoutConfig
from forcelayout.layout.energy import EnergyTracker
from forcelayout.layout.events import GraphSink, SinkRegistry
from forcelayout.layout.geometry import Vector3D
from forcelayout.layout.spatial import SpatialIndex
from forcelayout.layout.stats import ENERGY_DIFF_LOOKBACK, StatsWriter, StepStats

logger = logging.getLogger(__name__)

__all__ = ["SpringLayout"]

# Bounds of the global displacement scale
MIN_FORCE = 0.01
MAX_FORCE = 1.0


class SpringLayout:
    """
    Incremental force-directed graph layout.

    Uses a physics model where:
    - Every pair of nodes repels with magnitude K2 / d^2, scaled by both weights
    - Each edge is a spring of rest length k * weight with stiffness K1
    - Displacements are scaled by a global force factor and applied each step

    Mutations never raise on malformed input: unknown ids, missing endpoints
    and invalid values are logged and ignored.
    """

    LAYOUT_NAME = "spring-layout"

    def __init__(self, config: LayoutConfig | None = None):
        """
        Initialize the engine.

        Args:
            config: Simulation parameters
        """
        self.config = config or LayoutConfig()
        cfg = self.config

        self.k = cfg.unit_length
        self.attraction = cfg.attraction
        self.repulsion = cfg.repulsion
        self.theta = cfg.theta
        self.is_3d = cfg.is_3d
        self.rng = np.random.default_rng(cfg.seed)

        self.arena = ParticleArena()
        self.edges: dict[Hashable, EdgeSpring] = {}
        self.index = SpatialIndex(
            self.arena,
            dimensions=cfg.dimensions,
            cell_capacity=cfg.cell_capacity,
            repulsion=cfg.repulsion,
            min_distance=cfg.unit_length,
            max_depth=cfg.max_depth,
            rng=self.rng,
        )
        self.index.rebuild()
        self.energies = EnergyTracker(cfg.energy_buffer_size)
        self.sinks = SinkRegistry()

        self._force = _clamp(cfg.force, MIN_FORCE, MAX_FORCE)
        self._quality = 1
        self._view_zone = QUALITY_VIEW_ZONES[1] * self.k
        self.set_quality(cfg.quality)
        self._stabilization_limit = _clamp(cfg.stabilization_limit, 0.0, 1.0)
        self.move_event_interval = max(1, cfg.move_event_interval)

        self.output_stats = cfg.output_stats
        self._stats_writer: StatsWriter | None = None

        self._steps = 0
        self._steps_since_reset = 0
        self._area = 0.0
        self.last_step_stats = StepStats()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def node_count(self) -> int:
        return len(self.arena)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    @property
    def view_zone(self) -> float:
        """Exact exploration radius; negative when repulsion is exact."""
        return self._view_zone

    @property
    def area(self) -> float:
        """Bounding box diagonal used to clamp the last step's moves."""
        return self._area

    @property
    def layout_algorithm_name(self) -> str:
        return self.LAYOUT_NAME

    @property
    def last_step_time(self) -> float:
        """Duration of the last step in milliseconds."""
        return self.last_step_stats.duration_ms

    def get_low_point(self) -> Vector3D:
        return Vector3D.from_array(self.index.low_point)

    def get_hi_point(self) -> Vector3D:
        return Vector3D.from_array(self.index.high_point)

    def get_steps(self) -> int:
        return self._steps

    def get_force(self) -> float:
        return self._force

    def get_quality(self) -> int:
        return self._quality

    def get_stabilization_limit(self) -> float:
        return self._stabilization_limit

    def get_stabilization(self) -> float:
        """
        Current stabilization estimate.

        Returns 0 until a full energy history has been recorded since the
        last topology change, energy reset or clear.
        """
        if self._steps_since_reset < self.energies.buffer_size:
            return 0.0
        return self.energies.stabilization()

    def is_stable(self) -> bool:
        """True once a measured stabilization reaches the limit."""
        stabilization = self.get_stabilization()
        return stabilization > 0 and stabilization >= self._stabilization_limit

    def get_node(self, node_id: Hashable) -> NodeParticle | None:
        """Get a snapshot of a node by id."""
        handle = self.arena.handle_of(node_id)
        if handle is None:
            return None
        return self.arena.snapshot(handle)

    def get_node_position(self, node_id: Hashable) -> Vector3D | None:
        handle = self.arena.handle_of(node_id)
        if handle is None:
            return None
        return Vector3D.from_array(self.arena.positions[handle])

    def get_edge(self, edge_id: Hashable) -> EdgeSpring | None:
        return self.edges.get(edge_id)

    def node_ids(self) -> list[Hashable]:
        return list(self.arena.node_ids())

    def edge_ids(self) -> list[Hashable]:
        return list(self.edges)

    def positions(self) -> dict[Hashable, Vector3D]:
        """Snapshot of every node position, keyed by node id."""
        arena = self.arena
        return {
            node_id: Vector3D.from_array(arena.positions[arena.handle_of(node_id)])
            for node_id in arena.node_ids()
        }

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_force(self, value: float) -> None:
        """Set the global displacement scale, clamped to [0.01, 1]."""
        self._force = _clamp(float(value), MIN_FORCE, MAX_FORCE)

    def set_quality(self, level: Any) -> None:
        """
        Select the quality level.

        Levels 0-3 set the exact view zone to 1, 2, 5 or 10 unit lengths;
        level 4 disables the approximation. Invalid levels are logged and
        the previous level is kept.
        """
        try:
            quality = int(level)
        except (TypeError, ValueError):
            logger.warning("Invalid quality level %r; keeping %d", level, self._quality)
            return

        if quality in QUALITY_VIEW_ZONES:
            self._view_zone = QUALITY_VIEW_ZONES[quality] * self.k
        elif quality == EXACT_QUALITY:
            self._view_zone = -1.0
        else:
            logger.warning("Invalid quality level %r; keeping %d", level, self._quality)
            return
        self._quality = quality
        logger.debug("Quality level %d, view zone %s", quality, self._view_zone)

    def set_exact_zone(self, fraction: float) -> None:
        """Override the view zone directly with a value in [0, 1]."""
        self._view_zone = _clamp(float(fraction), 0.0, 1.0)
        logger.debug("Exact zone overridden to %f", self._view_zone)

    def set_stabilization_limit(self, value: float) -> None:
        self._stabilization_limit = _clamp(float(value), 0.0, 1.0)

    def set_output_stats(self, on: bool) -> None:
        self.output_stats = on
        if not on and self._stats_writer is not None:
            self._stats_writer.close()
        logger.debug("Statistics output %s", "enabled" if on else "disabled")

    # ------------------------------------------------------------------
    # Graph mutations
    # ------------------------------------------------------------------

    def add_node(self, node_id: Hashable, position: Sequence[float] | None = None) -> None:
        """
        Add a node particle.

        Args:
            node_id: Unique node identifier
            position: Initial (x, y[, z]) position; random within one unit
                      length of the origin when omitted
        """
        if node_id in self.arena:
            logger.warning("Node %r already exists; ignoring", node_id)
            return

        if position is None:
            point = self.rng.uniform(-self.k, self.k, size=3)
        else:
            point = np.zeros(3, dtype=np.float64)
            point[: min(len(position), 3)] = [float(v) for v in position[:3]]
        if not self.is_3d:
            point[2] = 0.0

        handle = self.arena.allocate(node_id, tuple(point))
        self.index.insert(handle)
        self._topology_changed()

    def remove_node(self, node_id: Hashable) -> None:
        """Remove a node particle and every edge incident to it."""
        handle = self.arena.handle_of(node_id)
        if handle is None:
            logger.debug("Cannot remove unknown node %r", node_id)
            return

        for edge_id in list(self.arena.edges[handle]):
            self.remove_edge(edge_id)

        self.index.remove(handle)
        self.arena.release(handle)
        self._topology_changed()

    def add_edge(self, edge_id: Hashable, source_id: Hashable, target_id: Hashable) -> None:
        """
        Add an edge spring between two existing nodes.

        Missing endpoints make this a logged no-op. Reusing an edge id
        replaces the previous spring, which is first detached from its
        former endpoints.
        """
        source = self.arena.handle_of(source_id)
        target = self.arena.handle_of(target_id)
        if source is None or target is None:
            logger.info(
                "Cannot add edge %r: endpoint %r missing",
                edge_id,
                source_id if source is None else target_id,
            )
            return

        previous = self.edges.get(edge_id)
        if previous is not None:
            logger.warning("Edge %r already exists; replacing it", edge_id)
            self._detach_edge(previous)

        self.edges[edge_id] = EdgeSpring(edge_id, source_id, target_id)
        self.arena.register_edge(source, edge_id)
        self.arena.register_edge(target, edge_id)
        self._topology_changed()
        self._choose_node_position(source, target)

    def remove_edge(self, edge_id: Hashable) -> None:
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            logger.debug("Cannot remove unknown edge %r", edge_id)
            return
        self._detach_edge(edge)
        self._topology_changed()

    def set_node_weight(self, node_id: Hashable, weight: float) -> None:
        """Set a node's repulsion strength (must be positive)."""
        handle = self.arena.handle_of(node_id)
        if handle is None:
            return
        if weight <= 0:
            logger.warning("Ignoring non-positive weight %r for node %r", weight, node_id)
            return
        self.arena.weights[handle] = weight
        self.index.update(handle)

    def set_edge_weight(self, edge_id: Hashable, weight: float) -> None:
        """Set an edge's rest-length multiplier (must be positive)."""
        edge = self.edges.get(edge_id)
        if edge is None:
            return
        if weight <= 0:
            logger.warning("Ignoring non-positive weight %r for edge %r", weight, edge_id)
            return
        edge.weight = weight

    def ignore_edge(self, edge_id: Hashable, on: bool) -> None:
        edge = self.edges.get(edge_id)
        if edge is not None:
            edge.ignored = on

    def freeze_node(self, node_id: Hashable, on: bool) -> None:
        """Frozen nodes still push and pull others but never move."""
        handle = self.arena.handle_of(node_id)
        if handle is not None:
            self.arena.frozen[handle] = on

    def move_node(self, node_id: Hashable, dx: float, dy: float, dz: float = 0.0) -> None:
        """Displace a node explicitly; the energy history restarts."""
        handle = self.arena.handle_of(node_id)
        if handle is None:
            return
        self.arena.positions[handle] += (dx, dy, dz if self.is_3d else 0.0)
        self.index.update(handle)
        self._clear_energies()

    def clear(self) -> None:
        """Drop every node and edge and reset statistics."""
        self._clear_energies()
        self.arena.clear()
        self.edges.clear()
        self.index.rebuild()
        self._area = 0.0
        self.last_step_stats = StepStats()

    def shake(self) -> None:
        """Restart stabilization measurement without touching the graph."""
        self._clear_energies()

    def close(self) -> None:
        """Release the statistics file, if any."""
        if self._stats_writer is not None:
            self._stats_writer.close()

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def compute(self) -> None:
        """Advance the simulation by one step."""
        started = time.perf_counter()
        arena = self.arena

        self._compute_area()
        arena.displacements[:] = 0.0
        stats = StepStats(step=self._steps, area=self._area)

        handles = arena.handles()
        exact = self._view_zone < 0
        for handle in handles:
            if arena.frozen[handle]:
                continue
            if exact:
                result = self.index.exact_force_on(handle)
            else:
                result = self.index.force_on(handle, self._view_zone, self.theta)
            arena.displacements[handle] += result.force
            self.energies.accumulate(result.energy)
            stats.interactions += result.interactions
            stats.repelled_count += 1

        self._apply_springs()
        moved = self._apply_displacements(handles, stats)

        self.index.rebuild()
        self.energies.commit()
        stats.energy = self.energies.energy
        stats.duration_ms = (time.perf_counter() - started) * 1000.0
        self.last_step_stats = stats

        if self.output_stats:
            self._write_stats(stats)

        if moved and self._steps % self.move_event_interval == 0:
            for handle in moved:
                self.sinks.emit(
                    "node_moved",
                    arena.ids[handle],
                    Vector3D.from_array(arena.positions[handle]),
                )

        self._steps += 1
        self._steps_since_reset += 1

    def run(
        self,
        max_steps: int = 1000,
        callback: Callable[[int, float], None] | None = None,
    ) -> int:
        """
        Step until the layout is stable or ``max_steps`` is reached.

        Args:
            max_steps: Maximum number of steps
            callback: Optional function called each step with (step, stabilization)

        Returns:
            Number of steps run
        """
        for i in range(max_steps):
            self.compute()
            if callback:
                callback(i, self.get_stabilization())

            if self.is_stable():
                return i + 1

        return max_steps

    def _compute_area(self) -> None:
        self._area = float(np.linalg.norm(self.index.high_point - self.index.low_point))

    def _apply_springs(self) -> None:
        """Hooke attraction toward the rest length k * weight."""
        arena = self.arena
        positions = arena.positions
        displacements = arena.displacements

        for edge in self.edges.values():
            if edge.ignored or edge.is_loop:
                continue
            source = arena.handle_of(edge.source)
            target = arena.handle_of(edge.target)

            delta = positions[target] - positions[source]
            length = math.sqrt(float(delta @ delta))
            if length <= 0.0:
                continue

            factor = self.attraction * (length - self.k * edge.weight)
            pull = delta * (factor / length)
            displacements[source] += pull
            displacements[target] -= pull
            self.energies.accumulate(2.0 * abs(factor))

    def _apply_displacements(self, handles: list[int], stats: StepStats) -> list[int]:
        """Scale, clamp and apply displacements; returns the moved handles."""
        arena = self.arena
        limit = self._area / 2.0
        moved: list[int] = []
        total = 0.0

        for handle in handles:
            if arena.frozen[handle]:
                continue
            displacement = arena.displacements[handle] * self._force
            if not self.is_3d:
                displacement[2] = 0.0

            length = math.sqrt(float(displacement @ displacement))
            if limit > 0.0 and length > limit:
                displacement *= limit / length
                length = limit
            arena.displacements[handle] = displacement

            if length > 0.0:
                arena.positions[handle] += displacement
                moved.append(handle)
                total += length
                stats.max_move_length = max(stats.max_move_length, length)

        stats.node_move_count = len(moved)
        if moved:
            stats.avg_move_length = total / len(moved)
        return moved

    def _write_stats(self, stats: StepStats) -> None:
        if self._stats_writer is None:
            self._stats_writer = StatsWriter(self.config.stats_path)
        energy_diff = self.energies.energy - self.energies.value_at(ENERGY_DIFF_LOOKBACK)
        if not self._stats_writer.write(stats, self.get_stabilization(), energy_diff):
            self.output_stats = False

    def _choose_node_position(self, source: int, target: int) -> None:
        """Move a fresh leaf onto its hub so it does not snap in from afar."""
        arena = self.arena
        source_degree = len(arena.edges[source])
        target_degree = len(arena.edges[target])

        if source_degree == 1 and target_degree > 1:
            self._relocate(source, target)
        elif target_degree == 1 and source_degree > 1:
            self._relocate(target, source)

    def _relocate(self, handle: int, onto: int) -> None:
        if self.arena.frozen[handle]:
            return
        self.arena.positions[handle] = self.arena.positions[onto]
        self.index.update(handle)

    def _detach_edge(self, edge: EdgeSpring) -> None:
        for node_id in (edge.source, edge.target):
            handle = self.arena.handle_of(node_id)
            if handle is not None:
                self.arena.unregister_edge(handle, edge.id)

    def _topology_changed(self) -> None:
        self._steps_since_reset = 0

    def _clear_energies(self) -> None:
        self.energies.randomize(self.rng)
        self._steps_since_reset = 0

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, sink: GraphSink) -> None:
        """Register a sink receiving forwarded events and move notifications."""
        self.sinks.subscribe(sink)

    def unsubscribe(self, sink: GraphSink) -> None:
        self.sinks.unsubscribe(sink)

    # ------------------------------------------------------------------
    # GraphSink: apply locally, then forward unchanged
    # ------------------------------------------------------------------

    def node_added(self, node_id: Hashable) -> None:
        self.add_node(node_id)
        self.sinks.emit("node_added", node_id)

    def node_removed(self, node_id: Hashable) -> None:
        self.remove_node(node_id)
        self.sinks.emit("node_removed", node_id)

    def edge_added(
        self, edge_id: Hashable, source_id: Hashable, target_id: Hashable, directed: bool = False
    ) -> None:
        self.add_edge(edge_id, source_id, target_id)
        self.sinks.emit("edge_added", edge_id, source_id, target_id, directed)

    def edge_removed(self, edge_id: Hashable) -> None:
        self.remove_edge(edge_id)
        self.sinks.emit("edge_removed", edge_id)

    def graph_cleared(self) -> None:
        self.clear()
        self.sinks.emit("graph_cleared")

    def step_begins(self, step: float) -> None:
        self.sinks.emit("step_begins", step)

    def graph_attribute_added(self, attribute: str, value: Any) -> None:
        self._apply_setting(self._parse(AttributeScope.GRAPH, attribute, value))
        self.sinks.emit("graph_attribute_added", attribute, value)

    def graph_attribute_changed(self, attribute: str, old_value: Any, new_value: Any) -> None:
        self._apply_setting(self._parse(AttributeScope.GRAPH, attribute, new_value))
        self.sinks.emit("graph_attribute_changed", attribute, old_value, new_value)

    def graph_attribute_removed(self, attribute: str) -> None:
        self._apply_setting(self._parse(AttributeScope.GRAPH, attribute, None, removed=True))
        self.sinks.emit("graph_attribute_removed", attribute)

    def node_attribute_added(self, node_id: Hashable, attribute: str, value: Any) -> None:
        self._apply_setting(self._parse(AttributeScope.NODE, attribute, value), node_id)
        self.sinks.emit("node_attribute_added", node_id, attribute, value)

    def node_attribute_changed(
        self, node_id: Hashable, attribute: str, old_value: Any, new_value: Any
    ) -> None:
        self._apply_setting(self._parse(AttributeScope.NODE, attribute, new_value), node_id)
        self.sinks.emit("node_attribute_changed", node_id, attribute, old_value, new_value)

    def node_attribute_removed(self, node_id: Hashable, attribute: str) -> None:
        self._apply_setting(
            self._parse(AttributeScope.NODE, attribute, None, removed=True), node_id
        )
        self.sinks.emit("node_attribute_removed", node_id, attribute)

    def edge_attribute_added(self, edge_id: Hashable, attribute: str, value: Any) -> None:
        self._apply_setting(self._parse(AttributeScope.EDGE, attribute, value), edge_id)
        self.sinks.emit("edge_attribute_added", edge_id, attribute, value)

    def edge_attribute_changed(
        self, edge_id: Hashable, attribute: str, old_value: Any, new_value: Any
    ) -> None:
        self._apply_setting(self._parse(AttributeScope.EDGE, attribute, new_value), edge_id)
        self.sinks.emit("edge_attribute_changed", edge_id, attribute, old_value, new_value)

    def edge_attribute_removed(self, edge_id: Hashable, attribute: str) -> None:
        self._apply_setting(
            self._parse(AttributeScope.EDGE, attribute, None, removed=True), edge_id
        )
        self.sinks.emit("edge_attribute_removed", edge_id, attribute)

    def _parse(
        self, scope: AttributeScope, attribute: str, value: Any, removed: bool = False
    ) -> AttributeSetting | None:
        try:
            return parse_attribute(scope, attribute, value, removed=removed)
        except AttributeValueError as e:
            logger.warning("Ignoring %s attribute %r: %s", scope.value, attribute, e.message)
            return None

    def _apply_setting(self, setting: AttributeSetting | None, element_id: Hashable = None) -> None:
        """Apply a typed attribute; numeric and weight changes restart stabilization."""
        if setting is None:
            return

        key = setting.key
        value = setting.value

        if setting.scope is AttributeScope.GRAPH:
            if key is AttributeKey.OUTPUT_STATS:
                self.set_output_stats(bool(value))
                return
            if key is AttributeKey.FORCE:
                if value is not None:
                    self.set_force(value)
            elif key is AttributeKey.QUALITY:
                if value is not None:
                    self.set_quality(value)
            elif key is AttributeKey.EXACT_ZONE:
                if value is None:
                    self.set_quality(self._quality)
                else:
                    self.set_exact_zone(value)
            elif key is AttributeKey.STABILIZATION_LIMIT:
                self.set_stabilization_limit(
                    self.config.stabilization_limit if value is None else value
                )
        elif setting.scope is AttributeScope.NODE:
            self.set_node_weight(element_id, 1.0 if value is None else value)
        elif key is AttributeKey.WEIGHT:
            self.set_edge_weight(element_id, 1.0 if value is None else value)
        else:
            self.ignore_edge(element_id, bool(value))

        self._clear_energies()


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)
