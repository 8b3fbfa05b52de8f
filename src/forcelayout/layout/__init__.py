"""
Force-directed layout module.

Provides a physics-based layout engine for dynamically changing graphs:
- Inverse-square repulsion between all nodes
- Barnes-Hut approximation through a quadtree/octree spatial index
- Spring attraction along edges toward an ideal separation
- Energy-history based stabilization estimate

Example::

    from forcelayout.layout import LayoutConfig, SpringLayout

    layout = SpringLayout(LayoutConfig(seed=1))
    for node in ("a", "b", "c"):
        layout.node_added(node)
    layout.edge_added("ab", "a", "b", directed=False)
    layout.edge_added("bc", "b", "c", directed=False)

    # Step until stable (or 2000 steps)
    layout.run(max_steps=2000)

    for node_id, position in layout.positions().items():
        print(f"{node_id}: ({position.x:.2f}, {position.y:.2f})")
"""

from forcelayout.layout.attributes import (
    AttributeKey,
    AttributeScope,
    AttributeSetting,
    parse_attribute,
)
from forcelayout.layout.components import EdgeSpring, NodeParticle, ParticleArena
from forcelayout.layout.config import LayoutConfig
from forcelayout.layout.energy import EnergyTracker
from forcelayout.layout.engine import SpringLayout
from forcelayout.layout.events import GraphSink, SinkBase, SinkRegistry
from forcelayout.layout.geometry import Vector3D
from forcelayout.layout.spatial import RepulsionResult, SpatialIndex
from forcelayout.layout.stats import StatsWriter, StepStats

__all__ = [
    "SpringLayout",
    "LayoutConfig",
    "Vector3D",
    "ParticleArena",
    "NodeParticle",
    "EdgeSpring",
    "SpatialIndex",
    "RepulsionResult",
    "EnergyTracker",
    "GraphSink",
    "SinkBase",
    "SinkRegistry",
    "AttributeScope",
    "AttributeKey",
    "AttributeSetting",
    "parse_attribute",
    "StepStats",
    "StatsWriter",
]
