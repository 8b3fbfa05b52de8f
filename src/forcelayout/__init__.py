"""
forcelayout: incremental force-directed graph layout.

This package computes 2D/3D positions for a graph that keeps changing while
it is being laid out. Nodes repel each other, edges act as springs, and a
Barnes-Hut spatial index keeps each step near O(n log n).

Modules:
    layout: Simulation engine, spatial index, energy tracking, events
    config: Configuration file discovery (.forcelayout.toml)
    cli: Command-line driver

Quick Start::

    from forcelayout import SpringLayout, LayoutConfig

    layout = SpringLayout(LayoutConfig(quality=2, seed=7))
    layout.add_node("a")
    layout.add_node("b")
    layout.add_edge("ab", "a", "b")

    while not layout.is_stable() and layout.get_steps() < 1000:
        layout.compute()

    print(layout.get_node_position("a"))
"""

__version__ = "0.1.0"

from forcelayout.exceptions import (
    AttributeValueError,
    ConfigError,
    ForceLayoutError,
    GraphFileError,
)
from forcelayout.layout import (
    EdgeSpring,
    GraphSink,
    LayoutConfig,
    NodeParticle,
    SinkBase,
    SpringLayout,
    Vector3D,
)

__all__ = [
    # Version
    "__version__",
    # Engine
    "SpringLayout",
    "LayoutConfig",
    "Vector3D",
    "NodeParticle",
    "EdgeSpring",
    # Events
    "GraphSink",
    "SinkBase",
    # Errors
    "ForceLayoutError",
    "ConfigError",
    "AttributeValueError",
    "GraphFileError",
]
