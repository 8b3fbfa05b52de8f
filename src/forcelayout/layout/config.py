"""
Configuration classes for the spring layout engine.

Provides the configuration dataclass that controls engine behavior,
including force constants, the spatial index, stabilization detection
and runtime notification settings.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["LayoutConfig", "QUALITY_VIEW_ZONES", "EXACT_QUALITY"]

# View zone radius per quality level, as a multiple of the unit length
QUALITY_VIEW_ZONES: dict[int, float] = {0: 1.0, 1: 2.0, 2: 5.0, 3: 10.0}

# Quality level that disables the approximation entirely
EXACT_QUALITY = 4


@dataclass
class LayoutConfig:
    """Configuration for the spring layout engine."""

    # Force model
    unit_length: float = 1.0  # Ideal edge length (k)
    attraction: float = 0.06  # Spring constant (K1)
    repulsion: float = 0.024  # Repulsion constant (K2)

    # Step parameters
    force: float = 1.0  # Global displacement scale in [0.01, 1]
    quality: int = 1  # 0 (fastest) to 4 (exact)
    theta: float = 0.7  # Barnes-Hut admissibility threshold (cell size / distance)

    # Spatial index
    cell_capacity: int = 10  # Particles per cell before it subdivides
    max_depth: int = 24  # Subdivision stops here (coincident particles)

    # Stabilization
    energy_buffer_size: int = 256  # Length of the circular energy history
    stabilization_limit: float = 0.9  # Layout is considered stable above this

    # Space
    is_3d: bool = False  # Octree and a free z axis when True

    # Notifications and statistics
    move_event_interval: int = 1  # Emit node_moved every N steps
    output_stats: bool = False  # Write per-step statistics
    stats_path: str = "forcelayout_stats.dat"

    # Random positions and energy randomization (None = nondeterministic)
    seed: int | None = None

    @property
    def dimensions(self) -> int:
        """Number of simulated axes (2 or 3)."""
        return 3 if self.is_3d else 2
