"""
Per-step statistics of the layout engine.

``StepStats`` describes the last completed step. ``StatsWriter`` appends one
space-separated row per step to a data file when statistics output is
enabled. If the file cannot be opened or written, the failure is logged once
and output stays disabled for the rest of the session; the simulation itself
is never affected.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

__all__ = ["StepStats", "StatsWriter", "STATS_COLUMNS"]

STATS_COLUMNS = [
    "stabilization",
    "node_move_count",
    "energy",
    "energy_diff",
    "max_move_length",
    "avg_move_length",
    "area",
]

# Steps back used for the energy_diff column
ENERGY_DIFF_LOOKBACK = 30


@dataclass
class StepStats:
    """Statistics of one simulation step."""

    step: int = 0
    node_move_count: int = 0
    max_move_length: float = 0.0
    avg_move_length: float = 0.0
    area: float = 0.0
    energy: float = 0.0
    interactions: int = 0  # Particles or aggregates touched by repulsion
    repelled_count: int = 0  # Particles that ran a repulsion query
    duration_ms: float = 0.0

    @property
    def avg_interactions(self) -> float:
        """Average repulsion interactions per queried particle."""
        if self.repelled_count == 0:
            return 0.0
        return self.interactions / self.repelled_count


class StatsWriter:
    """Lazily opened statistics data file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._file: IO[str] | None = None
        self._writer = None
        self._started = False
        self._failed = False

    @property
    def failed(self) -> bool:
        """True once an I/O error disabled the writer."""
        return self._failed

    def write(self, stats: StepStats, stabilization: float, energy_diff: float) -> bool:
        """
        Append one row.

        Returns:
            True if the row was written, False if output is disabled
        """
        if self._failed:
            return False

        try:
            if self._file is None:
                # Reopening after close() continues the same file
                mode = "a" if self._started else "w"
                self._file = open(self.path, mode, newline="", encoding="utf-8")
                self._writer = csv.writer(self._file, delimiter=" ")
                if not self._started:
                    self._file.write("# " + " ".join(STATS_COLUMNS) + "\n")
                    self._started = True
            self._writer.writerow(
                [
                    f"{stabilization:f}",
                    stats.node_move_count,
                    f"{stats.energy:f}",
                    f"{energy_diff:f}",
                    f"{stats.max_move_length:f}",
                    f"{stats.avg_move_length:f}",
                    f"{stats.area:f}",
                ]
            )
            self._file.flush()
        except OSError as e:
            logger.warning("Cannot write layout statistics to %s: %s; disabling", self.path, e)
            self._failed = True
            self.close()
            return False
        return True

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug("Error closing statistics file %s", self.path, exc_info=True)
            self._file = None
            self._writer = None
