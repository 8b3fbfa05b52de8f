"""run CLI command: lay out a graph read from a JSON file.

The graph is fed to the engine through its event methods, stepped with
progress reporting on stderr, and the resulting positions are written to
stdout.

Graph file format::

    {
        "nodes": ["a", {"id": "b", "weight": 2.0, "frozen": true, "position": [1, 0]}],
        "edges": [{"id": "ab", "source": "a", "target": "b", "weight": 1.5}],
        "attributes": {"layout.quality": 2}
    }

Usage:
    forcelayout run graph.json
    forcelayout run graph.json --steps 500 --quality 4 --format json
    forcelayout run graph.json --until-stable --stats steps.dat
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from forcelayout.cli.progress import create_progress, print_status
from forcelayout.config import Config
from forcelayout.exceptions import ConfigError, GraphFileError
from forcelayout.layout import LayoutConfig, SpringLayout, Vector3D

logger = logging.getLogger(__name__)

ATTRIBUTE_WEIGHT = "layout.weight"
ATTRIBUTE_IGNORED = "layout.ignored"


def add_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the run command options on a parser."""
    parser.add_argument("graph", help="Path to a graph JSON file")
    parser.add_argument(
        "--steps", type=int, default=1000, help="Number of steps to run (default: 1000)"
    )
    parser.add_argument(
        "--until-stable",
        action="store_true",
        help="Stop early once the layout is stable",
    )
    parser.add_argument(
        "--quality", type=int, choices=range(5), help="Quality level 0 (fast) to 4 (exact)"
    )
    parser.add_argument("--force", type=float, help="Displacement scale in [0.01, 1]")
    parser.add_argument("--3d", dest="is_3d", action="store_true", help="Lay out in 3D")
    parser.add_argument("--seed", type=int, help="Random seed for initial positions")
    parser.add_argument("--stats", metavar="PATH", help="Write per-step statistics to PATH")
    parser.add_argument("--format", choices=["table", "json"], help="Output format")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def main(argv: list[str] | None = None) -> int:
    """Standalone entry point for the run command."""
    parser = argparse.ArgumentParser(
        prog="forcelayout run",
        description="Lay out a graph with the spring layout engine",
    )
    add_arguments(parser)
    args = parser.parse_args(argv)
    return run(args)


def run(args: argparse.Namespace) -> int:
    """Execute the run command with parsed arguments."""
    try:
        config = Config.load()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output_format = args.format or config.defaults.format
    quiet = args.quiet or config.defaults.quiet

    try:
        graph = load_graph(Path(args.graph))
    except GraphFileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    layout_config = _layout_config(config.layout, args)
    layout = SpringLayout(layout_config)

    try:
        feed_graph(layout, graph)
        if args.quality is not None:
            layout.set_quality(args.quality)
        if args.force is not None:
            layout.set_force(args.force)

        print_status(
            f"Laying out {layout.node_count} nodes, {layout.edge_count} edges "
            f"(quality {layout.get_quality()})",
            quiet=quiet,
        )
        steps = _step(layout, args.steps, args.until_stable, quiet)
    finally:
        layout.close()

    if output_format == "json":
        print(json.dumps(_result_dict(layout, steps), indent=2))
    else:
        _print_table(layout, steps)
    return 0


def load_graph(path: Path) -> dict[str, Any]:
    """
    Read and validate a graph JSON file.

    Returns:
        Normalized graph with ``nodes``, ``edges`` and ``attributes`` keys

    Raises:
        GraphFileError: If the file is missing or malformed
    """
    if not path.exists():
        raise GraphFileError(
            "Graph file not found",
            context={"file": str(path)},
            suggestions=["Check the path and try again"],
        )

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise GraphFileError(
            "Invalid JSON in graph file",
            context={"file": str(path), "error": str(e)},
        ) from e
    except OSError as e:
        raise GraphFileError(
            "Cannot read graph file",
            context={"file": str(path), "error": str(e)},
        ) from e

    if not isinstance(data, dict):
        raise GraphFileError(
            "Graph file must contain a JSON object",
            context={"file": str(path)},
            suggestions=['Use {"nodes": [...], "edges": [...]}'],
        )

    nodes = [_normalize_node(node, path) for node in _list_field(data, "nodes", path)]
    edges = [
        _normalize_edge(edge, index, path)
        for index, edge in enumerate(_list_field(data, "edges", path))
    ]

    attributes = data.get("attributes", {})
    if not isinstance(attributes, dict):
        raise GraphFileError(
            "'attributes' must be an object",
            context={"file": str(path)},
        )

    return {"nodes": nodes, "edges": edges, "attributes": attributes}


def feed_graph(layout: SpringLayout, graph: dict[str, Any]) -> None:
    """Send a loaded graph to the engine as a sequence of graph events."""
    for name, value in graph["attributes"].items():
        layout.graph_attribute_added(name, value)

    for node in graph["nodes"]:
        node_id = node["id"]
        layout.node_added(node_id)
        if node.get("position") is not None:
            _place(layout, node_id, node["position"])
        if node.get("weight") is not None:
            layout.node_attribute_added(node_id, ATTRIBUTE_WEIGHT, node["weight"])
        if node.get("frozen"):
            layout.freeze_node(node_id, True)

    for edge in graph["edges"]:
        edge_id = edge["id"]
        layout.edge_added(edge_id, edge["source"], edge["target"], edge.get("directed", False))
        if edge.get("weight") is not None:
            layout.edge_attribute_added(edge_id, ATTRIBUTE_WEIGHT, edge["weight"])
        if edge.get("ignored"):
            layout.edge_attribute_added(edge_id, ATTRIBUTE_IGNORED, True)


def _list_field(data: dict[str, Any], key: str, path: Path) -> list:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise GraphFileError(f"'{key}' must be a list", context={"file": str(path)})
    return value


def _normalize_node(node: Any, path: Path) -> dict[str, Any]:
    if isinstance(node, (str, int)) and not isinstance(node, bool):
        return {"id": node}
    if isinstance(node, dict) and isinstance(node.get("id"), (str, int)):
        position = node.get("position")
        if position is not None and (
            not isinstance(position, list)
            or not 2 <= len(position) <= 3
            or not all(isinstance(v, (int, float)) for v in position)
        ):
            raise GraphFileError(
                f"Invalid position for node {node['id']!r}",
                context={"file": str(path), "position": position},
                suggestions=["Use a list of 2 or 3 numbers"],
            )
        return node
    raise GraphFileError(
        "Invalid node entry",
        context={"file": str(path), "node": node},
        suggestions=['Use a string id or {"id": ...}'],
    )


def _normalize_edge(edge: Any, index: int, path: Path) -> dict[str, Any]:
    if not isinstance(edge, dict) or "source" not in edge or "target" not in edge:
        raise GraphFileError(
            "Invalid edge entry",
            context={"file": str(path), "index": index},
            suggestions=['Edges need "source" and "target" keys'],
        )
    if "id" not in edge:
        edge = {**edge, "id": f"{edge['source']}-{edge['target']}#{index}"}
    return edge


def _place(layout: SpringLayout, node_id: Any, position: list[float]) -> None:
    current = layout.get_node_position(node_id)
    if current is None:
        return
    target = Vector3D(*position)
    layout.move_node(node_id, *(target - current))


def _layout_config(base: LayoutConfig, args: argparse.Namespace) -> LayoutConfig:
    """Apply CLI overrides to the configured layout parameters."""
    overrides: dict[str, Any] = {}
    if args.is_3d:
        overrides["is_3d"] = True
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.stats:
        overrides["output_stats"] = True
        overrides["stats_path"] = args.stats
    return replace(base, **overrides)


def _step(layout: SpringLayout, max_steps: int, until_stable: bool, quiet: bool) -> int:
    steps = 0
    with create_progress(quiet=quiet) as progress:
        task = progress.add_task("Laying out...", total=max_steps, stabilization=0.0)
        for _ in range(max_steps):
            layout.compute()
            steps += 1
            progress.update(task, advance=1, stabilization=layout.get_stabilization())
            if until_stable and layout.is_stable():
                logger.debug("Stable after %d steps", steps)
                break
    return steps


def _result_dict(layout: SpringLayout, steps: int) -> dict[str, Any]:
    dims = 3 if layout.is_3d else 2
    return {
        "algorithm": layout.layout_algorithm_name,
        "steps": steps,
        "stabilization": layout.get_stabilization(),
        "stable": layout.is_stable(),
        "positions": {
            str(node_id): list(position.as_tuple()[:dims])
            for node_id, position in layout.positions().items()
        },
    }


def _print_table(layout: SpringLayout, steps: int) -> None:
    console = Console()

    table = Table(title=f"Layout ({layout.layout_algorithm_name})")
    table.add_column("Node", style="cyan")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    if layout.is_3d:
        table.add_column("Z", justify="right")

    for node_id, position in layout.positions().items():
        row = [str(node_id), f"{position.x:.4f}", f"{position.y:.4f}"]
        if layout.is_3d:
            row.append(f"{position.z:.4f}")
        table.add_row(*row)

    console.print(table)
    console.print(
        f"Steps: {steps}  Stabilization: {layout.get_stabilization():.3f}"
        f"  Stable: {'yes' if layout.is_stable() else 'no'}"
    )
