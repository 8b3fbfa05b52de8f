"""
Command-line interface for forcelayout.

Provides commands via the `forcelayout` command:

    forcelayout run <graph.json>    - Lay out a graph and print node positions
    forcelayout config              - Show or initialize configuration

Examples:
    forcelayout run graph.json --steps 2000 --until-stable
    forcelayout run graph.json --quality 4 --format json
    forcelayout config --init
"""

import argparse
import logging

from forcelayout import __version__
from forcelayout.cli import config_cmd, layout_cmd

__all__ = ["main"]


def main(argv: list[str] | None = None) -> int:
    """Main entry point for forcelayout CLI."""
    parser = argparse.ArgumentParser(
        prog="forcelayout",
        description="Incremental force-directed graph layout",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"forcelayout {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Lay out a graph file")
    layout_cmd.add_arguments(run_parser)

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_cmd.add_arguments(config_parser)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _configure_logging(getattr(args, "verbose", False))

    if args.command == "run":
        return layout_cmd.run(args)
    elif args.command == "config":
        return config_cmd.run(args)

    return 1


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
