"""
Config command for forcelayout CLI.

Usage:
    forcelayout config --show          Show effective configuration with sources
    forcelayout config --init          Create template config file
    forcelayout config --paths         Show config file paths
"""

import argparse
import sys
from pathlib import Path

from forcelayout.config import (
    CONFIG_FILENAMES,
    USER_CONFIG_PATH,
    Config,
    generate_template,
    get_config_paths,
)
from forcelayout.exceptions import ConfigError


def add_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the config command options on a parser."""
    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument(
        "--show",
        action="store_true",
        help="Show effective configuration with sources",
    )
    action_group.add_argument(
        "--init",
        action="store_true",
        help="Create template config file in current directory",
    )
    action_group.add_argument(
        "--paths",
        action="store_true",
        help="Show config file paths",
    )
    parser.add_argument(
        "--user",
        action="store_true",
        help="Use user config (~/.config/forcelayout/config.toml) for --init",
    )


def main(argv: list[str] | None = None) -> int:
    """Standalone entry point for the config command."""
    parser = argparse.ArgumentParser(
        prog="forcelayout config",
        description="Manage forcelayout configuration",
    )
    add_arguments(parser)
    return run(parser.parse_args(argv))


def run(args: argparse.Namespace) -> int:
    """Execute the config command with parsed arguments."""
    try:
        if args.init:
            return _init_config(args.user)
        elif args.paths:
            return _show_paths()
        return _show_config()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _show_config() -> int:
    """Show effective configuration with sources."""
    config = Config.load()

    print("# Effective forcelayout configuration")
    section = None
    for key, value in config.items():
        key_section, name = key.split(".", 1)
        if key_section != section:
            print()
            print(f"[{key_section}]")
            section = key_section
        _print_value(name, value, config.get_source(key))

    return 0


def _print_value(key: str, value, source: str) -> None:
    """Print a config value with its source."""
    if isinstance(value, str):
        formatted = f'"{value}"'
    elif isinstance(value, bool):
        formatted = "true" if value else "false"
    elif value is None:
        formatted = "# not set"
    else:
        formatted = str(value)

    # Show just filename for brevity
    source_display = Path(source).name if source != "default" else source

    print(f"{key} = {formatted}  # from: {source_display}")


def _show_paths() -> int:
    """Show config file paths."""
    paths = get_config_paths()

    print(f"User config: {USER_CONFIG_PATH}")
    print("  Status: exists" if paths["user"] else "  Status: not found")

    print(f"Project config search: {', '.join(CONFIG_FILENAMES)}")
    if paths["project"]:
        print(f"  Found: {paths['project']}")
    else:
        print("  Status: not found")

    return 0


def _init_config(user: bool = False) -> int:
    """Create a template config file."""
    if user:
        target = USER_CONFIG_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
    else:
        target = Path.cwd() / CONFIG_FILENAMES[0]  # .forcelayout.toml

    if target.exists():
        print(f"Error: Config file already exists: {target}", file=sys.stderr)
        print("Remove it first or edit manually.", file=sys.stderr)
        return 1

    try:
        target.write_text(generate_template())
    except OSError as e:
        print(f"Error writing config file: {e}", file=sys.stderr)
        return 1

    print(f"Created config template: {target}")
    return 0
