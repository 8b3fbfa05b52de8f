"""
Configuration file support for forcelayout.

Provides hierarchical configuration loading from:
1. Project config: .forcelayout.toml or forcelayout.toml in the project root
2. User config: ~/.config/forcelayout/config.toml

CLI arguments override config file values, and project config overrides user config.
"""

import tomllib
import warnings
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from forcelayout.exceptions import ConfigError
from forcelayout.layout.config import LayoutConfig

# Config file names to search for in project directories
CONFIG_FILENAMES = [".forcelayout.toml", "forcelayout.toml"]

# User-level config path
USER_CONFIG_PATH = Path.home() / ".config" / "forcelayout" / "config.toml"

# Accepted TOML value types per LayoutConfig annotation
_ANNOTATION_TYPES: dict[str, tuple[type, ...]] = {
    "float": (int, float),
    "int": (int,),
    "int | None": (int,),
    "bool": (bool,),
    "str": (str,),
}

# Layout keys and the types their values must have
LAYOUT_KEY_TYPES: dict[str, tuple[type, ...]] = {
    f.name: _ANNOTATION_TYPES[str(f.type)] for f in fields(LayoutConfig)
}

# All known config keys for validation
KNOWN_KEYS = {
    "defaults": {"format", "verbose", "quiet"},
    "layout": set(LAYOUT_KEY_TYPES),
}


@dataclass
class DefaultsConfig:
    """Default options for CLI commands."""

    format: str = "table"
    verbose: bool = False
    quiet: bool = False


@dataclass
class Config:
    """Merged configuration from all sources."""

    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)

    # Track which file each setting came from (for --show)
    _sources: dict = field(default_factory=dict, repr=False)

    @classmethod
    def load(cls, start_dir: Path | None = None) -> "Config":
        """
        Load configuration with precedence: project > user > defaults.

        Args:
            start_dir: Directory to start searching from (default: current directory)

        Returns:
            Merged configuration object
        """
        if start_dir is None:
            start_dir = Path.cwd()

        config = cls()
        sources: dict[str, str] = {}

        # Load user config first (lower precedence)
        if USER_CONFIG_PATH.exists():
            user_data = _load_toml_file(USER_CONFIG_PATH)
            _merge_config(config, user_data, str(USER_CONFIG_PATH), sources)

        # Load project config (higher precedence)
        project_config = _find_project_config(start_dir)
        if project_config:
            project_data = _load_toml_file(project_config)
            _merge_config(config, project_data, str(project_config), sources)

        config._sources = sources
        return config

    def get_source(self, key: str) -> str:
        """Get the source file for a config key."""
        return self._sources.get(key, "default")

    def items(self) -> list[tuple[str, Any]]:
        """Flattened ``section.key`` / value pairs, in declaration order."""
        result = []
        for f in fields(DefaultsConfig):
            result.append((f"defaults.{f.name}", getattr(self.defaults, f.name)))
        for f in fields(LayoutConfig):
            result.append((f"layout.{f.name}", getattr(self.layout, f.name)))
        return result


def _find_project_config(start_dir: Path) -> Path | None:
    """
    Find project config by walking up the directory tree.

    Stops at .git directory or filesystem root.

    Args:
        start_dir: Directory to start searching from

    Returns:
        Path to config file if found, None otherwise
    """
    current = start_dir.resolve()

    while True:
        # Check for config files in current directory
        for filename in CONFIG_FILENAMES:
            config_path = current / filename
            if config_path.is_file():
                return config_path

        # Stop at .git directory (project root)
        if (current / ".git").exists():
            break

        # Stop at filesystem root
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _load_toml_file(path: Path) -> dict[str, Any]:
    """
    Load a TOML file.

    Args:
        path: Path to TOML file

    Returns:
        Parsed TOML data

    Raises:
        ConfigError: If the file cannot be read or the TOML is invalid
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(
            "Invalid TOML in config file",
            context={"error": str(e)},
            file_path=path,
        ) from e
    except OSError as e:
        raise ConfigError(
            "Cannot read config file",
            context={"error": str(e)},
            file_path=path,
        ) from e


def _merge_config(
    config: Config, data: dict[str, Any], source: str, sources: dict[str, str]
) -> None:
    """
    Merge loaded config data into Config object.

    Args:
        config: Config object to update
        data: Raw config data from TOML
        source: Source file path (for tracking)
        sources: Dict to update with source info
    """
    # Warn about unknown top-level keys
    for key in data:
        if key not in KNOWN_KEYS:
            warnings.warn(f"Unknown config key '{key}' in {source}", stacklevel=3)

    # Merge defaults section
    if "defaults" in data:
        defaults_data = data["defaults"]
        _warn_unknown_keys(defaults_data, KNOWN_KEYS["defaults"], "defaults", source)

        if "format" in defaults_data:
            config.defaults.format = defaults_data["format"]
            sources["defaults.format"] = source
        if "verbose" in defaults_data:
            config.defaults.verbose = defaults_data["verbose"]
            sources["defaults.verbose"] = source
        if "quiet" in defaults_data:
            config.defaults.quiet = defaults_data["quiet"]
            sources["defaults.quiet"] = source

    # Merge layout section
    if "layout" in data:
        layout_data = data["layout"]
        _warn_unknown_keys(layout_data, KNOWN_KEYS["layout"], "layout", source)

        for key, value in layout_data.items():
            expected = LAYOUT_KEY_TYPES.get(key)
            if expected is None:
                continue
            if isinstance(value, bool) and bool not in expected:
                raise ConfigError(
                    f"Invalid value for layout.{key}",
                    context={"file": source, "value": value},
                    suggestions=["Use a number, not true/false"],
                )
            if not isinstance(value, expected):
                raise ConfigError(
                    f"Invalid value for layout.{key}",
                    context={"file": source, "value": value},
                    suggestions=[f"Expected {' or '.join(t.__name__ for t in expected)}"],
                )
            setattr(config.layout, key, value)
            sources[f"layout.{key}"] = source


def _warn_unknown_keys(data: dict[str, Any], known: set[str], section: str, source: str) -> None:
    """Warn about unknown keys in a config section."""
    for key in data:
        if key not in known:
            warnings.warn(f"Unknown config key '{section}.{key}' in {source}", stacklevel=4)


def generate_template() -> str:
    """
    Generate a template config file with all options documented.

    Returns:
        Template TOML string
    """
    return """# forcelayout configuration file
# Place as .forcelayout.toml in project root or ~/.config/forcelayout/config.toml for user defaults

[defaults]
# Output format: table, json
# format = "table"

# Enable verbose (debug) logging by default
# verbose = false

# Suppress progress output by default
# quiet = false

[layout]
# Ideal edge length
# unit_length = 1.0

# Spring constant and repulsion constant
# attraction = 0.06
# repulsion = 0.024

# Global displacement scale in [0.01, 1]
# force = 1.0

# Quality level: 0 (fastest) to 4 (exact, O(n^2))
# quality = 1

# Barnes-Hut admissibility threshold (cell size / distance)
# theta = 0.7

# Particles per spatial cell before it subdivides
# cell_capacity = 10

# Length of the energy history used for stabilization
# energy_buffer_size = 256

# Stabilization at which the layout is considered stable, in [0, 1]
# stabilization_limit = 0.9

# Lay out in three dimensions
# is_3d = false

# Emit node_moved notifications every N steps
# move_event_interval = 1

# Write per-step statistics to stats_path
# output_stats = false
# stats_path = "forcelayout_stats.dat"

# Random seed for initial positions (omit for nondeterministic runs)
# seed = 42
"""


def get_config_paths() -> dict[str, Path | None]:
    """
    Get paths to config files that would be loaded.

    Returns:
        Dict with 'user' and 'project' keys
    """
    project_config = _find_project_config(Path.cwd())

    return {
        "user": USER_CONFIG_PATH if USER_CONFIG_PATH.exists() else None,
        "project": project_config,
    }
