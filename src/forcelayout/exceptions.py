"""
Custom exception hierarchy for forcelayout.

Provides consistent error handling with context and suggestions.
All exceptions include:
- Context information (file paths, attribute names, etc.)
- Suggestions for how to fix the issue
- Clear, formatted error messages

The layout engine itself never raises on malformed graph mutations; these
exceptions surface at the boundaries (configuration files, graph files,
attribute coercion) where the caller can act on them.

Example::

    from forcelayout.exceptions import GraphFileError

    raise GraphFileError(
        "Invalid edge entry",
        context={"file": "graph.json", "index": 3},
        suggestions=['Edges need "source" and "target" keys']
    )
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class ForceLayoutError(Exception):
    """
    Base exception for all forcelayout errors.

    Provides consistent formatting with context and suggestions.

    Attributes:
        context: Dictionary of contextual information (file, attribute, etc.)
        suggestions: List of actionable suggestions for fixing the error
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.context = context or {}
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context and suggestions."""
        parts = [self.message]

        if self.context:
            parts.append("\n\nContext:")
            for key, value in self.context.items():
                parts.append(f"\n  {key}: {value}")

        if self.suggestions:
            parts.append("\n\nSuggestions:")
            for suggestion in self.suggestions:
                parts.append(f"\n  - {suggestion}")

        return "".join(parts)

    def __str__(self) -> str:
        return self._format_message()


class ConfigError(ForceLayoutError):
    """
    Configuration file could not be read or is invalid.

    Example::

        raise ConfigError(
            "Invalid TOML in config file",
            context={"file": ".forcelayout.toml", "error": "Expected '=' after key"},
        )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        file_path: Optional[Union[str, Path]] = None,
    ):
        ctx = context or {}
        if file_path and "file" not in ctx:
            ctx["file"] = str(file_path)
        super().__init__(message, ctx, suggestions)


class AttributeValueError(ForceLayoutError):
    """
    A layout attribute carried a value that cannot be coerced.

    Raised by the attribute parser; the engine catches it, logs it and
    leaves the previous setting in place.

    Example::

        raise AttributeValueError(
            "Expected a number",
            context={"attribute": "layout.force", "value": "fast"},
        )
    """

    pass


class GraphFileError(ForceLayoutError):
    """
    A graph description file could not be loaded.

    Raised by the CLI when the input file is missing, is not valid JSON,
    or does not follow the expected node/edge structure.
    """

    pass


__all__ = [
    "ForceLayoutError",
    "ConfigError",
    "AttributeValueError",
    "GraphFileError",
]
