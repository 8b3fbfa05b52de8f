"""
Typed layout attributes.

Graph, node and edge attributes arrive from the event source as arbitrary
name/value pairs. ``parse_attribute`` recognizes the names the engine cares
about, coerces the value once, and returns an ``AttributeSetting`` the engine
can apply without further type checks.

Recognized names (an optional ``layout.`` prefix is accepted):

======  ====================  ==========================================
Scope   Name                  Value
======  ====================  ==========================================
graph   force                 number, global displacement scale
graph   quality               integer, clamped to 0..4
graph   exact-zone            number, clamped to [0, 1]
graph   output-stats          presence toggles statistics output
graph   stabilization-limit   number, clamped to [0, 1]
node    weight                positive number (1 when removed)
edge    weight                positive number (1 when removed)
edge    ignored               boolean (False when removed)
======  ====================  ==========================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from forcelayout.exceptions import AttributeValueError

__all__ = [
    "AttributeScope",
    "AttributeKey",
    "AttributeSetting",
    "ATTRIBUTE_PREFIX",
    "parse_attribute",
]

ATTRIBUTE_PREFIX = "layout."


class AttributeScope(Enum):
    """Element an attribute is attached to."""

    GRAPH = "graph"
    NODE = "node"
    EDGE = "edge"


class AttributeKey(Enum):
    """Attribute names understood by the engine."""

    FORCE = "force"
    QUALITY = "quality"
    EXACT_ZONE = "exact-zone"
    OUTPUT_STATS = "output-stats"
    STABILIZATION_LIMIT = "stabilization-limit"
    WEIGHT = "weight"
    IGNORED = "ignored"


_SCOPED_KEYS: dict[AttributeScope, frozenset[AttributeKey]] = {
    AttributeScope.GRAPH: frozenset(
        {
            AttributeKey.FORCE,
            AttributeKey.QUALITY,
            AttributeKey.EXACT_ZONE,
            AttributeKey.OUTPUT_STATS,
            AttributeKey.STABILIZATION_LIMIT,
        }
    ),
    AttributeScope.NODE: frozenset({AttributeKey.WEIGHT}),
    AttributeScope.EDGE: frozenset({AttributeKey.WEIGHT, AttributeKey.IGNORED}),
}


@dataclass(frozen=True)
class AttributeSetting:
    """
    A validated attribute change.

    ``value`` is None when the attribute was removed; otherwise it is a
    float (force, exact-zone, stabilization-limit, weight), an int
    (quality) or a bool (output-stats, ignored).
    """

    scope: AttributeScope
    key: AttributeKey
    value: float | int | bool | None

    @property
    def removed(self) -> bool:
        return self.value is None


def parse_attribute(
    scope: AttributeScope, name: str, value: Any, removed: bool = False
) -> AttributeSetting | None:
    """
    Recognize and coerce an attribute.

    Args:
        scope: Element the attribute belongs to
        name: Attribute name, with or without the ``layout.`` prefix
        value: Raw attribute value (ignored when ``removed``)
        removed: True when the attribute is being removed

    Returns:
        The typed setting, or None when the name is not a layout attribute

    Raises:
        AttributeValueError: If the value cannot be coerced
    """
    key = _lookup_key(scope, name)
    if key is None:
        return None

    if removed or value is None:
        return AttributeSetting(scope, key, None)

    if key is AttributeKey.OUTPUT_STATS:
        return AttributeSetting(scope, key, value is not False)
    if key is AttributeKey.IGNORED:
        return AttributeSetting(scope, key, _to_bool(name, value))
    if key is AttributeKey.QUALITY:
        level = int(_to_float(name, value))
        return AttributeSetting(scope, key, min(max(level, 0), 4))
    if key in (AttributeKey.EXACT_ZONE, AttributeKey.STABILIZATION_LIMIT):
        return AttributeSetting(scope, key, min(max(_to_float(name, value), 0.0), 1.0))
    if key is AttributeKey.WEIGHT:
        weight = _to_float(name, value)
        if weight <= 0.0:
            raise AttributeValueError(
                "Weight must be strictly positive",
                context={"attribute": name, "value": value},
            )
        return AttributeSetting(scope, key, weight)
    return AttributeSetting(scope, key, _to_float(name, value))


def _lookup_key(scope: AttributeScope, name: str) -> AttributeKey | None:
    if name.startswith(ATTRIBUTE_PREFIX):
        name = name[len(ATTRIBUTE_PREFIX) :]
    try:
        key = AttributeKey(name)
    except ValueError:
        return None
    if key not in _SCOPED_KEYS[scope]:
        return None
    return key


def _to_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise AttributeValueError(
            "Expected a number, got a boolean",
            context={"attribute": name, "value": value},
        )
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise AttributeValueError(
            "Expected a number",
            context={"attribute": name, "value": value},
        ) from e
    if result != result:  # NaN
        raise AttributeValueError(
            "Expected a finite number",
            context={"attribute": name, "value": value},
        )
    return result


def _to_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise AttributeValueError(
        "Expected a boolean",
        context={"attribute": name, "value": value},
        suggestions=["Use true or false"],
    )
