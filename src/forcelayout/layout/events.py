"""Graph event contract and subscriber fan-out."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import Any, Protocol

from forcelayout.layout.geometry import Vector3D

logger = logging.getLogger(__name__)

__all__ = ["GraphSink", "SinkBase", "SinkRegistry"]


class GraphSink(Protocol):
    """Protocol for consumers of graph-mutation events.

    The layout engine implements this protocol to receive mutations, and
    forwards every event unchanged to its own subscribers after applying it.
    It additionally emits ``node_moved`` when a step displaces a node.
    """

    def node_added(self, node_id: Hashable) -> None: ...

    def node_removed(self, node_id: Hashable) -> None: ...

    def edge_added(
        self, edge_id: Hashable, source_id: Hashable, target_id: Hashable, directed: bool
    ) -> None: ...

    def edge_removed(self, edge_id: Hashable) -> None: ...

    def graph_cleared(self) -> None: ...

    def step_begins(self, step: float) -> None: ...

    def graph_attribute_added(self, attribute: str, value: Any) -> None: ...

    def graph_attribute_changed(self, attribute: str, old_value: Any, new_value: Any) -> None: ...

    def graph_attribute_removed(self, attribute: str) -> None: ...

    def node_attribute_added(self, node_id: Hashable, attribute: str, value: Any) -> None: ...

    def node_attribute_changed(
        self, node_id: Hashable, attribute: str, old_value: Any, new_value: Any
    ) -> None: ...

    def node_attribute_removed(self, node_id: Hashable, attribute: str) -> None: ...

    def edge_attribute_added(self, edge_id: Hashable, attribute: str, value: Any) -> None: ...

    def edge_attribute_changed(
        self, edge_id: Hashable, attribute: str, old_value: Any, new_value: Any
    ) -> None: ...

    def edge_attribute_removed(self, edge_id: Hashable, attribute: str) -> None: ...

    def node_moved(self, node_id: Hashable, position: Vector3D) -> None: ...


class SinkBase:
    """No-op implementation of every GraphSink method.

    Subclass and override only the events you care about.
    """

    def node_added(self, node_id):
        pass

    def node_removed(self, node_id):
        pass

    def edge_added(self, edge_id, source_id, target_id, directed):
        pass

    def edge_removed(self, edge_id):
        pass

    def graph_cleared(self):
        pass

    def step_begins(self, step):
        pass

    def graph_attribute_added(self, attribute, value):
        pass

    def graph_attribute_changed(self, attribute, old_value, new_value):
        pass

    def graph_attribute_removed(self, attribute):
        pass

    def node_attribute_added(self, node_id, attribute, value):
        pass

    def node_attribute_changed(self, node_id, attribute, old_value, new_value):
        pass

    def node_attribute_removed(self, node_id, attribute):
        pass

    def edge_attribute_added(self, edge_id, attribute, value):
        pass

    def edge_attribute_changed(self, edge_id, attribute, old_value, new_value):
        pass

    def edge_attribute_removed(self, edge_id, attribute):
        pass

    def node_moved(self, node_id, position):
        pass


class SinkRegistry:
    """Ordered list of subscribers receiving events synchronously."""

    def __init__(self):
        self._sinks: list[GraphSink] = []

    def __len__(self) -> int:
        return len(self._sinks)

    def __contains__(self, sink: object) -> bool:
        return sink in self._sinks

    def subscribe(self, sink: GraphSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def unsubscribe(self, sink: GraphSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def emit(self, event: str, *args: Any) -> None:
        """Call ``event`` on every subscriber, in subscription order.

        A subscriber raising is logged; the remaining subscribers still
        receive the event.
        """
        for sink in list(self._sinks):
            handler = getattr(sink, event, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                logger.exception("Sink %r failed while handling %s", sink, event)
