"""
Lightweight event bus for before/after notifications around graph operations.

Follows publisher-subscriber pattern so logging and observers stay decoupled
from the mutation code.

Design Principles:
- Publisher-subscriber pattern (decoupled)
- One EventType member per hook point (beforeAddNodes, afterAddNodes, ...)
- One payload struct per event kind, checked at publish time
- Supports both sync and async handlers
- Handler failures are logged, never propagated to the publisher
- Constructed explicitly and passed to the components that publish

Usage:
    bus = EventBus()

    def on_nodes_added(event: GraphEvent):
        print([n.name for n in event.payload.nodes])

    bus.subscribe(EventType.AFTER_ADD_NODES, on_nodes_added)

    bus.emit(EventType.AFTER_ADD_NODES, NodesPayload(nodes=[...]), source="graph")
"""
from typing import Callable, List, Dict, Any, Optional, Set, Type, Union
from enum import Enum
from collections import defaultdict
import asyncio
import logging
import time

import msgspec

from core.schemas import (
    Edge,
    EdgeFilter,
    EdgeUpdate,
    Graph,
    MetadataAddition,
    MetadataDeletion,
    MetadataResult,
    Node,
    NodeUpdate,
)


logger = logging.getLogger("memorymesh.event_bus")


class EventType(str, Enum):
    """Hook points published by the graph, search and transaction layers."""
    # Nodes
    BEFORE_ADD_NODES = "beforeAddNodes"
    AFTER_ADD_NODES = "afterAddNodes"
    BEFORE_UPDATE_NODES = "beforeUpdateNodes"
    AFTER_UPDATE_NODES = "afterUpdateNodes"
    BEFORE_DELETE_NODES = "beforeDeleteNodes"
    AFTER_DELETE_NODES = "afterDeleteNodes"
    # Edges
    BEFORE_ADD_EDGES = "beforeAddEdges"
    AFTER_ADD_EDGES = "afterAddEdges"
    BEFORE_UPDATE_EDGES = "beforeUpdateEdges"
    AFTER_UPDATE_EDGES = "afterUpdateEdges"
    BEFORE_DELETE_EDGES = "beforeDeleteEdges"
    AFTER_DELETE_EDGES = "afterDeleteEdges"
    BEFORE_GET_EDGES = "beforeGetEdges"
    AFTER_GET_EDGES = "afterGetEdges"
    # Metadata
    BEFORE_ADD_METADATA = "beforeAddMetadata"
    AFTER_ADD_METADATA = "afterAddMetadata"
    BEFORE_DELETE_METADATA = "beforeDeleteMetadata"
    AFTER_DELETE_METADATA = "afterDeleteMetadata"
    # Search
    BEFORE_SEARCH = "beforeSearch"
    AFTER_SEARCH = "afterSearch"
    BEFORE_OPEN_NODES = "beforeOpenNodes"
    AFTER_OPEN_NODES = "afterOpenNodes"
    BEFORE_READ_GRAPH = "beforeReadGraph"
    AFTER_READ_GRAPH = "afterReadGraph"
    # Transactions
    BEFORE_BEGIN_TRANSACTION = "beforeBeginTransaction"
    AFTER_BEGIN_TRANSACTION = "afterBeginTransaction"
    BEFORE_COMMIT = "beforeCommit"
    AFTER_COMMIT = "afterCommit"
    BEFORE_ROLLBACK = "beforeRollback"
    AFTER_ROLLBACK = "afterRollback"

    @property
    def is_after(self) -> bool:
        return self.value.startswith("after")


# =============================================================================
# PAYLOADS
# =============================================================================

class NodesPayload(msgspec.Struct, kw_only=True):
    nodes: List[Node]


class NodeUpdatesPayload(msgspec.Struct, kw_only=True):
    updates: List[NodeUpdate]


class NodeNamesPayload(msgspec.Struct, kw_only=True):
    names: List[str]


class EdgesPayload(msgspec.Struct, kw_only=True):
    edges: List[Edge]


class EdgeUpdatesPayload(msgspec.Struct, kw_only=True):
    updates: List[EdgeUpdate]


class EdgeFilterPayload(msgspec.Struct, kw_only=True):
    filter: Optional[EdgeFilter] = None


class DeletedCountPayload(msgspec.Struct, kw_only=True):
    deleted_count: int


class MetadataAdditionsPayload(msgspec.Struct, kw_only=True):
    additions: List[MetadataAddition]


class MetadataResultsPayload(msgspec.Struct, kw_only=True):
    results: List[MetadataResult]


class MetadataDeletionsPayload(msgspec.Struct, kw_only=True):
    deletions: List[MetadataDeletion]


class QueryPayload(msgspec.Struct, kw_only=True):
    query: str


class GraphPayload(msgspec.Struct, kw_only=True):
    graph: Graph


class RollbackPayload(msgspec.Struct, kw_only=True):
    descriptions: List[str]


class EmptyPayload(msgspec.Struct, kw_only=True):
    pass


EventPayload = Union[
    NodesPayload, NodeUpdatesPayload, NodeNamesPayload,
    EdgesPayload, EdgeUpdatesPayload, EdgeFilterPayload, DeletedCountPayload,
    MetadataAdditionsPayload, MetadataResultsPayload, MetadataDeletionsPayload,
    QueryPayload, GraphPayload, RollbackPayload, EmptyPayload,
]


PAYLOAD_TYPES: Dict[EventType, Type[msgspec.Struct]] = {
    EventType.BEFORE_ADD_NODES: NodesPayload,
    EventType.AFTER_ADD_NODES: NodesPayload,
    EventType.BEFORE_UPDATE_NODES: NodeUpdatesPayload,
    EventType.AFTER_UPDATE_NODES: NodesPayload,
    EventType.BEFORE_DELETE_NODES: NodeNamesPayload,
    EventType.AFTER_DELETE_NODES: DeletedCountPayload,
    EventType.BEFORE_ADD_EDGES: EdgesPayload,
    EventType.AFTER_ADD_EDGES: EdgesPayload,
    EventType.BEFORE_UPDATE_EDGES: EdgeUpdatesPayload,
    EventType.AFTER_UPDATE_EDGES: EdgesPayload,
    EventType.BEFORE_DELETE_EDGES: EdgesPayload,
    EventType.AFTER_DELETE_EDGES: DeletedCountPayload,
    EventType.BEFORE_GET_EDGES: EdgeFilterPayload,
    EventType.AFTER_GET_EDGES: EdgesPayload,
    EventType.BEFORE_ADD_METADATA: MetadataAdditionsPayload,
    EventType.AFTER_ADD_METADATA: MetadataResultsPayload,
    EventType.BEFORE_DELETE_METADATA: MetadataDeletionsPayload,
    EventType.AFTER_DELETE_METADATA: DeletedCountPayload,
    EventType.BEFORE_SEARCH: QueryPayload,
    EventType.AFTER_SEARCH: GraphPayload,
    EventType.BEFORE_OPEN_NODES: NodeNamesPayload,
    EventType.AFTER_OPEN_NODES: GraphPayload,
    EventType.BEFORE_READ_GRAPH: EmptyPayload,
    EventType.AFTER_READ_GRAPH: GraphPayload,
    EventType.BEFORE_BEGIN_TRANSACTION: EmptyPayload,
    EventType.AFTER_BEGIN_TRANSACTION: EmptyPayload,
    EventType.BEFORE_COMMIT: EmptyPayload,
    EventType.AFTER_COMMIT: EmptyPayload,
    EventType.BEFORE_ROLLBACK: RollbackPayload,
    EventType.AFTER_ROLLBACK: EmptyPayload,
}


class GraphEvent(msgspec.Struct, kw_only=True):
    """
    Event emitted around a graph operation.

    Attributes:
        type: Hook point (BEFORE_ADD_NODES, AFTER_COMMIT, etc.)
        payload: The payload struct registered for `type` in PAYLOAD_TYPES
        timestamp: Unix timestamp when event occurred
        source: Component that published it ("graph", "search", "transaction")
    """
    type: EventType
    payload: Any
    timestamp: float
    source: str


# =============================================================================
# BUS
# =============================================================================

class EventBus:
    """
    Pub/sub channel for graph operation events.

    Thread Safety:
        NOT thread-safe. Publishers run under the transaction manager's lock
        or on the single caller thread.

    Performance:
        - O(1) event publishing
        - O(n) notification per event type (where n = subscriber count)
        - Non-blocking for async handlers (fire-and-forget)
    """

    def __init__(self):
        """Initialize empty subscriber lists."""
        self._subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        self._async_subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        # Scheduled async handlers; the loop only keeps weak references
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, event_type: EventType, handler: Callable[[GraphEvent], None]) -> Callable[[], None]:
        """
        Subscribe to events with a synchronous handler.

        Returns:
            A zero-argument callable that removes the subscription.
        """
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)
            logger.debug(f"Subscribed sync handler to {event_type.value}")
        return lambda: self.unsubscribe(event_type, handler)

    def subscribe_async(self, event_type: EventType, handler: Callable[[GraphEvent], Any]) -> Callable[[], None]:
        """
        Subscribe to events with an async handler.

        Async handlers are scheduled on the running loop; with no loop running
        they are skipped with a warning.
        """
        if handler not in self._async_subscribers[event_type]:
            self._async_subscribers[event_type].append(handler)
            logger.debug(f"Subscribed async handler to {event_type.value}")
        return lambda: self.unsubscribe(event_type, handler)

    def publish(self, event: GraphEvent) -> None:
        """
        Publish an event to all subscribers.

        Raises:
            TypeError: if the payload is not the struct registered for the
                event type. This is a programming error in the publisher.

        Note:
            - Sync handlers run immediately (blocking)
            - Async handlers are scheduled and run in the background
            - Exceptions in handlers are logged but don't propagate
        """
        expected = PAYLOAD_TYPES[event.type]
        if not isinstance(event.payload, expected):
            raise TypeError(
                f"{event.type.value} expects {expected.__name__}, "
                f"got {type(event.payload).__name__}"
            )

        logger.debug(f"Publishing {event.type.value} from {event.source}")

        # Run sync handlers immediately
        for handler in list(self._subscribers[event.type]):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in sync handler for {event.type.value}: {e}",
                    exc_info=True
                )

        # Schedule async handlers (non-blocking)
        for handler in list(self._async_subscribers[event.type]):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    f"Cannot schedule async handler for {event.type.value}: "
                    "no event loop running"
                )
                continue
            try:
                task = loop.create_task(handler(event))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            except Exception as e:
                logger.error(
                    f"Error scheduling async handler for {event.type.value}: {e}",
                    exc_info=True
                )

    def emit(self, event_type: EventType, payload: EventPayload, source: str = "unknown") -> GraphEvent:
        """Build a GraphEvent stamped with the current time and publish it."""
        event = GraphEvent(
            type=event_type,
            payload=payload,
            timestamp=time.time(),
            source=source,
        )
        self.publish(event)
        return event

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        """Unsubscribe a handler (must be the same instance)."""
        if handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed sync handler from {event_type.value}")

        if handler in self._async_subscribers[event_type]:
            self._async_subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed async handler from {event_type.value}")

    def clear_subscribers(self, event_type: Optional[EventType] = None) -> None:
        """Clear all subscribers for an event type (or all types)."""
        if event_type is None:
            self._subscribers.clear()
            self._async_subscribers.clear()
            logger.info("Cleared all event subscribers")
        else:
            self._subscribers[event_type].clear()
            self._async_subscribers[event_type].clear()
            logger.info(f"Cleared subscribers for {event_type.value}")

    def subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """Total number of subscribers (sync + async) for a type, or overall."""
        if event_type is None:
            total = sum(len(handlers) for handlers in self._subscribers.values())
            total += sum(len(handlers) for handlers in self._async_subscribers.values())
            return total
        return (
            len(self._subscribers[event_type]) +
            len(self._async_subscribers[event_type])
        )
