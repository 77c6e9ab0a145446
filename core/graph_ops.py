"""
MEMORYMESH GRAPH OPERATIONS - CRUD over a graph snapshot

GraphOperations mutates a Graph it is handed, together with that graph's
EdgeIndex. It never loads or saves; the caller decides whether the snapshot
is a one-shot autocommit copy or a transaction's working copy.

Every mutating call follows the same sequence:
    1. validate the whole request (GraphValidator), raising before any change
    2. publish before<Op> with the raw request
    3. apply the change to the graph and keep the edge index in step
    4. publish after<Op> with what was actually applied

Batches are all-or-nothing: one bad entry fails the call and nothing in the
batch is applied.

Usage:
    ops = GraphOperations(event_bus=bus)
    graph = storage.load_graph()
    ops.add_nodes(graph, storage.edge_index, [Node(name="Alice", node_type="Person")])
    storage.save_graph(graph)
"""
import logging
from typing import Dict, List, Optional, Tuple

import msgspec

from core.edge_index import EdgeIndex
from core.errors import DuplicateEdgeError, DuplicateNodeError, EdgeNotFoundError, InvalidArgumentError
from core.metadata import filter_by_key, new_entries
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
from core.validation import GraphValidator
from infrastructure.event_bus import (
    DeletedCountPayload,
    EdgeFilterPayload,
    EdgesPayload,
    EdgeUpdatesPayload,
    EventBus,
    EventPayload,
    EventType,
    MetadataAdditionsPayload,
    MetadataDeletionsPayload,
    MetadataResultsPayload,
    NodeNamesPayload,
    NodesPayload,
    NodeUpdatesPayload,
)


logger = logging.getLogger("memorymesh.graph")


class GraphOperations:
    """
    Node, edge and metadata mutations against a supplied snapshot.

    Thread Safety:
        NOT thread-safe. Callers serialize access (the facade runs every
        call under the transaction manager's lock).
    """

    def __init__(self, event_bus: Optional[EventBus] = None, source: str = "graph"):
        self._event_bus = event_bus
        self._source = source

    def _emit(self, event_type: EventType, payload: EventPayload) -> None:
        if self._event_bus is not None:
            self._event_bus.emit(event_type, payload, source=self._source)

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_nodes(self, graph: Graph, index: EdgeIndex, nodes: List[Node]) -> List[Node]:
        """
        Append new nodes in input order.

        Raises:
            InvalidArgumentError: a node lacks name/nodeType/metadata
            DuplicateNodeError: a name exists already or repeats in the batch
        """
        GraphValidator.validate_list(nodes, "nodes")
        batch_names = set()
        for node in nodes:
            GraphValidator.validate_node_properties(node)
            GraphValidator.validate_node_does_not_exist(graph, node.name)
            if node.name in batch_names:
                raise DuplicateNodeError(node.name)
            batch_names.add(node.name)

        self._emit(EventType.BEFORE_ADD_NODES, NodesPayload(nodes=list(nodes)))

        added = list(nodes)
        graph.nodes.extend(added)
        logger.debug(f"Added {len(added)} node(s)")

        self._emit(EventType.AFTER_ADD_NODES, NodesPayload(nodes=added))
        return added

    def update_nodes(self, graph: Graph, index: EdgeIndex, updates: List[NodeUpdate]) -> List[Node]:
        """
        Overwrite the fields set on each partial node.

        A set `metadata` replaces the stored list; it is not merged.

        Raises:
            InvalidArgumentError: missing name or empty nodeType
            NodeNotFoundError: no node with that name
        """
        GraphValidator.validate_list(updates, "nodes")
        for update in updates:
            if not isinstance(update, NodeUpdate):
                raise InvalidArgumentError(
                    f"Expected a NodeUpdate, got {type(update).__name__}"
                )
            GraphValidator.validate_node_name_property(update)
            if update.node_type is not msgspec.UNSET and not update.node_type:
                raise InvalidArgumentError("Node 'nodeType' cannot be empty")
            if update.metadata is not msgspec.UNSET:
                GraphValidator.validate_string_list(update.metadata, "metadata")
            GraphValidator.validate_node_exists(graph, update.name)

        self._emit(EventType.BEFORE_UPDATE_NODES, NodeUpdatesPayload(updates=list(updates)))

        updated: List[Node] = []
        for update in updates:
            node = graph.find_node(update.name)
            if update.node_type is not msgspec.UNSET:
                node.node_type = update.node_type
            if update.metadata is not msgspec.UNSET:
                node.metadata = list(update.metadata)
            updated.append(node)

        self._emit(EventType.AFTER_UPDATE_NODES, NodesPayload(nodes=updated))
        return updated

    def delete_nodes(self, graph: Graph, index: EdgeIndex, names: List[str]) -> int:
        """
        Remove nodes by name. Absent names are ignored.

        Edges that reference a removed node are left in place.

        Returns:
            Number of nodes removed
        """
        GraphValidator.validate_node_names_array(names)

        self._emit(EventType.BEFORE_DELETE_NODES, NodeNamesPayload(names=list(names)))

        targets = set(names)
        initial = len(graph.nodes)
        graph.nodes[:] = [node for node in graph.nodes if node.name not in targets]
        deleted = initial - len(graph.nodes)

        self._emit(EventType.AFTER_DELETE_NODES, DeletedCountPayload(deleted_count=deleted))
        return deleted

    # =========================================================================
    # EDGE OPERATIONS
    # =========================================================================

    def add_edges(self, graph: Graph, index: EdgeIndex, edges: List[Edge]) -> List[Edge]:
        """
        Append new edges in input order. Endpoints need not exist.

        Raises:
            InvalidArgumentError: missing from/to/edgeType or weight out of range
            DuplicateEdgeError: the key exists already or repeats in the batch
        """
        GraphValidator.validate_list(edges, "edges")
        for edge in edges:
            GraphValidator.validate_edge_properties(edge)
        GraphValidator.validate_edges_unique(graph, edges)

        self._emit(EventType.BEFORE_ADD_EDGES, EdgesPayload(edges=list(edges)))

        added = list(edges)
        graph.edges.extend(added)
        for edge in added:
            index.index_edge(edge)

        self._emit(EventType.AFTER_ADD_EDGES, EdgesPayload(edges=added))
        return added

    def update_edges(self, graph: Graph, index: EdgeIndex, updates: List[EdgeUpdate]) -> List[Edge]:
        """
        Rewrite edges identified by their original (from, to, edgeType).

        Updates in one batch apply in order, so a later update may address
        an edge by the key an earlier update gave it.

        Raises:
            EdgeNotFoundError: no edge with the original key
            DuplicateEdgeError: the rewritten key belongs to a different edge
        """
        GraphValidator.validate_list(updates, "edges")
        for update in updates:
            self._validate_edge_update(update)

        plan = self._plan_edge_updates(graph, updates)

        self._emit(EventType.BEFORE_UPDATE_EDGES, EdgeUpdatesPayload(updates=list(updates)))

        updated: List[Edge] = []
        for position, new_edge in plan:
            index.remove_edge(graph.edges[position])
            graph.edges[position] = new_edge
            index.index_edge(new_edge)
            updated.append(new_edge)

        self._emit(EventType.AFTER_UPDATE_EDGES, EdgesPayload(edges=updated))
        return updated

    @staticmethod
    def _validate_edge_update(update: EdgeUpdate) -> None:
        if not isinstance(update, EdgeUpdate):
            raise InvalidArgumentError(f"Expected an EdgeUpdate, got {type(update).__name__}")
        if not update.source or not update.target or not update.edge_type:
            raise InvalidArgumentError("Edge update must identify 'from', 'to' and 'edgeType'")
        for field, value in (
            ("newFrom", update.new_source),
            ("newTo", update.new_target),
            ("newEdgeType", update.new_edge_type),
        ):
            if value is not msgspec.UNSET and not value:
                raise InvalidArgumentError(f"Edge update '{field}' cannot be empty")
        if update.new_weight is not msgspec.UNSET:
            GraphValidator.validate_weight(update.new_weight)

    @staticmethod
    def _plan_edge_updates(graph: Graph, updates: List[EdgeUpdate]) -> List[Tuple[int, Edge]]:
        """Resolve every update against a simulated key table before applying any."""
        positions: Dict[Tuple[str, str, str], int] = {
            edge.key: i for i, edge in enumerate(graph.edges)
        }
        current: Dict[int, Edge] = {}
        plan: List[Tuple[int, Edge]] = []

        for update in updates:
            position = positions.get(update.key)
            if position is None:
                raise EdgeNotFoundError(*update.key)
            old = current.get(position, graph.edges[position])

            new_edge = Edge(
                source=update.source if update.new_source is msgspec.UNSET else update.new_source,
                target=update.target if update.new_target is msgspec.UNSET else update.new_target,
                edge_type=(
                    update.edge_type if update.new_edge_type is msgspec.UNSET
                    else update.new_edge_type
                ),
                weight=old.weight if update.new_weight is msgspec.UNSET else update.new_weight,
            )

            if new_edge.key != old.key:
                if new_edge.key in positions:
                    raise DuplicateEdgeError(*new_edge.key)
                del positions[old.key]
                positions[new_edge.key] = position

            current[position] = new_edge
            plan.append((position, new_edge))

        return plan

    def delete_edges(self, graph: Graph, index: EdgeIndex, edges: List[Edge]) -> int:
        """
        Remove edges matching (from, to, edgeType) exactly. Others are no-ops.

        Returns:
            Number of edges removed
        """
        GraphValidator.validate_list(edges, "edges")
        for edge in edges:
            GraphValidator.validate_edge_properties(edge)

        self._emit(EventType.BEFORE_DELETE_EDGES, EdgesPayload(edges=list(edges)))

        keys = {edge.key for edge in edges}
        kept: List[Edge] = []
        deleted = 0
        for existing in graph.edges:
            if existing.key in keys:
                index.remove_edge(existing)
                deleted += 1
            else:
                kept.append(existing)
        graph.edges[:] = kept

        self._emit(EventType.AFTER_DELETE_EDGES, DeletedCountPayload(deleted_count=deleted))
        return deleted

    def get_edges(
        self,
        graph: Graph,
        index: EdgeIndex,
        edge_filter: Optional[EdgeFilter] = None,
    ) -> List[Edge]:
        """
        Edges matching every field set on the filter, in graph order.

        No filter (or an empty one) returns every edge. The index narrows the
        candidates; graph order is kept by walking the edge list once.
        """
        if edge_filter is not None and not isinstance(edge_filter, EdgeFilter):
            raise InvalidArgumentError(
                f"Expected an EdgeFilter, got {type(edge_filter).__name__}"
            )

        self._emit(EventType.BEFORE_GET_EDGES, EdgeFilterPayload(filter=edge_filter))

        keys = index.find(edge_filter)
        if keys is None:
            result = list(graph.edges)
        elif not keys:
            result = []
        else:
            result = [edge for edge in graph.edges if edge.key in keys]

        self._emit(EventType.AFTER_GET_EDGES, EdgesPayload(edges=result))
        return result

    # =========================================================================
    # METADATA OPERATIONS
    # =========================================================================

    def add_metadata(
        self,
        graph: Graph,
        index: EdgeIndex,
        additions: List[MetadataAddition],
    ) -> List[MetadataResult]:
        """
        Append strings not already present on each node.

        Every node name is checked before anything changes; one unknown name
        fails the whole batch.

        Returns:
            One MetadataResult per addition, listing what was newly added
        """
        GraphValidator.validate_list(additions, "metadata")
        for addition in additions:
            if not isinstance(addition, MetadataAddition):
                raise InvalidArgumentError(
                    f"Expected a MetadataAddition, got {type(addition).__name__}"
                )
            GraphValidator.validate_string_list(addition.contents, "contents")
            GraphValidator.validate_node_exists(graph, addition.node_name)

        self._emit(EventType.BEFORE_ADD_METADATA, MetadataAdditionsPayload(additions=list(additions)))

        results: List[MetadataResult] = []
        for addition in additions:
            node = graph.find_node(addition.node_name)
            added = new_entries(node.metadata, addition.contents)
            node.metadata.extend(added)
            results.append(MetadataResult(node_name=addition.node_name, added_metadata=added))

        self._emit(EventType.AFTER_ADD_METADATA, MetadataResultsPayload(results=results))
        return results

    def delete_metadata(
        self,
        graph: Graph,
        index: EdgeIndex,
        deletions: List[MetadataDeletion],
    ) -> int:
        """
        Remove exact string matches from each node's metadata.

        Same all-or-nothing name check as add_metadata. Strings a node does
        not carry are ignored.

        Returns:
            Total number of strings removed
        """
        GraphValidator.validate_list(deletions, "deletions")
        for deletion in deletions:
            if not isinstance(deletion, MetadataDeletion):
                raise InvalidArgumentError(
                    f"Expected a MetadataDeletion, got {type(deletion).__name__}"
                )
            GraphValidator.validate_string_list(deletion.metadata, "metadata")
            GraphValidator.validate_node_exists(graph, deletion.node_name)

        self._emit(EventType.BEFORE_DELETE_METADATA, MetadataDeletionsPayload(deletions=list(deletions)))

        deleted = 0
        for deletion in deletions:
            node = graph.find_node(deletion.node_name)
            doomed = set(deletion.metadata)
            initial = len(node.metadata)
            node.metadata = [entry for entry in node.metadata if entry not in doomed]
            deleted += initial - len(node.metadata)

        self._emit(EventType.AFTER_DELETE_METADATA, DeletedCountPayload(deleted_count=deleted))
        return deleted

    def get_metadata(self, graph: Graph, name: str, key: Optional[str] = None) -> List[str]:
        """A node's metadata, or only its "key: value" entries for `key`."""
        GraphValidator.validate_node_exists(graph, name)
        node = graph.find_node(name)
        if key is None:
            return list(node.metadata)
        return filter_by_key(node.metadata, key)
