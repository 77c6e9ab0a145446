"""
Read-only queries: whole graph, substring search and exact-name open.

search_nodes and open_nodes return a subgraph: the matching nodes first, then
the existing nodes one hop away, plus every edge that touches a match. Edges
are found through the edge index and returned in graph order.
"""
import logging
from typing import List, Optional, Set

from core.edge_index import EdgeIndex
from core.errors import InvalidArgumentError
from core.schemas import Graph, Node
from core.validation import GraphValidator
from infrastructure.event_bus import (
    EmptyPayload,
    EventBus,
    EventType,
    GraphPayload,
    NodeNamesPayload,
    QueryPayload,
)


logger = logging.getLogger("memorymesh.search")


def node_matches(node: Node, needle: str) -> bool:
    """Case-insensitive substring test over name, nodeType and metadata."""
    if needle in node.name.lower() or needle in node.node_type.lower():
        return True
    return any(needle in entry.lower() for entry in node.metadata)


class SearchOperations:
    """Search and retrieval over a graph snapshot."""

    def __init__(self, event_bus: Optional[EventBus] = None, source: str = "search"):
        self._event_bus = event_bus
        self._source = source

    def _emit(self, event_type, payload) -> None:
        if self._event_bus is not None:
            self._event_bus.emit(event_type, payload, source=self._source)

    def read_graph(self, graph: Graph) -> Graph:
        self._emit(EventType.BEFORE_READ_GRAPH, EmptyPayload())
        result = Graph(nodes=list(graph.nodes), edges=list(graph.edges))
        self._emit(EventType.AFTER_READ_GRAPH, GraphPayload(graph=result))
        return result

    def search_nodes(self, graph: Graph, index: EdgeIndex, query: str) -> Graph:
        """
        Nodes whose name, type or any metadata string contains `query`.

        An empty query matches every node.
        """
        if not isinstance(query, str):
            raise InvalidArgumentError("query must be a string")

        self._emit(EventType.BEFORE_SEARCH, QueryPayload(query=query))

        needle = query.lower()
        matches = [node for node in graph.nodes if node_matches(node, needle)]
        result = self._expand(graph, index, matches)
        logger.debug(f"Search {query!r}: {len(matches)} match(es), {len(result.nodes)} node(s) returned")

        self._emit(EventType.AFTER_SEARCH, GraphPayload(graph=result))
        return result

    def open_nodes(self, graph: Graph, index: EdgeIndex, names: List[str]) -> Graph:
        """Nodes with exactly these names, plus their neighbourhood. Unknown names are skipped."""
        GraphValidator.validate_node_names_array(names)

        self._emit(EventType.BEFORE_OPEN_NODES, NodeNamesPayload(names=list(names)))

        wanted = set(names)
        matches = [node for node in graph.nodes if node.name in wanted]
        result = self._expand(graph, index, matches)

        self._emit(EventType.AFTER_OPEN_NODES, GraphPayload(graph=result))
        return result

    @staticmethod
    def _expand(graph: Graph, index: EdgeIndex, matches: List[Node]) -> Graph:
        matched: Set[str] = {node.name for node in matches}
        if not matched:
            return Graph()

        edge_keys = index.keys_touching(matched)
        edges = [edge for edge in graph.edges if edge.key in edge_keys]

        neighbours: Set[str] = set()
        for edge in edges:
            neighbours.add(edge.source)
            neighbours.add(edge.target)
        neighbours -= matched

        nodes = list(matches)
        nodes.extend(node for node in graph.nodes if node.name in neighbours)
        return Graph(nodes=nodes, edges=edges)
