"""
MEMORYMESH VALIDATION - Checks that run before any mutation.

Pure, side-effect-free predicates. Each raises a descriptive GraphError when
violated and returns None otherwise. GraphOperations calls them for the whole
request before it publishes a `before*` event or touches the graph, so a
failed check leaves both the graph and the event channel untouched.
"""
import math
from typing import Any, Iterable, List

from core.errors import (
    DuplicateEdgeError,
    DuplicateNodeError,
    InvalidArgumentError,
    NodeNotFoundError,
)
from core.schemas import Edge, Graph, Node


class GraphValidator:
    """Validation methods for graph operations."""

    # =========================================================================
    # NODES
    # =========================================================================

    @staticmethod
    def validate_node_exists(graph: Graph, name: str) -> None:
        if not any(node.name == name for node in graph.nodes):
            raise NodeNotFoundError(name)

    @staticmethod
    def validate_node_does_not_exist(graph: Graph, name: str) -> None:
        if any(node.name == name for node in graph.nodes):
            raise DuplicateNodeError(name)

    @staticmethod
    def validate_node_properties(node: Node) -> None:
        """A node to be created needs a name, a nodeType and a metadata list."""
        if not isinstance(node, Node):
            raise InvalidArgumentError(f"Expected a Node, got {type(node).__name__}")
        if not node.name:
            raise InvalidArgumentError("Node must have a 'name' property")
        if not node.node_type:
            raise InvalidArgumentError("Node must have a 'nodeType' property")
        if not isinstance(node.metadata, list):
            raise InvalidArgumentError("Node must have a 'metadata' array")
        GraphValidator.validate_string_list(node.metadata, "metadata")

    @staticmethod
    def validate_node_name_property(node: Any) -> None:
        """A partial node (update / identify) needs at least a name."""
        if not getattr(node, "name", None):
            raise InvalidArgumentError("Node must have a 'name' property for updating")

    @staticmethod
    def validate_node_names_array(names: Any) -> None:
        GraphValidator.validate_string_list(names, "nodeNames")

    # =========================================================================
    # EDGES
    # =========================================================================

    @staticmethod
    def validate_edge_properties(edge: Edge) -> None:
        if not isinstance(edge, Edge):
            raise InvalidArgumentError(f"Expected an Edge, got {type(edge).__name__}")
        if not edge.source:
            raise InvalidArgumentError("Edge must have a 'from' property")
        if not edge.target:
            raise InvalidArgumentError("Edge must have a 'to' property")
        if not edge.edge_type:
            raise InvalidArgumentError("Edge must have an 'edgeType' property")
        if edge.weight is not None:
            GraphValidator.validate_weight(edge.weight)

    @staticmethod
    def validate_edge_uniqueness(graph: Graph, edge: Edge) -> None:
        key = edge.key
        if any(existing.key == key for existing in graph.edges):
            raise DuplicateEdgeError(*key)

    @staticmethod
    def validate_edges_unique(graph: Graph, edges: Iterable[Edge]) -> None:
        """No edge may collide with the graph or with an earlier edge of the batch."""
        keys = {existing.key for existing in graph.edges}
        for edge in edges:
            if edge.key in keys:
                raise DuplicateEdgeError(*edge.key)
            keys.add(edge.key)

    @staticmethod
    def validate_weight(weight: float) -> None:
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise InvalidArgumentError(f"Edge weight must be a number, got {weight!r}")
        if math.isnan(weight) or weight < 0 or weight > 1:
            raise InvalidArgumentError("Edge weight must be between 0 and 1")

    @staticmethod
    def validate_edge_references(graph: Graph, edges: Iterable[Edge]) -> None:
        """
        Check that both endpoints of every edge exist.

        Diagnostic only: the mutation path deliberately allows dangling edges.
        """
        for edge in edges:
            GraphValidator.validate_node_exists(graph, edge.source)
            GraphValidator.validate_node_exists(graph, edge.target)

    # =========================================================================
    # SHAPES
    # =========================================================================

    @staticmethod
    def validate_list(value: Any, what: str) -> None:
        if not isinstance(value, list):
            raise InvalidArgumentError(f"{what} must be an array")

    @staticmethod
    def validate_string_list(value: Any, what: str) -> None:
        if not isinstance(value, list):
            raise InvalidArgumentError(f"{what} must be an array")
        if any(not isinstance(item, str) for item in value):
            raise InvalidArgumentError(f"All {what} entries must be strings")

    @staticmethod
    def validate_graph_structure(graph: Graph) -> List[str]:
        """
        Validate every record of a graph.

        Returns the ids of dangling edges instead of raising for them, since
        dangling edges are legal in storage.
        """
        GraphValidator.validate_list(graph.nodes, "nodes")
        GraphValidator.validate_list(graph.edges, "edges")

        seen = set()
        for node in graph.nodes:
            GraphValidator.validate_node_properties(node)
            if node.name in seen:
                raise DuplicateNodeError(node.name)
            seen.add(node.name)

        keys = set()
        dangling = []
        for edge in graph.edges:
            GraphValidator.validate_edge_properties(edge)
            if edge.key in keys:
                raise DuplicateEdgeError(*edge.key)
            keys.add(edge.key)
            if edge.source not in seen or edge.target not in seen:
                dangling.append(edge.id)
        return dangling


# Convenience functions
validate_node_exists = GraphValidator.validate_node_exists
validate_node_does_not_exist = GraphValidator.validate_node_does_not_exist
validate_node_properties = GraphValidator.validate_node_properties
validate_node_name_property = GraphValidator.validate_node_name_property
validate_node_names_array = GraphValidator.validate_node_names_array
validate_edge_properties = GraphValidator.validate_edge_properties
validate_edge_uniqueness = GraphValidator.validate_edge_uniqueness
validate_edges_unique = GraphValidator.validate_edges_unique
validate_edge_references = GraphValidator.validate_edge_references
validate_graph_structure = GraphValidator.validate_graph_structure
