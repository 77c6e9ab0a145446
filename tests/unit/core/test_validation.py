"""
Unit tests for core/validation.py - GraphValidator
"""
import pytest

from core.errors import (
    DuplicateEdgeError,
    DuplicateNodeError,
    InvalidArgumentError,
    NodeNotFoundError,
)
from core.schemas import Edge, Graph, Node
from core.validation import GraphValidator


# =============================================================================
# NODES
# =============================================================================

def test_node_exists_checks(sample_graph):
    GraphValidator.validate_node_exists(sample_graph, "Alice")
    GraphValidator.validate_node_does_not_exist(sample_graph, "Zed")

    with pytest.raises(NodeNotFoundError, match="Node not found: Zed"):
        GraphValidator.validate_node_exists(sample_graph, "Zed")
    with pytest.raises(DuplicateNodeError):
        GraphValidator.validate_node_does_not_exist(sample_graph, "Alice")


@pytest.mark.parametrize("node", [
    Node(name="", node_type="Person"),
    Node(name="Alice", node_type=""),
])
def test_node_properties_require_name_and_type(node):
    with pytest.raises(InvalidArgumentError):
        GraphValidator.validate_node_properties(node)


def test_node_properties_reject_non_string_metadata():
    node = Node(name="Alice", node_type="Person", metadata=["ok", 3])

    with pytest.raises(InvalidArgumentError):
        GraphValidator.validate_node_properties(node)


def test_node_names_array_must_be_list_of_strings():
    GraphValidator.validate_node_names_array(["a", "b"])

    with pytest.raises(InvalidArgumentError):
        GraphValidator.validate_node_names_array("a")
    with pytest.raises(InvalidArgumentError):
        GraphValidator.validate_node_names_array(["a", None])


# =============================================================================
# EDGES
# =============================================================================

def test_edge_properties_require_endpoints_and_type():
    with pytest.raises(InvalidArgumentError, match="'from'"):
        GraphValidator.validate_edge_properties(Edge(source="", target="B", edge_type="t"))
    with pytest.raises(InvalidArgumentError, match="'to'"):
        GraphValidator.validate_edge_properties(Edge(source="A", target="", edge_type="t"))
    with pytest.raises(InvalidArgumentError, match="'edgeType'"):
        GraphValidator.validate_edge_properties(Edge(source="A", target="B", edge_type=""))


@pytest.mark.parametrize("weight", [0, 0.5, 1, 1.0])
def test_weight_in_range_is_accepted(weight):
    GraphValidator.validate_weight(weight)


@pytest.mark.parametrize("weight", [-0.1, 1.01, float("nan"), True, "0.5"])
def test_weight_out_of_range_or_wrong_type_is_rejected(weight):
    with pytest.raises(InvalidArgumentError):
        GraphValidator.validate_weight(weight)


def test_edge_uniqueness_against_graph(sample_graph):
    GraphValidator.validate_edge_uniqueness(
        sample_graph, Edge(source="Alice", target="Bob", edge_type="likes")
    )

    with pytest.raises(DuplicateEdgeError):
        GraphValidator.validate_edge_uniqueness(
            sample_graph, Edge(source="Alice", target="Bob", edge_type="knows", weight=0.1)
        )


def test_edges_unique_catches_repeats_inside_batch():
    edge = Edge(source="A", target="B", edge_type="t")

    with pytest.raises(DuplicateEdgeError):
        GraphValidator.validate_edges_unique(Graph(), [edge, edge])


# =============================================================================
# WHOLE GRAPH
# =============================================================================

def test_graph_structure_reports_dangling_edges():
    graph = Graph(
        nodes=[Node(name="Alice", node_type="Person")],
        edges=[Edge(source="Alice", target="Bob", edge_type="knows")],
    )

    assert GraphValidator.validate_graph_structure(graph) == ["Alice|Bob|knows"]


def test_graph_structure_rejects_duplicate_names():
    graph = Graph(nodes=[Node(name="A", node_type="t"), Node(name="A", node_type="u")])

    with pytest.raises(DuplicateNodeError):
        GraphValidator.validate_graph_structure(graph)


def test_edge_references_diagnostic():
    graph = Graph(nodes=[Node(name="Alice", node_type="Person")])

    with pytest.raises(NodeNotFoundError):
        GraphValidator.validate_edge_references(
            graph, [Edge(source="Alice", target="Bob", edge_type="knows")]
        )
