"""
MEMORYMESH ANALYTICS - Structural metrics over a graph snapshot

Read-only: every function takes a Graph and leaves it untouched. The graph is
projected onto a rustworkx PyDiGraph for the topological measures; dangling
edges (an endpoint with no node) are reported separately and left out of the
projection.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import rustworkx as rx

from core.schemas import Graph


# =============================================================================
# DATA CLASSES FOR RESULTS
# =============================================================================

@dataclass
class GraphStats:
    """Summary metrics for a graph."""
    node_count: int
    edge_count: int
    node_types: Dict[str, int] = field(default_factory=dict)
    edge_types: Dict[str, int] = field(default_factory=dict)
    dangling_edges: List[str] = field(default_factory=list)
    isolated_nodes: List[str] = field(default_factory=list)
    components: List[List[str]] = field(default_factory=list)
    component_count: int = 0
    density: float = 0.0
    has_cycle: bool = False

    @property
    def is_empty(self) -> bool:
        return self.node_count == 0 and self.edge_count == 0


# =============================================================================
# PROJECTION
# =============================================================================

def build_digraph(graph: Graph) -> Tuple[rx.PyDiGraph, Dict[str, int]]:
    """
    Project a Graph onto a rustworkx multigraph.

    Node payloads are node names, edge payloads are edge types. Edges whose
    endpoints are missing are skipped.

    Returns:
        (digraph, name -> node index)
    """
    digraph = rx.PyDiGraph(multigraph=True)
    index_map: Dict[str, int] = {}
    for node in graph.nodes:
        index_map[node.name] = digraph.add_node(node.name)

    for edge in graph.edges:
        src = index_map.get(edge.source)
        tgt = index_map.get(edge.target)
        if src is None or tgt is None:
            continue
        digraph.add_edge(src, tgt, edge.edge_type)

    return digraph, index_map


# =============================================================================
# METRICS
# =============================================================================

def find_dangling_edges(graph: Graph) -> List[str]:
    """Ids of edges with at least one endpoint that is not a node."""
    names = set(graph.node_names())
    return [
        edge.id for edge in graph.edges
        if edge.source not in names or edge.target not in names
    ]


def find_isolated_nodes(digraph: rx.PyDiGraph, index_map: Dict[str, int]) -> List[str]:
    """Nodes with no incoming or outgoing edge, in graph order."""
    return [
        name for name, idx in index_map.items()
        if digraph.in_degree(idx) == 0 and digraph.out_degree(idx) == 0
    ]


def find_connected_components(digraph: rx.PyDiGraph) -> List[List[str]]:
    """Weakly connected components as sorted lists of node names, largest first."""
    components = [
        sorted(digraph[idx] for idx in component)
        for component in rx.weakly_connected_components(digraph)
    ]
    components.sort(key=lambda names: (-len(names), names))
    return components


def count_nodes_by_type(graph: Graph) -> Dict[str, int]:
    return dict(Counter(node.node_type for node in graph.nodes))


def count_edges_by_type(graph: Graph) -> Dict[str, int]:
    return dict(Counter(edge.edge_type for edge in graph.edges))


def compute_graph_density(digraph: rx.PyDiGraph) -> float:
    """Edges over possible directed edges, n * (n - 1)."""
    n = digraph.num_nodes()
    if n <= 1:
        return 0.0
    return digraph.num_edges() / (n * (n - 1))


def graph_stats(graph: Graph) -> GraphStats:
    """
    Compute every summary metric in one pass over the projection.

    Args:
        graph: Snapshot to measure

    Returns:
        GraphStats
    """
    digraph, index_map = build_digraph(graph)
    components = find_connected_components(digraph)

    return GraphStats(
        node_count=len(graph.nodes),
        edge_count=len(graph.edges),
        node_types=count_nodes_by_type(graph),
        edge_types=count_edges_by_type(graph),
        dangling_edges=find_dangling_edges(graph),
        isolated_nodes=find_isolated_nodes(digraph, index_map),
        components=components,
        component_count=len(components),
        density=compute_graph_density(digraph),
        has_cycle=not rx.is_directed_acyclic_graph(digraph),
    )
