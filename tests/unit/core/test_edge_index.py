"""
Unit tests for core/edge_index.py

Verifies the three mappings stay in step on insert/remove/rebuild and that
filters resolve to the right key sets.
"""
from core.edge_index import EdgeIndex
from core.schemas import Edge, EdgeFilter


def _edges():
    return [
        Edge(source="A", target="B", edge_type="knows"),
        Edge(source="A", target="C", edge_type="likes"),
        Edge(source="B", target="C", edge_type="knows"),
    ]


def test_from_edges_indexes_every_edge_in_all_maps():
    index = EdgeIndex.from_edges(_edges())

    assert len(index) == 3
    assert index.find(EdgeFilter(source="A")) == {("A", "B", "knows"), ("A", "C", "likes")}
    assert index.find(EdgeFilter(target="C")) == {("A", "C", "likes"), ("B", "C", "knows")}
    assert index.by_type["knows"] == {("A", "B", "knows"), ("B", "C", "knows")}


def test_remove_edge_updates_all_maps_and_drops_empty_keys():
    edges = _edges()
    index = EdgeIndex.from_edges(edges)

    index.remove_edge(edges[1])

    assert index.find(EdgeFilter(source="A")) == {("A", "B", "knows")}
    assert "likes" not in index.by_type
    assert len(index) == 2


def test_remove_unknown_edge_is_ignored():
    index = EdgeIndex.from_edges(_edges())

    index.remove_edge(Edge(source="X", target="Y", edge_type="z"))

    assert len(index) == 3


def test_rebuild_replaces_contents():
    index = EdgeIndex.from_edges(_edges())

    index.rebuild([Edge(source="X", target="Y", edge_type="z")])

    assert len(index) == 1
    assert index.find(EdgeFilter(source="A")) == set()


def test_lookup_returns_copies():
    index = EdgeIndex.from_edges(_edges())

    keys = index.find(EdgeFilter(source="A"))
    keys.clear()

    assert len(index.find(EdgeFilter(source="A"))) == 2


def test_find_with_empty_filter_returns_none():
    index = EdgeIndex.from_edges(_edges())

    assert index.find(None) is None
    assert index.find(EdgeFilter()) is None


def test_find_intersects_set_fields():
    index = EdgeIndex.from_edges(_edges())

    assert index.find(EdgeFilter(source="A")) == {("A", "B", "knows"), ("A", "C", "likes")}
    assert index.find(EdgeFilter(source="A", edge_type="knows")) == {("A", "B", "knows")}
    assert index.find(EdgeFilter(target="C", edge_type="knows")) == {("B", "C", "knows")}
    assert index.find(EdgeFilter(source="Nobody")) == set()


def test_keys_touching_covers_both_directions():
    index = EdgeIndex.from_edges(_edges())

    assert index.keys_touching(["B"]) == {("A", "B", "knows"), ("B", "C", "knows")}


# =============================================================================
# NAMES CONTAINING THE ID SEPARATOR
# =============================================================================

def test_edges_with_colliding_id_strings_stay_distinct():
    """
    ("a|b", "c", "t") and ("a", "b|c", "t") share the id "a|b|c|t".

    Verifies:
    - Both edges are indexed
    - A source filter only resolves to the edge with that exact source
    - Removing one leaves the other reachable through every mapping
    """
    left = Edge(source="a|b", target="c", edge_type="t")
    right = Edge(source="a", target="b|c", edge_type="t")
    assert left.id == right.id

    index = EdgeIndex.from_edges([left, right])

    assert len(index) == 2
    assert index.find(EdgeFilter(source="a")) == {right.key}

    index.remove_edge(left)

    assert index.find(EdgeFilter(edge_type="t")) == {right.key}
    assert index.find(EdgeFilter(target="b|c")) == {right.key}
