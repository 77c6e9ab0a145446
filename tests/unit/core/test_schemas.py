"""
Unit tests for core/schemas.py

Tests the record structs and their wire format:
- JSON Lines encoding with the "type" discriminator and camelCase names
- Decoding of node and edge lines
- Request structs with unset fields
- convert() turning shape errors into InvalidArgumentError
"""
import msgspec
import pytest

from core.errors import InvalidArgumentError
from core.schemas import (
    Edge,
    EdgeFilter,
    EdgeUpdate,
    Graph,
    MetadataAddition,
    Node,
    NodeUpdate,
    convert,
    decode_record,
    edge_id,
    encode_record,
    to_builtins,
)


# =============================================================================
# RECORD ENCODING
# =============================================================================

def test_node_encodes_with_discriminator_and_camel_case():
    """
    Verifies:
    - "type":"node" comes first
    - node_type is written as nodeType
    """
    node = Node(name="Alice", node_type="Person", metadata=["role: admin"])

    line = encode_record(node)

    assert line == b'{"type":"node","name":"Alice","nodeType":"Person","metadata":["role: admin"]}'


def test_edge_encodes_from_to_and_omits_missing_weight():
    edge = Edge(source="Alice", target="Bob", edge_type="knows")

    assert encode_record(edge) == b'{"type":"edge","from":"Alice","to":"Bob","edgeType":"knows"}'


def test_edge_encodes_weight_when_set():
    edge = Edge(source="Alice", target="Bob", edge_type="knows", weight=0.5)

    assert b'"weight":0.5' in encode_record(edge)


def test_decode_record_picks_struct_by_type():
    node = decode_record(b'{"type":"node","name":"Alice","nodeType":"Person","metadata":[]}')
    edge = decode_record('{"type":"edge","from":"Alice","to":"Bob","edgeType":"knows"}')

    assert isinstance(node, Node)
    assert node.node_type == "Person"
    assert isinstance(edge, Edge)
    assert edge.source == "Alice"
    assert edge.target == "Bob"
    assert edge.weight is None


def test_decode_record_defaults_missing_metadata():
    node = decode_record(b'{"type":"node","name":"Alice","nodeType":"Person"}')

    assert node.metadata == []


def test_decode_record_rejects_unknown_type():
    with pytest.raises(msgspec.ValidationError):
        decode_record(b'{"type":"widget","name":"x"}')


def test_decode_record_rejects_missing_required_field():
    with pytest.raises(msgspec.ValidationError):
        decode_record(b'{"type":"edge","from":"Alice","edgeType":"knows"}')


# =============================================================================
# EDGE IDENTITY
# =============================================================================

def test_edge_key_and_id():
    edge = Edge(source="Alice", target="Bob", edge_type="knows", weight=0.3)

    assert edge.key == ("Alice", "Bob", "knows")
    assert edge.id == "Alice|Bob|knows"
    assert edge_id("Alice", "Bob", "knows") == edge.id


def test_edges_with_same_key_but_different_weight_share_identity():
    a = Edge(source="A", target="B", edge_type="t", weight=0.1)
    b = Edge(source="A", target="B", edge_type="t", weight=0.9)

    assert a.key == b.key
    assert a != b


# =============================================================================
# GRAPH HELPERS
# =============================================================================

def test_find_node_is_exact_and_case_sensitive(sample_graph):
    assert sample_graph.find_node("Alice").node_type == "Person"
    assert sample_graph.find_node("alice") is None


def test_graph_is_empty():
    assert Graph().is_empty
    assert not Graph(nodes=[Node(name="A", node_type="t")]).is_empty


# =============================================================================
# REQUEST STRUCTS
# =============================================================================

def test_node_update_leaves_unset_fields_unset():
    update = convert({"name": "Alice", "nodeType": "Admin"}, NodeUpdate)

    assert update.node_type == "Admin"
    assert update.metadata is msgspec.UNSET


def test_edge_update_decodes_new_fields():
    update = convert(
        {"from": "A", "to": "B", "edgeType": "t", "newTo": "C", "newWeight": 0.4},
        EdgeUpdate,
    )

    assert update.key == ("A", "B", "t")
    assert update.new_target == "C"
    assert update.new_weight == 0.4
    assert update.new_source is msgspec.UNSET
    assert update.new_edge_type is msgspec.UNSET


def test_edge_filter_decodes_wire_names():
    edge_filter = convert({"from": "A", "edgeType": "t"}, EdgeFilter)

    assert EdgeFilter().is_empty
    assert not edge_filter.is_empty
    assert (edge_filter.source, edge_filter.target, edge_filter.edge_type) == ("A", None, "t")


def test_convert_metadata_addition_uses_camel_case():
    addition = convert({"nodeName": "Alice", "contents": ["a"]}, MetadataAddition)

    assert addition.node_name == "Alice"
    assert addition.contents == ["a"]


def test_convert_raises_invalid_argument_on_bad_shape():
    with pytest.raises(InvalidArgumentError):
        convert({"name": "Alice"}, Node)

    with pytest.raises(InvalidArgumentError):
        convert({"name": 3, "nodeType": "t"}, Node)


def test_to_builtins_uses_wire_names():
    data = to_builtins(Edge(source="A", target="B", edge_type="t"))

    assert data == {"type": "edge", "from": "A", "to": "B", "edgeType": "t"}
