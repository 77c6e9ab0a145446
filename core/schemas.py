"""
MEMORYMESH SCHEMAS - The Grammar of the Graph Store

This module defines the data structures that flow through the store:
- Node / Edge: the persisted records (one JSON object per line on disk)
- Graph: the aggregate that is loaded and saved as a unit
- Request structs: partial updates, edge filters, metadata batches
- Serialization helpers for the JSON Lines file

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. CAMELCASE ON THE WIRE: files and tool arguments use nodeType/edgeType/from/to,
   Python code uses node_type/edge_type/source/target
3. TAGGED RECORDS: every record carries a "type" discriminator ("node"/"edge"),
   so a single line can be decoded without knowing what it holds
4. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups

File format (memory.jsonl):
    {"type":"node","name":"Alice","nodeType":"Person","metadata":["role: admin"]}
    {"type":"edge","from":"Alice","to":"Bob","edgeType":"knows"}
    {"type":"edge","from":"Alice","to":"Carol","edgeType":"manages","weight":0.5}
"""
import msgspec
from typing import List, Optional, Tuple, Union

from core.errors import InvalidArgumentError


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class Node(msgspec.Struct, kw_only=True, tag_field="type", tag="node", rename="camel"):
    """
    A uniquely named, typed entity with free-text metadata.

    Node names are case-sensitive and unique across the graph. Metadata is an
    ordered list of strings, conventionally "key: value".
    """
    name: str
    node_type: str
    metadata: List[str] = msgspec.field(default_factory=list)


class Edge(
    msgspec.Struct,
    kw_only=True,
    tag_field="type",
    tag="edge",
    rename="camel",
    omit_defaults=True,
):
    """
    A directed, typed relationship between two node names.

    Identity is the (from, to, edgeType) triple. The endpoints are names only;
    nothing guarantees the nodes exist.
    """
    source: str = msgspec.field(name="from")
    target: str = msgspec.field(name="to")
    edge_type: str
    weight: Optional[float] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        """The composite identity of this edge."""
        return (self.source, self.target, self.edge_type)

    @property
    def id(self) -> str:
        """The edge index identifier, "from|to|edgeType"."""
        return edge_id(self.source, self.target, self.edge_type)


class Graph(msgspec.Struct, kw_only=True):
    """Ordered nodes and ordered edges. The unit of load/save."""
    nodes: List[Node] = msgspec.field(default_factory=list)
    edges: List[Edge] = msgspec.field(default_factory=list)

    def find_node(self, name: str) -> Optional[Node]:
        """Return the node with this exact name, or None."""
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def node_names(self) -> List[str]:
        return [node.name for node in self.nodes]

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges


def edge_id(source: str, target: str, edge_type: str) -> str:
    """Serialize an edge key the way the edge index stores it."""
    return f"{source}|{target}|{edge_type}"


# =============================================================================
# REQUEST STRUCTS
# =============================================================================

class NodeUpdate(msgspec.Struct, kw_only=True, rename="camel"):
    """
    Partial node identified by name.

    Only fields that are set overwrite the stored node. A set `metadata`
    replaces the previous list wholesale.
    """
    name: str
    node_type: Union[str, msgspec.UnsetType] = msgspec.UNSET
    metadata: Union[List[str], msgspec.UnsetType] = msgspec.UNSET


class EdgeUpdate(msgspec.Struct, kw_only=True, rename="camel"):
    """Rewrite of the edge identified by (from, to, edgeType)."""
    source: str = msgspec.field(name="from")
    target: str = msgspec.field(name="to")
    edge_type: str
    new_source: Union[str, msgspec.UnsetType] = msgspec.field(
        default=msgspec.UNSET, name="newFrom"
    )
    new_target: Union[str, msgspec.UnsetType] = msgspec.field(
        default=msgspec.UNSET, name="newTo"
    )
    new_edge_type: Union[str, msgspec.UnsetType] = msgspec.UNSET
    new_weight: Union[float, msgspec.UnsetType] = msgspec.UNSET

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.source, self.target, self.edge_type)


class EdgeFilter(msgspec.Struct, kw_only=True, rename="camel", omit_defaults=True):
    """Edge predicate. All provided fields must match (logical AND)."""
    source: Optional[str] = msgspec.field(default=None, name="from")
    target: Optional[str] = msgspec.field(default=None, name="to")
    edge_type: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.source is None and self.target is None and self.edge_type is None


class MetadataAddition(msgspec.Struct, kw_only=True, rename="camel"):
    """Strings to append to one node's metadata."""
    node_name: str
    contents: List[str]


class MetadataDeletion(msgspec.Struct, kw_only=True, rename="camel"):
    """Strings to remove from one node's metadata."""
    node_name: str
    metadata: List[str]


class MetadataResult(msgspec.Struct, kw_only=True, rename="camel"):
    """The strings that were actually added to a node."""
    node_name: str
    added_metadata: List[str]


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoder/decoders, reused across the application

_encoder = msgspec.json.Encoder()
_record_decoder = msgspec.json.Decoder(type=Union[Node, Edge])

Record = Union[Node, Edge]


def encode_record(record: Record) -> bytes:
    """Serialize a node or edge to one JSON line (without the newline)."""
    return _encoder.encode(record)


def decode_record(line: Union[bytes, str]) -> Record:
    """
    Deserialize one JSON line into a Node or Edge.

    The "type" discriminator picks the struct. Raises msgspec.DecodeError
    (including msgspec.ValidationError) on malformed input.
    """
    return _record_decoder.decode(line)


def to_builtins(obj) -> object:
    """Convert structs to plain dicts/lists using their wire names."""
    return msgspec.to_builtins(obj)


def convert(obj, type):
    """
    Convert plain Python data (e.g. tool arguments) into a struct type.

    Shape errors surface as InvalidArgumentError so callers see a single
    error kind for malformed requests.
    """
    try:
        return msgspec.convert(obj, type=type)
    except msgspec.ValidationError as e:
        raise InvalidArgumentError(f"Invalid argument: {e}") from e
