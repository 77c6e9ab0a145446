"""
MEMORYMESH NODE SCHEMAS - Typed node kinds declared in *.schema.json files

A schema file describes one kind of node and the fields a caller supplies
when creating it:

    {
      "name": "add_npc",
      "description": "A non-player character",
      "properties": {
        "name":     {"type": "string", "description": "Unique name", "required": true},
        "role":     {"type": "string", "description": "Job", "enum": ["guard", "merchant"]},
        "traits":   {"type": "array",  "description": "Personality traits"},
        "location": {"type": "string", "description": "Where they live",
                     "relationship": {"edgeType": "located_in", "description": "Home"}}
      },
      "additionalProperties": true
    }

The file stem ("npc" for npc.schema.json) is the node type of every node the
schema creates. Plain fields become "field: value" metadata entries; a field
with a relationship also becomes one edge per target, from the new node with
the relationship's edgeType. Properties not declared are kept as metadata
unless additionalProperties is false.

Everything here is pure: the tool layer loads graphs and applies the nodes
and edge changes these functions return.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Type, Union

import msgspec

from core.errors import SchemaError
from core.metadata import (
    format_metadata_entry,
    format_metadata_value,
    is_structured,
    metadata_map,
)
from core.schemas import Edge, Node


logger = logging.getLogger("memorymesh.node_schema")

SCHEMA_SUFFIX = ".schema.json"


# =============================================================================
# SCHEMA FILE FORMAT
# =============================================================================

class SchemaRelationship(msgspec.Struct, kw_only=True, rename="camel"):
    edge_type: str
    description: str = ""
    node_type: Optional[str] = None


class SchemaProperty(msgspec.Struct, kw_only=True):
    type: str
    description: str
    required: bool = False
    enum: Optional[List[str]] = None
    relationship: Optional[SchemaRelationship] = None

    @property
    def is_array(self) -> bool:
        return self.type == "array"


class NodeSchema(msgspec.Struct, kw_only=True, rename="camel"):
    name: str
    description: str
    properties: Dict[str, SchemaProperty]
    additional_properties: bool = True


_schema_decoder = msgspec.json.Decoder(NodeSchema)


def validate_schema(schema: NodeSchema) -> None:
    """Reject schemas with empty name/description or incomplete properties."""
    if not schema.name or not schema.description:
        raise SchemaError("Schema must have name, description, and properties")
    for prop_name, prop in schema.properties.items():
        if not prop.type or not prop.description:
            raise SchemaError(f"Property {prop_name} must have type and description")
        if prop.relationship is not None and not prop.relationship.edge_type:
            raise SchemaError(f"Relationship property {prop_name} must have edgeType")


def load_schema(path: Path) -> NodeSchema:
    """
    Read and validate one schema file.

    Raises:
        SchemaError: unreadable file, malformed JSON or wrong shape
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise SchemaError(f"Failed to read schema {path}: {e}", path=str(path)) from e

    try:
        schema = _schema_decoder.decode(data)
    except msgspec.DecodeError as e:
        raise SchemaError(f"Failed to load schema {path}: {e}", path=str(path)) from e

    try:
        validate_schema(schema)
    except SchemaError as e:
        raise SchemaError(f"Failed to load schema {path}: {e}", path=str(path)) from e
    return schema


def load_schemas(directory: Path) -> Dict[str, NodeSchema]:
    """
    Every *.schema.json in `directory`, keyed by file stem, in name order.

    A missing directory means no schemas.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.debug(f"No schema directory at {directory}")
        return {}

    schemas: Dict[str, NodeSchema] = {}
    for path in sorted(directory.glob(f"*{SCHEMA_SUFFIX}")):
        schemas[path.name[: -len(SCHEMA_SUFFIX)]] = load_schema(path)
    logger.info(f"Loaded {len(schemas)} schema(s) from {directory}")
    return schemas


# =============================================================================
# ENTITY TYPES
# =============================================================================

@dataclass
class SchemaField:
    """A declared property and the struct attribute that carries it."""
    attr: str
    name: str
    prop: SchemaProperty

    @property
    def relationship(self) -> Optional[SchemaRelationship]:
        return self.prop.relationship


@dataclass
class CompiledSchema:
    """A loaded schema plus the struct types its tool arguments decode into."""
    node_type: str
    schema: NodeSchema
    fields: List[SchemaField]
    add_type: Type[msgspec.Struct]
    update_type: Type[msgspec.Struct]
    reserved: frozenset = field(default_factory=frozenset)

    @property
    def has_metadata_field(self) -> bool:
        return any(f.name == "metadata" for f in self.fields)

    def extras(self, raw: Dict[str, Any], update: bool = False) -> Dict[str, Any]:
        """Undeclared properties of `raw` with a value, in input order."""
        skip = set(self.reserved)
        if update and not self.has_metadata_field:
            skip.add("metadata")
        return {k: v for k, v in raw.items() if k not in skip and v is not None}


def _value_type(prop: SchemaProperty) -> Any:
    if prop.relationship is not None:
        return Union[str, List[str]]
    item = Literal[tuple(prop.enum)] if prop.enum else str
    return List[item] if prop.is_array else item


def _entity_struct(
    class_name: str,
    fields: List[SchemaField],
    update: bool,
    forbid_unknown: bool,
    with_metadata: bool,
) -> Type[msgspec.Struct]:
    struct_fields: List[tuple] = [
        ("name", Annotated[str, msgspec.Meta(description="Unique node name")])
    ]
    for f in fields:
        annotated = Annotated[_value_type(f.prop), msgspec.Meta(description=f.prop.description)]
        if f.prop.required and not update:
            struct_fields.append((f.attr, annotated))
        else:
            struct_fields.append((f.attr, Optional[annotated], None))
    if with_metadata:
        struct_fields.append((
            "metadata",
            Optional[Annotated[List[str], msgspec.Meta(
                description="Metadata contents replacing the existing metadata"
            )]],
            None,
        ))

    return msgspec.defstruct(
        class_name,
        struct_fields,
        kw_only=True,
        forbid_unknown_fields=forbid_unknown,
        rename={f.attr: f.name for f in fields},
    )


def _class_name(node_type: str) -> str:
    return "".join(part.capitalize() for part in node_type.replace("-", "_").split("_") if part)


def compile_schema(node_type: str, schema: NodeSchema) -> CompiledSchema:
    """Build the add/update argument structs for one schema."""
    fields = [
        SchemaField(attr=f"field_{i}", name=prop_name, prop=prop)
        for i, (prop_name, prop) in enumerate(schema.properties.items())
        if prop_name != "name"
    ]
    forbid_unknown = not schema.additional_properties
    declares_metadata = any(f.name == "metadata" for f in fields)
    base = _class_name(node_type) or "Entity"

    return CompiledSchema(
        node_type=node_type,
        schema=schema,
        fields=fields,
        add_type=_entity_struct(base, fields, False, forbid_unknown, False),
        update_type=_entity_struct(f"{base}Update", fields, True, forbid_unknown, not declares_metadata),
        reserved=frozenset(["name"] + [f.name for f in fields]),
    )


# =============================================================================
# NODE CONSTRUCTION
# =============================================================================

def relationship_targets(value) -> List[str]:
    """A relationship value as a list of target names; empty values give []."""
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [value] if value else []


def _relationship_edges(source: str, targets: List[str], edge_type: str) -> List[Edge]:
    return [Edge(source=source, target=target, edge_type=edge_type) for target in targets]


def build_schema_node(compiled: CompiledSchema, entity, raw: Dict[str, Any]) -> Tuple[Node, List[Edge]]:
    """
    The node and relationship edges for a new entity.

    Metadata order: required fields, optional fields, relationship fields,
    then undeclared properties. Empty relationship values are skipped.
    """
    name = entity.name
    plain = [f for f in compiled.fields if f.relationship is None]
    related = [f for f in compiled.fields if f.relationship is not None]

    metadata: List[str] = []
    for f in sorted(plain, key=lambda f: not f.prop.required):
        value = getattr(entity, f.attr)
        if value is not None:
            metadata.append(format_metadata_entry(f.name, value))

    edges: List[Edge] = []
    for f in related:
        value = getattr(entity, f.attr)
        targets = relationship_targets(value)
        if not targets:
            continue
        edges.extend(_relationship_edges(name, targets, f.relationship.edge_type))
        metadata.append(format_metadata_entry(f.name, value))

    for key, value in compiled.extras(raw).items():
        metadata.append(format_metadata_entry(key, value))

    return Node(name=name, node_type=compiled.node_type, metadata=metadata), edges


class SchemaUpdate(msgspec.Struct, kw_only=True):
    """New metadata for an existing entity and the edges to swap."""
    metadata: List[str]
    remove: List[Edge] = msgspec.field(default_factory=list)
    add: List[Edge] = msgspec.field(default_factory=list)


def _capitalize(key: str) -> str:
    return key[:1].upper() + key[1:]


def plan_schema_update(
    compiled: CompiledSchema,
    node: Node,
    entity,
    raw: Dict[str, Any],
    outgoing: List[Edge],
) -> SchemaUpdate:
    """
    Merge an update into an entity's metadata and relationship edges.

    Structured entries are keyed case-insensitively and rewritten as
    "Key: value"; entries without a colon are kept after them. A supplied
    `metadata` list replaces the node's metadata before fields apply. A
    relationship field that is present replaces every edge of its edgeType
    leaving the node; `outgoing` is the node's current outgoing edges.
    """
    base = node.metadata
    replacement = getattr(entity, "metadata", None) if not compiled.has_metadata_field else None
    if replacement is not None:
        base = replacement

    values = metadata_map(base)
    notes = [entry for entry in base if not is_structured(entry)]

    for f in compiled.fields:
        if f.relationship is None:
            value = getattr(entity, f.attr)
            if value is not None:
                values[f.name.lower()] = format_metadata_value(value)

    remove: List[Edge] = []
    add: List[Edge] = []
    for f in compiled.fields:
        if f.relationship is None:
            continue
        value = getattr(entity, f.attr)
        if value is None:
            continue
        edge_type = f.relationship.edge_type
        remove.extend(edge for edge in outgoing if edge.edge_type == edge_type)
        add.extend(_relationship_edges(node.name, relationship_targets(value), edge_type))
        values[f.name.lower()] = format_metadata_value(value)

    for key, value in compiled.extras(raw, update=True).items():
        values[key.lower()] = format_metadata_value(value)

    metadata = [f"{_capitalize(key)}: {value}" for key, value in values.items()]
    metadata.extend(notes)
    return SchemaUpdate(metadata=metadata, remove=remove, add=add)
