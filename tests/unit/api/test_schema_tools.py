"""
Unit tests for api/schema_tools.py - tools generated from *.schema.json files

The conftest config points schemas_dir at tmp_path/schemas; each test writes
the schema files it needs before building the registry.
"""
import json
from pathlib import Path

import pytest

from api.schema_tools import create_registry, register_schema_tools
from api.tools import ToolRegistry
from core.errors import SchemaError
from core.node_schema import NodeSchema, SchemaProperty
from core.schemas import Edge, EdgeFilter


NPC_SCHEMA = {
    "name": "add_npc",
    "description": "A non-player character",
    "properties": {
        "name": {"type": "string", "description": "Unique name", "required": True},
        "role": {"type": "string", "description": "Job", "required": True},
        "location": {"type": "string", "description": "Home",
                     "relationship": {"edgeType": "located_in", "description": "Lives in"}},
    },
}


@pytest.fixture
def registry(manager):
    schemas_dir = Path(manager.config.schemas_dir)
    schemas_dir.mkdir(parents=True)
    (schemas_dir / "npc.schema.json").write_text(json.dumps(NPC_SCHEMA))
    return create_registry(manager)


def _add_aria(registry, **fields):
    entity = {"name": "Aria", "role": "guard", "location": "Keep"}
    entity.update(fields)
    return registry.call("add_npc", {"npc": entity})


# =============================================================================
# REGISTRATION
# =============================================================================

def test_schema_tools_are_registered_next_to_builtins(registry):
    names = registry.tool_names()

    assert {"add_npc", "update_npc", "delete_npc"} <= set(names)
    assert "add_nodes" in names


def test_registry_without_schema_directory_has_only_builtins(manager):
    assert create_registry(manager).tool_names() == ToolRegistry(manager).tool_names()


def test_input_schema_describes_declared_fields(registry):
    schema = registry.get_tool("add_npc").input_schema
    entity = schema["$defs"]["Npc"]

    assert set(entity["properties"]) == {"name", "role", "location"}
    assert set(entity["required"]) == {"name", "role"}


def test_tool_name_clash_raises_schema_error(manager):
    registry = ToolRegistry(manager)
    schema = NodeSchema(
        name="add_nodes",
        description="Clashes with the built-in add_nodes",
        properties={"label": SchemaProperty(type="string", description="Label")},
    )

    with pytest.raises(SchemaError):
        register_schema_tools(registry, manager, {"nodes": schema})


# =============================================================================
# ADD
# =============================================================================

def test_add_creates_node_and_relationship_edges(registry, manager):
    result = _add_aria(registry)

    assert result.success
    graph = manager.read_graph()
    assert graph.node_names() == ["Aria"]
    assert graph.nodes[0].node_type == "npc"
    assert graph.nodes[0].metadata == ["role: guard", "location: Keep"]
    assert graph.edges == [Edge(source="Aria", target="Keep", edge_type="located_in")]


def test_add_missing_required_field_fails(registry, manager):
    result = registry.call("add_npc", {"npc": {"name": "Aria"}})

    assert not result.success
    assert result.data["error"] == "InvalidArgumentError"
    assert manager.read_graph().nodes == []


def test_add_is_atomic_when_an_edge_is_rejected(registry, manager):
    """
    Verifies:
    - A duplicate relationship target fails the whole call
    - Neither the node nor any edge is written
    """
    result = _add_aria(registry, location=["Keep", "Keep"])

    assert not result.success
    assert result.data["error"] == "DuplicateEdgeError"
    assert manager.read_graph().nodes == []
    assert manager.read_graph().edges == []


def test_add_existing_name_fails(registry):
    _add_aria(registry)

    result = _add_aria(registry)

    assert result.data["error"] == "DuplicateNodeError"


# =============================================================================
# UPDATE
# =============================================================================

def test_update_rewrites_metadata_and_relationship_edges(registry, manager):
    _add_aria(registry)
    manager.add_edges([Edge(source="Aria", target="Bob", edge_type="knows")])

    result = registry.call("update_npc", {"update_npc": {"name": "Aria", "location": "Tower"}})

    assert result.success
    assert result.data["updatedNode"]["metadata"] == ["Role: guard", "Location: Tower"]
    edges = manager.get_edges(EdgeFilter(source="Aria"))
    assert {(e.target, e.edge_type) for e in edges} == {("Bob", "knows"), ("Tower", "located_in")}


def test_update_unknown_or_other_type_fails(registry, manager):
    registry.call("add_nodes", {"nodes": [{"name": "Bob", "nodeType": "Person"}]})

    for name in ("Nobody", "Bob"):
        result = registry.call("update_npc", {"update_npc": {"name": name, "role": "x"}})
        assert result.data["error"] == "NodeNotFoundError"


# =============================================================================
# DELETE
# =============================================================================

def test_delete_removes_node_and_leaves_edges(registry, manager):
    _add_aria(registry)

    result = registry.call("delete_npc", {"delete_npc": {"name": "Aria"}})

    assert result.success
    assert result.data == {"deletedCount": 1}
    assert manager.read_graph().nodes == []
    assert len(manager.read_graph().edges) == 1


def test_delete_requires_name(registry):
    result = registry.call("delete_npc", {"delete_npc": {}})

    assert result.data["error"] == "InvalidArgumentError"
