"""
Unit tests for api/tools.py - ToolRegistry

Tool calls take plain JSON-style dicts and return ToolResult envelopes.
"""
import pytest

from api.tools import ToolRegistry, ToolResult, NoArgs


@pytest.fixture
def registry(manager):
    return ToolRegistry(manager)


def _seed(registry):
    registry.call("add_nodes", {"nodes": [
        {"name": "Alice", "nodeType": "Person", "metadata": ["role: admin"]},
        {"name": "Bob", "nodeType": "Person", "metadata": []},
    ]})
    registry.call("add_edges", {"edges": [{"from": "Alice", "to": "Bob", "edgeType": "knows"}]})


def test_registry_lists_all_tools(registry):
    assert set(registry.tool_names()) == {
        "add_nodes", "update_nodes", "delete_nodes",
        "add_edges", "update_edges", "delete_edges", "get_edges",
        "add_metadata", "delete_metadata", "get_metadata",
        "read_graph", "search_nodes", "open_nodes", "graph_stats",
    }


def test_tools_expose_json_schema(registry):
    schema = registry.get_tool("add_nodes").input_schema

    assert "$defs" in schema or "properties" in schema


def test_add_nodes_returns_wire_format(registry):
    result = registry.call("add_nodes", {"nodes": [{"name": "Alice", "nodeType": "Person", "metadata": []}]})

    assert result.success
    assert result.data == {
        "nodes": [{"type": "node", "name": "Alice", "nodeType": "Person", "metadata": []}]
    }


def test_duplicate_node_becomes_failure_envelope(registry):
    _seed(registry)

    result = registry.call("add_nodes", {"nodes": [{"name": "Alice", "nodeType": "Person", "metadata": []}]})

    assert not result.success
    assert "Alice" in result.message
    assert result.data == {"error": "DuplicateNodeError"}


def test_malformed_arguments_become_invalid_argument(registry):
    result = registry.call("add_nodes", {"nodes": [{"name": "Alice"}]})

    assert not result.success
    assert result.data == {"error": "InvalidArgumentError"}


def test_unknown_tool(registry):
    result = registry.call("drop_database", {})

    assert not result.success
    assert result.data["error"] == "UnknownTool"


def test_get_edges_with_filter(registry):
    _seed(registry)

    result = registry.call("get_edges", {"filter": {"from": "Alice"}})

    assert result.data == {"edges": [{"type": "edge", "from": "Alice", "to": "Bob", "edgeType": "knows"}]}


def test_update_edges_with_new_fields(registry):
    _seed(registry)

    result = registry.call("update_edges", {"edges": [
        {"from": "Alice", "to": "Bob", "edgeType": "knows", "newEdgeType": "trusts", "newWeight": 0.7}
    ]})

    assert result.success
    assert result.data["edges"][0]["edgeType"] == "trusts"
    assert result.data["edges"][0]["weight"] == 0.7


def test_metadata_tools(registry):
    _seed(registry)

    added = registry.call("add_metadata", {"metadata": [{"nodeName": "Bob", "contents": ["a", "a", "b"]}]})
    fetched = registry.call("get_metadata", {"nodeName": "Bob"})
    deleted = registry.call("delete_metadata", {"deletions": [{"nodeName": "Bob", "metadata": ["a"]}]})

    assert added.data == {"results": [{"nodeName": "Bob", "addedMetadata": ["a", "b"]}]}
    assert fetched.data["metadata"] == ["a", "b"]
    assert deleted.data == {"deletedCount": 1}


def test_metadata_unknown_node_fails_whole_batch(registry):
    _seed(registry)

    result = registry.call("add_metadata", {"metadata": [
        {"nodeName": "Bob", "contents": ["x"]},
        {"nodeName": "Nobody", "contents": ["y"]},
    ]})

    assert not result.success
    assert result.data == {"error": "NodeNotFoundError"}
    assert registry.call("get_metadata", {"nodeName": "Bob"}).data["metadata"] == []


def test_search_and_open(registry):
    _seed(registry)

    search = registry.call("search_nodes", {"query": "ADMIN"})
    opened = registry.call("open_nodes", {"names": ["Bob"]})

    assert [n["name"] for n in search.data["nodes"]] == ["Alice", "Bob"]
    assert [e["from"] for e in opened.data["edges"]] == ["Alice"]


def test_delete_nodes_requires_names(registry):
    result = registry.call("delete_nodes", {"nodeNames": []})

    assert not result.success


def test_delete_nodes_reports_count(registry):
    _seed(registry)

    result = registry.call("delete_nodes", {"nodeNames": ["Alice", "Ghost"]})

    assert result.data == {"deletedCount": 1}


def test_read_graph_and_stats(registry):
    _seed(registry)

    graph = registry.call("read_graph")
    stats = registry.call("graph_stats")

    assert len(graph.data["nodes"]) == 2
    assert stats.data["node_count"] == 2
    assert stats.data["edge_types"] == {"knows": 1}


def test_register_rejects_duplicate_name(registry):
    with pytest.raises(ValueError):
        registry.register("read_graph", "again", NoArgs, lambda a: ToolResult(success=True, message=""))


def test_custom_tool_can_be_registered(registry):
    registry.register("ping", "Reply pong", NoArgs, lambda a: ToolResult(success=True, message="pong"))

    assert registry.call("ping").message == "pong"
