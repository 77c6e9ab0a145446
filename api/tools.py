"""
MEMORYMESH TOOLS - Named operations with JSON arguments

Maps tool names ("add_nodes", "search_nodes", ...) to ApplicationManager
calls. Arguments arrive as plain JSON data, are decoded into typed structs
with msgspec, and results go back in a ToolResult envelope:

    {"success": true, "message": "Added 2 node(s)", "data": {"nodes": [...]}}
    {"success": false, "message": "Node not found: Bob", "data": {"error": "NodeNotFoundError"}}

Only GraphError becomes a failure envelope. Anything else is a bug and
propagates.

Usage:
    registry = ToolRegistry(manager)
    result = registry.call("add_nodes", {"nodes": [{"name": "Alice", "nodeType": "Person"}]})
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

import msgspec

from api.manager import ApplicationManager
from core.errors import GraphError, InvalidArgumentError
from core.schemas import (
    Edge,
    EdgeFilter,
    EdgeUpdate,
    MetadataAddition,
    MetadataDeletion,
    Node,
    NodeUpdate,
    convert,
    to_builtins,
)


logger = logging.getLogger("memorymesh.tools")


# =============================================================================
# ARGUMENT STRUCTS
# =============================================================================

class NodesArgs(msgspec.Struct, kw_only=True):
    nodes: List[Node]


class NodeUpdatesArgs(msgspec.Struct, kw_only=True):
    nodes: List[NodeUpdate]


class NodeNamesArgs(msgspec.Struct, kw_only=True, rename="camel"):
    node_names: List[str]


class EdgesArgs(msgspec.Struct, kw_only=True):
    edges: List[Edge]


class EdgeUpdatesArgs(msgspec.Struct, kw_only=True):
    edges: List[EdgeUpdate]


class GetEdgesArgs(msgspec.Struct, kw_only=True):
    filter: Optional[EdgeFilter] = None


class AddMetadataArgs(msgspec.Struct, kw_only=True):
    metadata: List[MetadataAddition]


class DeleteMetadataArgs(msgspec.Struct, kw_only=True):
    deletions: List[MetadataDeletion]


class GetMetadataArgs(msgspec.Struct, kw_only=True, rename="camel"):
    node_name: str
    key: Optional[str] = None


class QueryArgs(msgspec.Struct, kw_only=True):
    query: str


class NamesArgs(msgspec.Struct, kw_only=True):
    names: List[str]


class NoArgs(msgspec.Struct, kw_only=True):
    pass


# =============================================================================
# RESULT ENVELOPE
# =============================================================================

class ToolResult(msgspec.Struct, kw_only=True):
    success: bool
    message: str
    data: Any = None


@dataclass
class Tool:
    """
    A registered tool: its argument type and the handler that runs it.

    `schema_type`, when set, is what the tool advertises as its input schema;
    `args_type` stays the type arguments are decoded into before the handler
    runs.
    """
    name: str
    description: str
    args_type: Type[msgspec.Struct]
    handler: Callable[[Any], ToolResult]
    schema_type: Optional[Type[msgspec.Struct]] = None

    @property
    def input_schema(self) -> Dict[str, Any]:
        return msgspec.json.schema(self.schema_type or self.args_type)


# =============================================================================
# REGISTRY
# =============================================================================

class ToolRegistry:
    """Tool-name dispatch over one ApplicationManager."""

    def __init__(self, manager: ApplicationManager):
        self._manager = manager
        self._tools: Dict[str, Tool] = {}
        self._register_defaults()

    def register(
        self,
        name: str,
        description: str,
        args_type: Type[msgspec.Struct],
        handler: Callable[[Any], ToolResult],
        schema_type: Optional[Type[msgspec.Struct]] = None,
    ) -> None:
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = Tool(name, description, args_type, handler, schema_type)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def tool_names(self) -> List[str]:
        return list(self._tools)

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Decode `arguments` for tool `name` and run it.

        Unknown tools, malformed arguments and every GraphError come back as
        success=False.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult(
                success=False,
                message=f"Unknown tool: {name}",
                data={"error": "UnknownTool", "available": self.tool_names()},
            )

        try:
            args = convert(arguments or {}, tool.args_type)
            return tool.handler(args)
        except GraphError as e:
            logger.info(f"Tool {name} failed: {e}")
            return ToolResult(
                success=False,
                message=str(e),
                data={"error": type(e).__name__},
            )

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def _register_defaults(self) -> None:
        m = self._manager
        self.register(
            "add_nodes", "Add new nodes to the graph", NodesArgs,
            lambda a: self._ok(f"Added {len(a.nodes)} node(s)", {"nodes": m.add_nodes(a.nodes)}),
        )
        self.register(
            "update_nodes", "Update the type or metadata of existing nodes", NodeUpdatesArgs,
            lambda a: self._ok("Updated nodes", {"nodes": m.update_nodes(a.nodes)}),
        )
        self.register(
            "delete_nodes", "Delete nodes by name", NodeNamesArgs,
            self._delete_nodes,
        )
        self.register(
            "add_edges", "Add new edges between nodes", EdgesArgs,
            lambda a: self._ok(f"Added {len(a.edges)} edge(s)", {"edges": m.add_edges(a.edges)}),
        )
        self.register(
            "update_edges", "Rewrite existing edges", EdgeUpdatesArgs,
            lambda a: self._ok("Updated edges", {"edges": m.update_edges(a.edges)}),
        )
        self.register(
            "delete_edges", "Delete edges by (from, to, edgeType)", EdgesArgs,
            lambda a: self._count("Deleted {} edge(s)", m.delete_edges(a.edges)),
        )
        self.register(
            "get_edges", "List edges matching an optional filter", GetEdgesArgs,
            lambda a: self._ok("Retrieved edges", {"edges": m.get_edges(a.filter)}),
        )
        self.register(
            "add_metadata", "Append metadata strings to nodes", AddMetadataArgs,
            lambda a: self._ok("Added metadata", {"results": m.add_metadata(a.metadata)}),
        )
        self.register(
            "delete_metadata", "Remove metadata strings from nodes", DeleteMetadataArgs,
            lambda a: self._count("Deleted {} metadata entr(ies)", m.delete_metadata(a.deletions)),
        )
        self.register(
            "get_metadata", "Read a node's metadata, optionally by key", GetMetadataArgs,
            lambda a: self._ok(
                "Retrieved metadata",
                {"nodeName": a.node_name, "metadata": m.get_metadata(a.node_name, a.key)},
            ),
        )
        self.register(
            "read_graph", "Read the entire graph", NoArgs,
            lambda a: self._ok("Read graph", m.read_graph()),
        )
        self.register(
            "search_nodes", "Substring search over node names, types and metadata", QueryArgs,
            lambda a: self._ok(f"Searched for {a.query!r}", m.search_nodes(a.query)),
        )
        self.register(
            "open_nodes", "Open nodes by exact name with their neighbourhood", NamesArgs,
            lambda a: self._ok("Opened nodes", m.open_nodes(a.names)),
        )
        self.register(
            "graph_stats", "Summary statistics for the graph", NoArgs,
            lambda a: self._ok("Computed graph statistics", m.graph_stats()),
        )

    def _delete_nodes(self, args: NodeNamesArgs) -> ToolResult:
        if not args.node_names:
            raise InvalidArgumentError("nodeNames must not be empty")
        return self._count(
            "Deleted {} node(s)",
            self._manager.delete_nodes(args.node_names),
        )

    @staticmethod
    def _ok(message: str, data: Any = None) -> ToolResult:
        return ToolResult(success=True, message=message, data=to_builtins(data))

    @staticmethod
    def _count(template: str, count: int) -> ToolResult:
        return ToolResult(
            success=True,
            message=template.format(count),
            data={"deletedCount": count},
        )
