"""
MEMORYMESH SCHEMA TOOLS - add_/update_/delete_<type> tools from schema files

Each *.schema.json in the configured schemas directory yields three tools,
named after the file stem. Arguments are wrapped under a key naming the
operation:

    add_npc     {"npc": {"name": "Aria", "role": "guard", "location": "Keep"}}
    update_npc  {"update_npc": {"name": "Aria", "role": "merchant"}}
    delete_npc  {"delete_npc": {"name": "Aria"}}

Every call runs in one transaction (or joins the caller's), so a node and its
relationship edges are written together or not at all.

Usage:
    registry = create_registry(manager)
    registry.call("add_npc", {"npc": {"name": "Aria"}})
"""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, TypeVar

import msgspec

from api.manager import ApplicationManager
from api.tools import ToolRegistry, ToolResult
from core.errors import NodeNotFoundError, SchemaError
from core.node_schema import (
    CompiledSchema,
    NodeSchema,
    build_schema_node,
    compile_schema,
    load_schemas,
    plan_schema_update,
)
from core.schemas import EdgeFilter, Node, NodeUpdate, convert, to_builtins


logger = logging.getLogger("memorymesh.schema_tools")

T = TypeVar("T")


class DeleteEntity(msgspec.Struct, kw_only=True):
    name: str


def _wrapper(class_name: str, key: str, value_type: Any):
    """Struct with a single field serialized under `key`."""
    return msgspec.defstruct(
        class_name,
        [("entity", value_type)],
        kw_only=True,
        rename={"entity": key},
    )


def _atomic(manager: ApplicationManager, operation: Callable[[], T]) -> T:
    with manager.transactions.lock:
        if manager.is_in_transaction():
            return operation()
        return manager.with_transaction(operation)


def _find_entity(manager: ApplicationManager, node_type: str, name: str) -> Node:
    for node in manager.open_nodes([name]).nodes:
        if node.name == name and node.node_type == node_type:
            return node
    raise NodeNotFoundError(name)


class SchemaTools:
    """Handlers for one compiled schema."""

    def __init__(self, manager: ApplicationManager, compiled: CompiledSchema):
        self._manager = manager
        self._compiled = compiled

    @property
    def node_type(self) -> str:
        return self._compiled.node_type

    def add(self, args) -> ToolResult:
        raw: Dict[str, Any] = args.entity
        entity = convert(raw, self._compiled.add_type)
        node, edges = build_schema_node(self._compiled, entity, raw)

        def apply():
            self._manager.add_nodes([node])
            if edges:
                self._manager.add_edges(edges)

        _atomic(self._manager, apply)
        return ToolResult(
            success=True,
            message=f"Created {self.node_type}: {node.name}",
            data=to_builtins({"nodes": [node], "edges": edges}),
        )

    def update(self, args) -> ToolResult:
        raw: Dict[str, Any] = args.entity
        entity = convert(raw, self._compiled.update_type)
        m = self._manager

        def apply():
            node = _find_entity(m, self.node_type, entity.name)
            outgoing = m.get_edges(EdgeFilter(source=node.name))
            plan = plan_schema_update(self._compiled, node, entity, raw, outgoing)
            updated = m.update_nodes([NodeUpdate(name=node.name, metadata=plan.metadata)])[0]
            if plan.remove:
                m.delete_edges(plan.remove)
            if plan.add:
                m.add_edges(plan.add)
            return updated, plan

        updated, plan = _atomic(m, apply)
        return ToolResult(
            success=True,
            message=f"Updated {self.node_type}: {updated.name}",
            data=to_builtins({
                "updatedNode": updated,
                "edgeChanges": {"remove": plan.remove, "add": plan.add},
            }),
        )

    def delete(self, args) -> ToolResult:
        name = args.entity.name
        m = self._manager

        def apply():
            _find_entity(m, self.node_type, name)
            return m.delete_nodes([name])

        count = _atomic(m, apply)
        return ToolResult(
            success=True,
            message=f"Deleted {self.node_type}: {name}",
            data={"deletedCount": count},
        )


# =============================================================================
# REGISTRATION
# =============================================================================

def register_schema_tools(
    registry: ToolRegistry,
    manager: ApplicationManager,
    schemas: Dict[str, NodeSchema],
) -> None:
    """
    Register add_/update_/delete_ tools for every schema.

    Raises:
        SchemaError: a generated tool name is already taken
    """
    for node_type, schema in schemas.items():
        compiled = compile_schema(node_type, schema)
        tools = SchemaTools(manager, compiled)
        base = compiled.add_type.__name__
        update_key = f"update_{node_type}"
        delete_key = f"delete_{node_type}"

        try:
            registry.register(
                f"add_{node_type}", schema.description,
                _wrapper(f"Add{base}Args", node_type, Dict[str, Any]),
                tools.add,
                schema_type=_wrapper(f"Add{base}Input", node_type, compiled.add_type),
            )
            registry.register(
                update_key, f"Update an existing {node_type} in the knowledge graph",
                _wrapper(f"Update{base}Args", update_key, Dict[str, Any]),
                tools.update,
                schema_type=_wrapper(f"Update{base}Input", update_key, compiled.update_type),
            )
            registry.register(
                delete_key, f"Delete an existing {node_type} from the knowledge graph",
                _wrapper(f"Delete{base}Args", delete_key, DeleteEntity),
                tools.delete,
            )
        except ValueError as e:
            raise SchemaError(f"Cannot register tools for schema {node_type}: {e}") from e

    logger.debug(f"Registered tools for {len(schemas)} schema(s)")


def create_registry(manager: ApplicationManager) -> ToolRegistry:
    """The built-in tools plus those generated from config.schemas_dir."""
    registry = ToolRegistry(manager)
    schemas = load_schemas(Path(manager.config.schemas_dir))
    register_schema_tools(registry, manager, schemas)
    return registry
