"""
MEMORYMESH CORE - The graph model and the operations over it.

This package provides:
- schemas: Node / Edge / Graph records and request structs
- errors: the GraphError hierarchy
- graph_ops, search, analytics: operations on a graph snapshot
- transaction: begin / commit / rollback over a working copy
"""

from core.errors import (
    GraphError,
    NotFoundError,
    NodeNotFoundError,
    EdgeNotFoundError,
    AlreadyExistsError,
    DuplicateNodeError,
    DuplicateEdgeError,
    InvalidArgumentError,
    TransactionStateError,
    TransactionError,
    StorageError,
)
from core.schemas import (
    Node,
    Edge,
    Graph,
    NodeUpdate,
    EdgeUpdate,
    EdgeFilter,
    MetadataAddition,
    MetadataDeletion,
    MetadataResult,
)

__all__ = [
    # Errors
    "GraphError",
    "NotFoundError",
    "NodeNotFoundError",
    "EdgeNotFoundError",
    "AlreadyExistsError",
    "DuplicateNodeError",
    "DuplicateEdgeError",
    "InvalidArgumentError",
    "TransactionStateError",
    "TransactionError",
    "StorageError",
    # Records
    "Node",
    "Edge",
    "Graph",
    "NodeUpdate",
    "EdgeUpdate",
    "EdgeFilter",
    "MetadataAddition",
    "MetadataDeletion",
    "MetadataResult",
]
