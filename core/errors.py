"""
MEMORYMESH ERRORS - The failure vocabulary of the graph store.

Every failure the core raises is a GraphError. The subclasses map onto the
error kinds callers are expected to branch on:

    NotFoundError          missing node/edge on lookup, update or reference
    AlreadyExistsError     duplicate node name or duplicate edge key
    InvalidArgumentError   malformed shape, missing required field
    TransactionStateError  begin-while-active, operate-while-idle
    StorageError           I/O failure on the backing file
    SchemaError            unreadable or malformed node schema file

Usage:
    try:
        manager.add_nodes([node])
    except AlreadyExistsError as e:
        ...
"""
from typing import Optional


class GraphError(Exception):
    """Base exception for graph operations."""
    pass


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(GraphError):
    """Raised when a referenced node or edge is absent."""
    pass


class NodeNotFoundError(NotFoundError):
    """Raised when a node name is not in the graph."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Node not found: {name}")


class EdgeNotFoundError(NotFoundError):
    """Raised when an edge key is not in the graph."""
    def __init__(self, source: str, target: str, edge_type: str):
        self.source = source
        self.target = target
        self.edge_type = edge_type
        super().__init__(f"Edge not found: {source} -> {target} ({edge_type})")


# =============================================================================
# ALREADY EXISTS
# =============================================================================

class AlreadyExistsError(GraphError):
    """Raised when a unique key would be duplicated."""
    pass


class DuplicateNodeError(AlreadyExistsError):
    """Raised when attempting to add a node with an existing name."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Node already exists: {name}. Consider updating existing node."
        )


class DuplicateEdgeError(AlreadyExistsError):
    """Raised when an edge with the same (from, to, edgeType) exists."""
    def __init__(self, source: str, target: str, edge_type: str):
        self.source = source
        self.target = target
        self.edge_type = edge_type
        super().__init__(f"Edge already exists: {source} -> {target} ({edge_type})")


# =============================================================================
# ARGUMENTS, TRANSACTIONS, STORAGE
# =============================================================================

class InvalidArgumentError(GraphError):
    """Raised when a request is malformed or misses a required field."""
    pass


class TransactionStateError(GraphError):
    """Raised when a transaction operation is invalid in the current state."""
    pass


class TransactionError(GraphError):
    """Raised when a transaction could not be started or committed."""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class StorageError(GraphError):
    """Raised when the backing store cannot be read or written."""
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class SchemaError(GraphError):
    """Raised when a node schema file cannot be loaded."""
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)
