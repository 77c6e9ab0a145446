"""
Capability interfaces for the graph store.

Structural protocols: any object with the right methods satisfies them, so
the concrete classes (JsonLineStorage, GraphOperations, SearchOperations,
TransactionManager) do not inherit from anything and tests can pass in
hand-built fakes.
"""
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from core.edge_index import EdgeIndex
from core.schemas import (
    Edge,
    EdgeFilter,
    EdgeUpdate,
    Graph,
    MetadataAddition,
    MetadataDeletion,
    MetadataResult,
    Node,
    NodeUpdate,
)

T = TypeVar("T")


@runtime_checkable
class GraphStorage(Protocol):
    """Whole-graph persistence."""

    @property
    def edge_index(self) -> EdgeIndex: ...

    def load_graph(self) -> Graph: ...

    def save_graph(self, graph: Graph) -> None: ...

    def load_edges_by_ids(self, ids: Sequence[str]) -> List[Edge]: ...


@runtime_checkable
class GraphMutator(Protocol):
    """CRUD over a supplied graph snapshot and its edge index."""

    def add_nodes(self, graph: Graph, index: EdgeIndex, nodes: List[Node]) -> List[Node]: ...

    def update_nodes(self, graph: Graph, index: EdgeIndex, updates: List[NodeUpdate]) -> List[Node]: ...

    def delete_nodes(self, graph: Graph, index: EdgeIndex, names: List[str]) -> int: ...

    def add_edges(self, graph: Graph, index: EdgeIndex, edges: List[Edge]) -> List[Edge]: ...

    def update_edges(self, graph: Graph, index: EdgeIndex, updates: List[EdgeUpdate]) -> List[Edge]: ...

    def delete_edges(self, graph: Graph, index: EdgeIndex, edges: List[Edge]) -> int: ...

    def get_edges(self, graph: Graph, index: EdgeIndex, edge_filter: Optional[EdgeFilter] = None) -> List[Edge]: ...

    def add_metadata(self, graph: Graph, index: EdgeIndex, additions: List[MetadataAddition]) -> List[MetadataResult]: ...

    def delete_metadata(self, graph: Graph, index: EdgeIndex, deletions: List[MetadataDeletion]) -> int: ...


@runtime_checkable
class Searcher(Protocol):
    """Read-only queries over a graph snapshot."""

    def read_graph(self, graph: Graph) -> Graph: ...

    def search_nodes(self, graph: Graph, index: EdgeIndex, query: str) -> Graph: ...

    def open_nodes(self, graph: Graph, index: EdgeIndex, names: List[str]) -> Graph: ...


@runtime_checkable
class Transactor(Protocol):
    """Single-active-transaction lifecycle."""

    def begin_transaction(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def with_transaction(self, operation: Callable[[], T]) -> T: ...

    def add_rollback_action(self, action: Callable[[], None], description: str) -> None: ...

    def is_in_transaction(self) -> bool: ...

    def get_current_graph(self) -> Graph: ...
