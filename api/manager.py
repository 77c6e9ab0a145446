"""
MEMORYMESH APPLICATION MANAGER - The single entry point for callers

Wires storage, the mutation and search layers, the transaction manager, the
event bus and the mutation logger together, and routes every call to the
right graph snapshot:

    outside a transaction: load -> operate -> save (autocommit)
    inside a transaction:  operate on the working copy; commit() saves it

Reads never save. Every call runs under the transaction manager's lock.

Usage:
    manager = ApplicationManager(config=load_config())
    manager.add_nodes([Node(name="Alice", node_type="Person")])

    with manager.transaction():
        manager.add_edges([Edge(source="Alice", target="Bob", edge_type="knows")])
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, TypeVar

from core.analytics import GraphStats, graph_stats
from core.edge_index import EdgeIndex
from core.graph_ops import GraphOperations
from core.interfaces import GraphStorage
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
from core.search import SearchOperations
from core.transaction import TransactionManager
from infrastructure.config import MemoryMeshConfig
from infrastructure.event_bus import EventBus
from infrastructure.logger import LoggerConfig, MutationLogger
from infrastructure.storage import JsonLineStorage


logger = logging.getLogger("memorymesh.manager")

T = TypeVar("T")


class ApplicationManager:
    """Facade over graph, search and transaction operations."""

    def __init__(
        self,
        storage: Optional[GraphStorage] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[MemoryMeshConfig] = None,
    ):
        self.config = config or MemoryMeshConfig()
        self.event_bus = event_bus or EventBus()
        self.storage = storage or JsonLineStorage(self.config.memory_file)

        self.graph_ops = GraphOperations(event_bus=self.event_bus)
        self.search_ops = SearchOperations(event_bus=self.event_bus)
        self.transactions = TransactionManager(self.storage, event_bus=self.event_bus)

        self.mutation_log = MutationLogger(LoggerConfig(
            enable_file_log=self.config.mutation_log_enabled,
            log_path=Path(self.config.mutation_log_path),
            buffer_size=self.config.mutation_buffer_size,
        ))
        self.mutation_log.attach(self.event_bus)

    # =========================================================================
    # ROUTING
    # =========================================================================

    def _write(self, operation: Callable[[Graph, EdgeIndex], T]) -> T:
        with self.transactions.lock:
            if self.transactions.is_in_transaction():
                return operation(
                    self.transactions.get_current_graph(),
                    self.transactions.get_current_index(),
                )
            graph = self.storage.load_graph()
            result = operation(graph, self.storage.edge_index)
            self.storage.save_graph(graph)
            return result

    def _read(self, operation: Callable[[Graph, EdgeIndex], T]) -> T:
        with self.transactions.lock:
            if self.transactions.is_in_transaction():
                return operation(
                    self.transactions.get_current_graph(),
                    self.transactions.get_current_index(),
                )
            graph = self.storage.load_graph()
            return operation(graph, self.storage.edge_index)

    # =========================================================================
    # NODES
    # =========================================================================

    def add_nodes(self, nodes: List[Node]) -> List[Node]:
        return self._write(lambda g, i: self.graph_ops.add_nodes(g, i, nodes))

    def update_nodes(self, updates: List[NodeUpdate]) -> List[Node]:
        return self._write(lambda g, i: self.graph_ops.update_nodes(g, i, updates))

    def delete_nodes(self, names: List[str]) -> int:
        return self._write(lambda g, i: self.graph_ops.delete_nodes(g, i, names))

    # =========================================================================
    # EDGES
    # =========================================================================

    def add_edges(self, edges: List[Edge]) -> List[Edge]:
        return self._write(lambda g, i: self.graph_ops.add_edges(g, i, edges))

    def update_edges(self, updates: List[EdgeUpdate]) -> List[Edge]:
        return self._write(lambda g, i: self.graph_ops.update_edges(g, i, updates))

    def delete_edges(self, edges: List[Edge]) -> int:
        return self._write(lambda g, i: self.graph_ops.delete_edges(g, i, edges))

    def get_edges(self, edge_filter: Optional[EdgeFilter] = None) -> List[Edge]:
        return self._read(lambda g, i: self.graph_ops.get_edges(g, i, edge_filter))

    # =========================================================================
    # METADATA
    # =========================================================================

    def add_metadata(self, additions: List[MetadataAddition]) -> List[MetadataResult]:
        return self._write(lambda g, i: self.graph_ops.add_metadata(g, i, additions))

    def delete_metadata(self, deletions: List[MetadataDeletion]) -> int:
        return self._write(lambda g, i: self.graph_ops.delete_metadata(g, i, deletions))

    def get_metadata(self, name: str, key: Optional[str] = None) -> List[str]:
        return self._read(lambda g, i: self.graph_ops.get_metadata(g, name, key))

    # =========================================================================
    # SEARCH
    # =========================================================================

    def read_graph(self) -> Graph:
        return self._read(lambda g, i: self.search_ops.read_graph(g))

    def search_nodes(self, query: str) -> Graph:
        return self._read(lambda g, i: self.search_ops.search_nodes(g, i, query))

    def open_nodes(self, names: List[str]) -> Graph:
        return self._read(lambda g, i: self.search_ops.open_nodes(g, i, names))

    def graph_stats(self) -> GraphStats:
        return self._read(lambda g, i: graph_stats(g))

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def begin_transaction(self) -> None:
        self.transactions.begin_transaction()

    def commit(self) -> None:
        self.transactions.commit()

    def rollback(self) -> None:
        self.transactions.rollback()

    def with_transaction(self, operation: Callable[[], T]) -> T:
        return self.transactions.with_transaction(operation)

    @contextmanager
    def transaction(self) -> Iterator["ApplicationManager"]:
        with self.transactions.transaction():
            yield self

    def add_rollback_action(self, action: Callable[[], None], description: str) -> None:
        self.transactions.add_rollback_action(action, description)

    def is_in_transaction(self) -> bool:
        return self.transactions.is_in_transaction()

    def get_current_graph(self) -> Graph:
        return self.transactions.get_current_graph()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Roll back an open transaction and release the mutation log."""
        if self.transactions.is_in_transaction():
            logger.warning("Closing with an open transaction; rolling back")
            self.transactions.rollback()
        self.mutation_log.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
