"""
MEMORYMESH TRANSACTIONS - One working copy at a time

Lifecycle:
    Idle --begin_transaction()--> Active --commit()/rollback()--> Idle

begin_transaction() loads a fresh Graph from storage and indexes it. While
Active, the facade routes every operation to that working copy. commit() saves
the working copy; rollback() runs the registered compensating actions newest
first and discards the working copy.

Usage:
    tm = TransactionManager(storage, event_bus=bus)

    with tm.transaction():
        ops.add_nodes(tm.get_current_graph(), tm.get_current_index(), nodes)

    # or
    tm.with_transaction(lambda: ...)
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, TypeVar

from core.edge_index import EdgeIndex
from core.errors import GraphError, TransactionError, TransactionStateError
from core.interfaces import GraphStorage
from core.schemas import Graph
from infrastructure.event_bus import EmptyPayload, EventBus, EventType, RollbackPayload


logger = logging.getLogger("memorymesh.transaction")

T = TypeVar("T")


@dataclass
class RollbackAction:
    """A compensating action registered during a transaction."""
    action: Callable[[], None]
    description: str


class TransactionManager:
    """
    Single-active-transaction manager over a GraphStorage.

    Thread Safety:
        State transitions hold an RLock, so begin/commit/rollback from
        different threads cannot interleave. There is still only one
        transaction per manager.
    """

    def __init__(self, storage: GraphStorage, event_bus: Optional[EventBus] = None):
        self._storage = storage
        self._event_bus = event_bus
        self._lock = threading.RLock()
        self._active = False
        self._graph = Graph()
        self._index = EdgeIndex()
        self._rollback_actions: List[RollbackAction] = []

    def _emit(self, event_type: EventType, payload) -> None:
        if self._event_bus is not None:
            self._event_bus.emit(event_type, payload, source="transaction")

    def _require_active(self, operation: str) -> None:
        if not self._active:
            raise TransactionStateError(f"No active transaction: cannot {operation}")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def begin_transaction(self) -> None:
        """
        Open a transaction on a freshly loaded working copy.

        Raises:
            TransactionStateError: a transaction is already active
            TransactionError: the graph could not be loaded (stays Idle)
        """
        with self._lock:
            if self._active:
                raise TransactionStateError("Transaction already in progress")

            self._emit(EventType.BEFORE_BEGIN_TRANSACTION, EmptyPayload())
            try:
                graph = self._storage.load_graph()
            except Exception as e:
                raise TransactionError(f"Failed to begin transaction: {e}", cause=e) from e

            self._graph = graph
            self._index = EdgeIndex.from_edges(graph.edges)
            self._rollback_actions = []
            self._active = True
            logger.debug(
                f"Transaction begun ({len(graph.nodes)} nodes, {len(graph.edges)} edges)"
            )
            self._emit(EventType.AFTER_BEGIN_TRANSACTION, EmptyPayload())

    def commit(self) -> None:
        """
        Persist the working copy and return to Idle.

        If saving fails the transaction stays Active so the caller can roll
        back.

        Raises:
            TransactionStateError: no active transaction
            TransactionError: the working copy could not be saved
        """
        with self._lock:
            self._require_active("commit")

            self._emit(EventType.BEFORE_COMMIT, EmptyPayload())
            try:
                self._storage.save_graph(self._graph)
            except (GraphError, OSError) as e:
                raise TransactionError(f"Failed to commit transaction: {e}", cause=e) from e

            self._rollback_actions = []
            self._active = False
            logger.debug("Transaction committed")
            self._emit(EventType.AFTER_COMMIT, EmptyPayload())

    def rollback(self) -> None:
        """
        Run rollback actions newest first, then discard the working copy.

        A failing action is logged and the remaining actions still run.

        Raises:
            TransactionStateError: no active transaction
        """
        with self._lock:
            self._require_active("rollback")

            actions = list(reversed(self._rollback_actions))
            self._emit(
                EventType.BEFORE_ROLLBACK,
                RollbackPayload(descriptions=[a.description for a in actions]),
            )

            for rollback_action in actions:
                try:
                    rollback_action.action()
                except Exception as e:
                    logger.error(
                        f"Rollback action failed: {rollback_action.description}: {e}",
                        exc_info=True
                    )

            self._rollback_actions = []
            self._graph = Graph()
            self._index = EdgeIndex()
            self._active = False
            logger.debug(f"Transaction rolled back ({len(actions)} action(s) run)")
            self._emit(EventType.AFTER_ROLLBACK, EmptyPayload())

    def add_rollback_action(self, action: Callable[[], None], description: str) -> None:
        """Register a compensating action. Only valid while Active."""
        with self._lock:
            self._require_active("add rollback action")
            self._rollback_actions.append(RollbackAction(action=action, description=description))

    # =========================================================================
    # SCOPED HELPERS
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator["TransactionManager"]:
        """
        Begin on entry, commit on clean exit, roll back and re-raise on error.
        """
        self.begin_transaction()
        try:
            yield self
            self.commit()
        except Exception:
            if self._active:
                self.rollback()
            raise

    def with_transaction(self, operation: Callable[[], T]) -> T:
        """Run `operation` inside a transaction and return its result."""
        with self.transaction():
            return operation()

    # =========================================================================
    # STATE
    # =========================================================================

    def is_in_transaction(self) -> bool:
        return self._active

    def get_current_graph(self) -> Graph:
        """The working copy; an empty Graph when no transaction has begun."""
        return self._graph

    def get_current_index(self) -> EdgeIndex:
        return self._index

    @property
    def rollback_actions(self) -> List[RollbackAction]:
        return list(self._rollback_actions)

    @property
    def lock(self) -> threading.RLock:
        return self._lock
