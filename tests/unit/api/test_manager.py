"""
Unit tests for api/manager.py - ApplicationManager

Tests routing between autocommit and the transaction working copy.
"""
import pytest

from core.errors import DuplicateNodeError, NodeNotFoundError, TransactionStateError
from core.schemas import (
    Edge,
    EdgeFilter,
    EdgeUpdate,
    MetadataAddition,
    MetadataDeletion,
    Node,
    NodeUpdate,
)
from infrastructure.event_bus import EventType


# =============================================================================
# AUTOCOMMIT
# =============================================================================

def test_mutation_outside_transaction_is_persisted(manager, storage):
    manager.add_nodes([Node(name="Alice", node_type="Person")])

    assert storage.load_graph().node_names() == ["Alice"]


def test_failed_mutation_leaves_file_untouched(manager, memory_file):
    manager.add_nodes([Node(name="Alice", node_type="Person")])
    before = memory_file.read_bytes()

    with pytest.raises(DuplicateNodeError):
        manager.add_nodes([Node(name="Bob", node_type="Person"), Node(name="Alice", node_type="Person")])

    assert memory_file.read_bytes() == before


def test_full_round_of_operations(manager):
    manager.add_nodes([
        Node(name="Alice", node_type="Person", metadata=["role: admin"]),
        Node(name="Bob", node_type="Person"),
    ])
    manager.add_edges([Edge(source="Alice", target="Bob", edge_type="knows")])
    manager.update_nodes([NodeUpdate(name="Bob", node_type="Engineer")])
    manager.update_edges([EdgeUpdate(source="Alice", target="Bob", edge_type="knows", new_weight=0.9)])
    manager.add_metadata([MetadataAddition(node_name="Bob", contents=["team: core"])])

    assert manager.get_edges(EdgeFilter(source="Alice"))[0].weight == 0.9
    assert manager.get_metadata("Bob", key="team") == ["team: core"]
    assert [n.name for n in manager.search_nodes("engineer").nodes] == ["Bob", "Alice"]
    assert manager.open_nodes(["Alice"]).edges[0].id == "Alice|Bob|knows"

    assert manager.delete_metadata([MetadataDeletion(node_name="Bob", metadata=["team: core"])]) == 1
    assert manager.delete_edges([Edge(source="Alice", target="Bob", edge_type="knows")]) == 1
    assert manager.delete_nodes(["Alice", "Bob"]) == 2
    assert manager.read_graph().is_empty


def test_graph_stats(manager):
    manager.add_nodes([Node(name="A", node_type="t"), Node(name="B", node_type="t")])
    manager.add_edges([Edge(source="A", target="Ghost", edge_type="x")])

    stats = manager.graph_stats()

    assert stats.node_count == 2
    assert stats.dangling_edges == ["A|Ghost|x"]


# =============================================================================
# TRANSACTIONS
# =============================================================================

def test_mutations_inside_transaction_wait_for_commit(manager, storage):
    manager.begin_transaction()
    manager.add_nodes([Node(name="Alice", node_type="Person")])

    assert storage.load_graph().nodes == []
    assert manager.read_graph().node_names() == ["Alice"]
    assert manager.get_current_graph().node_names() == ["Alice"]

    manager.commit()

    assert storage.load_graph().node_names() == ["Alice"]


def test_rollback_discards_transaction_changes(manager, storage):
    manager.add_nodes([Node(name="Alice", node_type="Person")])

    manager.begin_transaction()
    manager.delete_nodes(["Alice"])
    manager.rollback()

    assert manager.read_graph().node_names() == ["Alice"]


def test_with_transaction_rolls_back_on_error(manager):
    """
    Verifies:
    - The error from inside the operation propagates
    - The rollback action ran
    - The node added inside the transaction is gone
    """
    undone = []

    def work():
        manager.add_rollback_action(lambda: undone.append("x"), "undo x")
        manager.add_nodes([Node(name="X", node_type="t")])
        manager.update_nodes([NodeUpdate(name="Missing", node_type="t")])

    with pytest.raises(NodeNotFoundError):
        manager.with_transaction(work)

    assert undone == ["x"]
    assert not manager.is_in_transaction()
    assert manager.read_graph().is_empty


def test_transaction_context_manager_commits(manager, storage):
    with manager.transaction():
        manager.add_nodes([Node(name="A", node_type="t")])
        manager.add_edges([Edge(source="A", target="B", edge_type="x")])
        assert manager.get_edges(EdgeFilter(source="A"))[0].id == "A|B|x"

    assert storage.load_graph().edges[0].id == "A|B|x"


def test_add_rollback_action_outside_transaction_fails(manager):
    with pytest.raises(TransactionStateError):
        manager.add_rollback_action(lambda: None, "nothing")


def test_close_rolls_back_open_transaction(manager, storage):
    manager.begin_transaction()
    manager.add_nodes([Node(name="A", node_type="t")])

    manager.close()

    assert not manager.is_in_transaction()
    assert storage.load_graph().nodes == []


# =============================================================================
# WIRING
# =============================================================================

def test_mutation_log_sees_facade_mutations(manager):
    manager.add_nodes([Node(name="A", node_type="t")])
    with manager.transaction():
        manager.delete_nodes(["A"])

    events = [r.event for r in manager.mutation_log.get_recent_events()]
    assert events == ["afterAddNodes", "afterBeginTransaction", "afterDeleteNodes", "afterCommit"]


def test_events_reach_external_subscribers(manager, bus):
    seen = []
    bus.subscribe(EventType.AFTER_ADD_EDGES, lambda e: seen.append(len(e.payload.edges)))

    manager.add_edges([Edge(source="A", target="B", edge_type="x")])

    assert seen == [1]


def test_manager_builds_storage_from_config(config, memory_file):
    from api.manager import ApplicationManager

    with ApplicationManager(config=config) as manager:
        manager.add_nodes([Node(name="A", node_type="t")])

    assert memory_file.exists()
    assert b'"name":"A"' in memory_file.read_bytes()
