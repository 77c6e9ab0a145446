"""
Pytest configuration and shared fixtures for the MemoryMesh test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def memory_file(tmp_path):
    """Path to a memory file inside a fresh temporary directory (not created yet)."""
    return tmp_path / "data" / "memory.jsonl"


@pytest.fixture
def storage(memory_file):
    """Provide a JsonLineStorage over an empty temporary file."""
    from infrastructure.storage import JsonLineStorage
    return JsonLineStorage(memory_file)


@pytest.fixture
def bus():
    """Provide a fresh EventBus."""
    from infrastructure.event_bus import EventBus
    return EventBus()


@pytest.fixture
def recorded_events(bus):
    """Subscribe to every event type and collect (type, payload) pairs in order."""
    from infrastructure.event_bus import EventType

    events = []
    for event_type in EventType:
        bus.subscribe(event_type, lambda e: events.append((e.type, e.payload)))
    return events


@pytest.fixture
def config(tmp_path, memory_file):
    """Config pointing every file at the temporary directory."""
    from infrastructure.config import MemoryMeshConfig
    return MemoryMeshConfig(
        memory_file=str(memory_file),
        mutation_log_path=str(tmp_path / "data" / "mutations.jsonl"),
        schemas_dir=str(tmp_path / "schemas"),
    )


@pytest.fixture
def manager(storage, bus, config):
    """Provide an ApplicationManager over the temporary storage."""
    from api.manager import ApplicationManager
    manager = ApplicationManager(storage=storage, event_bus=bus, config=config)
    yield manager
    manager.close()


@pytest.fixture
def graph():
    """Provide an empty Graph."""
    from core.schemas import Graph
    return Graph()


@pytest.fixture
def sample_graph():
    """
    Provide a small graph:

        Alice -knows-> Bob -works_at-> Acme
        Carol (isolated)
    """
    from core.schemas import Graph, Node, Edge

    return Graph(
        nodes=[
            Node(name="Alice", node_type="Person", metadata=["role: admin", "likes tea"]),
            Node(name="Bob", node_type="Person", metadata=["role: dev"]),
            Node(name="Acme", node_type="Company"),
            Node(name="Carol", node_type="Person"),
        ],
        edges=[
            Edge(source="Alice", target="Bob", edge_type="knows", weight=0.8),
            Edge(source="Bob", target="Acme", edge_type="works_at"),
        ],
    )
