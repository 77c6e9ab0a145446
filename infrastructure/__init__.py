"""
MEMORYMESH INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML / environment configuration
- event_bus: before/after notifications around graph operations
- logger: Mutation audit trail (ring buffer + JSON Lines file)
- storage: JSON Lines persistence with a derived edge index
"""

from infrastructure.config import MemoryMeshConfig, load_config
from infrastructure.event_bus import EventBus, EventType, GraphEvent

__all__ = [
    "MemoryMeshConfig",
    "load_config",
    "EventBus",
    "EventType",
    "GraphEvent",
]
