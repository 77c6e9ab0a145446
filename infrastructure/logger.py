"""
MEMORYMESH MUTATION LOGGER - An audit trail of graph changes

Subscribes to the event bus and records every applied mutation and every
transaction boundary.

Architecture:
- MutationLogger: attaches to an EventBus, turns events into records
- EventBuffer: In-memory ring buffer for recent records
- FileLogger: Optional append-only JSON Lines file

Usage:
    mutation_log = MutationLogger(LoggerConfig(log_path=Path("data/mutations.jsonl")))
    mutation_log.attach(bus)

    manager.add_nodes([...])
    for record in mutation_log.get_recent_events(10):
        print(f"{record.timestamp}: {record.event}")

Design:
- Only after* events are recorded, so rejected requests never appear
- Records carry the event payload converted to plain JSON data
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional

import msgspec

from core.schemas import to_builtins
from infrastructure.event_bus import EventBus, EventType, GraphEvent


logger = logging.getLogger("memorymesh.mutations")


MUTATION_EVENTS = (
    EventType.AFTER_ADD_NODES,
    EventType.AFTER_UPDATE_NODES,
    EventType.AFTER_DELETE_NODES,
    EventType.AFTER_ADD_EDGES,
    EventType.AFTER_UPDATE_EDGES,
    EventType.AFTER_DELETE_EDGES,
    EventType.AFTER_ADD_METADATA,
    EventType.AFTER_DELETE_METADATA,
    EventType.AFTER_BEGIN_TRANSACTION,
    EventType.AFTER_COMMIT,
    EventType.AFTER_ROLLBACK,
)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enable_file_log: bool = False       # Append records to log_path
    log_path: Optional[Path] = None     # JSON Lines file
    buffer_size: int = 1000             # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./data/mutations.jsonl")


class MutationRecord(msgspec.Struct, kw_only=True):
    """One recorded event."""
    sequence: int
    timestamp: str
    event: str
    source: str
    payload: Any = None


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Thread-safe ring buffer for recent mutation records.

    Provides O(1) append and O(n) query.
    """

    def __init__(self, max_size: int = 1000):
        self._buffer: deque = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._sequence = 0

    def append(self, record: MutationRecord) -> None:
        with self._lock:
            self._buffer.append(record)

    def get_last(self, n: int) -> List[MutationRecord]:
        """Get the last n records."""
        with self._lock:
            items = list(self._buffer)
            return items[-n:] if len(items) >= n else items

    def get_by_event(self, event: str) -> List[MutationRecord]:
        with self._lock:
            return [r for r in self._buffer if r.event == event]

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    Append-only JSON Lines writer for mutation records.

    The file is opened lazily on the first write and kept open until close().
    """

    def __init__(self, log_path: Path):
        self._log_path = Path(log_path)
        self._file = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

        self._log_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._log_path

    def write(self, record: MutationRecord) -> None:
        """Append one record. I/O errors are logged, not raised."""
        with self._lock:
            try:
                if self._file is None:
                    self._file = open(self._log_path, "ab")
                self._file.write(self._encoder.encode(record) + b"\n")
                self._file.flush()
            except OSError as e:
                logger.error(f"Failed to write mutation log {self._log_path}: {e}")

    def close(self) -> None:
        with self._lock:
            if self._file:
                self._file.close()
                self._file = None

    def read_log(self) -> List[MutationRecord]:
        """Read every record back. Unreadable lines are skipped."""
        if not self._log_path.exists():
            return []

        records = []
        decoder = msgspec.json.Decoder(type=MutationRecord)

        with open(self._log_path, "rb") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(decoder.decode(line))
                except msgspec.DecodeError as e:
                    logger.warning(f"Skipping mutation log line {line_number}: {e}")

        return records


# =============================================================================
# MUTATION LOGGER
# =============================================================================

class MutationLogger:
    """
    Records applied mutations published on an EventBus.

    Thread-safe: the buffer and file writer each hold their own lock.

    Usage:
        mutation_log = MutationLogger()
        mutation_log.attach(bus)
        recent = mutation_log.get_recent_events(100)
        mutation_log.detach()
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()

        self._buffer = EventBuffer(self.config.buffer_size)
        self._file_logger: Optional[FileLogger] = None
        if self.config.enable_file_log and self.config.log_path:
            self._file_logger = FileLogger(self.config.log_path)

        self._unsubscribers: List[Callable[[], None]] = []
        self._subscribers: List[Callable[[MutationRecord], None]] = []

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # BUS ATTACHMENT
    # =========================================================================

    def attach(self, bus: EventBus) -> None:
        """Start recording MUTATION_EVENTS published on `bus`."""
        self.detach()
        for event_type in MUTATION_EVENTS:
            self._unsubscribers.append(bus.subscribe(event_type, self.record))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    @property
    def attached(self) -> bool:
        return bool(self._unsubscribers)

    def record(self, event: GraphEvent) -> MutationRecord:
        """Turn a bus event into a MutationRecord and store it."""
        record = MutationRecord(
            sequence=self._buffer.next_sequence(),
            timestamp=self._now(),
            event=event.type.value,
            source=event.source,
            payload=to_builtins(event.payload),
        )
        self._emit(record)
        return record

    def _emit(self, record: MutationRecord) -> None:
        self._buffer.append(record)

        if self._file_logger:
            self._file_logger.write(record)

        for subscriber in self._subscribers:
            try:
                subscriber(record)
            except Exception as e:
                logger.error(f"Mutation subscriber error: {e}", exc_info=True)

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationRecord]:
        return self._buffer.get_last(n)

    def get_events_by_type(self, event_type: EventType) -> List[MutationRecord]:
        return self._buffer.get_by_event(EventType(event_type).value)

    def read_log(self) -> List[MutationRecord]:
        """Records persisted to the log file, or [] when file logging is off."""
        if self._file_logger is None:
            return []
        return self._file_logger.read_log()

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationRecord], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationRecord], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Detach from the bus and close the log file."""
        self.detach()
        if self._file_logger:
            self._file_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
