"""
MEMORYMESH STORAGE - JSON Lines persistence for the graph

One record per line, tagged by its "type" field:
    {"type":"node","name":"Alice","nodeType":"Person","metadata":[]}
    {"type":"edge","from":"Alice","to":"Bob","edgeType":"knows"}

The whole graph is read on every load and the whole file is rewritten on
every save, nodes first then edges. Nothing is cached between calls; the
only derived state kept here is the EdgeIndex, rebuilt on each load and save.

A save is as atomic as a single file write: a crash mid-write can leave a
truncated file, whose damaged lines are then skipped on the next load.
"""
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Sequence, Union

import msgspec

from core.edge_index import EdgeIndex
from core.errors import StorageError
from core.schemas import Edge, Graph, Node, decode_record, encode_record


logger = logging.getLogger("memorymesh.storage")


class JsonLineStorage:
    """
    GraphStorage backed by a JSON Lines file.

    The file and its parent directory are created on first use.
    """

    def __init__(self, memory_file: Union[str, Path]):
        self._path = Path(memory_file)
        self._edge_index = EdgeIndex()
        self._initialized = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def edge_index(self) -> EdgeIndex:
        """Index of the edges from the most recent load or save."""
        return self._edge_index

    def _ensure_storage_exists(self) -> None:
        if self._initialized:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                self._path.touch()
        except OSError as e:
            raise StorageError(f"Failed to initialize storage: {e}", path=str(self._path)) from e
        self._initialized = True
        logger.debug(f"Storage ready at {self._path}")

    # =========================================================================
    # LOAD / SAVE
    # =========================================================================

    def load_graph(self) -> Graph:
        """
        Read every record and rebuild the edge index.

        Lines that are not valid records are logged and skipped.

        Raises:
            StorageError: the file exists but cannot be read
        """
        self._ensure_storage_exists()

        try:
            with open(self._path, "rb") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            self._edge_index.clear()
            return Graph()
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}", path=str(self._path)) from e

        graph = Graph()
        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = decode_record(line)
            except msgspec.DecodeError as e:
                logger.warning(f"Skipping line {line_number} of {self._path}: {e}")
                continue
            if isinstance(record, Node):
                graph.nodes.append(record)
            else:
                graph.edges.append(record)

        self._edge_index.rebuild(graph.edges)
        return graph

    def save_graph(self, graph: Graph) -> None:
        """
        Overwrite the file with `graph` and rebuild the edge index.

        Raises:
            StorageError: the file cannot be written
        """
        self._ensure_storage_exists()

        lines = [encode_record(node) for node in graph.nodes]
        lines.extend(encode_record(edge) for edge in graph.edges)
        data = b"\n".join(lines) + (b"\n" if lines else b"")

        try:
            with open(self._path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}", path=str(self._path)) from e

        self._edge_index.rebuild(graph.edges)
        logger.debug(f"Saved {len(graph.nodes)} nodes and {len(graph.edges)} edges")

    def load_edges_by_ids(self, ids: Sequence[str]) -> List[Edge]:
        """
        Edges for `ids` in request order; unknown ids are omitted.

        An id string can belong to more than one edge when node names contain
        "|"; every edge with that id is returned, in graph order.
        """
        graph = self.load_graph()
        by_id: Dict[str, List[Edge]] = defaultdict(list)
        for edge in graph.edges:
            by_id[edge.id].append(edge)

        result: List[Edge] = []
        for eid in ids:
            result.extend(by_id.get(eid, ()))
        return result
