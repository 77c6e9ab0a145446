"""
Edge index: derived lookup tables over a graph's edges.

Three mappings, each from a key to the set of edge keys (from, to, edgeType):
    by_from  - source node name -> edge keys
    by_to    - target node name -> edge keys
    by_type  - edge type        -> edge keys

Entries are the edge key tuples, not the "from|to|edgeType" id strings:
node names may contain "|", so two different edges can share an id string
but never a key.

The index is never persisted. It is rebuilt whenever a graph is loaded and
kept in step with every edge insert/remove performed through GraphOperations.
Invariant: each indexed edge has exactly one entry in each of the three maps.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from core.schemas import Edge, EdgeFilter


EdgeKey = Tuple[str, str, str]


class EdgeIndex:
    """By-source / by-target / by-type index of edge keys."""

    def __init__(self):
        self.by_from: Dict[str, Set[EdgeKey]] = defaultdict(set)
        self.by_to: Dict[str, Set[EdgeKey]] = defaultdict(set)
        self.by_type: Dict[str, Set[EdgeKey]] = defaultdict(set)

    @classmethod
    def from_edges(cls, edges: Iterable[Edge]) -> "EdgeIndex":
        index = cls()
        index.rebuild(edges)
        return index

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def index_edge(self, edge: Edge) -> None:
        """Add an edge to all three mappings."""
        key = edge.key
        self.by_from[edge.source].add(key)
        self.by_to[edge.target].add(key)
        self.by_type[edge.edge_type].add(key)

    def remove_edge(self, edge: Edge) -> None:
        """Remove an edge from all three mappings. Unknown edges are ignored."""
        key = edge.key
        self._discard(self.by_from, edge.source, key)
        self._discard(self.by_to, edge.target, key)
        self._discard(self.by_type, edge.edge_type, key)

    def clear(self) -> None:
        self.by_from.clear()
        self.by_to.clear()
        self.by_type.clear()

    def rebuild(self, edges: Iterable[Edge]) -> None:
        self.clear()
        for edge in edges:
            self.index_edge(edge)

    @staticmethod
    def _discard(mapping: Dict[str, Set[EdgeKey]], name: str, key: EdgeKey) -> None:
        keys = mapping.get(name)
        if keys is None:
            return
        keys.discard(key)
        if not keys:
            del mapping[name]

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def __len__(self) -> int:
        return sum(len(keys) for keys in self.by_type.values())

    def keys_touching(self, names: Iterable[str]) -> Set[EdgeKey]:
        """Keys of every edge whose source or target is one of `names`."""
        keys: Set[EdgeKey] = set()
        for name in names:
            keys |= self.by_from.get(name, set())
            keys |= self.by_to.get(name, set())
        return keys

    def find(self, edge_filter: Optional[EdgeFilter]) -> Optional[Set[EdgeKey]]:
        """
        Resolve a filter to a set of edge keys.

        Returns None for an empty filter, meaning "every edge"; callers then
        skip the index entirely.
        """
        if edge_filter is None or edge_filter.is_empty:
            return None

        candidates: List[Set[EdgeKey]] = []
        if edge_filter.source is not None:
            candidates.append(self.by_from.get(edge_filter.source, set()))
        if edge_filter.target is not None:
            candidates.append(self.by_to.get(edge_filter.target, set()))
        if edge_filter.edge_type is not None:
            candidates.append(self.by_type.get(edge_filter.edge_type, set()))

        # Intersect smallest-first
        candidates.sort(key=len)
        result = set(candidates[0])
        for keys in candidates[1:]:
            result &= keys
        return result

    def __repr__(self) -> str:
        return f"EdgeIndex(edges={len(self)}, sources={len(self.by_from)}, types={len(self.by_type)})"
