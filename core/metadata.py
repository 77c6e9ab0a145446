"""
Metadata helpers.

Node metadata is a list of free-text strings. By convention each entry reads
"key: value"; these helpers parse and filter that convention without
requiring it. Entries without a colon are plain notes and are skipped by the
key-based lookups rather than rejected.
"""
from typing import Dict, Iterable, List

import msgspec

from core.errors import InvalidArgumentError


class MetadataEntry(msgspec.Struct, frozen=True):
    key: str
    value: str


def parse_metadata_entry(entry: str) -> MetadataEntry:
    """Split "key: value" at the first colon. Raises on entries without one."""
    colon = entry.find(":")
    if colon == -1:
        raise InvalidArgumentError(f"Invalid metadata format: {entry}")
    return MetadataEntry(key=entry[:colon].strip(), value=entry[colon + 1:].strip())


def format_metadata_value(value) -> str:
    """Lists become a comma-separated string; anything else goes through str()."""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def format_metadata_entry(key: str, value) -> str:
    return f"{key}: {format_metadata_value(value)}"


def is_structured(entry: str) -> bool:
    return ":" in entry


def new_entries(existing: Iterable[str], contents: Iterable[str]) -> List[str]:
    """
    The strings in `contents` not already in `existing`, in request order.

    Repeats inside `contents` are collapsed too, so adding ["a", "a", "b"] to
    ["a"] yields ["b"].
    """
    seen = set(existing)
    added: List[str] = []
    for entry in contents:
        if entry not in seen:
            seen.add(entry)
            added.append(entry)
    return added


def filter_by_key(metadata: Iterable[str], key: str) -> List[str]:
    return [
        entry for entry in metadata
        if is_structured(entry) and parse_metadata_entry(entry).key == key
    ]


def metadata_map(metadata: Iterable[str]) -> Dict[str, str]:
    """
    lower-cased key -> value for structured entries; later keys win.

    Plain notes are left out. Keys are folded so "Role: x" and "role: y"
    address the same field.
    """
    result: Dict[str, str] = {}
    for entry in metadata:
        if is_structured(entry):
            parsed = parse_metadata_entry(entry)
            result[parsed.key.lower()] = parsed.value
    return result
