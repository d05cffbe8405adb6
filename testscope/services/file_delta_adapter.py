"""Normalize raw pull request file entries into ``FileDelta`` records.

Bitbucket Server and Cloud describe a changed file differently, and older
payloads nest the path in varying shapes. This is the only place that knows
about those shapes.
"""
from typing import Any, Dict, Iterable, List, Optional

import structlog

from testscope.models.schemas import UNKNOWN_PATH, ChangeKind, FileDelta

logger = structlog.get_logger()

_PATH_OBJECT_SKIP_KEYS = ("parent", "name", "extension", "components")

_KIND_BY_TYPE = {
    # Bitbucket Server change types
    "ADD": ChangeKind.ADD,
    "COPY": ChangeKind.ADD,
    "MODIFY": ChangeKind.MODIFY,
    "MOVE": ChangeKind.MODIFY,
    "DELETE": ChangeKind.DELETE,
    # Bitbucket Cloud diffstat statuses
    "ADDED": ChangeKind.ADD,
    "MODIFIED": ChangeKind.MODIFY,
    "RENAMED": ChangeKind.MODIFY,
    "REMOVED": ChangeKind.DELETE,
}


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _path_from_object(path: Dict[str, Any]) -> Optional[str]:
    # Server serializes the path as {"toString": "a/b.ts", "components": [...], ...}
    for key in ("toString", "value", "text"):
        found = _non_empty(path.get(key))
        if found:
            return found
    for key, value in path.items():
        if key in _PATH_OBJECT_SKIP_KEYS:
            continue
        found = _non_empty(value)
        if found:
            return found
    return None


def _nested_path(side: Any) -> Optional[str]:
    if isinstance(side, dict):
        return _non_empty(side.get("path"))
    return None


def resolve_path(raw: Dict[str, Any]) -> str:
    """First usable path in fallback order, or the unknown sentinel."""
    path = raw.get("path")
    found = _non_empty(path)
    if not found and isinstance(path, dict):
        found = _path_from_object(path)
    if not found:
        found = _nested_path(raw.get("new")) or _nested_path(raw.get("old"))
    return found or UNKNOWN_PATH


def _count(raw: Dict[str, Any], *keys: str) -> int:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, int) and value >= 0:
            return value
    return 0


def change_kind(raw: Dict[str, Any]) -> ChangeKind:
    # Cloud diffstat entries carry type "diffstat", so fall through to status
    for key in ("type", "status"):
        kind = _KIND_BY_TYPE.get(str(raw.get(key) or "").upper())
        if kind:
            return kind
    return ChangeKind.MODIFY


def normalize_file_entry(raw: Any) -> FileDelta:
    """Never raises: unusable entries come back with the ``[unknown]`` path."""
    if not isinstance(raw, dict):
        logger.warning("Unrecognized file entry", entry_type=type(raw).__name__)
        return FileDelta(path=UNKNOWN_PATH)

    path = resolve_path(raw)
    if path == UNKNOWN_PATH:
        logger.warning("Could not resolve path for changed file", keys=sorted(raw.keys()))

    return FileDelta(
        path=path,
        lines_added=_count(raw, "linesAdded", "lines_added"),
        lines_removed=_count(raw, "linesRemoved", "lines_removed"),
        change_kind=change_kind(raw),
    )


def normalize_file_entries(entries: Iterable[Any]) -> List[FileDelta]:
    return [normalize_file_entry(entry) for entry in entries or []]
