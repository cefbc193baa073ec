from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .deltas import Delta

logger = logging.getLogger(__name__)

ROOT_LABEL = "(root)"


def escape_path_segment(segment: Any) -> str:
    """Escape one key for dot-path display ('gpt-3.5' -> 'gpt-3\\.5')."""
    return str(segment).replace("\\", "\\\\").replace(".", "\\.")


def join_path(keys: Sequence[Any]) -> str:
    if not keys:
        return ROOT_LABEL
    return ".".join(escape_path_segment(k) for k in keys)


def split_path(path: Optional[str]) -> List[str]:
    """Split a dot path on unescaped dots. ``(root)`` and empty paths give ``[]``."""
    if path is None or path in ("", ROOT_LABEL):
        return []

    keys: List[str] = []
    current: List[str] = []
    chars = iter(str(path))
    for ch in chars:
        if ch == "\\":
            # Escaped char is literal; a trailing backslash stays as-is.
            current.append(next(chars, "\\"))
        elif ch == ".":
            keys.append("".join(current))
            current = []
        else:
            current.append(ch)
    keys.append("".join(current))
    return [k for k in keys if k != ""]


DeltaIndex = Mapping[str, Delta]


def index_deltas(deltas: Sequence[Delta]) -> Dict[str, Delta]:
    """Map each opId to the first delta carrying it."""
    index: Dict[str, Delta] = {}
    for delta in deltas:
        op_id = delta.get("opId") if isinstance(delta, dict) else None
        if op_id and op_id not in index:
            index[op_id] = delta
    return index


def resolve_parent_path(
    parent_op_id: Optional[str],
    parent_key: Optional[str],
    op_id_to_key: Optional[Mapping[str, str]],
    deltas: Union[Sequence[Delta], DeltaIndex, None],
) -> List[str]:
    """Rebuild the key path from the document root to an operation's parent.

    With only ``parent_key`` the path is ``[parent_key]``. With
    ``parent_op_id`` the chain of creating operations is walked backwards,
    asking ``op_id_to_key`` for each node's *current* key, so nodes renamed
    after they were created still resolve. An empty list means the chain
    could not be resolved (or there is no parent at all).
    """
    if not parent_op_id:
        return [parent_key] if parent_key else []
    if not op_id_to_key:
        return []

    index = deltas if isinstance(deltas, Mapping) else index_deltas(deltas or [])

    path: List[str] = []
    visited = set()
    current_op_id: Optional[str] = parent_op_id
    while current_op_id:
        if current_op_id in visited:
            logger.warning("Cycle in parentOpId chain at %s", current_op_id)
            return []
        visited.add(current_op_id)

        key = op_id_to_key.get(current_op_id)
        if key is None:
            # An ancestor that never took effect (e.g. a failed condition).
            return []
        path.insert(0, key)

        creator = index.get(current_op_id)
        if creator is None:
            break
        next_op_id = creator.get("parentOpId")
        if not next_op_id and creator.get("parentKey"):
            path.insert(0, creator["parentKey"])
        current_op_id = next_op_id

    return path
