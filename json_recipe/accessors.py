from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence

Path = Sequence[str]

_MISSING = object()


def _list_index(container: List[Any], segment: Any) -> int:
    try:
        index = int(segment)
    except (TypeError, ValueError):
        return -1
    if index < 0 or index >= len(container):
        return -1
    return index


def get_at(data: Any, path: Path, default: Any = None) -> Any:
    """Read the value at a key path (no copying).

    List containers accept numeric segments. Returns ``default`` when any
    step is missing.
    """
    current = data
    for segment in path:
        if isinstance(current, dict):
            if segment not in current:
                return default
            current = current[segment]
        elif isinstance(current, list):
            index = _list_index(current, segment)
            if index < 0:
                return default
            current = current[index]
        else:
            return default
    return current


def has_path(data: Any, path: Path) -> bool:
    return get_at(data, path, _MISSING) is not _MISSING


def get_object_at(data: Any, path: Path) -> Any:
    """Like ``get_at`` but only returns dict targets (``None`` otherwise)."""
    target = get_at(data, path)
    return target if isinstance(target, dict) else None


def update_at(data: Any, path: Path, updater: Callable[[Any], Any]) -> Any:
    """Replace the value at ``path`` with ``updater(old)``, copying only the ancestor chain.

    Siblings of every ancestor are shared with the input. A path that runs
    through a missing key or a scalar leaves the data unchanged.
    """
    if not path:
        return updater(data)

    head, rest = path[0], path[1:]
    if isinstance(data, dict):
        if rest and head not in data:
            return data
        updated = dict(data)
        updated[head] = update_at(data.get(head), rest, updater)
        return updated
    if isinstance(data, list):
        index = _list_index(data, head)
        if index < 0:
            return data
        updated_list = list(data)
        updated_list[index] = update_at(data[index], rest, updater)
        return updated_list
    return data


def set_at(data: Any, path: Path, value: Any) -> Any:
    return update_at(data, path, lambda _old: value)


def assign_keys(parent: Any, values: Dict[str, Any]) -> Any:
    """Return a copy of ``parent`` with ``values`` merged in (existing keys keep their position)."""
    if not isinstance(parent, dict):
        return parent
    updated = dict(parent)
    updated.update(values)
    return updated


def remove_key(parent: Any, key: str) -> Any:
    if not isinstance(parent, dict) or key not in parent:
        return parent
    return {k: v for k, v in parent.items() if k != key}


def rename_key(parent: Any, from_key: str, to_key: str) -> Any:
    """Move ``parent[from_key]`` to ``to_key`` keeping every other key and its order.

    The renamed key takes the position of the old one; an existing ``to_key``
    elsewhere in the object is overwritten.
    """
    if not isinstance(parent, dict) or from_key not in parent:
        return parent
    if from_key == to_key:
        return parent
    renamed: Dict[str, Any] = {}
    for k, v in parent.items():
        if k == to_key:
            continue
        if k == from_key:
            renamed[to_key] = v
        else:
            renamed[k] = v
    return renamed


def delete_at(data: Any, path: Path) -> Any:
    if not path:
        return data
    parent_path, last = path[:-1], path[-1]

    def _drop(parent: Any) -> Any:
        if isinstance(parent, list):
            index = _list_index(parent, last)
            if index < 0:
                return parent
            return parent[:index] + parent[index + 1:]
        return remove_key(parent, last)

    return update_at(data, parent_path, _drop)


def rename_at(data: Any, parent_path: Path, from_key: str, to_key: str) -> Any:
    return update_at(data, parent_path, lambda parent: rename_key(parent, from_key, to_key))


def add_at(data: Any, parent_path: Path, key: str, value: Any) -> Any:
    """Add ``key: value`` under the object (or list position) at ``parent_path``."""

    def _add(parent: Any) -> Any:
        if isinstance(parent, list):
            try:
                index = int(key)
            except (TypeError, ValueError):
                return parent + [value]
            return parent[:index] + [value] + parent[index:]
        return assign_keys(parent, {key: value})

    return update_at(data, parent_path, _add)
