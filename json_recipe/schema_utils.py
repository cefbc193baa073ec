from __future__ import annotations

from typing import Any, List, Set

from .paths import ROOT_LABEL, escape_path_segment


def _child_path(parent_key: str, key: Any, sep: str) -> str:
    escaped = escape_path_segment(key)
    return f"{parent_key}{sep}{escaped}" if parent_key else escaped


def extract_all_keys(data: Any, parent_key: str = '', sep: str = '.') -> Set[str]:
    """Every dot path in a JSON value, including paths to nested objects.

    Array elements are merged into their array's path, so ``{"a": [{"b": 1}]}``
    yields ``a`` and ``a.b``.
    """
    keys: Set[str] = set()
    if isinstance(data, dict):
        for k, v in data.items():
            current_key = _child_path(parent_key, k, sep)
            keys.add(current_key)
            keys.update(extract_all_keys(v, current_key, sep))
    elif isinstance(data, list):
        for item in data:
            keys.update(extract_all_keys(item, parent_key, sep))
    return keys


def find_list_paths(data: Any, parent_key: str = '', sep: str = '.') -> List[str]:
    """Paths of arrays a recipe could be replayed over; ``(root)`` for a top-level array."""
    paths: List[str] = []
    if isinstance(data, dict):
        for k, v in data.items():
            current_key = _child_path(parent_key, k, sep)
            if isinstance(v, list):
                paths.append(current_key)
                first = next((item for item in v if isinstance(item, dict)), None)
                if first is not None:
                    paths.extend(find_list_paths(first, current_key, sep))
            elif isinstance(v, dict):
                paths.extend(find_list_paths(v, current_key, sep))
    elif isinstance(data, list) and not parent_key:
        paths.append(ROOT_LABEL)
        first = next((item for item in data if isinstance(item, dict)), None)
        if first is not None:
            paths.extend(find_list_paths(first, "", sep))
    return sorted(paths)


def list_property_paths(data: Any, sep: str = '.') -> List[str]:
    """Paths of every property in one document, parents before children, in key order."""
    paths: List[str] = []

    def _walk(value: Any, prefix: str) -> None:
        if not isinstance(value, dict):
            return
        for k, v in value.items():
            current = _child_path(prefix, k, sep)
            paths.append(current)
            _walk(v, current)

    _walk(data, '')
    return paths
