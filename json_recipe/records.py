from __future__ import annotations

from typing import Any, List, Set

from .accessors import get_at, set_at
from .paths import ROOT_LABEL, split_path
from .schema_utils import extract_all_keys


def _is_root(root_path: Any) -> bool:
    return root_path in (None, '', ROOT_LABEL)


def resolve_items_by_root(data: Any, root_path: str = ROOT_LABEL) -> List[Any]:
    """Records a recipe is replayed over: the array at ``root_path``.

    A single object at the root path is treated as a one-record list.
    """
    if data is None:
        return []

    target = data if _is_root(root_path) else get_at(data, split_path(root_path))
    if isinstance(target, list):
        return target
    if target is not None:
        return [target]
    return []


def replace_items_at_root(data: Any, root_path: str, items: List[Any]) -> Any:
    """Put transformed records back where ``resolve_items_by_root`` found them.

    The rest of the document is shared, not copied. When the root path held a
    single object, the single transformed record replaces it.
    """
    if _is_root(root_path):
        if isinstance(data, list):
            return list(items)
        return items[0] if items else data

    path = split_path(root_path)
    original = get_at(data, path)
    if isinstance(original, list):
        return set_at(data, path, list(items))
    if original is not None and items:
        return set_at(data, path, items[0])
    return data


def count_records(data: Any, root_path: str = ROOT_LABEL) -> int:
    return len(resolve_items_by_root(data, root_path))


def extract_record_keys(data: Any, root_path: str, sample_size: int = 50) -> List[str]:
    """Dot-path keys relative to the records under ``root_path``."""
    keys: Set[str] = set()
    for record in resolve_items_by_root(data, root_path)[:max(0, int(sample_size))]:
        if isinstance(record, dict):
            keys.update(extract_all_keys(record))
    return sorted(keys)
