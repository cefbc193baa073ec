"""Replay recorded deltas against data.

Every delta is applied in list order to a deep copy of the input. After that
copy, operations build new objects by structural sharing (only the chain
from the root to the touched object is copied), so callers' data is never
modified.

An operation that cannot take effect (missing transform or condition,
failed condition, unresolvable parent, missing structural handler, a
transform function that raises) is skipped on its own; replay continues
with the next delta.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .accessors import assign_keys, get_object_at, remove_key, rename_key, set_at
from .deltas import (
    OP_DELETE,
    OP_INSERT,
    OP_RENAME,
    OP_RETAIN,
    OP_TRANSFORM,
    OP_UPDATE_PARAMS,
    ROOT_TYPES,
    Delta,
    Recipe,
    is_insert_op,
    is_rename_op,
    is_structural_insert,
)
from .paths import index_deltas, join_path, resolve_parent_path
from .structural import StructuralHandlerRegistry, default_handlers, is_structural_result
from .template import normalize_array_with_template, select_template_index
from .transforms import TransformRegistry, TransformSource, as_registry

logger = logging.getLogger(__name__)


@dataclass
class _Replay:
    """State scoped to a single ``apply_deltas`` call."""

    transforms: TransformRegistry
    handlers: StructuralHandlerRegistry
    index: Dict[str, Delta]
    op_id_to_key: Dict[str, str] = field(default_factory=dict)
    applied_structural: Set[str] = field(default_factory=set)
    condition_cache: Dict[Tuple[str, str, str, str], bool] = field(default_factory=dict)


def apply_recipe(
    data: Any,
    recipe: Recipe,
    transforms: TransformSource,
    source_data: Any = None,
    handlers: Optional[StructuralHandlerRegistry] = None,
) -> Any:
    """Apply a recipe to a document, or to every element of an array (template mode).

    In template mode each element is first normalized against the template
    element (``metadata.templateIndex`` or the most complete element) and
    paired with ``source_data[i]`` when ``source_data`` is a list.
    """
    registry = as_registry(transforms)
    handlers = handlers or default_handlers()
    deltas = recipe.get("deltas") or []
    metadata = recipe.get("metadata") or {}

    if isinstance(data, list) and metadata.get("rootType") in ROOT_TYPES:
        items = normalize_array_with_template(data, select_template_index(data, metadata))
        sources = source_data if isinstance(source_data, list) else None
        return [
            apply_deltas(
                item,
                deltas,
                registry,
                sources[i] if sources is not None and i < len(sources) else None,
                handlers,
            )
            for i, item in enumerate(items)
        ]

    return apply_deltas(data, deltas, registry, source_data, handlers)


def apply_deltas(
    data: Any,
    deltas: Sequence[Delta],
    transforms: TransformSource,
    source_data: Any = None,
    handlers: Optional[StructuralHandlerRegistry] = None,
) -> Any:
    replay = _Replay(
        transforms=as_registry(transforms),
        handlers=handlers or default_handlers(),
        index=index_deltas(deltas),
    )
    result = copy.deepcopy(data)

    for delta in deltas:
        if not isinstance(delta, dict):
            logger.warning("Skipping malformed delta %r", delta)
            continue

        if is_structural_insert(delta):
            dedup_key = delta.get("opId") or f"{delta['sourceKey']}:{delta['createdBy'].get('transformName')}"
            if dedup_key in replay.applied_structural:
                logger.debug("Structural insert %s already applied, skipping", dedup_key)
                continue
            replay.applied_structural.add(dedup_key)

        updated = _apply_delta(result, delta, replay, source_data)
        _track_keys(delta, applied=updated is not result, replay=replay)
        result = updated

    return result


def _apply_delta(data: Any, delta: Delta, replay: _Replay, source: Any) -> Any:
    op = delta.get("op")
    if op == OP_INSERT:
        return _apply_insert(data, delta, replay, source)
    if op == OP_DELETE:
        return _apply_delete(data, delta, replay, source)
    if op == OP_TRANSFORM:
        return _apply_transform(data, delta, replay, source)
    if op == OP_RENAME:
        return _apply_rename(data, delta, replay)
    if op in (OP_RETAIN, OP_UPDATE_PARAMS):
        # Retain is reserved for composition; updateParams was already folded
        # into its Transform delta when recorded.
        return data
    logger.warning('Unknown delta operation "%s", skipping', op)
    return data


def _track_keys(delta: Delta, applied: bool, replay: _Replay) -> None:
    if is_rename_op(delta) and applied:
        _repoint_renamed(delta, replay)

    op_id = delta.get("opId")
    if not op_id:
        return
    if is_insert_op(delta):
        replay.op_id_to_key[op_id] = delta.get("key")
    elif is_rename_op(delta):
        replay.op_id_to_key[op_id] = delta.get("to")


def _parent_path_of(delta: Delta, replay: _Replay) -> List[str]:
    return resolve_parent_path(delta.get("parentOpId"), delta.get("parentKey"), replay.op_id_to_key, replay.index)


def _repoint_renamed(delta: Delta, replay: _Replay) -> None:
    """Op ids whose node was just renamed must now resolve to the new key."""
    parent_path = _parent_path_of(delta, replay)
    from_key = delta.get("from")
    stale = []
    for op_id, key in replay.op_id_to_key.items():
        if key != from_key:
            continue
        creator = replay.index.get(op_id)
        if creator is not None and _parent_path_of(creator, replay) == parent_path:
            stale.append(op_id)
    for op_id in stale:
        replay.op_id_to_key[op_id] = delta.get("to")


# --- shared helpers ---


def _locate(data: Any, delta: Delta, replay: _Replay, source: Any):
    """Resolve a delta's parent: ``(path, parent, parent_source, problem)``.

    ``problem`` is a message when the parent cannot be addressed in ``data``.
    """
    path = _parent_path_of(delta, replay)
    parent_op_id = delta.get("parentOpId")
    if parent_op_id and not path:
        return path, None, None, f'cannot resolve parentOpId "{parent_op_id}"'

    if path:
        parent = get_object_at(data, path)
        if parent is None:
            return path, None, None, f'parent "{join_path(path)}" not found'
    elif isinstance(data, dict):
        parent = data
    else:
        return path, None, None, "document is not an object"

    parent_source = get_object_at(source, path) if isinstance(source, dict) else None
    return path, parent, parent_source, None


def _source_value(source: Any, current: Any, key: Optional[str]) -> Any:
    """Value of ``key`` in the source snapshot, falling back to the current document."""
    if key is None:
        return None
    if isinstance(source, dict) and key in source:
        return source[key]
    if isinstance(current, dict):
        return current.get(key)
    return None


def _cache_token(value: Any) -> str:
    try:
        return json.dumps(value, sort_keys=True, default=repr)
    except (TypeError, ValueError):
        return repr(value)


def _conditions_pass(stack: List[Dict[str, Any]], value: Any, key: str, replay: _Replay, action: str) -> bool:
    for entry in stack:
        name = entry.get("conditionName")
        params = entry.get("conditionParams") or []
        transform = replay.transforms.get(name)
        if transform is None:
            logger.warning('Condition "%s" not found, skipping %s of "%s"', name, action, key)
            return False
        if transform.condition is None:
            logger.warning('Transform "%s" is not a condition, skipping %s of "%s"', name, action, key)
            return False

        cache_key = (key, name, _cache_token(value), _cache_token(params))
        passed = replay.condition_cache.get(cache_key)
        if passed is None:
            try:
                passed = bool(transform.condition(value, *params))
            except Exception:
                logger.warning('Condition "%s" raised on "%s", skipping %s', name, key, action, exc_info=True)
                passed = False
            replay.condition_cache[cache_key] = passed

        if not passed:
            logger.debug('Condition "%s" not met for "%s", skipping %s', name, key, action)
            return False
    return True


def _call(fn: Any, value: Any, params: Sequence[Any], name: str, key: str) -> Tuple[bool, Any]:
    try:
        return True, fn(value, *params)
    except Exception:
        logger.warning('Transform "%s" raised on "%s", skipping', name, key, exc_info=True)
        return False, None


def _replace_parent(data: Any, path: List[str], parent: Any, updated: Any) -> Any:
    if updated is parent:
        return data
    return set_at(data, path, updated) if path else updated


# --- operations ---


def _apply_insert(data: Any, delta: Delta, replay: _Replay, source: Any) -> Any:
    key = delta.get("key")
    path, parent, parent_source, problem = _locate(data, delta, replay, source)

    stack = delta.get("conditionStack")
    if stack:
        source_key = delta.get("sourceKey")
        value = _source_value(parent_source, parent, source_key) if source_key else delta.get("value")
        if not _conditions_pass(stack, value, key, replay, "insert"):
            return data

    if problem:
        logger.warning('Skipping insert of "%s": %s', key, problem)
        return data

    updated = _insert_into(parent, delta, replay, parent_source, nested=bool(path))
    return _replace_parent(data, path, parent, updated)


def _insert_into(parent: Dict[str, Any], delta: Delta, replay: _Replay, source: Any, nested: bool) -> Dict[str, Any]:
    key = delta.get("key")
    value = delta.get("value")
    source_key = delta.get("sourceKey")
    created_by = delta.get("createdBy")

    if created_by and source_key:
        name = created_by.get("transformName")
        transform = replay.transforms.get(name)
        if transform is None:
            logger.warning('Transform "%s" not found for structural insert of "%s", using recorded value', name, key)
            return assign_keys(parent, {key: value})

        # Earlier transforms of the source key are part of what was expanded.
        source_value = parent[source_key] if source_key in parent else _source_value(source, parent, source_key)
        ok, result = _call(transform.fn, source_value, created_by.get("params") or [], name, key)
        if not ok:
            return parent
        if not is_structural_result(result):
            return assign_keys(parent, {key: result})

        obj = result.get("object")
        if nested and isinstance(obj, dict) and not isinstance(result.get("parts"), list):
            result_key = created_by.get("resultKey")
            extracted = obj if result_key is None else obj.get(str(result_key), obj.get(result_key))
            return assign_keys(parent, {key: extracted})

        # Keys and count come from this replay's result, not the recording.
        expansion: Dict[str, Any] = {}
        if not replay.handlers.apply(expansion, source_key, dict(result, removeSource=False)):
            return parent
        return assign_keys(parent, expansion)

    if source_key:
        restored = _source_value(source, parent, source_key)
        if restored is not None:
            value = restored
    return assign_keys(parent, {key: value})


def _apply_delete(data: Any, delta: Delta, replay: _Replay, source: Any) -> Any:
    key = delta.get("key")
    path, parent, parent_source, problem = _locate(data, delta, replay, source)

    stack = delta.get("conditionStack")
    if stack and not _conditions_pass(stack, _source_value(parent_source, parent, key), key, replay, "delete"):
        return data

    if problem:
        logger.warning('Skipping delete of "%s": %s', key, problem)
        return data
    if key not in parent:
        logger.debug('Nothing to delete at "%s"', key)
        return data

    return _replace_parent(data, path, parent, remove_key(parent, key))


def _apply_transform(data: Any, delta: Delta, replay: _Replay, source: Any) -> Any:
    key = delta.get("key")
    name = delta.get("transformName")
    transform = replay.transforms.get(name)
    if transform is None:
        logger.warning('Transform "%s" not found, skipping "%s"', name, key)
        return data

    path, parent, parent_source, problem = _locate(data, delta, replay, source)

    stack = delta.get("conditionStack")
    if stack and not _conditions_pass(stack, _source_value(parent_source, parent, key), key, replay, "transform"):
        return data

    if problem:
        logger.warning('Skipping transform "%s" of "%s": %s', name, key, problem)
        return data
    if key not in parent:
        logger.debug('Property "%s" absent, skipping transform "%s"', key, name)
        return data

    current = parent[key]
    if delta.get("isCondition"):
        original = _source_value(parent_source, None, key)
        if original is not None:
            current = original

    ok, result = _call(transform.fn, current, delta.get("params") or [], name, key)
    if not ok:
        return data

    if is_structural_result(result):
        expanded = dict(parent)
        if not replay.handlers.apply(expanded, key, result):
            return data
        return _replace_parent(data, path, parent, expanded)

    return _replace_parent(data, path, parent, assign_keys(parent, {key: result}))


def _apply_rename(data: Any, delta: Delta, replay: _Replay) -> Any:
    from_key = delta.get("from")
    path, parent, _, problem = _locate(data, delta, replay, None)
    if problem:
        logger.warning('Skipping rename of "%s": %s', from_key, problem)
        return data
    if from_key not in parent:
        logger.debug('Property "%s" absent, skipping rename', from_key)
        return data
    return _replace_parent(data, path, parent, rename_key(parent, from_key, delta.get("to")))
