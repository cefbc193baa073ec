"""Interactive recipe editing.

``RecipeSession`` holds the source document, records each edit through a
``DeltaRecorder`` and keeps ``working`` (the source with every recorded delta
replayed) up to date by calling ``recompute()`` after each edit.

Nodes are tracked in a path -> node id map, node ids being ``uuid4`` hex
strings. The recorder maps node ids to the operation that created (or last
renamed) the node, which becomes the ``parentOpId`` of edits made beneath it.
An edit is addressable when its parent is the document root, a top-level
property, or a node created or renamed by a recorded delta.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from .accessors import get_at, get_object_at, has_path
from .applier import apply_deltas, apply_recipe
from .deltas import Recipe, condition_entry, is_structural_insert
from .errors import SessionError
from .paths import join_path, split_path
from .recorder import DeltaRecorder
from .structural import StructuralHandlerRegistry, default_handlers, is_structural_result
from .template import select_template_index
from .transforms import TransformSource, as_registry, default_registry

logger = logging.getLogger(__name__)

PathLike = Union[str, Sequence[str]]
NodePath = Tuple[str, ...]


def _as_path(path: PathLike) -> NodePath:
    if isinstance(path, str):
        return tuple(split_path(path))
    return tuple(str(p) for p in path)


class RecipeSession:
    def __init__(
        self,
        data: Any,
        transforms: TransformSource = None,
        handlers: Optional[StructuralHandlerRegistry] = None,
        template_index: Optional[int] = None,
    ) -> None:
        self.transforms = as_registry(transforms) if transforms is not None else default_registry()
        self.handlers = handlers or default_handlers()

        if isinstance(data, list):
            if not any(isinstance(item, dict) for item in data):
                raise SessionError("Array data needs at least one object element to use as a template")
            self.items: Optional[List[Any]] = copy.deepcopy(data)
            index = select_template_index(self.items, {"templateIndex": template_index})
            if not isinstance(self.items[index], dict):
                index = next(i for i, item in enumerate(self.items) if isinstance(item, dict))
            self.template_index: Optional[int] = index
            self.source: Dict[str, Any] = self.items[index]
            self.recorder = DeltaRecorder("array")
            self.recorder.set_metadata(templateIndex=index)
        elif isinstance(data, dict):
            self.items = None
            self.template_index = None
            self.source = copy.deepcopy(data)
            self.recorder = DeltaRecorder("object")
        else:
            raise SessionError("Data must be a JSON object or an array of objects")

        self._nodes: Dict[NodePath, str] = {}
        self._conditions: Dict[str, List[Dict[str, Any]]] = {}
        self.working: Any = copy.deepcopy(self.source)

    @property
    def is_template_mode(self) -> bool:
        return self.items is not None

    @property
    def recipe(self) -> Recipe:
        return self.recorder.recipe

    def recompute(self) -> Any:
        self.working = apply_deltas(self.source, self.recorder.deltas, self.transforms, self.source, self.handlers)
        return self.working

    def apply_to_all(self, data: Any = None) -> Any:
        """Replay the recipe over ``data`` (defaults to the session's own data)."""
        if data is None:
            data = self.items if self.is_template_mode else self.source
        return apply_recipe(data, self.recipe, self.transforms, data, self.handlers)

    def value_at(self, path: PathLike) -> Any:
        return get_at(self.working, _as_path(path))

    def conditions_for(self, path: PathLike) -> List[Dict[str, Any]]:
        node_id = self._nodes.get(_as_path(path))
        return list(self._conditions.get(node_id, [])) if node_id else []

    # --- node bookkeeping ---

    def _node_id(self, path: NodePath, fresh: bool = False) -> str:
        node_id = self._nodes.get(path)
        if node_id is None or fresh:
            node_id = uuid4().hex
            self._nodes[path] = node_id
        return node_id

    def _move_nodes(self, old: NodePath, new: NodePath) -> None:
        size = len(old)
        moved = {}
        for path in list(self._nodes):
            if path[:size] == old:
                moved[new + path[size:]] = self._nodes.pop(path)
        self._nodes.update(moved)

    def _require(self, path: NodePath) -> None:
        if not path:
            raise SessionError("The document root cannot be edited as a property")
        if not has_path(self.working, path):
            raise SessionError(f'No property at "{join_path(path)}"')
        if get_object_at(self.working, path[:-1]) is None:
            raise SessionError(f'"{join_path(path[:-1])}" is not an object')

    def _parent_ref(self, parent: NodePath) -> Dict[str, Optional[str]]:
        """``parent_key``/``parent_op_id`` that make replay find ``parent``."""
        if not parent:
            return {"parent_key": None, "parent_op_id": None}
        node_id = self._nodes.get(parent)
        op_id = self.recorder.get_node_op_id(node_id) if node_id else None
        if op_id:
            return {"parent_key": parent[-1], "parent_op_id": op_id}
        if len(parent) == 1:
            return {"parent_key": parent[0], "parent_op_id": None}
        raise SessionError(
            f'Cannot address "{join_path(parent)}": only top-level properties and properties '
            f'created or renamed in this session can hold edits'
        )

    def _stack(self, path: NodePath) -> Optional[List[Dict[str, Any]]]:
        node_id = self._nodes.get(path)
        stack = self._conditions.get(node_id) if node_id else None
        return [dict(entry) for entry in stack] if stack else None

    # --- edits ---

    def insert_property(self, key: str, value: Any, parent: PathLike = ()) -> str:
        parent_path = _as_path(parent)
        if parent_path and get_object_at(self.working, parent_path) is None:
            raise SessionError(f'No object at "{join_path(parent_path)}"')
        target = get_object_at(self.working, parent_path) if parent_path else self.working
        if not key:
            raise SessionError("Property name must not be empty")
        if key in target:
            raise SessionError(f'Property "{key}" already exists')

        ref = self._parent_ref(parent_path)
        node_id = self._node_id(parent_path + (key,), fresh=True)
        op_id = self.recorder.record_insert(key, copy.deepcopy(value), node_id=node_id, **ref)
        self.recompute()
        return op_id

    def delete_property(self, path: PathLike) -> str:
        node = _as_path(path)
        self._require(node)
        op_id = self.recorder.record_delete(
            node[-1],
            condition_stack=self._stack(node),
            deleted_value=copy.deepcopy(get_at(self.working, node)),
            **self._parent_ref(node[:-1]),
        )
        self.recompute()
        return op_id

    def _free_key(self, parent: Dict[str, Any], wanted: str) -> str:
        candidate, n = wanted, 1
        while candidate in parent:
            candidate = f"{wanted}_{n}"
            n += 1
        return candidate

    def rename_property(self, path: PathLike, new_key: str) -> Optional[str]:
        """Rename a property; a taken name gets a ``_<n>`` suffix. Returns None for a no-op."""
        node = _as_path(path)
        self._require(node)
        if not new_key:
            raise SessionError("Property name must not be empty")
        old_key = node[-1]
        if new_key == old_key:
            return None

        parent_obj = get_object_at(self.working, node[:-1]) if node[:-1] else self.working
        to_key = self._free_key(parent_obj, new_key)
        auto = to_key != new_key
        if auto:
            logger.info('"%s" is taken, renaming "%s" to "%s"', new_key, old_key, to_key)

        ref = self._parent_ref(node[:-1])
        node_id = self._node_id(node)
        op_id = self.recorder.record_rename(old_key, to_key, auto_renamed=auto, node_id=node_id, **ref)
        self._move_nodes(node, node[:-1] + (to_key,))
        self.recompute()
        return op_id

    def _transform(self, name: str):
        transform = self.transforms.get(name)
        if transform is None:
            raise SessionError(f'Unknown transform "{name}"')
        return transform

    def apply_transform(self, path: PathLike, name: str, params: Optional[List[Any]] = None) -> List[str]:
        """Record a transform of the property at ``path``; returns the recorded opIds.

        A structural result is recorded as one Insert per new key (plus a
        Delete of the source when the result asks for it) instead of a
        Transform delta.
        """
        node = _as_path(path)
        self._require(node)
        transform = self._transform(name)
        params = list(params) if params is not None else transform.default_params()
        key = node[-1]
        ref = self._parent_ref(node[:-1])
        stack = self._stack(node)

        try:
            result = transform.fn(get_at(self.working, node), *params)
        except Exception as e:
            raise SessionError(f'Transform "{name}" failed on "{join_path(node)}": {e}') from e

        if not is_structural_result(result):
            op_id = self.recorder.record_transform(key, name, params, condition_stack=stack, **ref)
            self.recompute()
            return [op_id]

        op_ids = self._record_structural(node, name, params, result, ref, stack)
        self.recompute()
        return op_ids

    def _record_structural(self, node: NodePath, name: str, params: List[Any], result: Dict[str, Any],
                           ref: Dict[str, Optional[str]], stack: Optional[List[Dict[str, Any]]]) -> List[str]:
        key = node[-1]
        expansion: Dict[str, Any] = {}
        if not self.handlers.apply(expansion, key, dict(result, removeSource=False)):
            raise SessionError(f'No structural handler for action "{result.get("action")}"')

        result_keys: Dict[str, str] = {}
        obj = result.get("object")
        if node[:-1] and isinstance(obj, dict) and not isinstance(result.get("parts"), list):
            result_keys = {f"{key}_{k}": str(k) for k in obj}

        op_ids = []
        for new_key, value in expansion.items():
            created_by: Dict[str, Any] = {"transformName": name, "params": list(params)}
            if new_key in result_keys:
                created_by["resultKey"] = result_keys[new_key]
            node_id = self._node_id(node[:-1] + (new_key,), fresh=True)
            op_ids.append(self.recorder.record_insert(
                new_key, copy.deepcopy(value), source_key=key, created_by=created_by,
                condition_stack=stack, node_id=node_id, **ref,
            ))

        if result.get("removeSource"):
            op_ids.append(self.recorder.record_delete(
                key, condition_stack=stack, deleted_value=copy.deepcopy(get_at(self.working, node)), **ref,
            ))
        logger.debug('Structural "%s" on %s produced %s', name, join_path(node), list(expansion))
        return op_ids

    def add_condition(self, path: PathLike, name: str, params: Optional[List[Any]] = None) -> str:
        """Gate later edits of the property on a condition over its source value."""
        node = _as_path(path)
        self._require(node)
        transform = self._transform(name)
        if not transform.is_condition:
            raise SessionError(f'"{name}" is not a condition')
        params = list(params) if params is not None else transform.default_params()

        op_id = self.recorder.record_transform(
            node[-1], name, params, is_condition=True, condition_stack=self._stack(node),
            **self._parent_ref(node[:-1]),
        )
        self._conditions.setdefault(self._node_id(node), []).append(condition_entry(name, params))
        self.recompute()
        return op_id

    def update_transform_params(self, path: PathLike, transform_index: int, params: List[Any]) -> str:
        node = _as_path(path)
        if not node:
            raise SessionError("The document root has no transforms")
        op_id = self.recorder.record_update_params(node[-1], transform_index, list(params))
        self.recompute()
        return op_id

    def replace_structural_transform(self, path: PathLike, name: str,
                                     params: Optional[List[Any]] = None) -> List[str]:
        """Undo every structural expansion of ``path`` and apply ``name`` instead.

        Inserts produced from the source key, transforms recorded on those
        keys and the Delete of the source key are removed, then ``name`` is
        applied to the restored source.
        """
        node = _as_path(path)
        if not node:
            raise SessionError("The document root cannot be transformed")
        source_key = node[-1]
        produced = {d["key"] for d in self.recorder.deltas
                    if is_structural_insert(d) and d.get("sourceKey") == source_key}

        removed = self.recorder.remove_structural_inserts(source_key)
        for key in produced:
            removed += self.recorder.remove_transforms_by_key(key)
        removed += self.recorder.remove_deletes_by_key(source_key)
        for key in produced:
            self._nodes.pop(node[:-1] + (key,), None)
        logger.debug("Replacing structural transform on %s, removed %d deltas", join_path(node), removed)

        self.recompute()
        return self.apply_transform(node, name, params)

    # --- recipe text ---

    def export_recipe(self) -> str:
        return self.recorder.export_recipe()

    def load_recipe(self, text: str) -> Recipe:
        """Replace the recorded deltas with an imported recipe and replay it."""
        recipe = self.recorder.import_recipe(text)
        self._nodes.clear()
        self._conditions.clear()
        self.recompute()
        return recipe
