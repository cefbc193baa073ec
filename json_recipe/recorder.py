"""Delta recorder.

Records edits as they happen, appending one delta per edit to a recipe.
Each ``record_*`` method returns the opId it minted (``op_1``, ``op_2``,
...). Ids are never reused, even after deltas are removed.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .deltas import (
    Delta,
    Recipe,
    create_recipe,
    delete_op,
    insert_op,
    is_delete_op,
    is_insert_op,
    is_transform_op,
    now_ms,
    rename_op,
    transform_op,
    update_params_op,
)
from .recipe_io import export_recipe, import_recipe

logger = logging.getLogger(__name__)

_OP_ID_RE = re.compile(r"^op_(\d+)$")


class DeltaRecorder:
    def __init__(self, root_type: str = "object") -> None:
        self._recipe: Recipe = create_recipe(root_type)
        self._counter = 0
        self._node_ops: Dict[str, str] = {}
        self._by_op_id: Dict[str, Delta] = {}
        self._transforms_by_key: Dict[str, List[Delta]] = {}

    @property
    def recipe(self) -> Recipe:
        return self._recipe

    def get_recipe(self) -> Recipe:
        return self._recipe

    @property
    def deltas(self) -> List[Delta]:
        return self._recipe["deltas"]

    def clear(self) -> None:
        """Drop all deltas and node mappings; ids keep counting up."""
        self._recipe = create_recipe(self._recipe["metadata"]["rootType"])
        self._node_ops.clear()
        self._reindex()

    def set_metadata(self, **fields: Any) -> None:
        self._recipe["metadata"].update(fields)
        self._touch()

    # --- identity ---

    def _next_op_id(self) -> str:
        self._counter += 1
        return f"op_{self._counter}"

    def register_node_operation(self, node_id: str, op_id: str) -> None:
        """Remember which operation created (or last renamed) a live node."""
        self._node_ops[node_id] = op_id

    def get_node_op_id(self, node_id: str) -> Optional[str]:
        return self._node_ops.get(node_id)

    def forget_node(self, node_id: str) -> None:
        self._node_ops.pop(node_id, None)

    def find_delta(self, op_id: str) -> Optional[Delta]:
        return self._by_op_id.get(op_id)

    # --- recording ---

    def _touch(self) -> None:
        self._recipe["metadata"]["updatedAt"] = now_ms()

    def _append(self, delta: Delta) -> str:
        self.deltas.append(delta)
        self._index(delta)
        self._touch()
        return delta["opId"]

    def _index(self, delta: Delta) -> None:
        op_id = delta.get("opId")
        if op_id and op_id not in self._by_op_id:
            self._by_op_id[op_id] = delta
        if is_transform_op(delta):
            self._transforms_by_key.setdefault(delta["key"], []).append(delta)

    def _reindex(self) -> None:
        self._by_op_id = {}
        self._transforms_by_key = {}
        for delta in self.deltas:
            self._index(delta)

    @staticmethod
    def _meta(description: Optional[str]) -> Dict[str, Any]:
        meta: Dict[str, Any] = {"timestamp": now_ms()}
        if description:
            meta["description"] = description
        return meta

    def record_insert(
        self,
        key: str,
        value: Any,
        parent_key: Optional[str] = None,
        parent_op_id: Optional[str] = None,
        source_key: Optional[str] = None,
        created_by: Optional[Dict[str, Any]] = None,
        condition_stack: Optional[List[Dict[str, Any]]] = None,
        node_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Record a new property: user-authored, produced by a structural transform, or a restore."""
        delta = insert_op(
            key,
            value,
            op_id=self._next_op_id(),
            parent_key=parent_key,
            parent_op_id=parent_op_id,
            source_key=source_key,
            created_by=dict(created_by) if created_by else None,
            condition_stack=condition_stack,
            metadata=self._meta(description),
        )
        op_id = self._append(delta)
        if node_id:
            self.register_node_operation(node_id, op_id)
        logger.debug("Insert %s (%s)", key, op_id)
        return op_id

    def record_delete(
        self,
        key: str,
        parent_key: Optional[str] = None,
        parent_op_id: Optional[str] = None,
        condition_stack: Optional[List[Dict[str, Any]]] = None,
        deleted_value: Any = None,
        description: Optional[str] = None,
    ) -> str:
        delta = delete_op(
            key,
            op_id=self._next_op_id(),
            parent_key=parent_key,
            parent_op_id=parent_op_id,
            condition_stack=condition_stack,
            deleted_value=deleted_value,
            metadata=self._meta(description),
        )
        op_id = self._append(delta)
        logger.debug("Delete %s (%s)", key, op_id)
        return op_id

    def record_transform(
        self,
        key: str,
        transform_name: str,
        params: Optional[List[Any]] = None,
        parent_key: Optional[str] = None,
        parent_op_id: Optional[str] = None,
        is_condition: Optional[bool] = None,
        condition_stack: Optional[List[Dict[str, Any]]] = None,
        description: Optional[str] = None,
    ) -> str:
        delta = transform_op(
            key,
            transform_name,
            params,
            op_id=self._next_op_id(),
            parent_key=parent_key,
            parent_op_id=parent_op_id,
            is_condition=is_condition or None,
            condition_stack=condition_stack,
            metadata=self._meta(description),
        )
        op_id = self._append(delta)
        logger.debug("Transform %s -> %s (%s)", key, transform_name, op_id)
        return op_id

    def record_rename(
        self,
        from_key: str,
        to_key: str,
        parent_key: Optional[str] = None,
        parent_op_id: Optional[str] = None,
        auto_renamed: Optional[bool] = None,
        node_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        delta = rename_op(
            from_key,
            to_key,
            op_id=self._next_op_id(),
            parent_key=parent_key,
            parent_op_id=parent_op_id,
            auto_renamed=auto_renamed or None,
            metadata=self._meta(description),
        )
        op_id = self._append(delta)
        if node_id:
            self.register_node_operation(node_id, op_id)
        logger.debug("Rename %s -> %s (%s)", from_key, to_key, op_id)
        return op_id

    def record_update_params(self, key: str, transform_index: int, params: List[Any]) -> str:
        """Change the params of the ``transform_index``-th transform recorded for ``key``.

        The Transform delta is updated in place, so replay picks up the new
        params; an ``updateParams`` delta is appended for history only.
        """
        transforms = self._transforms_by_key.get(key, [])
        if 0 <= transform_index < len(transforms):
            transforms[transform_index]["params"] = list(params)
        else:
            logger.warning("No transform #%d recorded for %s; params not updated", transform_index, key)

        op_id = self._append(update_params_op(key, transform_index, params, op_id=self._next_op_id()))
        logger.debug("UpdateParams %s[%d] (%s)", key, transform_index, op_id)
        return op_id

    def record_transforms(self, key: str, transforms: Iterable[Mapping[str, Any]]) -> List[str]:
        """Record several transforms on one key: ``[{"name", "params"?, "isCondition"?}, ...]``."""
        return [
            self.record_transform(key, t["name"], list(t.get("params") or []), is_condition=t.get("isCondition"))
            for t in transforms
        ]

    # --- editing recorded deltas ---

    def remove_deltas(self, predicate: Callable[[Delta], bool]) -> int:
        kept = [d for d in self.deltas if not predicate(d)]
        removed = len(self.deltas) - len(kept)
        if removed:
            self._recipe["deltas"] = kept
            self._reindex()
            live = set(self._by_op_id)
            self._node_ops = {node: op for node, op in self._node_ops.items() if op in live}
            self._touch()
        return removed

    def remove_structural_inserts(self, source_key: str, transform_name: Optional[str] = None) -> int:
        """Strip inserts created by a structural transform of ``source_key``."""

        def _matches(delta: Delta) -> bool:
            created_by = delta.get("createdBy")
            if not is_insert_op(delta) or not created_by or delta.get("sourceKey") != source_key:
                return False
            return transform_name is None or created_by.get("transformName") == transform_name

        removed = self.remove_deltas(_matches)
        logger.debug("Removed %d structural inserts for %s", removed, source_key)
        return removed

    def remove_transforms_by_key(self, key: str, transform_name: Optional[str] = None) -> int:
        def _matches(delta: Delta) -> bool:
            if not is_transform_op(delta) or delta.get("key") != key:
                return False
            return transform_name is None or delta.get("transformName") == transform_name

        return self.remove_deltas(_matches)

    def remove_deletes_by_key(self, key: str) -> int:
        return self.remove_deltas(lambda d: is_delete_op(d) and d.get("key") == key)

    # --- text form ---

    def export_recipe(self) -> str:
        return export_recipe(self._recipe)

    def import_recipe(self, text: str) -> Recipe:
        """Replace the recorded recipe with an imported one.

        Node mappings are dropped; the id counter moves past every imported
        ``op_<n>`` so new ids stay unique.
        """
        recipe = import_recipe(text)
        self._recipe = recipe
        self._node_ops.clear()
        self._reindex()
        for op_id in self._by_op_id:
            match = _OP_ID_RE.match(op_id)
            if match:
                self._counter = max(self._counter, int(match.group(1)))
        return recipe
