"""Delta operations and the versioned recipe container.

A recipe is a plain JSON value::

    {"version": "4.0.0",
     "deltas": [{"op": "insert", "key": "zip", "value": "75001", "opId": "op_2"}, ...],
     "metadata": {"rootType": "object", "createdAt": ..., "updatedAt": ...}}

Deltas are dicts keyed by their camelCase wire names so that a recipe can be
exported, stored and re-imported without any conversion step.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

RECIPE_VERSION = "4.0.0"
ROOT_TYPES = ("object", "array")

OP_RETAIN = "retain"
OP_INSERT = "insert"
OP_DELETE = "delete"
OP_TRANSFORM = "transform"
OP_RENAME = "rename"
OP_UPDATE_PARAMS = "updateParams"
DELTA_OPS = (OP_RETAIN, OP_INSERT, OP_DELETE, OP_TRANSFORM, OP_RENAME, OP_UPDATE_PARAMS)

# Only these operations establish a key that later deltas may hang off.
KEY_ESTABLISHING_OPS = (OP_INSERT, OP_RENAME)

Delta = Dict[str, Any]
Recipe = Dict[str, Any]


def now_ms() -> int:
    return int(time.time() * 1000)


def _with_optional(delta: Delta, **optional: Any) -> Delta:
    for name, value in optional.items():
        if value is not None:
            delta[name] = value
    return delta


def condition_entry(condition_name: str, condition_params: Optional[List[Any]] = None) -> Dict[str, Any]:
    return {"conditionName": condition_name, "conditionParams": list(condition_params or [])}


def retain_op(count: int, op_id: Optional[str] = None) -> Delta:
    return _with_optional({"op": OP_RETAIN, "count": count}, opId=op_id)


def insert_op(
    key: str,
    value: Any,
    op_id: Optional[str] = None,
    parent_key: Optional[str] = None,
    parent_op_id: Optional[str] = None,
    source_key: Optional[str] = None,
    created_by: Optional[Dict[str, Any]] = None,
    condition_stack: Optional[List[Dict[str, Any]]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Delta:
    return _with_optional(
        {"op": OP_INSERT, "key": key, "value": value},
        opId=op_id,
        parentKey=parent_key,
        parentOpId=parent_op_id,
        sourceKey=source_key,
        createdBy=created_by,
        conditionStack=condition_stack or None,
        metadata=metadata,
    )


def delete_op(
    key: str,
    op_id: Optional[str] = None,
    parent_key: Optional[str] = None,
    parent_op_id: Optional[str] = None,
    condition_stack: Optional[List[Dict[str, Any]]] = None,
    deleted_value: Any = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Delta:
    return _with_optional(
        {"op": OP_DELETE, "key": key},
        opId=op_id,
        parentKey=parent_key,
        parentOpId=parent_op_id,
        conditionStack=condition_stack or None,
        deletedValue=deleted_value,
        metadata=metadata,
    )


def transform_op(
    key: str,
    transform_name: str,
    params: Optional[List[Any]] = None,
    op_id: Optional[str] = None,
    parent_key: Optional[str] = None,
    parent_op_id: Optional[str] = None,
    is_condition: Optional[bool] = None,
    condition_stack: Optional[List[Dict[str, Any]]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Delta:
    return _with_optional(
        {"op": OP_TRANSFORM, "key": key, "transformName": transform_name, "params": list(params or [])},
        opId=op_id,
        parentKey=parent_key,
        parentOpId=parent_op_id,
        isCondition=is_condition,
        conditionStack=condition_stack or None,
        metadata=metadata,
    )


def rename_op(
    from_key: str,
    to_key: str,
    op_id: Optional[str] = None,
    parent_key: Optional[str] = None,
    parent_op_id: Optional[str] = None,
    auto_renamed: Optional[bool] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Delta:
    return _with_optional(
        {"op": OP_RENAME, "from": from_key, "to": to_key},
        opId=op_id,
        parentKey=parent_key,
        parentOpId=parent_op_id,
        autoRenamed=auto_renamed,
        metadata=metadata,
    )


def update_params_op(key: str, transform_index: int, params: List[Any], op_id: Optional[str] = None) -> Delta:
    return _with_optional(
        {"op": OP_UPDATE_PARAMS, "key": key, "transformIndex": transform_index, "params": list(params)},
        opId=op_id,
    )


def is_retain_op(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("op") == OP_RETAIN


def is_insert_op(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("op") == OP_INSERT


def is_delete_op(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("op") == OP_DELETE


def is_transform_op(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("op") == OP_TRANSFORM


def is_rename_op(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("op") == OP_RENAME


def is_update_params_op(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("op") == OP_UPDATE_PARAMS


def is_structural_insert(delta: Any) -> bool:
    """An insert produced by a structural transform rather than authored directly."""
    return is_insert_op(delta) and bool(delta.get("createdBy")) and bool(delta.get("sourceKey"))


def established_key(delta: Delta) -> Optional[str]:
    """Key a delta leaves in the document for its opId, if it establishes one."""
    if is_insert_op(delta):
        return delta.get("key")
    if is_rename_op(delta):
        return delta.get("to")
    return None


def create_recipe(root_type: str = "object") -> Recipe:
    stamp = now_ms()
    return {
        "version": RECIPE_VERSION,
        "deltas": [],
        "metadata": {"rootType": root_type, "createdAt": stamp, "updatedAt": stamp},
    }


def _is_key(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _validate_delta(delta: Any, index: int, errors: List[str]) -> None:
    if not isinstance(delta, dict):
        errors.append(f"Delta at index {index} must be an object")
        return

    op = delta.get("op")
    if not op:
        errors.append(f'Delta at index {index} missing "op" field')
        return
    if op not in DELTA_OPS:
        errors.append(f'Invalid op "{op}" at index {index}')
        return

    if op == OP_RETAIN:
        count = delta.get("count")
        if not isinstance(count, int) or isinstance(count, bool) or count <= 0:
            errors.append(f"RetainOp at index {index} must have positive count")
    elif op in (OP_INSERT, OP_DELETE):
        if not _is_key(delta.get("key")):
            label = "InsertOp" if op == OP_INSERT else "DeleteOp"
            errors.append(f"{label} at index {index} must have string key")
        if op == OP_INSERT and "value" not in delta:
            errors.append(f"InsertOp at index {index} must have a value")
    elif op == OP_TRANSFORM:
        if not _is_key(delta.get("key")):
            errors.append(f"TransformOp at index {index} must have string key")
        if not _is_key(delta.get("transformName")):
            errors.append(f"TransformOp at index {index} must have transformName")
        if "params" in delta and not isinstance(delta["params"], list):
            errors.append(f"TransformOp at index {index} params must be a list")
    elif op == OP_RENAME:
        if not _is_key(delta.get("from")):
            errors.append(f'RenameOp at index {index} must have string "from"')
        if not _is_key(delta.get("to")):
            errors.append(f'RenameOp at index {index} must have string "to"')
    elif op == OP_UPDATE_PARAMS:
        if not _is_key(delta.get("key")):
            errors.append(f"UpdateParamsOp at index {index} must have string key")
        transform_index = delta.get("transformIndex")
        if not isinstance(transform_index, int) or isinstance(transform_index, bool) or transform_index < 0:
            errors.append(f"UpdateParamsOp at index {index} must have non-negative transformIndex")
        if not isinstance(delta.get("params"), list):
            errors.append(f"UpdateParamsOp at index {index} params must be a list")

    stack = delta.get("conditionStack")
    if stack is not None:
        if not isinstance(stack, list):
            errors.append(f"Delta at index {index} conditionStack must be a list")
        else:
            for entry in stack:
                if not isinstance(entry, dict) or not _is_key(entry.get("conditionName")):
                    errors.append(f"Delta at index {index} has a condition without conditionName")
                    break


def validate_recipe(recipe: Any) -> Dict[str, Any]:
    """Check a recipe's shape.

    Returns ``{"valid": bool, "errors": [...], "warnings": [...]}``. Identity
    problems (duplicate opIds, dangling parentOpIds) only produce warnings:
    replay tolerates them. The input is never modified.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if recipe is None:
        errors.append("Recipe is null or undefined")
        return {"valid": False, "errors": errors, "warnings": warnings}
    if not isinstance(recipe, dict):
        errors.append("Recipe must be an object")
        return {"valid": False, "errors": errors, "warnings": warnings}

    if recipe.get("version") != RECIPE_VERSION:
        errors.append(f'Invalid version: expected "{RECIPE_VERSION}", got "{recipe.get("version")}"')

    deltas = recipe.get("deltas")
    if not isinstance(deltas, list):
        errors.append("Recipe.deltas must be an array")
    else:
        seen_ids: Dict[str, str] = {}
        for index, delta in enumerate(deltas):
            _validate_delta(delta, index, errors)
            if not isinstance(delta, dict):
                continue

            parent_op_id = delta.get("parentOpId")
            if parent_op_id is not None:
                parent_op = seen_ids.get(parent_op_id)
                if parent_op is None:
                    warnings.append(f'Delta at index {index} references unknown or later parentOpId "{parent_op_id}"')
                elif parent_op not in KEY_ESTABLISHING_OPS:
                    warnings.append(f'Delta at index {index} parentOpId "{parent_op_id}" does not establish a key')

            op_id = delta.get("opId")
            if op_id is not None:
                if op_id in seen_ids:
                    warnings.append(f'Duplicate opId "{op_id}" at index {index}')
                else:
                    seen_ids[op_id] = delta.get("op")

    metadata = recipe.get("metadata")
    if not isinstance(metadata, dict):
        errors.append("Recipe must have metadata")
    elif metadata.get("rootType") not in ROOT_TYPES:
        errors.append('Recipe.metadata.rootType must be "object" or "array"')

    return {"valid": not errors, "errors": errors, "warnings": warnings}
