"""Structural transform handlers.

A transform may return a *structural result* instead of a plain value::

    {"__structuralChange": True, "action": "split", "parts": ["john", "doe"], "removeSource": True}

The handler registered for ``action`` writes the new sibling keys onto the
parent object (and drops the source key when ``removeSource`` is set).
Handlers mutate the parent they are given; callers pass a copy.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

StructuralHandler = Callable[[Dict[str, Any], str, Dict[str, Any]], None]


def is_structural_result(result: Any) -> bool:
    return isinstance(result, dict) and result.get("__structuralChange") is True


def structural_result(action: str, parts: Optional[List[Any]] = None, obj: Optional[Dict[str, Any]] = None,
                      remove_source: bool = False, value: Any = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"__structuralChange": True, "action": action}
    if parts is not None:
        result["parts"] = list(parts)
    if obj is not None:
        result["object"] = dict(obj)
    if value is not None:
        result["value"] = value
    if remove_source:
        result["removeSource"] = True
    return result


def expansion_keys(source_key: str, result: Dict[str, Any]) -> List[str]:
    """Sibling keys a parts/object result expands into for ``source_key``."""
    parts = result.get("parts")
    if isinstance(parts, list):
        return [f"{source_key}_{i}" for i in range(len(parts))]
    obj = result.get("object")
    if isinstance(obj, dict):
        return [f"{source_key}_{k}" for k in obj]
    return []


def _drop_source(current: Dict[str, Any], last_key: str, result: Dict[str, Any]) -> None:
    if result.get("removeSource"):
        current.pop(last_key, None)


def split_handler(current: Dict[str, Any], last_key: str, result: Dict[str, Any]) -> None:
    parts = result.get("parts")
    if not isinstance(parts, list):
        return
    for index, part in enumerate(parts):
        current[f"{last_key}_{index}"] = part
    _drop_source(current, last_key, result)


def object_expansion_handler(current: Dict[str, Any], last_key: str, result: Dict[str, Any]) -> None:
    obj = result.get("object")
    if not isinstance(obj, dict):
        return
    for key, value in obj.items():
        current[f"{last_key}_{key}"] = value
    _drop_source(current, last_key, result)


def conditional_branch_handler(current: Dict[str, Any], last_key: str, result: Dict[str, Any]) -> None:
    # Both branches start equal and diverge as transforms are applied to them.
    if result.get("value") is None:
        return
    current[f"{last_key}_if"] = result["value"]
    current[f"{last_key}_else"] = result["value"]
    _drop_source(current, last_key, result)


class StructuralHandlerRegistry:
    """Action name -> handler table."""

    def __init__(self) -> None:
        self._handlers: Dict[str, StructuralHandler] = {}

    def register(self, action: str, handler: StructuralHandler, replace: bool = False) -> None:
        if action in self._handlers and not replace:
            return
        self._handlers[action] = handler

    def get(self, action: str) -> Optional[StructuralHandler]:
        return self._handlers.get(action)

    def has(self, action: str) -> bool:
        return action in self._handlers

    def actions(self) -> List[str]:
        return list(self._handlers)

    def apply(self, parent: Dict[str, Any], key: str, result: Dict[str, Any]) -> bool:
        """Run the handler for ``result['action']`` on ``parent``.

        Returns False (parent untouched) when no handler is registered.
        """
        action = result.get("action")
        handler = self._handlers.get(action)
        if handler is None:
            logger.warning(
                'Structural transform action "%s" not registered; leaving "%s" unchanged', action, key
            )
            return False
        handler(parent, key, result)
        return True


def default_handlers() -> StructuralHandlerRegistry:
    registry = StructuralHandlerRegistry()
    registry.register("split", split_handler)
    registry.register("arrayToProperties", object_expansion_handler)
    registry.register("toObject", object_expansion_handler)
    registry.register("conditionalBranch", conditional_branch_handler)
    return registry
