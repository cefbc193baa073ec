from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any, Optional, Union

from .deltas import RECIPE_VERSION, Recipe, validate_recipe
from .errors import RecipeImportError, RecipeValidationError

logger = logging.getLogger(__name__)


def _decode(content: Union[str, bytes]) -> Any:
    if isinstance(content, (bytes, bytearray)):
        content = bytes(content).decode("utf-8-sig")
    return json.loads(content.lstrip("\ufeff"))


def read_json_content(upload: Any) -> Any:
    """Decode an uploaded JSON document.

    ``upload`` is what a ``gr.File`` hands over: raw bytes (``type="binary"``),
    a file path (``type="filepath"``, or an object exposing ``.name``), or an
    open text/binary stream. A UTF-8 byte order mark is tolerated.
    """
    if upload is None:
        raise ValueError("No file uploaded.")
    if isinstance(upload, (bytes, bytearray)):
        return _decode(upload)
    if hasattr(upload, "read"):
        if hasattr(upload, "seek"):
            upload.seek(0)
        return _decode(upload.read())

    path = getattr(upload, "name", upload)
    with open(path, "rb") as f:
        return _decode(f.read())


def export_recipe(recipe: Recipe) -> str:
    return json.dumps(recipe, indent=2, ensure_ascii=False)


def import_recipe(source: Union[str, bytes, Recipe]) -> Recipe:
    """Parse and validate recipe JSON (text or an already-decoded dict).

    A recipe written by another version is accepted with a warning; any
    other structural problem raises.
    """
    if isinstance(source, (str, bytes)):
        try:
            payload = json.loads(source)
        except ValueError as e:
            logger.error("Recipe is not valid JSON: %s", e)
            raise RecipeImportError(f"Recipe is not valid JSON: {e}") from e
    else:
        payload = copy.deepcopy(source)

    if not isinstance(payload, dict):
        raise RecipeImportError("Recipe must be a JSON object")
    if "version" not in payload:
        raise RecipeImportError('Recipe is missing "version"')
    if not isinstance(payload.get("deltas"), list):
        raise RecipeImportError('Recipe "deltas" must be a list')

    result = validate_recipe(payload)
    errors = result["errors"]
    if payload["version"] != RECIPE_VERSION:
        logger.warning('Recipe version "%s" differs from "%s"; importing anyway', payload["version"], RECIPE_VERSION)
        errors = [e for e in errors if not e.startswith("Invalid version")]
    if errors:
        logger.error("Recipe failed validation with %d error(s)", len(errors))
        raise RecipeValidationError(errors)
    for warning in result["warnings"]:
        logger.warning("Recipe: %s", warning)
    return payload


def load_recipe_file(file_obj) -> Recipe:
    """Read an uploaded recipe file and import it."""
    try:
        payload = read_json_content(file_obj)
    except json.JSONDecodeError as e:
        raise RecipeImportError(f"Recipe is not valid JSON: {e}") from e
    return import_recipe(payload)


def write_json_file(data: Any, file_name: Optional[str], directory: str) -> str:
    """Write ``data`` as indented JSON under ``directory``; returns the path."""
    if not file_name or not file_name.strip():
        file_name = "output"
    file_name = os.path.basename(file_name.strip())
    if not file_name.lower().endswith(".json"):
        file_name += ".json"

    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, file_name)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path
