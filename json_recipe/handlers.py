from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

import gradio as gr

from .applier import apply_recipe
from .config import settings
from .errors import RecipeError, format_error
from .paths import ROOT_LABEL
from .recipe_io import load_recipe_file, read_json_content, write_json_file
from .records import count_records, replace_items_at_root, resolve_items_by_root
from .schema_utils import find_list_paths, list_property_paths
from .session import RecipeSession
from .template import analyze_array_differences
from .transforms import default_registry, value_type

logger = logging.getLogger(__name__)

REGISTRY = default_registry()


def parse_value(text: Optional[str]) -> Any:
    """Parse a typed-in value as JSON, keeping it as a plain string otherwise."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_params(text: Optional[str]) -> Optional[List[Any]]:
    """``'[" ", 2]'`` or ``' , 2'``-style input -> params list; blank means defaults."""
    if text is None or not text.strip():
        return None
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            params = json.loads(stripped)
        except ValueError:
            params = None
        if isinstance(params, list):
            return params
    return [parse_value(part.strip()) for part in text.split(",")]


def _root_choices(data: Any):
    list_paths = find_list_paths(data) or [ROOT_LABEL]
    default_root = ROOT_LABEL if ROOT_LABEL in list_paths else list_paths[0]
    return gr.update(choices=list_paths, value=default_root)


def compute_document_count_text(data: Any, root_path: str = ROOT_LABEL) -> str:
    if data is None:
        return ""
    return f"Documents: {count_records(data, root_path or ROOT_LABEL)}"


def _preview(items: Any) -> Any:
    if isinstance(items, list):
        return items[:settings.preview_limit]
    return items


# --- Build Recipe tab ---


def _session_outputs(session: Optional[RecipeSession], status: str):
    if session is None:
        return None, gr.update(choices=[], value=None), None, None, status
    paths = list_property_paths(session.working)
    return session, gr.update(choices=paths), session.working, session.recipe, status


def load_build_dataset(file_obj):
    if file_obj is None:
        return None, gr.update(choices=[ROOT_LABEL], value=ROOT_LABEL), "No file uploaded."

    try:
        data = read_json_content(file_obj)
    except (ValueError, OSError) as e:
        return None, gr.update(choices=[ROOT_LABEL], value=ROOT_LABEL), f"Error parsing JSON: {str(e)}"

    return data, _root_choices(data), f"Successfully loaded. {compute_document_count_text(data)}"


def start_session(data: Any, root_path: Optional[str] = None, template_index: Optional[float] = None):
    """Open a session over the records at ``root_path`` (a single object edits as-is)."""
    if data is None:
        return _session_outputs(None, "No data loaded.")

    root_path = root_path or ROOT_LABEL
    target = data if root_path == ROOT_LABEL and isinstance(data, dict) else resolve_items_by_root(data, root_path)
    index = int(template_index) if template_index not in (None, "") else None
    try:
        session = RecipeSession(target, REGISTRY, template_index=index)
    except RecipeError as e:
        return _session_outputs(None, format_error(e))

    if session.is_template_mode:
        status = f"Editing template element #{session.template_index} of {len(session.items)}."
        sparse = [v["property"] for v in analyze_array_differences(session.items) if v["missingIn"]]
        if sparse:
            status += f" Missing in some records: {', '.join(sparse)}."
    else:
        status = "Editing single document."
    return _session_outputs(session, status)


def transform_choices(session: Optional[RecipeSession], path: Optional[str]):
    """Transforms and conditions that apply to the selected property's value."""
    if session is None or not path:
        return gr.update(choices=[], value=None), gr.update(choices=[], value=None)
    kind = value_type(session.value_at(path))
    return (
        gr.update(choices=REGISTRY.for_type(kind), value=None),
        gr.update(choices=REGISTRY.for_type(kind, conditions=True), value=None),
    )


def _edit(session: Optional[RecipeSession], action, done: str):
    if session is None:
        return _session_outputs(None, "No session. Load data first.")
    try:
        action(session)
    except RecipeError as e:
        return _session_outputs(session, format_error(e))
    return _session_outputs(session, done)


def insert_property_handler(session, parent_path, key, value_text):
    parent = parent_path or ()
    return _edit(session, lambda s: s.insert_property(key, parse_value(value_text), parent), f'Inserted "{key}".')


def delete_property_handler(session, path):
    return _edit(session, lambda s: s.delete_property(path or ""), f'Deleted "{path}".')


def rename_property_handler(session, path, new_key):
    return _edit(session, lambda s: s.rename_property(path or "", new_key), f'Renamed "{path}".')


def apply_transform_handler(session, path, name, params_text):
    if not name:
        return _session_outputs(session, "Select a transform.")
    return _edit(session, lambda s: s.apply_transform(path or "", name, parse_params(params_text)),
                 f'Applied "{name}" to "{path}".')


def add_condition_handler(session, path, name, params_text):
    if not name:
        return _session_outputs(session, "Select a condition.")
    return _edit(session, lambda s: s.add_condition(path or "", name, parse_params(params_text)),
                 f'Added condition "{name}" on "{path}".')


def update_params_handler(session, path, transform_index, params_text):
    params = parse_params(params_text) or []
    index = int(transform_index or 0)
    return _edit(session, lambda s: s.update_transform_params(path or "", index, params),
                 f'Updated transform #{index} of "{path}".')


def replace_structural_handler(session, path, name, params_text):
    if not name:
        return _session_outputs(session, "Select a transform.")
    return _edit(session, lambda s: s.replace_structural_transform(path or "", name, parse_params(params_text)),
                 f'Replaced structural transform on "{path}" with "{name}".')


def preview_all_handler(session: Optional[RecipeSession]):
    if session is None:
        return None
    return _preview(session.apply_to_all())


def export_recipe_handler(session: Optional[RecipeSession], file_name: Optional[str]):
    if session is None:
        return None, "Nothing to export."
    try:
        path = write_json_file(session.recipe, file_name or "recipe", settings.export_dir)
    except OSError as e:
        return None, f"Error during export: {str(e)}"
    return path, f"Recipe with {len(session.recipe['deltas'])} operations saved to {path}"


def load_recipe_into_session_handler(session: Optional[RecipeSession], file_obj):
    if session is None:
        return _session_outputs(None, "No session. Load data first.")
    try:
        session.load_recipe(json.dumps(read_json_content(file_obj)))
    except (RecipeError, ValueError, OSError) as e:
        return _session_outputs(session, format_error(e))
    return _session_outputs(session, f"Loaded recipe with {len(session.recipe['deltas'])} operations.")


# --- Apply Recipe tab ---


def load_apply_dataset(file_obj):
    if file_obj is None:
        return None, gr.update(choices=[ROOT_LABEL], value=ROOT_LABEL), "No file uploaded.", ""

    try:
        data = read_json_content(file_obj)
    except (ValueError, OSError) as e:
        return None, gr.update(choices=[ROOT_LABEL], value=ROOT_LABEL), f"Error parsing JSON: {str(e)}", ""

    return data, _root_choices(data), "Dataset loaded.", compute_document_count_text(data)


def load_recipe_handler(file_obj):
    if file_obj is None:
        return None, "No recipe uploaded."
    try:
        recipe = load_recipe_file(file_obj)
    except (RecipeError, ValueError, OSError) as e:
        logger.error("Recipe upload rejected: %s", e)
        return None, format_error(e)
    return recipe, f"Recipe loaded: {len(recipe['deltas'])} operations ({recipe['metadata']['rootType']})."


def run_recipe(data: Any, recipe: Any, root_path: Optional[str] = None) -> Any:
    """Replay ``recipe`` over the records at ``root_path`` and put them back into ``data``."""
    root_path = root_path or ROOT_LABEL
    if root_path == ROOT_LABEL and not isinstance(data, list):
        return apply_recipe(data, recipe, REGISTRY, data)
    items = resolve_items_by_root(data, root_path)
    return replace_items_at_root(data, root_path, apply_recipe(items, recipe, REGISTRY, items))


def apply_recipe_handler(data, recipe, root_path, file_name):
    if data is None:
        return None, "No data loaded.", None
    if recipe is None:
        return None, "No recipe loaded.", None

    result = run_recipe(data, recipe, root_path)
    try:
        path = write_json_file(result, file_name or "transformed", settings.export_dir)
    except OSError as e:
        return None, f"Error during export: {str(e)}", None

    preview = _preview(resolve_items_by_root(result, root_path or ROOT_LABEL))
    return path, f"Applied {len(recipe['deltas'])} operations. Saved to {path}", preview


def preview_apply_handler(data, recipe, root_path):
    if data is None or recipe is None:
        return None
    return _preview(resolve_items_by_root(run_recipe(data, recipe, root_path), root_path or ROOT_LABEL))
