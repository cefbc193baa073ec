"""Core logic for JSON Recipe Transformer.

The Gradio UI lives in `app.py`. This package records edits made to one
JSON document as a recipe of deltas and replays that recipe on others:
- record inserts, deletes, renames and transforms (`recorder`, `session`)
- replay a recipe on a document or every element of an array (`applier`)
- import/export and validate recipe JSON (`recipe_io`, `deltas`)
"""

from .applier import apply_deltas, apply_recipe
from .deltas import RECIPE_VERSION, create_recipe, validate_recipe
from .errors import RecipeError, RecipeImportError, RecipeValidationError, SessionError
from .recipe_io import export_recipe, import_recipe
from .recorder import DeltaRecorder
from .session import RecipeSession
from .structural import StructuralHandlerRegistry, default_handlers
from .transforms import ParamSpec, Transform, TransformRegistry, default_registry

__all__ = [
    "RECIPE_VERSION",
    "DeltaRecorder",
    "ParamSpec",
    "RecipeError",
    "RecipeImportError",
    "RecipeSession",
    "RecipeValidationError",
    "SessionError",
    "StructuralHandlerRegistry",
    "Transform",
    "TransformRegistry",
    "apply_deltas",
    "apply_recipe",
    "create_recipe",
    "default_handlers",
    "default_registry",
    "export_recipe",
    "import_recipe",
    "validate_recipe",
]
