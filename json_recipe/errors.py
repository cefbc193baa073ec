"""Typed errors raised by the recipe engine and the editing session.

Replay itself never raises for a bad operation (it logs and skips); these
classes cover the cases where the caller must reject input outright.
"""

from __future__ import annotations

from typing import List, Optional

__all__ = [
    "RecipeError",
    "RecipeImportError",
    "RecipeValidationError",
    "SessionError",
    "format_error",
]


class RecipeError(Exception):
    """Base class for all recipe errors."""
    pass


class RecipeImportError(RecipeError):
    """Recipe text could not be parsed or lacks its version / deltas list."""
    pass


class RecipeValidationError(RecipeError):
    """Recipe parsed but one or more deltas or metadata fields are malformed."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        if message is None:
            message = "Invalid recipe: " + "; ".join(self.errors)
        super().__init__(message)


class SessionError(RecipeError):
    """An edit targeted a property the session cannot address."""
    pass


def format_error(e: BaseException) -> str:
    """Return a short status-line message like 'RecipeImportError: detail'."""
    name = e.__class__.__name__
    msg = str(e).strip()
    return f"{name}: {msg}" if msg else name
