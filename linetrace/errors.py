"""Error taxonomy for the attribution engine.

Every failure raised by the engine is an ``EngineError`` carrying one of the
``ErrorCategory`` values. Errors are raised, never returned, and abort the
whole run; the top level reports the category, message and the innermost
context (file, revision, operation) exactly once.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Failure categories surfaced to the caller."""

    INPUT = "INPUT"
    VCS = "VCS"
    PARSE = "PARSE"
    STRICT = "STRICT"
    INTERNAL = "INTERNAL"


class EngineError(Exception):
    """Base class for every engine failure."""

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {
            key: value for key, value in context.items() if value is not None
        }

    def with_context(self, **context: Any) -> "EngineError":
        """Attach context keys that are not already set and return self."""
        for key, value in context.items():
            if value is not None and key not in self.context:
                self.context[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.message,
            "context": dict(self.context),
        }

    def __str__(self) -> str:
        if not self.context:
            return f"[{self.category.value}] {self.message}"
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"[{self.category.value}] {self.message} ({details})"


class InputError(EngineError):
    """Malformed or inconsistent commit/path data."""

    category = ErrorCategory.INPUT


class VcsError(EngineError):
    """Collaborator transport or lookup failure."""

    category = ErrorCategory.VCS


class NotFoundError(VcsError):
    """The requested path does not exist at the requested revision."""

    def __init__(self, path: str, revision: int):
        super().__init__(
            f"{path} does not exist at revision {revision}",
            file=path,
            revision=revision,
        )
        self.path = path
        self.revision = revision


class ParseError(EngineError):
    """Comparison output could not be interpreted."""

    category = ErrorCategory.PARSE


class StrictError(EngineError):
    """An alignment or hunk-tracking invariant was violated."""

    category = ErrorCategory.STRICT


class InternalError(EngineError):
    """Unexpected engine state."""

    category = ErrorCategory.INTERNAL


def wrap_error(
    exc: BaseException,
    category_class: type = InternalError,
    operation: Optional[str] = None,
    **context: Any,
) -> EngineError:
    """Convert ``exc`` into an ``EngineError`` carrying ``context``.

    Engine errors keep their own category; anything else becomes an instance
    of ``category_class``.
    """
    if isinstance(exc, EngineError):
        return exc.with_context(operation=operation, **context)
    return category_class(str(exc) or exc.__class__.__name__, operation=operation, **context)


__all__ = [
    "EngineError",
    "ErrorCategory",
    "InputError",
    "InternalError",
    "NotFoundError",
    "ParseError",
    "StrictError",
    "VcsError",
    "wrap_error",
]
