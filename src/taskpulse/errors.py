"""Exception types raised by the TaskPulse core."""

from typing import Any, Dict, List, Optional


class TaskPulseError(Exception):
    """Base class for every error the core raises on purpose."""


class ValidationError(TaskPulseError):
    """A required field is missing, out of range, or a transition is illegal.

    ``field`` names the first offending field so a caller can highlight it;
    ``errors`` lists every problem found when several fields fail together.
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None,
                 errors: Optional[List[Dict[str, Any]]] = None):
        self.field = field
        self.value = value
        self.errors = errors or [{"field": field, "message": message, "value": value}]
        super().__init__(message)


class NotFoundError(TaskPulseError):
    """Unknown task or session id."""

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} with ID {identifier} not found")


class StorageError(TaskPulseError):
    """Opaque failure reported by a storage repository."""
