"""Error types raised by the editing engine.

Every failure an operation can report maps onto one :class:`ErrorKind`.
The operation runner in :mod:`unityedit.commit` turns these exceptions
into structured failure results; nothing below it catches them.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from unityedit.validator import ValidationResult


class ErrorKind(Enum):
    """Failure categories surfaced in operation results."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_INPUT = "invalid_input"
    STRUCTURAL_VIOLATION = "structural_violation"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    VALIDATION_FAILED = "validation_failed"
    IO_FAILURE = "io_failure"


class UnityEditError(Exception):
    """Base class for all expected editing failures."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a JSON failure result."""
        result: dict[str, Any] = {"error": self.message, "error_kind": self.kind.value}
        result.update(self.details)
        return result


class NotFoundError(UnityEditError):
    """A file, object, component, transform or parent does not exist."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(UnityEditError):
    """The target of a create-style operation is already present."""

    kind = ErrorKind.ALREADY_EXISTS


class InvalidInputError(UnityEditError):
    """Malformed or out-of-range caller input."""

    kind = ErrorKind.INVALID_INPUT


class StructuralViolationError(UnityEditError):
    """The operation would break the object graph (cycles, forbidden targets)."""

    kind = ErrorKind.STRUCTURAL_VIOLATION


class UnresolvedReferenceError(UnityEditError):
    """A GUID could not be resolved or the referenced asset is unreadable."""

    kind = ErrorKind.UNRESOLVED_REFERENCE


class ValidationFailedError(UnityEditError):
    """The mutated document failed the pre-commit checks."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, result: ValidationResult | None = None, **details: Any):
        super().__init__(message, **details)
        self.result = result

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.result is not None:
            result["issues"] = [str(issue) for issue in self.result.errors]
        return result


class IOFailureError(UnityEditError):
    """Reading or writing a file failed."""

    kind = ErrorKind.IO_FAILURE
