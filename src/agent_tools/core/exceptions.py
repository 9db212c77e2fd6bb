"""
Exception classes for agent-tools.

Every failure leaving the registry core is one of these. Callers decide
whether to retry from ``retryable``: validation, duplicate, not-found and
state errors are the caller's fault, internal errors are transient.
"""

import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from agent_tools.utils.logging import get_logger

logger = get_logger(__name__)


class RegistryError(Exception):
    """Base exception for all registry errors."""

    default_code = "REGISTRY_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize RegistryError.

        Args:
            message: Error message
            error_code: Machine-readable code, defaults to the class code
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        """String representation of the error."""
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(RegistryError):
    """Malformed or missing request fields."""

    default_code = "INVALID_REQUEST"


class DuplicateError(RegistryError):
    """An active tool with the same name, version and provider exists."""

    default_code = "DUPLICATE_TOOL"


class NotFoundError(RegistryError):
    """Unknown ID, or an ID owned by someone else for mutations."""

    default_code = "NOT_FOUND"


class InvalidStateError(RegistryError):
    """Invocation is not in a state that allows the requested transition."""

    default_code = "INVALID_STATE"


class InternalError(RegistryError):
    """Underlying persistence failure."""

    default_code = "INTERNAL_ERROR"
    retryable = True


class StoreError(InternalError):
    """The store could not be opened, migrated or used."""

    default_code = "STORE_ERROR"


class OperationCancelledError(InternalError):
    """The caller's deadline passed or the operation was cancelled."""

    default_code = "CANCELLED"


@contextmanager
def classify_store_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Translate raw sqlite failures into ``InternalError``.

    Registry errors raised inside the block pass through untouched; the
    storage engine's own message only travels in ``details["cause"]``.
    """
    try:
        yield
    except RegistryError:
        raise
    except sqlite3.Error as e:
        logger.error(f"{operation} failed", extra={
            **context,
            "error": str(e),
            "error_type": type(e).__name__,
        })
        raise InternalError(f"{operation} failed", details={
            **context,
            "cause": str(e),
        }) from e
