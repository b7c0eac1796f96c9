"""
Errors raised by the Traffic Config Manager.

Errors coming back from the remote API are mapped onto this hierarchy by the
providers and then propagate unmodified up to the command layer.
"""

from typing import Any, Dict, List, Optional


class TrafficCtlError(Exception):
    """Base class for all errors raised by traffic-ctl."""


class ApiError(TrafficCtlError):
    """The remote API rejected a request."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details or []


class NotFoundError(ApiError):
    """The requested object does not exist."""


class ConflictError(ApiError):
    """A modify or delete carried a stale checksum."""


class ValidationError(TrafficCtlError, ValueError):
    """Malformed command input or a malformed document."""


class BadRequestError(ApiError, ValidationError):
    """The remote API rejected a request as invalid (HTTP 400 or 422)."""


class PartialFailureError(TrafficCtlError):
    """
    A multi-step mutation stopped part way through.

    Mutations that were already applied are not undone. ``partial`` holds the
    objects created before the failure (import), ``applied`` the steps that
    were executed (deep delete). The underlying error is ``__cause__``.
    """

    def __init__(self, message: str, partial: Any = None, applied: Optional[List[str]] = None):
        super().__init__(message)
        self.partial = partial
        self.applied = applied or []


class OperationCancelled(TrafficCtlError):
    """The operator declined a confirmation prompt."""
