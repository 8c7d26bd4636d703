"""Centralized customized exceptions for dirbridge.

All customized exceptions live in this module (the architecture guard rejects
exception classes defined anywhere else in the package).

Internal code should prefer explicit imports:

    from dirbridge.core.exception import InvalidConfigurationError

Taxonomy:
  - raised by the connector before anything leaves the process:
    RequestTypeMismatchError, InvalidConfigurationError, CriteriaBuildError
  - raised by an execution engine and propagated unchanged:
    AuthenticationError, InvalidConnectionError, ProtocolError, UnknownError
"""

from __future__ import annotations

__all__ = [
    "DirectoryError",
    "RequestTypeMismatchError",
    "InvalidConfigurationError",
    "CriteriaBuildError",
    "AuthenticationError",
    "InvalidConnectionError",
    "ProtocolError",
    "UnknownError",
    "SpecError",
]


class DirectoryError(RuntimeError):
    """Base error for everything raised by the directory connector layer."""


class RequestTypeMismatchError(DirectoryError, TypeError):
    """Raised when an execute method does not match the bound request type."""

    def __init__(self, *, method: str, bound: object, expected: object):
        super().__init__(
            f"{method}() requires a {expected} request, but the connector is bound to a {bound} request"
        )
        self.method = method
        self.bound = bound
        self.expected = expected


class InvalidConfigurationError(DirectoryError, ValueError):
    """Raised when a structural precondition of a request is violated."""


class CriteriaBuildError(DirectoryError, ValueError):
    """Raised when a request cannot be rendered in the target protocol grammar."""


class AuthenticationError(DirectoryError):
    """Raised when the directory rejects the endpoint credentials."""


class InvalidConnectionError(DirectoryError):
    """Raised when the directory server is not reachable."""


class ProtocolError(DirectoryError):
    """Raised when the operation is not supported by the target protocol/server."""


class UnknownError(DirectoryError):
    """Raised for engine failures that fit no other category."""


class SpecError(ValueError):
    """Raised when an endpoint profile file is invalid (schema or semantic)."""
