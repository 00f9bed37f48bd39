"""Error handling module with RFC 7807 Problem Details."""

from keystone.core.errors.exceptions import (
    AppException,
    AuthenticationRequired,
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDenied,
    ServiceUnavailableError,
    ValidationError,
)
from keystone.core.errors.handlers import (
    FieldError,
    ProblemDetail,
    register_exception_handlers,
)


__all__ = [
    # Exceptions
    "AppException",
    "AuthenticationRequired",
    "ConflictError",
    # Handlers
    "FieldError",
    "InternalError",
    "NotFoundError",
    "PermissionDenied",
    "ProblemDetail",
    "ServiceUnavailableError",
    "ValidationError",
    "register_exception_handlers",
]
