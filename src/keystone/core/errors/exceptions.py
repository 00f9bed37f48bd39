"""Domain exceptions for the application.

These exceptions represent business-logic errors and are automatically
converted to RFC 7807 Problem Details responses by the exception handlers.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors.

    All domain exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        status_code: HTTP status code for the response
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a requested resource is not found.

    Example:
        raise NotFoundError("Role not found", resource="role", resource_id=str(role_id))
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(AppException):
    """Raised when an operation conflicts with existing data.

    Example:
        raise ConflictError(
            "Role is still assigned",
            details={"assigned_actors": 3},
        )
    """

    message = "Resource conflict"
    error_code = "conflict"
    status_code = 409


class ValidationError(AppException):
    """Raised when request data fails validation.

    Example:
        raise ValidationError(
            "Some permissions are invalid",
            errors=[{"field": "permissions", "message": "Unknown permission jobs:fly"}]
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class AuthenticationRequired(AppException):
    """Raised when no caller identity could be resolved.

    Example:
        raise AuthenticationRequired("Invalid access token")
    """

    message = "Authentication required"
    error_code = "authentication_required"
    status_code = 401


class PermissionDenied(AppException):
    """Raised when the caller is known but lacks a required permission.

    The details name the ``(resource, action)`` pairs involved so a
    legitimate administrator can see what is missing.

    Example:
        raise PermissionDenied(
            details={"required": {"resource": "roles", "action": "delete"}}
        )
    """

    message = "Insufficient permissions"
    error_code = "permission_denied"
    status_code = 403


class InternalError(AppException):
    """Raised when storage fails in the middle of an operation.

    The failed operation has been rolled back when this is raised.
    """

    message = "Internal server error"
    error_code = "internal_error"
    status_code = 500


class ServiceUnavailableError(AppException):
    """Raised when a required service is unavailable.

    Example:
        raise ServiceUnavailableError("Authorization check timed out")
    """

    message = "Service temporarily unavailable"
    error_code = "service_unavailable"
    status_code = 503
