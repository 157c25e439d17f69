"""
Custom Exception Classes for the access core

This module defines the error taxonomy shared by the services, the HTTP
exception handlers and the tagged-result facade. Every expected failure
path raises one of these; anything else is a programming error.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API clients."""

    # Authentication / authorization
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_UNAUTHENTICATED = "AUTH_UNAUTHENTICATED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    # Resources
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ROLE_NOT_FOUND = "RESOURCE_ROLE_NOT_FOUND"
    RESOURCE_USER_NOT_FOUND = "RESOURCE_USER_NOT_FOUND"
    RESOURCE_TENANT_NOT_FOUND = "RESOURCE_TENANT_NOT_FOUND"

    # Validation / business rules
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_DUPLICATE_NAME = "VALIDATION_DUPLICATE_NAME"
    INVALID_OPERATION = "INVALID_OPERATION"
    ROLE_SYSTEM_PROTECTED = "ROLE_SYSTEM_PROTECTED"
    ROLE_IN_USE = "ROLE_IN_USE"

    # Tenant cascade
    TENANT_CASCADE_ABORTED = "TENANT_CASCADE_ABORTED"
    TENANT_CASCADE_PARTIAL_FAILURE = "TENANT_CASCADE_PARTIAL_FAILURE"

    # Store
    STORE_TIMEOUT = "STORE_TIMEOUT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class PgDashError(Exception):
    """Base exception class for all access-core exceptions"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class InvalidCredentialsError(PgDashError):
    """Raised when login fails; unknown email and wrong password look identical."""

    error_code = ErrorCode.AUTH_INVALID_CREDENTIALS

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class UnauthenticatedError(PgDashError):
    """Raised when a request carries no live session"""

    error_code = ErrorCode.AUTH_UNAUTHENTICATED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class UnauthorizedError(PgDashError):
    """Raised when a valid principal lacks the required permission.

    The message never names the missing permission.
    """

    error_code = ErrorCode.AUTH_PERMISSION_DENIED

    def __init__(self, message: str = "Not permitted"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class NotFoundError(PgDashError):
    """Base class for resource not found errors"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class RoleNotFoundError(NotFoundError):
    error_code = ErrorCode.RESOURCE_ROLE_NOT_FOUND

    def __init__(self, role_id: Any | None = None):
        super().__init__(resource_type="Role", resource_id=role_id)


class UserNotFoundError(NotFoundError):
    error_code = ErrorCode.RESOURCE_USER_NOT_FOUND

    def __init__(self, user_id: Any | None = None):
        super().__init__(resource_type="User", resource_id=user_id)


class TenantNotFoundError(NotFoundError):
    error_code = ErrorCode.RESOURCE_TENANT_NOT_FOUND

    def __init__(self, tenant_id: Any | None = None):
        super().__init__(resource_type="Tenant", resource_id=tenant_id)


# ============================================================================
# Validation & Business Rule Exceptions
# ============================================================================


class InvalidInputError(PgDashError):
    """Raised when input validation fails"""

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


class DuplicateNameError(PgDashError):
    """Raised when a uniqueness rule (role name, email, slug) would be violated"""

    error_code = ErrorCode.VALIDATION_DUPLICATE_NAME

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource_type": resource_type, "field": field, "value": value},
        )


class SystemRoleProtectedError(PgDashError):
    """Raised when deleting a built-in system role"""

    error_code = ErrorCode.ROLE_SYSTEM_PROTECTED

    def __init__(self, role_id: Any):
        super().__init__(
            message="System roles cannot be deleted",
            status_code=status.HTTP_409_CONFLICT,
            details={"role_id": role_id},
        )


class RoleInUseError(PgDashError):
    """Raised when deleting a role still assigned to users"""

    error_code = ErrorCode.ROLE_IN_USE

    def __init__(self, role_id: Any, user_count: int | None = None):
        details: dict[str, Any] = {"role_id": role_id}
        if user_count is not None:
            details["user_count"] = user_count
        super().__init__(
            message="Role is assigned to users and cannot be deleted",
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class InvalidOperationError(PgDashError):
    """Raised when an operation is invalid in the current context"""

    error_code = ErrorCode.INVALID_OPERATION

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details or {})


# ============================================================================
# Tenant Cascade Exceptions
# ============================================================================


class CascadeAbortedError(PgDashError):
    """A cascade step failed and every prior step was rolled back."""

    error_code = ErrorCode.TENANT_CASCADE_ABORTED

    def __init__(self, tenant_id: Any, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(
            message=f"Tenant deletion aborted at step '{step}'; no rows were removed",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"tenant_id": tenant_id, "step": step},
        )


class PartialFailureError(PgDashError):
    """A cascade step failed and the rollback could not be confirmed.

    Always fatal; needs manual reconciliation and is never retried.
    """

    error_code = ErrorCode.TENANT_CASCADE_PARTIAL_FAILURE

    def __init__(self, tenant_id: Any, step: str, cause: BaseException, completed_steps: list[str]):
        self.step = step
        self.cause = cause
        self.completed_steps = completed_steps
        super().__init__(
            message=f"Tenant deletion failed at step '{step}' and may be partially applied",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"tenant_id": tenant_id, "step": step, "completed_steps": completed_steps},
        )


# ============================================================================
# Store Exceptions
# ============================================================================


class StoreTimeoutError(PgDashError):
    """Raised when a store call exceeds its time bound"""

    error_code = ErrorCode.STORE_TIMEOUT

    def __init__(self, operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message="The data store did not respond in time",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            details=details,
        )


class StoreUnavailableError(PgDashError):
    """Raised when the store cannot be reached"""

    error_code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message="The data store is unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )
