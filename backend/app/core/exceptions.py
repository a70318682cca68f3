"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No sensitive data leaks in error messages (OWASP A04)

Every error body shares the response envelope used by successful calls,
with success=false, so clients branch on a single field.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "success": False,
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions (OWASP A07)
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when authentication fails.

    WHY: A single message for every failed step (unknown email, wrong
    password, inactive account) prevents account enumeration.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication failed"


class AuthorizationError(AppException):
    """
    Raised when the actor lacks permissions for an action.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT token is malformed or has an invalid signature."""

    default_message = "Token is invalid"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails outside of schema parsing.

    WHY: Some checks need database state or merged values (e.g. payment
    balances on partial updates) and cannot live in a pydantic schema.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class InputError(ValidationError):
    """Raised when a required query or body input is missing or malformed."""

    default_message = "Invalid input"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class ResourceAlreadyExistsError(AppException):
    """
    Raised when attempting to create a resource that already exists.

    WHY: 409 Conflict indicates the request can't be completed due to
    conflicting state (e.g. a category name already in use).

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Resource already exists"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when a business rule is violated.

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Business rule violation"


class InvalidStateTransitionError(BusinessRuleViolation):
    """
    Raised when an invalid state transition is attempted.

    WHY: Appointments follow a lifecycle (scheduled -> confirmed ->
    in-progress -> completed). Completed, cancelled and no-show are terminal.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


class ResourceInUseError(BusinessRuleViolation):
    """
    Raised when deleting a resource that other records still depend on.

    WHY: A category with services, a doctor or patient with upcoming
    appointments must be detached before removal.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Resource is in use and cannot be deleted"


class SlotUnavailableError(AppException):
    """
    Raised when a requested appointment time conflicts with the doctor's calendar.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Selected time slot is not available"


# ============================================================================
# Database Exceptions
# ============================================================================


class DatabaseError(AppException):
    """
    Raised when database operations fail.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Database error"


# ============================================================================
# Rate Limiting Exceptions
# ============================================================================


class RateLimitExceeded(AppException):
    """
    Raised when rate limit is exceeded.

    HTTP Status: 429 Too Many Requests
    """

    status_code = 429
    default_message = "Rate limit exceeded"


# ============================================================================
# Domain-specific not found errors
# ============================================================================


class UserNotFoundError(ResourceNotFoundError):
    default_message = "User not found"


class DoctorNotFoundError(ResourceNotFoundError):
    default_message = "Doctor not found"


class PatientNotFoundError(ResourceNotFoundError):
    default_message = "Patient not found"


class AppointmentNotFoundError(ResourceNotFoundError):
    default_message = "Appointment not found"


class ServiceCategoryNotFoundError(ResourceNotFoundError):
    default_message = "Service Category not found"


class ClinicServiceNotFoundError(ResourceNotFoundError):
    default_message = "Service not found"


class MedicineNotFoundError(ResourceNotFoundError):
    default_message = "Medicine not found"


class InventoryItemNotFoundError(ResourceNotFoundError):
    default_message = "Inventory item not found"


class UnavailableDateNotFoundError(ResourceNotFoundError):
    default_message = "Unavailable date not found"


# ============================================================================
# Audit Log Exceptions
# ============================================================================


class AuditLogImmutableError(AppException):
    """
    Raised when attempting to modify or delete audit logs.

    WHY: Audit logs are append-only to keep the trail trustworthy.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Audit logs are immutable and cannot be modified"
