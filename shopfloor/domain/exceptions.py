"""
Domain exceptions for the Shopfloor application.

This module defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns.
"""

from typing import Any


class ShopfloorException(Exception):
    """
    Base exception for all Shopfloor application errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for API responses
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(ShopfloorException):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(ShopfloorException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, "AUTHENTICATION_ERROR")


class ResourceNotFoundException(ShopfloorException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class BusinessRuleException(ShopfloorException):
    """Raised when an operation would break a business rule (active session exists, role in use)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", details)


class PermissionDeniedError(ShopfloorException):
    """Permission denied - user lacks required permission."""

    def __init__(
        self,
        message: str = "Permission denied",
        module: str | None = None,
        action: str | None = None,
        required_level: int | None = None,
        actual_level: int | None = None,
    ):
        details: dict[str, Any] = {}
        if module and action:
            details["required_permission"] = f"{module}.{action}"
        if required_level is not None:
            details["required_level"] = required_level
        if actual_level is not None:
            details["actual_level"] = actual_level
        super().__init__(message, "PERMISSION_DENIED", details)
