# backend/masterbook/core/exceptions.py
"""
Domain-specific exceptions for the MasterBook platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class AppointmentConflictException(ConflictException):
    """Raised when a proposed appointment overlaps an existing one."""

    EXACT_OVERLAP = "exact_overlap"
    SPANS_INTO_SLOT = "spans_into_slot"

    def __init__(
        self,
        reason: str,
        *,
        conflicting_appointment_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.reason = reason
        default_message = (
            "Time slot is not available"
            if reason == self.EXACT_OVERLAP
            else "Time slot overlaps with existing appointment"
        )
        super().__init__(
            message=message or default_message,
            code="APPOINTMENT_CONFLICT",
            details={
                "reason": reason,
                "conflicting_appointment_id": conflicting_appointment_id,
            },
        )


class InvalidTransitionException(ConflictException):
    """Raised when an appointment status change is not allowed."""

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot change appointment from {current_status} to {requested_status}",
            code="INVALID_TRANSITION",
            details={"current_status": current_status, "requested_status": requested_status},
        )


class TemplateValidationException(ValidationException):
    """Raised when a weekly availability rule fails validation."""

    def __init__(self, rule_index: int, check: str, message: str):
        super().__init__(
            message=message,
            code="INVALID_AVAILABILITY_RULE",
            details={"rule_index": rule_index, "check": check},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
