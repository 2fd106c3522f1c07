# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the tutoring platform.

These exceptions provide clear, business-focused error messages that
callers of the booking services can catch and map to their own surface.
"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

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

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationException(DomainException):
    """Raised when business validation fails."""


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""


class ServiceException(DomainException):
    """Raised when a service operation fails."""


# Specific business exceptions


class InvalidStatusTransitionException(BusinessRuleException):
    """Raised when a booking is not in the status a transition requires."""

    def __init__(
        self,
        booking_id: str,
        target_status: str,
        current_status: Optional[str] = None,
        *,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message
            or f"Booking {booking_id} cannot move from {current_status or 'its current status'} to {target_status}",
            code="INVALID_STATUS_TRANSITION",
            details={
                "booking_id": booking_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class DisputeAlreadyExistsException(ConflictException):
    """Raised when a booking already has a dispute attached."""

    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Booking {booking_id} already has a dispute",
            code="ALREADY_DISPUTED",
            details={"booking_id": booking_id},
        )


class StoreUnavailableException(ServiceException):
    """Raised when the booking store cannot be reached for a sweep."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="STORE_UNAVAILABLE", details=details or {})


class NotificationDeliveryException(ServiceException):
    """Raised when a notification could not be recorded. Callers treat it as non-fatal."""

    def __init__(self, user_id: str, notification_type: str, reason: str):
        super().__init__(
            message=f"Failed to create {notification_type} notification for user {user_id}: {reason}",
            code="NOTIFICATION_FAILED",
            details={"user_id": user_id, "type": notification_type},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
