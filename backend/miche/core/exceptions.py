# backend/miche/core/exceptions.py
"""
Domain-specific exceptions for the Miche Mobile booking backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every error kind carries a distinct, actionable user-facing message.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


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
    """Raised when input is malformed. Always raised before any I/O."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotUnavailableException(ConflictException):
    """Raised when a booking or blocked interval already claims the requested slot."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time was just taken, please pick another.",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class BlockedIntervalOverlapException(ConflictException):
    """Raised when a new blocked interval overlaps an existing one."""

    def __init__(self, new_range: str, conflicting_range: str):
        super().__init__(
            message=f"Blocked time {new_range} overlaps existing blocked time {conflicting_range}",
            code="BLOCKED_INTERVAL_OVERLAP",
            details={"new_interval": new_range, "conflicting_interval": conflicting_range},
        )


class ServiceNotFoundException(NotFoundException):
    def __init__(self, service_id: str):
        super().__init__(
            message="This service is no longer offered. Please choose another service.",
            code="SERVICE_NOT_FOUND",
            details={"service_id": service_id},
        )


class ProfessionalNotFoundException(NotFoundException):
    def __init__(self, professional_id: str):
        super().__init__(
            message="We couldn't find that professional.",
            code="PROFESSIONAL_NOT_FOUND",
            details={"professional_id": professional_id},
        )


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="We couldn't find that booking.",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class NotPayableException(BusinessRuleException):
    """Raised when the professional has no onboarded external account to receive payment."""

    def __init__(self, professional_id: str, reason: str = "no_external_account"):
        super().__init__(
            message=(
                "This professional can't accept online payments yet. "
                "Please choose another professional or try again later."
            ),
            code="NOT_PAYABLE",
            details={"professional_id": professional_id, "reason": reason},
        )


class InvalidBookingStateException(BusinessRuleException):
    """Raised when an operation requires a booking status the booking is not in."""

    def __init__(self, booking_id: str, current_status: str, required_status: str):
        super().__init__(
            message=f"Booking is {current_status}; this action needs it to be {required_status}.",
            code="INVALID_BOOKING_STATE",
            details={
                "booking_id": booking_id,
                "status": current_status,
                "required_status": required_status,
            },
        )


class AuthorizationDeniedException(ForbiddenException):
    """
    Raised when a scoped write was rejected and no elevated path succeeded.

    Carries the original authorization error as ``__cause__``.
    """

    def __init__(self, operation: str, original_error: str, fallback_error: Optional[str] = None):
        details: Dict[str, Any] = {"operation": operation, "original_error": original_error}
        if fallback_error:
            details["fallback_error"] = fallback_error
        super().__init__(
            message="You're not allowed to make this change.",
            code="AUTHORIZATION_DENIED",
            details=details,
        )


class ExternalProcessorException(ServiceException):
    """Raised when the payment processor failed or returned an unexpected state."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: str = "EXTERNAL_PROCESSOR_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message
            or "Our payment provider is having trouble right now. Please try payment again.",
            code=code,
            details=details or {},
        )


class PriceResolutionFailedException(ExternalProcessorException):
    """Raised when no payable price could be obtained for a service."""

    def __init__(self, service_id: str, reason: str):
        super().__init__(
            message="We couldn't prepare this service for payment. Please try payment again.",
            code="PRICE_RESOLUTION_FAILED",
            details={"service_id": service_id, "reason": reason},
        )


class AlreadySettledException(ConflictException):
    """
    Raised by the atomic settlement write when the booking is no longer pending.

    Not a true error: the Settlement Confirmer turns it into a normal return of
    the existing booking.
    """

    def __init__(self, booking_id: str, current_status: str):
        super().__init__(
            message="This booking has already been settled.",
            code="ALREADY_SETTLED",
            details={"booking_id": booking_id, "status": current_status},
        )


class PaymentAlreadyCompletedException(ConflictException):
    """Raised when checkout is retried for a booking whose session was already paid."""

    def __init__(self, booking_id: str, current_status: str):
        super().__init__(
            message="This booking has already been paid. No further payment is needed.",
            code="PAYMENT_ALREADY_COMPLETED",
            details={"booking_id": booking_id, "status": current_status},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class StorageAuthorizationError(RepositoryException):
    """
    Raised when the storage layer rejected an operation for an authorization reason
    (row-level security policy or missing privilege).
    """
