# barber_scheduling/exceptions.py
"""
Domain exceptions for the scheduling engine.

Every rule violation is raised as one of these with a stable ``code`` and a
``details`` dict carrying the structured context (offending interval,
conflicting entity, configured hours) so the API layer can build a precise
message without re-deriving anything.
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
    """Raised when a caller-fixable business rule is violated."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class InfrastructureException(DomainException):
    """Raised when the data store fails for reasons unrelated to business rules."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "The scheduling store is unavailable, please try again",
            code="STORE_UNAVAILABLE",
            details=details,
        )


# Specific exceptions


class BookingConflictException(ConflictException):
    """Raised when an interval overlaps an existing non-terminal appointment."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "This time slot conflicts with an existing appointment",
            code="APPOINTMENT_CONFLICT",
            details=details,
        )


class BlockedIntervalException(ConflictException):
    """Raised when an interval falls inside an active time block."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="TIME_BLOCKED", details=details)


class TransactionContentionException(InfrastructureException):
    """Serialization failure, lock wait exceeded or transaction timeout.

    Not retried here; the caller decides whether to try again.
    """

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message or "Another booking is being processed for this time, please try again",
            details=details,
        )
        self.code = "TRANSACTION_CONTENTION"
