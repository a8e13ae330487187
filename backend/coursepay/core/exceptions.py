# backend/coursepay/core/exceptions.py
"""
Domain-specific exceptions for the payment settlement backend.

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


class PaymentNotFoundException(NotFoundException):
    """Raised when a settlement targets a reference with no payment record."""

    def __init__(self, reference: str):
        super().__init__(
            message="Payment not found",
            code="PAYMENT_NOT_FOUND",
            details={"reference": reference},
        )
        self.reference = reference


class ReconciliationRequiredException(ServiceException):
    """
    Raised when a confirmed payment cannot be settled because the data it
    points at is inconsistent (missing course, instructor, or user row).

    Never retried automatically; an operator has to repair the data.
    """

    def __init__(self, reference: str, reason: str, **details: Any):
        super().__init__(
            message=f"Payment {reference} requires manual reconciliation: {reason}",
            code="RECONCILIATION_REQUIRED",
            details={"reference": reference, "reason": reason, **details},
        )
        self.reference = reference
        self.reason = reason


class InsufficientBalanceException(ValidationException):
    """Raised when a withdrawal exceeds the instructor's available balance."""

    def __init__(self, requested: Any, available: Any):
        super().__init__(
            message="Insufficient balance",
            code="INSUFFICIENT_BALANCE",
            details={"requested": str(requested), "available": str(available)},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class DuplicateSettlementError(RepositoryException):
    """A transaction row for this payment already exists (unique index on payment_id)."""
