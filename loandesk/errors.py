"""Typed failures raised by the ledger and mapped to HTTP statuses at the boundary."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for every rejection the ledger can produce."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError):
    """An input is out of range or missing; raised before any write."""

    status_code = 400
    default_message = "Bad request, missing required fields"

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Invalid value for {field}")


class BusinessRuleError(LedgerError):
    status_code = 400
    default_message = "Operation violates a ledger rule"


class NotFoundError(LedgerError):
    status_code = 404
    default_message = "Not Found"


class ConflictError(LedgerError):
    status_code = 409
    default_message = "The resource already exists and cannot be created again"


class ForbiddenError(LedgerError):
    status_code = 403
    default_message = "Unauthorized"


class UnauthenticatedError(LedgerError):
    status_code = 401
    default_message = "You are not authorized to access this resource"
