"""
Domain-specific exceptions for the Ledger Approvals service.

Fatal errors raised by the approval workflow are mapped to HTTP status
codes in the API layer. Non-fatal stage errors are never raised to the
caller; they are recorded as SoftFailure entries on the approval outcome.
"""

from typing import Any


class LedgerApprovalError(Exception):
    """Base exception for all ledger approval domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(LedgerApprovalError):
    """
    Raised when input data fails validation.

    Examples:
    - Disbursement requested for a non-loan transaction
    - Malformed transaction reference

    HTTP Status: 400 Bad Request
    """

    pass


class NotFoundError(LedgerApprovalError):
    """
    Raised when a requested resource does not exist.

    Examples:
    - Transaction reference resolves by neither internal nor external id
    - Owning user of a transaction no longer exists

    HTTP Status: 404 Not Found
    """

    pass


class InvalidTransitionError(LedgerApprovalError):
    """
    Raised when a status change would move a transaction backwards.

    Examples:
    - Approving a Rejected transaction

    HTTP Status: 409 Conflict
    """

    pass


class ConcurrencyConflictError(LedgerApprovalError):
    """
    Raised when a version-checked save finds the record was changed meanwhile.

    Examples:
    - Two disbursements applied to the same user balance concurrently

    HTTP Status: 409 Conflict
    """

    pass


class PersistenceError(LedgerApprovalError):
    """
    Raised when the ledger store fails to persist a record.

    Examples:
    - Database unavailable while saving the status transition

    HTTP Status: 503 Service Unavailable
    """

    pass


ERROR_STATUS_MAP = {
    ValidationError: 400,
    NotFoundError: 404,
    InvalidTransitionError: 409,
    ConcurrencyConflictError: 409,
    PersistenceError: 503,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)
