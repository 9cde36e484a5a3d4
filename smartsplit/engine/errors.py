"""
Engine error taxonomy.

ValidationError: the caller's input is malformed or inconsistent. Messages
are written for end users and may be shown verbatim.

InvariantViolation: a post-condition failed. This is a defect in the engine
or in data that bypassed validation; it is logged loudly and the operation
fails. There are no retryable errors because the engine performs no I/O.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for ledger engine errors."""
    pass


class ValidationError(LedgerError, ValueError):
    """Malformed or inconsistent input."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        self.message = message
        super().__init__(message)


class InvariantViolation(LedgerError):
    """An internal post-condition did not hold."""

    def __init__(
        self,
        invariant: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.invariant = invariant
        self.details = details or {}
        super().__init__(message)


def invariant_violated(
    logger,
    invariant: str,
    message: str,
    **details: Any,
) -> InvariantViolation:
    """
    Log an invariant failure at error level and build the exception.

    Usage:
        raise invariant_violated(log, "zero_sum", "Balances do not sum to zero", total=3)
    """
    logger.error("invariant_violation", invariant=invariant, message=message, **details)
    return InvariantViolation(invariant, message, details)
