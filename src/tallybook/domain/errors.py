"""Shared domain error messages and error types."""

from decimal import Decimal
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic.

    ``bound`` names the limit that was exceeded when the error comes from a
    credit application ("amount", "source_credit" or "target_balance").
    """

    def __init__(self, message: str, bound: Optional[str] = None):
        super().__init__(message)
        self.bound = bound


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DataIntegrityError(DomainError):
    """Stored data violates a structural invariant."""


class ArithmeticAmbiguity(DomainError):
    """Legacy evidence could not be turned into a definite amount."""


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def tax_rate_not_found(tax_rate_id: int) -> str:
    """Return message for missing tax rate."""
    return f"Tax rate {tax_rate_id} not found"


def non_positive_amount(amount: Decimal) -> str:
    """Return message for an application amount that is zero or negative."""
    return f"Amount must be greater than zero (got {amount:.2f})"


def insufficient_source_credit(
    source_reference: str, requested: Decimal, available: Decimal
) -> str:
    """Return message when a credit source cannot cover the requested amount."""
    return (
        f"Source {source_reference} has insufficient remaining credit: "
        f"requested {requested:.2f}, available {available:.2f}"
    )


def target_balance_exceeded(
    target_reference: str, requested: Decimal, outstanding: Decimal
) -> str:
    """Return message when an application would overpay the target."""
    if outstanding == 0:
        return f"Target {target_reference} is already fully paid"
    return (
        f"Amount {requested:.2f} exceeds the outstanding balance of "
        f"{target_reference} ({outstanding:.2f})"
    )


def transaction_has_applications(transaction_id: int, count: int) -> str:
    """Return message when an operation is blocked by recorded applications."""
    return (
        f"Transaction {transaction_id} has {count} "
        f"application{'s' if count != 1 else ''}. Remove them first."
    )


def legacy_applications_pending(reference: str, type_name: str, applied: Decimal) -> str:
    """Return message when a transaction's applications exist only as legacy postings."""
    return (
        f"{type_name.capitalize()} #{reference} has {applied:.2f} applied in legacy ledger "
        "postings only. Run migrations/migrate_backfill_applications.py first."
    )
