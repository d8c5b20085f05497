"""Domain model entities for tallybook.

These are pure data classes representing business concepts, independent of
database schema. Services exchange these values with the database layer and
with each other; nothing here performs I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    """Kinds of money-movement records."""

    INVOICE = "invoice"
    BILL = "bill"
    EXPENSE = "expense"
    PAYMENT = "payment"
    DEPOSIT = "deposit"
    CHEQUE = "cheque"
    SALES_RECEIPT = "sales_receipt"
    TRANSFER = "transfer"

    @property
    def is_credit_source(self) -> bool:
        """Whether this type carries credit that can be applied to documents."""
        return self in CREDIT_SOURCE_TYPES

    @property
    def is_receivable(self) -> bool:
        """Whether this type carries an outstanding balance that credits reduce."""
        return self in BALANCE_TRACKED_TYPES


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction."""

    OPEN = "open"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNAPPLIED_CREDIT = "unapplied_credit"
    OVERDUE = "overdue"
    PARTIAL = "partial"


class PricingMode(str, Enum):
    """Whether line amounts exclude or include tax."""

    EXCLUSIVE = "exclusive"
    INCLUSIVE = "inclusive"


CREDIT_SOURCE_TYPES = frozenset(
    {TransactionType.PAYMENT, TransactionType.DEPOSIT, TransactionType.CHEQUE}
)
BALANCE_TRACKED_TYPES = frozenset({TransactionType.INVOICE, TransactionType.BILL})
SETTLED_TYPES = frozenset(
    {TransactionType.EXPENSE, TransactionType.SALES_RECEIPT, TransactionType.TRANSFER}
)


@dataclass(frozen=True)
class TaxRate:
    """Tax rate domain entity.

    A composite rate groups component rates (``parent_id`` pointing at the
    composite). Only components are ever applied when they exist.
    """

    id: int
    name: str
    rate: Decimal
    is_composite: bool = False
    parent_id: Optional[int] = None
    display_order: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity."""

    id: int
    reference: str
    type: TransactionType
    date: date
    amount: Decimal
    balance: Decimal
    status: TransactionStatus
    sub_total: Decimal = Decimal("0.00")
    tax_amount: Decimal = Decimal("0.00")
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE
    description: Optional[str] = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    foreign_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class LineItem:
    """Persisted line item belonging to one transaction."""

    id: int
    transaction_id: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    tax_rate_id: Optional[int] = None
    position: int = 0


@dataclass(frozen=True)
class LineItemInput:
    """Line item as supplied by a caller before it is persisted.

    Either ``quantity`` and ``unit_price`` are given, or a flat ``amount``.
    """

    description: str = ""
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    tax_rate_id: Optional[int] = None


@dataclass(frozen=True)
class ApplicationEntry:
    """Record of part of a source's credit consumed against a target."""

    id: int
    source_id: int
    target_id: int
    amount_applied: Decimal
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class LedgerEntry:
    """Historical ledger posting, read only as legacy evidence."""

    id: int
    transaction_id: int
    description: Optional[str]
    debit: Decimal
    credit: Decimal
    date: Optional[date] = None


@dataclass(frozen=True)
class TaxComponent:
    """One tax line produced by the resolver."""

    id: int
    name: str
    rate: Decimal
    amount: Decimal
    is_component: bool = False
    parent_id: Optional[int] = None
    display_order: int = 0


@dataclass(frozen=True)
class TaxBreakdown:
    """Tax computed for a single line amount."""

    components: tuple[TaxComponent, ...]
    tax_amount: Decimal
    subtotal_contribution: Decimal


@dataclass(frozen=True)
class Totals:
    """Result of totalizing a set of line items."""

    sub_total: Decimal
    tax_amount: Decimal
    total: Decimal
    tax_components: tuple[TaxComponent, ...]
    tax_names: tuple[str, ...]
    computed_tax_amount: Decimal
    is_tax_overridden: bool = False


@dataclass
class ReconciliationSummary:
    """Counts reported by one reconciliation pass."""

    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    orphans_folded: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.updated + self.unchanged + self.skipped
