"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from tallybook.domain.entities import (
    TaxRate,
    Transaction,
    TransactionStatus,
    TransactionType,
    LineItem,
    ApplicationEntry,
    LedgerEntry,
)


class Database(ABC):
    """Abstract database interface for tallybook."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Group writes into one storage transaction.

        Writes made inside the block are committed together when the outermost
        block exits normally and rolled back if it raises. Nested blocks join
        the enclosing one.
        """
        pass

    # Tax rate operations
    @abstractmethod
    def create_tax_rate(
        self,
        name: str,
        rate: Decimal,
        is_composite: bool = False,
        parent_id: Optional[int] = None,
        display_order: int = 0,
    ) -> int:
        """Create a tax rate. Returns tax rate ID."""
        pass

    @abstractmethod
    def get_tax_rate(self, tax_rate_id: int) -> Optional[TaxRate]:
        """Get tax rate by ID."""
        pass

    @abstractmethod
    def list_tax_rates(self, include_inactive: bool = False) -> list[TaxRate]:
        """List tax rates ordered by display order, then ID."""
        pass

    @abstractmethod
    def set_tax_rate_active(self, tax_rate_id: int, is_active: bool) -> None:
        """Activate or deactivate a tax rate."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        reference: str,
        type: TransactionType,
        date: date,
        amount: Decimal,
        balance: Decimal,
        status: TransactionStatus,
        sub_total: Decimal = Decimal("0.00"),
        tax_amount: Decimal = Decimal("0.00"),
        pricing_mode: str = "exclusive",
        description: Optional[str] = None,
        currency: Optional[str] = None,
        exchange_rate: Optional[Decimal] = None,
        foreign_amount: Optional[Decimal] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int, for_update: bool = False) -> Optional[Transaction]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID
            for_update: Lock the row for the rest of the unit of work where the
                engine supports row-level locks
        """
        pass

    @abstractmethod
    def find_transactions_by_reference(
        self, reference: str, type: Optional[TransactionType] = None
    ) -> list[Transaction]:
        """Find transactions with the given reference, optionally of one type."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Transaction]:
        """List transactions with optional filters, ordered by date then ID."""
        pass

    @abstractmethod
    def list_transaction_ids(self, types: Optional[list[TransactionType]] = None) -> list[int]:
        """List transaction IDs, optionally restricted to some types."""
        pass

    @abstractmethod
    def update_transaction_totals(
        self,
        transaction_id: int,
        sub_total: Decimal,
        tax_amount: Decimal,
        amount: Decimal,
        pricing_mode: str,
        foreign_amount: Optional[Decimal] = None,
    ) -> None:
        """Overwrite the stored totals of a transaction after a full edit."""
        pass

    @abstractmethod
    def update_balance_and_status(
        self, transaction_id: int, balance: Decimal, status: TransactionStatus
    ) -> None:
        """Overwrite stored balance and status."""
        pass

    @abstractmethod
    def update_amount(self, transaction_id: int, amount: Decimal) -> None:
        """Overwrite stored amount only."""
        pass

    @abstractmethod
    def update_status(self, transaction_id: int, status: TransactionStatus) -> None:
        """Overwrite stored status only."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction with its line items and ledger postings."""
        pass

    # Line item operations
    @abstractmethod
    def add_line_item(
        self,
        transaction_id: int,
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
        amount: Decimal,
        tax_rate_id: Optional[int] = None,
        position: int = 0,
    ) -> int:
        """Add a line item to a transaction. Returns line item ID."""
        pass

    @abstractmethod
    def get_line_items(self, transaction_id: int) -> list[LineItem]:
        """Get line items for a transaction in position order."""
        pass

    @abstractmethod
    def delete_line_items(self, transaction_id: int) -> int:
        """Delete all line items of a transaction. Returns number deleted."""
        pass

    # Application ledger operations
    @abstractmethod
    def create_application(self, source_id: int, target_id: int, amount_applied: Decimal) -> int:
        """Record an application entry. Returns entry ID."""
        pass

    @abstractmethod
    def get_application(self, application_id: int) -> Optional[ApplicationEntry]:
        """Get an application entry by ID."""
        pass

    @abstractmethod
    def list_applications(
        self, source_id: Optional[int] = None, target_id: Optional[int] = None
    ) -> list[ApplicationEntry]:
        """List application entries filtered by source and/or target."""
        pass

    @abstractmethod
    def delete_applications(self, source_id: int, target_id: int) -> list[ApplicationEntry]:
        """Delete all entries for a source/target pair. Returns the removed entries."""
        pass

    @abstractmethod
    def sum_applied(self, transaction_id: int, as_source: bool) -> Decimal:
        """Sum application amounts where the transaction is the source or the target."""
        pass

    # Ledger posting operations
    @abstractmethod
    def create_ledger_entry(
        self,
        transaction_id: int,
        description: Optional[str],
        debit: Decimal = Decimal("0.00"),
        credit: Decimal = Decimal("0.00"),
        date: Optional[date] = None,
    ) -> int:
        """Record a ledger posting. Returns entry ID."""
        pass

    @abstractmethod
    def list_ledger_entries(
        self, transaction_id: Optional[int] = None, description_like: Optional[str] = None
    ) -> list[LedgerEntry]:
        """List ledger postings, optionally filtered by transaction or a LIKE pattern."""
        pass

    @abstractmethod
    def delete_ledger_entries(self, transaction_id: int) -> int:
        """Delete the ledger postings of a transaction. Returns number deleted."""
        pass
