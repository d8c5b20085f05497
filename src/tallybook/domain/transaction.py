"""Transaction domain service."""

import logging
from typing import Mapping, Optional, Sequence
from datetime import date
from decimal import Decimal

from tallybook.database.base import Database
from tallybook.domain.applications import ApplicationLedgerService
from tallybook.domain.entities import (
    BALANCE_TRACKED_TYPES,
    CREDIT_SOURCE_TYPES,
    ApplicationEntry,
    LineItem,
    LineItemInput,
    PricingMode,
    Totals,
    Transaction as TransactionEntity,
    TransactionStatus,
    TransactionType,
)
from tallybook.domain.errors import (
    NotFoundError,
    ValidationError,
    transaction_has_applications,
    transaction_not_found,
)
from tallybook.domain.legacy_evidence import parse_parent_payment_id
from tallybook.domain.tax import TaxService
from tallybook.domain.totals import line_amount, totalize
from tallybook.utils.money import ZERO, is_zero, round2

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = BALANCE_TRACKED_TYPES | {TransactionType.EXPENSE, TransactionType.SALES_RECEIPT}


class TransactionService:
    """Service for creating, editing and removing transactions."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db
        self.tax_service = TaxService(db)
        self.ledger = ApplicationLedgerService(db)

    def compute_totals(
        self,
        line_items: Sequence[LineItemInput],
        pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
        manual_tax_override: Optional[Decimal] = None,
        component_overrides: Optional[Mapping[int, Decimal]] = None,
    ) -> Totals:
        """Totalize line items against the stored tax rates without saving anything."""
        return totalize(
            line_items,
            pricing_mode,
            self.tax_service.get_resolver(),
            manual_tax_override=manual_tax_override,
            component_overrides=component_overrides,
        )

    def create_document(
        self,
        type: TransactionType,
        reference: str,
        date: date,
        line_items: Sequence[LineItemInput],
        pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
        manual_tax_override: Optional[Decimal] = None,
        component_overrides: Optional[Mapping[int, Decimal]] = None,
        currency: Optional[str] = None,
        exchange_rate: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create an invoice, bill, expense or sales receipt from line items.

        Args:
            type: Document type
            reference: Document number
            date: Document date
            line_items: Lines in document order (at least one)
            pricing_mode: Whether line amounts exclude or include tax
            manual_tax_override: Hand-edited tax amount
            component_overrides: Hand-edited tax per component ID
            currency: Document currency code, if not the home currency
            exchange_rate: Already-resolved rate from document to home currency
            description: Optional description

        Returns:
            Transaction ID

        Raises:
            ValidationError: If the type, lines or currency data are invalid
        """
        type = TransactionType(type)
        if type not in DOCUMENT_TYPES:
            raise ValidationError(f"Cannot create a {type.value} from line items")
        reference = self._require_reference(reference)
        if not line_items:
            raise ValidationError("At least one line item is required")
        if exchange_rate is not None and exchange_rate <= 0:
            raise ValidationError(f"Exchange rate must be positive (got {exchange_rate})")

        totals = self.compute_totals(line_items, pricing_mode, manual_tax_override, component_overrides)
        amount, foreign_amount = self._home_amount(totals.total, exchange_rate)
        if amount < 0:
            raise ValidationError(f"Document total cannot be negative (got {amount:.2f})")

        if type in BALANCE_TRACKED_TYPES:
            balance = amount
            status = TransactionStatus.COMPLETED if is_zero(amount) else TransactionStatus.OPEN
        else:
            balance = ZERO
            status = TransactionStatus.COMPLETED

        with self.db.unit_of_work():
            transaction_id = self.db.create_transaction(
                reference=reference,
                type=type,
                date=date,
                amount=amount,
                balance=balance,
                status=status,
                sub_total=totals.sub_total,
                tax_amount=totals.tax_amount,
                pricing_mode=PricingMode(pricing_mode).value,
                description=description,
                currency=currency,
                exchange_rate=exchange_rate,
                foreign_amount=foreign_amount,
            )
            self._save_line_items(transaction_id, line_items)

        logger.info("Created %s #%s for %s", type.value, reference, amount)
        return transaction_id

    def create_credit_source(
        self,
        type: TransactionType,
        reference: str,
        date: date,
        amount: Decimal,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        exchange_rate: Optional[Decimal] = None,
    ) -> int:
        """Create a payment, deposit or cheque holding unapplied credit.

        Returns:
            Transaction ID

        Raises:
            ValidationError: If the type is not a credit source or the amount is not positive
        """
        type = TransactionType(type)
        if type not in CREDIT_SOURCE_TYPES:
            raise ValidationError(f"A {type.value} cannot hold credit")
        reference = self._require_reference(reference)
        amount = round2(amount)
        if amount <= 0:
            raise ValidationError(f"Amount must be greater than zero (got {amount:.2f})")
        if exchange_rate is not None and exchange_rate <= 0:
            raise ValidationError(f"Exchange rate must be positive (got {exchange_rate})")

        home_amount, foreign_amount = self._home_amount(amount, exchange_rate)
        transaction_id = self.db.create_transaction(
            reference=reference,
            type=type,
            date=date,
            amount=home_amount,
            balance=ZERO - home_amount,
            status=TransactionStatus.UNAPPLIED_CREDIT,
            description=description,
            currency=currency,
            exchange_rate=exchange_rate,
            foreign_amount=foreign_amount,
        )
        logger.info("Created %s #%s with %s of credit", type.value, reference, home_amount)
        return transaction_id

    def receive_payment(
        self,
        reference: str,
        date: date,
        amount: Decimal,
        applications: Mapping[int, Decimal],
        description: Optional[str] = None,
        type: TransactionType = TransactionType.PAYMENT,
    ) -> tuple[int, list[ApplicationEntry]]:
        """Record a payment and apply it to invoices or bills.

        Args:
            reference: Payment reference
            date: Payment date
            amount: Amount received or paid
            applications: Target transaction ID -> amount to apply
            description: Optional description
            type: Payment or cheque

        Returns:
            (payment ID, recorded application entries)

        Raises:
            ValidationError: If the applications add up to more than the amount,
                or any single application is rejected by the ledger. The
                payment and its applications are written together or not at all.
        """
        amount = round2(amount)
        requested = ZERO
        for value in applications.values():
            requested = round2(requested + round2(value))
        if requested > amount:
            raise ValidationError(
                f"Applications total {requested:.2f} but the payment is only {amount:.2f}",
                bound="source_credit",
            )

        with self.db.unit_of_work():
            payment_id = self.create_credit_source(
                type=type, reference=reference, date=date, amount=amount, description=description
            )
            entries = [
                self.ledger.apply_credit(payment_id, target_id, value)
                for target_id, value in applications.items()
            ]
        return payment_id, entries

    def update_line_items(
        self,
        transaction_id: int,
        line_items: Sequence[LineItemInput],
        pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
        manual_tax_override: Optional[Decimal] = None,
        component_overrides: Optional[Mapping[int, Decimal]] = None,
    ) -> TransactionEntity:
        """Replace a document's line items and recompute its totals.

        Raises:
            NotFoundError: If the transaction does not exist
            ValidationError: If the document cannot be edited or the new total
                is below what has already been applied to it
        """
        if not line_items:
            raise ValidationError("At least one line item is required")

        with self.db.unit_of_work():
            txn = self._require(transaction_id, for_update=True)
            if txn.type not in DOCUMENT_TYPES:
                raise ValidationError(f"{txn.type.value.capitalize()} #{txn.reference} has no line items")
            if txn.status is TransactionStatus.CANCELLED:
                raise ValidationError(f"{txn.type.value.capitalize()} #{txn.reference} is cancelled")

            totals = self.compute_totals(line_items, pricing_mode, manual_tax_override, component_overrides)
            amount, foreign_amount = self._home_amount(totals.total, txn.exchange_rate)
            applied = self.ledger.applied_amount(txn)
            if amount < applied:
                raise ValidationError(
                    f"New total {amount:.2f} is less than the {applied:.2f} already applied "
                    f"to {txn.type.value} #{txn.reference}",
                    bound="target_balance",
                )

            self.db.delete_line_items(txn.id)
            self._save_line_items(txn.id, line_items)
            self.db.update_transaction_totals(
                txn.id,
                sub_total=totals.sub_total,
                tax_amount=totals.tax_amount,
                amount=amount,
                pricing_mode=PricingMode(pricing_mode).value,
                foreign_amount=foreign_amount,
            )
            updated = self.ledger.refresh_balance(txn.id)

        logger.info("Updated %s #%s: total %s -> %s", txn.type.value, txn.reference, txn.amount, amount)
        return updated

    def cancel_transaction(self, transaction_id: int) -> None:
        """Cancel a transaction that nothing has been applied to or from.

        Raises:
            NotFoundError: If the transaction does not exist
            ValidationError: If applications reference it
        """
        with self.db.unit_of_work():
            txn = self._require(transaction_id, for_update=True)
            count = len(self.db.list_applications(source_id=txn.id)) + len(
                self.db.list_applications(target_id=txn.id)
            )
            if count:
                raise ValidationError(transaction_has_applications(txn.id, count))
            self.db.update_status(txn.id, TransactionStatus.CANCELLED)
        logger.info("Cancelled %s #%s", txn.type.value, txn.reference)

    def delete_transaction(self, transaction_id: int) -> dict[str, list[int]]:
        """Delete a transaction and everything that hangs off it.

        Applications where it is source or target are reversed first, so the
        counterpart invoices, bills and credits get their balances back.
        Unapplied-credit deposits generated from a deleted payment go too.

        Returns:
            Dict with ``restored`` (counterpart IDs refreshed) and
            ``deleted`` (IDs removed, this transaction last)

        Raises:
            NotFoundError: If the transaction does not exist
        """
        with self.db.unit_of_work():
            txn = self._require(transaction_id, for_update=True)
            deleted: list[int] = []
            restored: list[int] = []

            if txn.type is TransactionType.PAYMENT:
                for credit in self._generated_credits(txn.id):
                    restored.extend(self.ledger.remove_all_for(credit.id))
                    self.db.delete_ledger_entries(credit.id)
                    self.db.delete_transaction(credit.id)
                    deleted.append(credit.id)

            restored.extend(self.ledger.remove_all_for(txn.id))
            self.db.delete_ledger_entries(txn.id)
            self.db.delete_line_items(txn.id)
            self.db.delete_transaction(txn.id)
            deleted.append(txn.id)

        restored = [r for r in dict.fromkeys(restored) if r not in deleted]
        logger.info(
            "Deleted %s #%s (%d related deleted, %d restored)",
            txn.type.value,
            txn.reference,
            len(deleted) - 1,
            len(restored),
        )
        return {"restored": restored, "deleted": deleted}

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def get_line_items(self, transaction_id: int) -> list[LineItem]:
        """Get the stored line items of a transaction."""
        return self.db.get_line_items(transaction_id)

    def list_transactions(
        self,
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[TransactionEntity]:
        """List transactions with filters.

        Args:
            type: Optional transaction type filter
            status: Optional status filter
            start_date: Optional start date filter
            end_date: Optional end date filter

        Returns:
            List of transaction entities
        """
        return self.db.list_transactions(type=type, status=status, start_date=start_date, end_date=end_date)

    def _require(self, transaction_id: int, for_update: bool = False) -> TransactionEntity:
        txn = self.db.get_transaction(transaction_id, for_update=for_update)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    @staticmethod
    def _require_reference(reference: str) -> str:
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("Reference is required")
        return reference

    @staticmethod
    def _home_amount(
        total: Decimal, exchange_rate: Optional[Decimal]
    ) -> tuple[Decimal, Optional[Decimal]]:
        """Return (home currency amount, foreign amount or None)."""
        if exchange_rate is None:
            return round2(total), None
        return round2(total * exchange_rate), round2(total)

    def _save_line_items(self, transaction_id: int, line_items: Sequence[LineItemInput]) -> None:
        for position, item in enumerate(line_items):
            amount = line_amount(item)
            quantity = item.quantity if item.quantity is not None else Decimal("1")
            unit_price = item.unit_price if item.unit_price is not None else amount
            self.db.add_line_item(
                transaction_id=transaction_id,
                description=item.description,
                quantity=quantity,
                unit_price=unit_price,
                amount=amount,
                tax_rate_id=item.tax_rate_id,
                position=position,
            )

    def _generated_credits(self, payment_id: int) -> list[TransactionEntity]:
        return [
            txn
            for txn in self.db.list_transactions(type=TransactionType.DEPOSIT)
            if parse_parent_payment_id(txn.description) == payment_id
        ]
