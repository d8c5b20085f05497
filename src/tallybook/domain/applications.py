"""Credit and payment application ledger.

The application table is the single record of how much of a payment, deposit
or cheque has been consumed, and by which invoice or bill. Stored balances
and statuses are always recomputed from it, inside the same unit of work as
the entry that changed it. Transactions with no recorded applications fall
back to what their legacy ledger postings say, the same way the reconciler
reads them.
"""

import logging
from decimal import Decimal
from typing import Optional

from tallybook.database.base import Database
from tallybook.domain.entities import (
    SETTLED_TYPES,
    ApplicationEntry,
    Transaction,
    TransactionStatus,
)
from tallybook.domain.errors import (
    DataIntegrityError,
    NotFoundError,
    ValidationError,
    insufficient_source_credit,
    legacy_applications_pending,
    non_positive_amount,
    target_balance_exceeded,
    transaction_not_found,
)
from tallybook.domain.legacy_evidence import LegacyEvidence, LegacyEvidenceAdapter
from tallybook.utils.money import ZERO, is_zero, round2

logger = logging.getLogger(__name__)


def expected_balance_and_status(
    txn: Transaction, applied: Decimal
) -> tuple[Decimal, TransactionStatus]:
    """Derive the balance and status a transaction should carry.

    Args:
        txn: Transaction as stored
        applied: Total applied where ``txn`` is the target (invoices, bills)
            or the source (payments, deposits, cheques)

    Returns:
        (balance, status). Cancelled transactions are returned unchanged.
    """
    if txn.status is TransactionStatus.CANCELLED:
        return txn.balance, txn.status

    if txn.type.is_receivable:
        balance = max(ZERO, round2(txn.amount - applied))
        if is_zero(balance):
            return ZERO, TransactionStatus.COMPLETED
        return balance, TransactionStatus.OPEN

    if txn.type.is_credit_source:
        # Remaining credit is kept negative to tell it apart from amounts owed
        remaining = max(ZERO, round2(abs(txn.amount) - applied))
        if is_zero(remaining):
            return ZERO, TransactionStatus.COMPLETED
        return ZERO - remaining, TransactionStatus.UNAPPLIED_CREDIT

    if txn.type in SETTLED_TYPES:
        return ZERO, TransactionStatus.COMPLETED
    raise ValueError(f"Unhandled transaction type: {txn.type}")


class ApplicationLedgerService:
    """Service for applying credits and payments to invoices and bills."""

    def __init__(self, db: Database, use_legacy_evidence: bool = True):
        """Initialize application ledger service.

        Args:
            db: Database instance
            use_legacy_evidence: Infer applications from posting descriptions
                for transactions with no recorded applications
        """
        self.db = db
        self.use_legacy_evidence = use_legacy_evidence
        self.legacy = LegacyEvidenceAdapter(db)

    def _require(self, transaction_id: int, for_update: bool = False) -> Transaction:
        txn = self.db.get_transaction(transaction_id, for_update=for_update)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    def total_applied(self, transaction_id: int, as_source: bool) -> Decimal:
        """Total recorded as applied from (as_source=True) or to (as_source=False) a transaction."""
        return self.db.sum_applied(transaction_id, as_source=as_source)

    def legacy_evidence(self) -> LegacyEvidence:
        """Collect legacy posting evidence, or nothing when it is switched off."""
        if not self.use_legacy_evidence:
            return LegacyEvidence()
        return self.legacy.collect()

    def applied_amount(self, txn: Transaction, evidence: Optional[LegacyEvidence] = None) -> Decimal:
        """Total applied against (or from) a transaction.

        Recorded applications win whenever the transaction has any; legacy
        evidence is only consulted for transactions with none, and is
        collected on demand when ``evidence`` is not given.

        Raises:
            DataIntegrityError: If a recorded application points at a missing
                or wrongly typed transaction
        """
        if txn.type in SETTLED_TYPES:
            return ZERO

        as_source = txn.type.is_credit_source
        if as_source:
            entries = self.db.list_applications(source_id=txn.id)
        else:
            entries = self.db.list_applications(target_id=txn.id)

        if entries:
            total = ZERO
            for entry in entries:
                counterpart_id = entry.target_id if as_source else entry.source_id
                counterpart = self.db.get_transaction(counterpart_id)
                if counterpart is None:
                    raise DataIntegrityError(
                        f"Application {entry.id} references missing transaction {counterpart_id}"
                    )
                expected_side = counterpart.type.is_receivable if as_source else counterpart.type.is_credit_source
                if not expected_side:
                    raise DataIntegrityError(
                        f"Application {entry.id} links {txn.type.value} #{txn.reference} "
                        f"to {counterpart.type.value} #{counterpart.reference}"
                    )
                total = round2(total + entry.amount_applied)
            return total

        if evidence is None:
            evidence = self.legacy_evidence()
        inferred = evidence.applied_from(txn.id) if as_source else evidence.applied_to(txn.id)
        if inferred > 0:
            logger.debug(
                "Using legacy evidence for %s #%s: %s applied", txn.type.value, txn.reference, inferred
            )
        return inferred

    def remaining_credit(self, source_id: int) -> Decimal:
        """Unconsumed credit of a payment, deposit or cheque (positive)."""
        source = self._require(source_id)
        return max(ZERO, round2(abs(source.amount) - self.applied_amount(source)))

    def remaining_balance(self, target_id: int) -> Decimal:
        """Outstanding amount of an invoice or bill."""
        target = self._require(target_id)
        return max(ZERO, round2(target.amount - self.applied_amount(target)))

    def list_applications(
        self, source_id: Optional[int] = None, target_id: Optional[int] = None
    ) -> list[ApplicationEntry]:
        """List recorded applications."""
        return self.db.list_applications(source_id=source_id, target_id=target_id)

    def apply_credit(self, source_id: int, target_id: int, amount: Decimal) -> ApplicationEntry:
        """Apply part of a source's credit to a target.

        Args:
            source_id: Payment, deposit or cheque supplying the credit
            target_id: Invoice or bill receiving it
            amount: Amount to apply

        Returns:
            The recorded ApplicationEntry

        Raises:
            ValidationError: If the amount is not positive, exceeds the source's
                remaining credit, or exceeds the target's outstanding balance.
                ``error.bound`` names the limit. Also raised, with no bound,
                while either side's applications exist only as legacy
                postings. Nothing is written.
            NotFoundError: If either transaction does not exist
        """
        amount = round2(amount)
        if amount <= 0:
            raise ValidationError(non_positive_amount(amount), bound="amount")

        with self.db.unit_of_work():
            source = self._require(source_id, for_update=True)
            target = self._require(target_id, for_update=True)
            self._check_pair(source, target)
            self._check_no_legacy_only(source, target)

            available = max(ZERO, round2(abs(source.amount) - self.total_applied(source_id, as_source=True)))
            if amount > available:
                raise ValidationError(
                    insufficient_source_credit(source.reference, amount, available),
                    bound="source_credit",
                )

            outstanding = max(ZERO, round2(target.amount - self.total_applied(target_id, as_source=False)))
            if amount > outstanding:
                raise ValidationError(
                    target_balance_exceeded(target.reference, amount, outstanding),
                    bound="target_balance",
                )

            entry_id = self.db.create_application(source_id, target_id, amount)
            self._write_derived(source)
            self._write_derived(target)
            entry = self.db.get_application(entry_id)

        logger.info(
            "Applied %s from %s #%s to %s #%s",
            amount,
            source.type.value,
            source.reference,
            target.type.value,
            target.reference,
        )
        return entry

    def remove_credit(self, source_id: int, target_id: int) -> Decimal:
        """Reverse every application from a source to a target.

        Returns:
            Total amount reversed

        Raises:
            NotFoundError: If no application exists for the pair
        """
        with self.db.unit_of_work():
            source = self._require(source_id, for_update=True)
            target = self._require(target_id, for_update=True)
            removed = self.db.delete_applications(source_id, target_id)
            if not removed:
                raise NotFoundError(
                    f"No application from transaction {source_id} to transaction {target_id}"
                )
            self._write_derived(source)
            self._write_derived(target)

        total = ZERO
        for entry in removed:
            total = round2(total + entry.amount_applied)
        logger.info(
            "Removed %s applied from %s #%s to %s #%s",
            total,
            source.type.value,
            source.reference,
            target.type.value,
            target.reference,
        )
        return total

    def remove_all_for(self, transaction_id: int) -> list[int]:
        """Reverse every application where the transaction is source or target.

        Counterpart balances are refreshed. Runs inside the caller's unit of
        work when there is one.

        Returns:
            IDs of the counterpart transactions that were refreshed
        """
        counterparts: list[int] = []
        with self.db.unit_of_work():
            pairs = {
                (e.source_id, e.target_id)
                for e in self.db.list_applications(source_id=transaction_id)
                + self.db.list_applications(target_id=transaction_id)
            }
            for source_id, target_id in sorted(pairs):
                self.db.delete_applications(source_id, target_id)
                other = target_id if source_id == transaction_id else source_id
                if other not in counterparts:
                    counterparts.append(other)
            for other in counterparts:
                self._write_derived(self._require(other, for_update=True))
            self._write_derived(self._require(transaction_id, for_update=True))
        return counterparts

    def refresh_balance(self, transaction_id: int) -> Transaction:
        """Recompute one transaction's stored balance and status from the ledger."""
        with self.db.unit_of_work():
            txn = self._require(transaction_id, for_update=True)
            self._write_derived(txn)
            return self._require(transaction_id)

    def _check_no_legacy_only(self, source: Transaction, target: Transaction) -> None:
        # Once a side has a recorded entry its legacy postings stop counting
        unrecorded = []
        if not self.db.list_applications(source_id=source.id):
            unrecorded.append(source)
        if not self.db.list_applications(target_id=target.id):
            unrecorded.append(target)
        if not unrecorded:
            return

        evidence = self.legacy_evidence()
        for txn in unrecorded:
            inferred = evidence.applied_from(txn.id) if txn is source else evidence.applied_to(txn.id)
            if inferred > 0:
                raise ValidationError(
                    legacy_applications_pending(txn.reference, txn.type.value, inferred)
                )

    def _write_derived(self, txn: Transaction) -> bool:
        applied = self.applied_amount(txn)
        balance, status = expected_balance_and_status(txn, applied)
        if balance == txn.balance and status is txn.status:
            return False
        self.db.update_balance_and_status(txn.id, balance, status)
        return True

    @staticmethod
    def _check_pair(source: Transaction, target: Transaction) -> None:
        if source.id == target.id:
            raise ValidationError("A transaction cannot be applied to itself")
        if not source.type.is_credit_source:
            raise ValidationError(
                f"{source.type.value.capitalize()} #{source.reference} cannot supply credit; "
                "only payments, deposits and cheques can"
            )
        if not target.type.is_receivable:
            raise ValidationError(
                f"{target.type.value.capitalize()} #{target.reference} cannot receive credit; "
                "only invoices and bills can"
            )
        if source.status is TransactionStatus.CANCELLED:
            raise ValidationError(f"Source #{source.reference} is cancelled")
        if target.status is TransactionStatus.CANCELLED:
            raise ValidationError(f"Target #{target.reference} is cancelled")
