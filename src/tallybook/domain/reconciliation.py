"""Balance reconciliation pass.

Recomputes the balance and status of every transaction from the application
ledger (falling back to legacy posting evidence for rows that predate it),
folds orphaned unapplied-credit deposits back into their payments, and writes
only what differs. Each transaction is reconciled in its own unit of work, so
the pass can run at startup or alongside normal traffic and can be re-run at
any time.
"""

import logging
from dataclasses import replace

from tallybook.database.base import Database
from tallybook.domain.applications import ApplicationLedgerService, expected_balance_and_status
from tallybook.domain.entities import (
    BALANCE_TRACKED_TYPES,
    CREDIT_SOURCE_TYPES,
    SETTLED_TYPES,
    ReconciliationSummary,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from tallybook.domain.errors import (
    ArithmeticAmbiguity,
    DataIntegrityError,
    DomainError,
)
from tallybook.domain.legacy_evidence import (
    ORPHAN_CREDIT_MARKER,
    LegacyEvidence,
    LegacyEvidenceAdapter,
    parse_parent_payment_id,
)
from tallybook.utils.money import ZERO, is_zero, round2

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Service that brings stored balances and statuses back in line with the ledger."""

    def __init__(self, db: Database, use_legacy_evidence: bool = True):
        """Initialize reconciliation service.

        Args:
            db: Database instance
            use_legacy_evidence: Infer applications from posting descriptions
                for transactions with no recorded applications
        """
        self.db = db
        self.use_legacy_evidence = use_legacy_evidence
        self.legacy = LegacyEvidenceAdapter(db)
        self.ledger = ApplicationLedgerService(db, use_legacy_evidence=use_legacy_evidence)

    def run(self) -> ReconciliationSummary:
        """Run one full pass.

        Never raises: a transaction that cannot be reconciled is logged,
        counted as skipped and left as it was.

        Returns:
            ReconciliationSummary with updated/unchanged/skipped counts
        """
        summary = ReconciliationSummary()
        evidence = self._collect_evidence(summary)

        self._fold_orphaned_credits(evidence, summary)

        for group in (BALANCE_TRACKED_TYPES, CREDIT_SOURCE_TYPES, SETTLED_TYPES):
            try:
                transaction_ids = self.db.list_transaction_ids(types=sorted(group, key=lambda t: t.value))
            except Exception as e:
                logger.exception("Could not list transactions for reconciliation")
                summary.errors.append(f"Listing transactions failed: {e}")
                continue
            for transaction_id in transaction_ids:
                self._reconcile_transaction(transaction_id, evidence, summary)

        logger.info(
            "Reconciliation complete: %d updated, %d unchanged, %d skipped, %d orphaned credits folded",
            summary.updated,
            summary.unchanged,
            summary.skipped,
            summary.orphans_folded,
        )
        return summary

    def reconcile_transaction(self, transaction_id: int) -> ReconciliationSummary:
        """Reconcile a single transaction (no orphan folding)."""
        summary = ReconciliationSummary()
        evidence = self._collect_evidence(summary)
        self._reconcile_transaction(transaction_id, evidence, summary)
        return summary

    def _collect_evidence(self, summary: ReconciliationSummary) -> LegacyEvidence:
        if not self.use_legacy_evidence:
            return LegacyEvidence()
        try:
            evidence = self.legacy.collect()
        except Exception as e:
            logger.exception("Could not read legacy posting evidence")
            summary.errors.append(f"Legacy evidence unavailable: {e}")
            return LegacyEvidence()
        summary.errors.extend(evidence.warnings)
        return evidence

    def _reconcile_transaction(
        self, transaction_id: int, evidence: LegacyEvidence, summary: ReconciliationSummary
    ) -> None:
        try:
            with self.db.unit_of_work():
                txn = self.db.get_transaction(transaction_id, for_update=True)
                if txn is None:
                    # Deleted since the pass started
                    summary.unchanged += 1
                    return
                if txn.status is TransactionStatus.CANCELLED:
                    summary.unchanged += 1
                    return

                applied = self.ledger.applied_amount(txn, evidence)
                if txn.type.is_receivable and applied > txn.amount:
                    logger.warning(
                        "%s #%s has %s applied against an amount of %s",
                        txn.type.value.capitalize(),
                        txn.reference,
                        applied,
                        txn.amount,
                    )
                elif txn.type.is_credit_source and applied > abs(txn.amount):
                    logger.warning(
                        "%s #%s has %s applied from an amount of %s",
                        txn.type.value.capitalize(),
                        txn.reference,
                        applied,
                        txn.amount,
                    )

                balance, status = expected_balance_and_status(txn, applied)
                if balance == txn.balance and status is txn.status:
                    logger.debug("%s #%s already correct", txn.type.value, txn.reference)
                    summary.unchanged += 1
                    return

                self.db.update_balance_and_status(txn.id, balance, status)
                logger.info(
                    "Reconciled %s #%s: balance %s -> %s, status %s -> %s",
                    txn.type.value,
                    txn.reference,
                    txn.balance,
                    balance,
                    txn.status.value,
                    status.value,
                )
                summary.updated += 1
        except DomainError as e:
            logger.warning("Skipping transaction %s: %s", transaction_id, e)
            summary.skipped += 1
            summary.errors.append(f"Transaction {transaction_id}: {e}")
        except Exception as e:
            logger.exception("Unexpected error reconciling transaction %s", transaction_id)
            summary.skipped += 1
            summary.errors.append(f"Transaction {transaction_id}: {e}")

    def _orphan_candidates(self) -> list[Transaction]:
        return [
            txn
            for txn in self.db.list_transactions(
                type=TransactionType.DEPOSIT, status=TransactionStatus.UNAPPLIED_CREDIT
            )
            if txn.description and ORPHAN_CREDIT_MARKER.lower() in txn.description.lower()
        ]

    def _fold_orphaned_credits(self, evidence: LegacyEvidence, summary: ReconciliationSummary) -> None:
        try:
            candidates = self._orphan_candidates()
        except Exception as e:
            logger.exception("Could not list orphaned credits")
            summary.errors.append(f"Listing orphaned credits failed: {e}")
            return

        for candidate in candidates:
            try:
                with self.db.unit_of_work():
                    if self._fold_orphan(candidate.id, evidence):
                        summary.orphans_folded += 1
            except DomainError as e:
                logger.warning("Skipping credit %s: %s", candidate.id, e)
                summary.skipped += 1
                summary.errors.append(f"Transaction {candidate.id}: {e}")
            except Exception as e:
                logger.exception("Unexpected error folding credit %s", candidate.id)
                summary.skipped += 1
                summary.errors.append(f"Transaction {candidate.id}: {e}")

    def _fold_orphan(self, credit_id: int, evidence: LegacyEvidence) -> bool:
        """Fold one orphaned credit into its payment. Returns False if it is not an orphan."""
        credit = self.db.get_transaction(credit_id, for_update=True)
        if credit is None or credit.status is not TransactionStatus.UNAPPLIED_CREDIT:
            return False

        if (
            self.db.list_applications(source_id=credit.id)
            or self.db.list_applications(target_id=credit.id)
            or evidence.by_source.get(credit.id)
        ):
            # Consumed at least partly, so it is a real credit now
            return False

        parent_id = parse_parent_payment_id(credit.description)
        if parent_id is None:
            raise ArithmeticAmbiguity(
                f"Could not read the originating payment from '{credit.description}'"
            )
        parent = self.db.get_transaction(parent_id, for_update=True)
        if parent is None:
            raise DataIntegrityError(
                f"Credit #{credit.reference} names payment #{parent_id}, which does not exist"
            )
        if parent.type is not TransactionType.PAYMENT:
            raise DataIntegrityError(
                f"Credit #{credit.reference} names {parent.type.value} #{parent_id}, not a payment"
            )

        if parent.status is TransactionStatus.CANCELLED:
            raise DataIntegrityError(
                f"Credit #{credit.reference} names payment #{parent_id}, which is cancelled"
            )

        remaining = abs(credit.balance) if not is_zero(credit.balance) else abs(credit.amount)
        applied = self.ledger.applied_amount(parent, evidence)
        uncovered = max(ZERO, round2(abs(parent.amount) - applied))
        # The payment's amount must cover what was applied plus the folded credit
        shortfall = max(ZERO, round2(remaining - uncovered))
        if shortfall > 0:
            new_amount = round2(parent.amount + shortfall)
            self.db.update_amount(parent.id, new_amount)
            parent = replace(parent, amount=new_amount)

        new_balance, new_status = expected_balance_and_status(parent, applied)
        self.db.update_balance_and_status(parent.id, new_balance, new_status)
        self.db.delete_ledger_entries(credit.id)
        self.db.delete_transaction(credit.id)

        logger.info(
            "Folded orphaned credit #%s (%s) into payment #%s: amount %s, balance %s -> %s",
            credit.reference,
            remaining,
            parent.reference,
            parent.amount,
            parent.balance,
            new_balance,
        )
        return True
