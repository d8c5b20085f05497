"""Infer historical applications from free-text ledger postings.

Books written before the application table existed only recorded payments
and credit applications as ledger posting descriptions such as
"Payment applied to invoice #1005" or "Applied credit from deposit #D-12 to
invoice #1005". This adapter turns those descriptions into inferred
applications for the reconciler and for the backfill migration. New data
never depends on it.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from tallybook.database.base import Database
from tallybook.domain.entities import (
    CREDIT_SOURCE_TYPES,
    LedgerEntry,
    TransactionType,
)
from tallybook.domain.errors import ArithmeticAmbiguity, DataIntegrityError
from tallybook.utils.money import ZERO, round2

logger = logging.getLogger(__name__)

_REF = r"#?\s*(?P<{name}>[A-Za-z0-9][A-Za-z0-9_-]*)"

DIRECT_PAYMENT_PATTERN = re.compile(
    r"(?P<kind>payment|cheque|deposit)\s+(?:applied\s+to|for)\s+(?P<target_type>invoice|bill)\s+"
    + _REF.format(name="target_ref"),
    re.IGNORECASE,
)
CREDIT_APPLICATION_PATTERN = re.compile(
    r"applied\s+credit\s+from\s+(?P<kind>deposit|cheque|payment)\s+"
    + _REF.format(name="source_ref")
    + r".*?\bto\s+(?P<target_type>invoice|bill)\s+"
    + _REF.format(name="target_ref"),
    re.IGNORECASE,
)
TEXT_AMOUNT_PATTERN = re.compile(r"\$\s?(?P<amount>\d[\d,]*(?:\.\d+)?)")
ORPHAN_CREDIT_PATTERN = re.compile(r"unapplied\s+credit\s+from\s+payment\s+#(?P<payment_id>\d+)", re.IGNORECASE)

ORPHAN_CREDIT_MARKER = "Unapplied credit from payment"


@dataclass(frozen=True)
class InferredApplication:
    """An application read from a posting description, before ID resolution."""

    entry_id: int
    posting_transaction_id: int
    source_type: TransactionType
    source_reference: Optional[str]
    target_type: TransactionType
    target_reference: str
    amount: Decimal


@dataclass(frozen=True)
class ResolvedApplication:
    """An inferred application with both transactions identified."""

    entry_id: int
    source_id: int
    target_id: int
    amount: Decimal


@dataclass
class LegacyEvidence:
    """Inferred applications indexed by the transaction on each side."""

    by_source: dict[int, list[ResolvedApplication]] = field(default_factory=dict)
    by_target: dict[int, list[ResolvedApplication]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def add(self, application: ResolvedApplication) -> None:
        self.by_source.setdefault(application.source_id, []).append(application)
        self.by_target.setdefault(application.target_id, []).append(application)

    def applied_from(self, source_id: int) -> Decimal:
        total = ZERO
        for application in self.by_source.get(source_id, []):
            total = round2(total + application.amount)
        return total

    def applied_to(self, target_id: int) -> Decimal:
        total = ZERO
        for application in self.by_target.get(target_id, []):
            total = round2(total + application.amount)
        return total

    def all(self) -> list[ResolvedApplication]:
        seen: list[ResolvedApplication] = []
        for applications in self.by_source.values():
            seen.extend(applications)
        return sorted(seen, key=lambda a: a.entry_id)


def parse_text_amount(description: str) -> Optional[Decimal]:
    """Return an explicit "$1,234.56" amount from a description, if any."""
    match = TEXT_AMOUNT_PATTERN.search(description)
    if match is None:
        return None
    try:
        return round2(Decimal(match.group("amount").replace(",", "")))
    except InvalidOperation:
        return None


def parse_posting(entry: LedgerEntry) -> Optional[InferredApplication]:
    """Read an application out of one posting.

    Returns:
        The inferred application, or None if the description does not
        describe one

    Raises:
        ArithmeticAmbiguity: If the description describes an application but
            no single amount can be determined from it
    """
    description = entry.description or ""

    match = CREDIT_APPLICATION_PATTERN.search(description)
    if match is not None:
        source_reference: Optional[str] = match.group("source_ref")
    else:
        match = DIRECT_PAYMENT_PATTERN.search(description)
        if match is None:
            return None
        source_reference = None

    target_type = TransactionType(match.group("target_type").lower())
    # Only the leg that settles the receivable or payable counts; the
    # offsetting bank leg carries the same description.
    if target_type is TransactionType.INVOICE:
        posted = entry.credit if entry.credit > 0 else None
        other_leg = entry.debit > 0
    else:
        posted = entry.debit if entry.debit > 0 else None
        other_leg = entry.credit > 0
    if posted is None and other_leg:
        return None

    stated = parse_text_amount(description)
    if stated is not None and posted is not None and stated != posted:
        raise ArithmeticAmbiguity(
            f"Posting {entry.id} states {stated} but posts {posted}: '{description}'"
        )
    amount = stated if stated is not None else posted
    if amount is None or amount <= 0:
        raise ArithmeticAmbiguity(f"Posting {entry.id} carries no amount: '{description}'")

    return InferredApplication(
        entry_id=entry.id,
        posting_transaction_id=entry.transaction_id,
        source_type=TransactionType(match.group("kind").lower()),
        source_reference=source_reference,
        target_type=target_type,
        target_reference=match.group("target_ref"),
        amount=round2(amount),
    )


def parse_parent_payment_id(description: Optional[str]) -> Optional[int]:
    """Return the payment ID named in an orphaned credit's description."""
    if not description:
        return None
    match = ORPHAN_CREDIT_PATTERN.search(description)
    if match is None:
        return None
    return int(match.group("payment_id"))


class LegacyEvidenceAdapter:
    """Collect inferred applications from ledger postings."""

    def __init__(self, db: Database):
        """Initialize adapter.

        Args:
            db: Database instance
        """
        self.db = db

    def _candidate_postings(self) -> list[LedgerEntry]:
        postings: dict[int, LedgerEntry] = {}
        for pattern in ("%invoice%", "%bill%"):
            for entry in self.db.list_ledger_entries(description_like=pattern):
                postings[entry.id] = entry
        return [postings[k] for k in sorted(postings)]

    def _resolve_target(self, inferred: InferredApplication) -> int:
        matches = self.db.find_transactions_by_reference(
            inferred.target_reference, type=inferred.target_type
        )
        if not matches:
            raise DataIntegrityError(
                f"Posting {inferred.entry_id} names {inferred.target_type.value} "
                f"#{inferred.target_reference}, which does not exist"
            )
        if len(matches) > 1:
            raise ArithmeticAmbiguity(
                f"Posting {inferred.entry_id} names {inferred.target_type.value} "
                f"#{inferred.target_reference}, which matches {len(matches)} transactions"
            )
        return matches[0].id

    def _resolve_source(self, inferred: InferredApplication) -> int:
        if inferred.source_reference is None:
            # The posting belongs to the paying transaction itself
            return inferred.posting_transaction_id

        for source_type in [inferred.source_type] + sorted(
            CREDIT_SOURCE_TYPES - {inferred.source_type}, key=lambda t: t.value
        ):
            matches = self.db.find_transactions_by_reference(inferred.source_reference, type=source_type)
            if len(matches) == 1:
                return matches[0].id
            if len(matches) > 1:
                raise ArithmeticAmbiguity(
                    f"Posting {inferred.entry_id} names {source_type.value} "
                    f"#{inferred.source_reference}, which matches {len(matches)} transactions"
                )

        if inferred.source_reference.isdigit():
            txn = self.db.get_transaction(int(inferred.source_reference))
            if txn is not None and txn.type.is_credit_source:
                return txn.id
        raise DataIntegrityError(
            f"Posting {inferred.entry_id} names {inferred.source_type.value} "
            f"#{inferred.source_reference}, which does not exist"
        )

    def collect(self) -> LegacyEvidence:
        """Parse and resolve every candidate posting.

        Postings that cannot be parsed or resolved contribute nothing; each is
        logged and recorded in ``LegacyEvidence.warnings``.
        """
        evidence = LegacyEvidence()
        for entry in self._candidate_postings():
            try:
                inferred = parse_posting(entry)
                if inferred is None:
                    continue
                target_id = self._resolve_target(inferred)
                if target_id == entry.transaction_id:
                    # The target's own postings are not evidence of payment
                    continue
                source_id = self._resolve_source(inferred)
            except (ArithmeticAmbiguity, DataIntegrityError) as e:
                logger.warning("Ignoring legacy posting %s: %s", entry.id, e)
                evidence.warnings.append(str(e))
                continue

            evidence.add(
                ResolvedApplication(
                    entry_id=entry.id,
                    source_id=source_id,
                    target_id=target_id,
                    amount=inferred.amount,
                )
            )
        return evidence
