"""Tests for database mappers."""

import pytest
from datetime import datetime, date, UTC
from decimal import Decimal

from tallybook.database.models import (
    TaxRate as ORMTaxRate,
    Transaction as ORMTransaction,
    LineItem as ORMLineItem,
    ApplicationEntry as ORMApplicationEntry,
    LedgerEntry as ORMLedgerEntry,
)
from tallybook.database.mappers import (
    tax_rate_to_domain,
    transaction_to_domain,
    line_item_to_domain,
    application_to_domain,
    ledger_entry_to_domain,
)
from tallybook.domain.entities import (
    ApplicationEntry,
    LedgerEntry,
    LineItem,
    PricingMode,
    TaxRate,
    Transaction,
    TransactionStatus,
    TransactionType,
)


class TestTaxRateMapper:
    """Tests for TaxRate mapper."""

    def test_tax_rate_to_domain(self):
        """Test converting ORM TaxRate to domain TaxRate."""
        orm_tax_rate = ORMTaxRate(
            id=2,
            name="QST",
            rate=Decimal("9.9750"),
            is_composite=False,
            parent_id=1,
            display_order=2,
            is_active=True,
        )
        tax_rate = tax_rate_to_domain(orm_tax_rate)

        assert isinstance(tax_rate, TaxRate)
        assert tax_rate.rate == Decimal("9.975")
        assert tax_rate.parent_id == 1
        assert tax_rate.display_order == 2
        assert tax_rate.is_active is True


class TestTransactionMapper:
    """Tests for Transaction mapper."""

    def test_transaction_to_domain(self):
        """Test converting ORM Transaction to domain Transaction."""
        created_at = datetime.now(UTC)
        orm_transaction = ORMTransaction(
            id=7,
            reference="1001",
            type="invoice",
            date=date(2024, 3, 1),
            description="March work",
            amount=Decimal("344.93"),
            balance=Decimal("144.9300"),
            status="open",
            sub_total=Decimal("300"),
            tax_amount=Decimal("44.93"),
            pricing_mode="inclusive",
            currency=None,
            exchange_rate=None,
            foreign_amount=None,
            created_at=created_at,
        )
        transaction = transaction_to_domain(orm_transaction)

        assert isinstance(transaction, Transaction)
        assert transaction.type is TransactionType.INVOICE
        assert transaction.status is TransactionStatus.OPEN
        assert transaction.pricing_mode is PricingMode.INCLUSIVE
        assert transaction.balance == Decimal("144.93")
        assert str(transaction.sub_total) == "300.00"
        assert transaction.exchange_rate is None
        assert transaction.foreign_amount is None
        assert transaction.created_at == created_at

    def test_foreign_currency_fields(self):
        orm_transaction = ORMTransaction(
            id=8,
            reference="2001",
            type="bill",
            date=date(2024, 3, 1),
            amount=Decimal("135.12"),
            balance=Decimal("135.12"),
            status="open",
            sub_total=Decimal("100.00"),
            tax_amount=Decimal("0"),
            pricing_mode="exclusive",
            currency="USD",
            exchange_rate=Decimal("1.35120000"),
            foreign_amount=Decimal("100"),
        )
        transaction = transaction_to_domain(orm_transaction)

        assert transaction.currency == "USD"
        assert transaction.exchange_rate == Decimal("1.3512")
        assert str(transaction.foreign_amount) == "100.00"

    def test_unknown_type_rejected(self):
        orm_transaction = ORMTransaction(
            id=9,
            reference="X",
            type="journal",
            date=date(2024, 3, 1),
            amount=Decimal("1"),
            balance=Decimal("0"),
            status="open",
            sub_total=Decimal("0"),
            tax_amount=Decimal("0"),
            pricing_mode="exclusive",
        )
        with pytest.raises(ValueError):
            transaction_to_domain(orm_transaction)


def test_line_item_to_domain():
    orm_item = ORMLineItem(
        id=1,
        transaction_id=7,
        description="Consulting",
        quantity=Decimal("3.0000"),
        unit_price=Decimal("100.0000"),
        amount=Decimal("300.00"),
        tax_rate_id=1,
        position=0,
    )
    item = line_item_to_domain(orm_item)

    assert isinstance(item, LineItem)
    assert item.quantity == Decimal("3")
    assert item.amount == Decimal("300.00")
    assert item.tax_rate_id == 1


def test_application_to_domain():
    orm_entry = ORMApplicationEntry(id=3, source_id=4, target_id=7, amount_applied=Decimal("200"))
    entry = application_to_domain(orm_entry)

    assert isinstance(entry, ApplicationEntry)
    assert (entry.source_id, entry.target_id) == (4, 7)
    assert str(entry.amount_applied) == "200.00"


def test_ledger_entry_to_domain():
    orm_entry = ORMLedgerEntry(
        id=5,
        transaction_id=4,
        description="Payment applied to invoice #1001",
        debit=None,
        credit=Decimal("200"),
        date=date(2024, 3, 5),
    )
    entry = ledger_entry_to_domain(orm_entry)

    assert isinstance(entry, LedgerEntry)
    assert entry.debit == Decimal("0.00")
    assert entry.credit == Decimal("200.00")
