"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so string columns become enums and
money columns are normalized to cent precision before leaving the database
package.
"""

from decimal import Decimal
from typing import Optional

from tallybook.domain import entities as domain
from tallybook.database.models import (
    TaxRate as ORMTaxRate,
    Transaction as ORMTransaction,
    LineItem as ORMLineItem,
    ApplicationEntry as ORMApplicationEntry,
    LedgerEntry as ORMLedgerEntry,
)
from tallybook.utils.money import round2


def _money(value) -> Decimal:
    return round2(value if value is not None else 0)


def _optional_money(value) -> Optional[Decimal]:
    return round2(value) if value is not None else None


def tax_rate_to_domain(orm_tax_rate: ORMTaxRate) -> domain.TaxRate:
    """Convert SQLAlchemy TaxRate model to domain TaxRate entity."""
    return domain.TaxRate(
        id=orm_tax_rate.id,
        name=orm_tax_rate.name,
        rate=Decimal(orm_tax_rate.rate),
        is_composite=bool(orm_tax_rate.is_composite),
        parent_id=orm_tax_rate.parent_id,
        display_order=orm_tax_rate.display_order or 0,
        is_active=bool(orm_tax_rate.is_active),
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        reference=orm_transaction.reference,
        type=domain.TransactionType(orm_transaction.type),
        date=orm_transaction.date,
        amount=_money(orm_transaction.amount),
        balance=_money(orm_transaction.balance),
        status=domain.TransactionStatus(orm_transaction.status),
        sub_total=_money(orm_transaction.sub_total),
        tax_amount=_money(orm_transaction.tax_amount),
        pricing_mode=domain.PricingMode(orm_transaction.pricing_mode),
        description=orm_transaction.description,
        currency=orm_transaction.currency,
        exchange_rate=(
            Decimal(orm_transaction.exchange_rate)
            if orm_transaction.exchange_rate is not None
            else None
        ),
        foreign_amount=_optional_money(orm_transaction.foreign_amount),
        created_at=orm_transaction.created_at,
    )


def line_item_to_domain(orm_line_item: ORMLineItem) -> domain.LineItem:
    """Convert SQLAlchemy LineItem model to domain LineItem entity."""
    return domain.LineItem(
        id=orm_line_item.id,
        transaction_id=orm_line_item.transaction_id,
        description=orm_line_item.description,
        quantity=Decimal(orm_line_item.quantity),
        unit_price=Decimal(orm_line_item.unit_price),
        amount=_money(orm_line_item.amount),
        tax_rate_id=orm_line_item.tax_rate_id,
        position=orm_line_item.position,
    )


def application_to_domain(orm_application: ORMApplicationEntry) -> domain.ApplicationEntry:
    """Convert SQLAlchemy ApplicationEntry model to domain ApplicationEntry entity."""
    return domain.ApplicationEntry(
        id=orm_application.id,
        source_id=orm_application.source_id,
        target_id=orm_application.target_id,
        amount_applied=_money(orm_application.amount_applied),
        created_at=orm_application.created_at,
    )


def ledger_entry_to_domain(orm_entry: ORMLedgerEntry) -> domain.LedgerEntry:
    """Convert SQLAlchemy LedgerEntry model to domain LedgerEntry entity."""
    return domain.LedgerEntry(
        id=orm_entry.id,
        transaction_id=orm_entry.transaction_id,
        description=orm_entry.description,
        debit=_money(orm_entry.debit),
        credit=_money(orm_entry.credit),
        date=orm_entry.date,
    )
