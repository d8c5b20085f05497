"""Shared pytest fixtures for tallybook tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from tallybook.database.factories import create_sqlite_database
from tallybook.domain.applications import ApplicationLedgerService
from tallybook.domain.entities import LineItemInput, TransactionType
from tallybook.domain.reconciliation import ReconciliationService
from tallybook.domain.tax import TaxService
from tallybook.domain.transaction import TransactionService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def tax_service(temp_db):
    """Create a TaxService with a temporary database."""
    return TaxService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def ledger(temp_db):
    """Create an ApplicationLedgerService with a temporary database."""
    return ApplicationLedgerService(temp_db)


@pytest.fixture
def reconciliation_service(temp_db):
    """Create a ReconciliationService with a temporary database."""
    return ReconciliationService(temp_db)


@pytest.fixture
def gst_qst(tax_service):
    """Create the Quebec composite tax: GST 5% and QST 9.975%."""
    composite_id = tax_service.create_tax_rate("GST+QST", Decimal("14.975"), is_composite=True)
    gst_id = tax_service.add_component(composite_id, "GST", Decimal("5"))
    qst_id = tax_service.add_component(composite_id, "QST", Decimal("9.975"))
    return {"composite": composite_id, "gst": gst_id, "qst": qst_id}


@pytest.fixture
def vat(tax_service):
    """Create a standalone 20% tax rate and return its ID."""
    return tax_service.create_tax_rate("VAT", Decimal("20"))


@pytest.fixture
def sample_invoice(transaction_service, gst_qst):
    """Create invoice #1001: 3 x 100.00 with GST+QST, total 344.93."""
    invoice_id = transaction_service.create_document(
        type=TransactionType.INVOICE,
        reference="1001",
        date=date(2024, 3, 1),
        line_items=[
            LineItemInput(
                description="Consulting",
                quantity=Decimal("3"),
                unit_price=Decimal("100.00"),
                tax_rate_id=gst_qst["composite"],
            )
        ],
    )
    return transaction_service.get_transaction(invoice_id)


@pytest.fixture
def sample_deposit(transaction_service):
    """Create deposit #D-1 holding 500.00 of credit."""
    deposit_id = transaction_service.create_credit_source(
        type=TransactionType.DEPOSIT,
        reference="D-1",
        date=date(2024, 3, 2),
        amount=Decimal("500.00"),
    )
    return transaction_service.get_transaction(deposit_id)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fresh_db(temp_db):
    """Open a second connection to the temporary database.

    CLI commands write through their own connection; reading through a new
    one avoids objects cached by ``temp_db``.
    """
    db = create_sqlite_database(database_path=temp_db.database_path)
    db.connect()
    yield db
    db.disconnect()
