"""Tests for credit, apply and unapply commands."""

from decimal import Decimal

from tallybook.cli.main import cli
from tallybook.domain.entities import TransactionStatus, TransactionType


def test_credit_create(cli_runner, temp_db, fresh_db):
    """Test recording a deposit without applying it."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "credit", "create", "--reference", "D-9", "--amount", "500"],
    )

    assert result.exit_code == 0
    assert "Created deposit #D-9 (ID:" in result.output
    assert "Unapplied credit: $500.00" in result.output
    [deposit] = fresh_db.find_transactions_by_reference("D-9")
    assert deposit.type is TransactionType.DEPOSIT
    assert deposit.balance == Decimal("-500.00")
    assert deposit.status is TransactionStatus.UNAPPLIED_CREDIT


def test_credit_create_cheque(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "credit",
            "create",
            "--type",
            "cheque",
            "--reference",
            "3301",
            "--amount",
            "$1,120.50",
        ],
    )

    assert result.exit_code == 0
    assert "Created cheque #3301" in result.output
    assert "Unapplied credit: $1,120.50" in result.output


def test_credit_create_non_positive_amount(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "credit", "create", "--reference", "D-0", "--amount", "0"],
    )

    assert result.exit_code == 1
    assert "Amount must be greater than zero" in result.output


def test_receive_payment(cli_runner, temp_db, sample_invoice, fresh_db):
    """Test recording a payment and applying part of it."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "credit",
            "receive",
            "--reference",
            "P-1",
            "--amount",
            "400",
            "--apply",
            f"{sample_invoice.id}=344.93",
            "--date",
            "2024-03-05",
        ],
    )

    assert result.exit_code == 0
    assert "Recorded payment #P-1 (ID:" in result.output
    assert "Applied $344.93 to invoice #1001 (balance $0.00, completed)" in result.output
    assert "Unapplied credit: $55.07" in result.output

    [payment] = fresh_db.find_transactions_by_reference("P-1")
    assert payment.balance == Decimal("-55.07")
    assert payment.status is TransactionStatus.UNAPPLIED_CREDIT


def test_receive_payment_over_applied(cli_runner, temp_db, sample_invoice, fresh_db):
    """Test that applications cannot add up to more than the payment."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "credit",
            "receive",
            "--reference",
            "P-2",
            "--amount",
            "100",
            "--apply",
            f"{sample_invoice.id}=150",
        ],
    )

    assert result.exit_code == 1
    assert "(limit: source credit)" in result.output
    assert fresh_db.find_transactions_by_reference("P-2") == []


def test_receive_payment_invalid_application(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "credit",
            "receive",
            "--reference",
            "P-3",
            "--amount",
            "100",
            "--apply",
            "invoice=100",
        ],
    )

    assert result.exit_code == 1
    assert "expected TRANSACTION_ID=AMOUNT" in result.output


def test_apply_credit(cli_runner, temp_db, sample_invoice, sample_deposit, fresh_db):
    """Test applying part of a deposit to an invoice."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "apply", str(sample_deposit.id), str(sample_invoice.id), "200"],
    )

    assert result.exit_code == 0
    assert "Applied $200.00 from deposit #D-1 to invoice #1001" in result.output
    assert "Remaining credit: $300.00" in result.output
    assert "Target balance: $144.93 (open)" in result.output

    deposit = fresh_db.get_transaction(sample_deposit.id)
    assert deposit.balance == Decimal("-300.00")
    assert fresh_db.sum_applied(sample_invoice.id, as_source=False) == Decimal("200.00")


def test_apply_credit_exceeding_target(cli_runner, temp_db, sample_invoice, sample_deposit, fresh_db):
    """Test that an invoice cannot be overpaid."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "apply", str(sample_deposit.id), str(sample_invoice.id), "400"],
    )

    assert result.exit_code == 1
    assert "exceeds the outstanding balance of 1001 (344.93)" in result.output
    assert "(limit: target balance)" in result.output
    assert fresh_db.list_applications() == []


def test_apply_credit_exceeding_source(cli_runner, temp_db, sample_invoice, transaction_service):
    small_id = transaction_service.create_credit_source(
        type=TransactionType.DEPOSIT, reference="D-2", date=sample_invoice.date, amount=Decimal("50")
    )

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "apply", str(small_id), str(sample_invoice.id), "60"]
    )

    assert result.exit_code == 1
    assert "requested 60.00, available 50.00" in result.output
    assert "(limit: source credit)" in result.output


def test_apply_wrong_direction(cli_runner, temp_db, sample_invoice, sample_deposit):
    """Test that an invoice cannot supply credit."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "apply", str(sample_invoice.id), str(sample_deposit.id), "10"],
    )

    assert result.exit_code == 1
    assert "cannot supply credit" in result.output


def test_unapply_credit(cli_runner, temp_db, sample_invoice, sample_deposit, ledger, fresh_db):
    """Test reversing an application restores both sides."""
    ledger.apply_credit(sample_deposit.id, sample_invoice.id, Decimal("344.93"))

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "unapply", str(sample_deposit.id), str(sample_invoice.id)]
    )

    assert result.exit_code == 0
    assert "Removed $344.93 applied from deposit #D-1 to invoice #1001" in result.output
    assert "Target balance: $344.93 (open)" in result.output
    invoice = fresh_db.get_transaction(sample_invoice.id)
    assert invoice.status is TransactionStatus.OPEN
    assert fresh_db.get_transaction(sample_deposit.id).balance == Decimal("-500.00")


def test_unapply_without_application(cli_runner, temp_db, sample_invoice, sample_deposit):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "unapply", str(sample_deposit.id), str(sample_invoice.id)]
    )

    assert result.exit_code == 1
    assert "No application from transaction" in result.output
