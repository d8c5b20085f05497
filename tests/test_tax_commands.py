"""Tests for tax commands."""

from tallybook.cli.main import cli


def test_tax_create(cli_runner, temp_db):
    """Test creating a standalone tax rate."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "create", "VAT", "20"])

    assert result.exit_code == 0
    assert "Created tax rate 'VAT' at 20% (ID:" in result.output


def test_tax_create_composite_with_components(cli_runner, temp_db):
    """Test building a composite tax from the command line."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "create", "GST+QST", "14.975%", "--composite"]
    )
    assert result.exit_code == 0
    assert "Created composite tax 'GST+QST' at 14.975%" in result.output

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "add-component", "GST+QST", "GST", "5"]
    )
    assert result.exit_code == 0
    assert "Added component 'GST' at 5%" in result.output

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "add-component", "GST+QST", "QST", "9.975"]
    )
    assert result.exit_code == 0

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "list"])
    assert result.exit_code == 0
    assert "GST+QST" in result.output
    assert "14.975% (composite)" in result.output
    lines = result.output.splitlines()
    gst_line = next(i for i, line in enumerate(lines) if "└─ GST" in line)
    qst_line = next(i for i, line in enumerate(lines) if "└─ QST" in line)
    assert gst_line < qst_line
    assert "9.975%" in lines[qst_line]


def test_tax_create_invalid_rate(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "create", "VAT", "-5"])

    assert result.exit_code == 1
    assert "Invalid rate" in result.output


def test_add_component_to_standalone_rate(cli_runner, temp_db, vat):
    """Test that only composite taxes take components."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "add-component", "VAT", "Extra", "1"]
    )

    assert result.exit_code == 1
    assert "is not composite" in result.output


def test_add_component_unknown_parent(cli_runner, temp_db):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "add-component", "Nope", "GST", "5"]
    )

    assert result.exit_code == 1
    assert "Tax rate 'Nope' not found" in result.output


def test_tax_list_empty(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "list"])

    assert result.exit_code == 0
    assert "No tax rates found." in result.output


def test_tax_deactivate(cli_runner, temp_db, vat):
    """Test that deactivated rates are only listed with --all."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "deactivate", "VAT"])
    assert result.exit_code == 0
    assert f"Deactivated tax rate {vat}" in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "list"])
    assert "No tax rates found." in result.output

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "tax", "list", "--all"])
    assert "VAT" in result.output
    assert "[inactive]" in result.output


def test_tax_calculate_composite(cli_runner, temp_db, gst_qst):
    """Test the per-component breakdown of a single amount."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "calculate", "300", "GST+QST"]
    )

    assert result.exit_code == 0
    assert "Subtotal: $300.00" in result.output
    assert "GST (5%): $15.00" in result.output
    assert "QST (9.975%): $29.93" in result.output
    assert "Tax: $44.93" in result.output
    assert "Total: $344.93" in result.output


def test_tax_calculate_inclusive(cli_runner, temp_db, vat):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "tax", "calculate", "120", str(vat), "--inclusive"]
    )

    assert result.exit_code == 0
    assert "Subtotal: $100.00" in result.output
    assert "Tax: $20.00" in result.output
    assert "Total: $120.00" in result.output
