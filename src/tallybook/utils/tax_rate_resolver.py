"""Utility for resolving tax rate names to IDs."""

from tallybook.domain.tax import TaxService


def resolve_tax_rate(tax_service: TaxService, tax_rate: str | int) -> int:
    """Resolve tax rate name or ID to tax rate ID.

    Args:
        tax_service: TaxService instance
        tax_rate: Tax rate name (str) or ID (int or string representation of int)

    Returns:
        Tax rate ID

    Raises:
        ValueError: If tax rate is not found
    """
    if isinstance(tax_rate, int):
        if tax_service.get_tax_rate(tax_rate) is None:
            raise ValueError(f"Tax rate ID {tax_rate} not found")
        return tax_rate

    text = tax_rate.strip()
    if text.isdigit():
        tax_rate_id = int(text)
        if tax_service.get_tax_rate(tax_rate_id) is None:
            raise ValueError(f"Tax rate ID {tax_rate_id} not found")
        return tax_rate_id

    found = tax_service.find_by_name(text)
    if found is None:
        raise ValueError(f"Tax rate '{text}' not found")
    return found.id
