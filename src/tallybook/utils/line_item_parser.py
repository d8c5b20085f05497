"""Parse line items given on the command line."""

from typing import Callable, Optional

from tallybook.domain.entities import LineItemInput
from tallybook.utils.amount_parser import parse_amount

SEPARATOR = "|"


def parse_line_item(
    spec: str, resolve_tax: Optional[Callable[[str], int]] = None
) -> LineItemInput:
    """Parse a line item given as a string.

    Accepted forms:
    - "Consulting|3|100.00"          quantity and unit price
    - "Consulting|3|100.00|GST+QST"  with a tax rate name or ID
    - "Setup fee|250.00"             flat amount
    - "Setup fee|250.00|GST"         flat amount with a tax rate name

    With two fields after the description, a second field that is not a
    number is read as the tax rate. Use the four-field form to give a tax
    rate by ID.

    Args:
        spec: Line item string
        resolve_tax: Callable turning a tax name or ID into a tax rate ID

    Returns:
        LineItemInput

    Raises:
        ValueError: If the string cannot be parsed
    """
    parts = [p.strip() for p in spec.split(SEPARATOR)]
    if len(parts) < 2 or len(parts) > 4 or not parts[0]:
        raise ValueError(
            f"Invalid line item '{spec}': expected DESCRIPTION|QTY|PRICE[|TAX] or DESCRIPTION|AMOUNT[|TAX]"
        )

    description, fields = parts[0], parts[1:]
    tax_ref = None
    if len(fields) == 3 or (len(fields) == 2 and not _is_number(fields[1])):
        tax_ref = fields.pop()

    if len(fields) == 1:
        item_kwargs = {"amount": parse_amount(fields[0])}
    else:
        item_kwargs = {"quantity": parse_amount(fields[0]), "unit_price": parse_amount(fields[1])}

    tax_rate_id = None
    if tax_ref:
        if resolve_tax is None:
            raise ValueError(f"Line item '{description}' names a tax but no tax lookup is available")
        tax_rate_id = resolve_tax(tax_ref)

    return LineItemInput(description=description, tax_rate_id=tax_rate_id, **item_kwargs)


def _is_number(text: str) -> bool:
    try:
        parse_amount(text)
    except ValueError:
        return False
    return True
