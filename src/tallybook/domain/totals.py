"""Line item totals: subtotal, tax breakdown and grand total.

``totalize`` is a pure function. Callers persist the returned ``Totals``
themselves; nothing is cached between calls.
"""

from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from tallybook.domain.entities import LineItemInput, PricingMode, TaxComponent, Totals
from tallybook.domain.errors import ValidationError
from tallybook.domain.tax import TaxResolver
from tallybook.utils.money import ZERO, round2


def line_amount(item: LineItemInput) -> Decimal:
    """Amount of a single line: quantity x unit price, or its flat amount."""
    if item.quantity is not None or item.unit_price is not None:
        if item.quantity is None or item.unit_price is None:
            raise ValidationError(
                f"Line '{item.description}' needs both quantity and unit price"
            )
        return round2(item.quantity * item.unit_price)
    if item.amount is None:
        raise ValidationError(f"Line '{item.description}' has no amount")
    return round2(item.amount)


def totalize(
    line_items: Sequence[LineItemInput],
    pricing_mode: PricingMode,
    resolver: TaxResolver,
    manual_tax_override: Optional[Decimal] = None,
    component_overrides: Optional[Mapping[int, Decimal]] = None,
) -> Totals:
    """Compute subtotal, tax and total for a set of line items.

    Components are merged by tax rate ID, so a rate charged both directly and
    through a composite is reported once. Such a merged component is shown as
    a top-level rate (``parent_id`` None) whatever order the lines come in.

    Args:
        line_items: Lines in document order
        pricing_mode: Whether line amounts exclude or include tax
        resolver: Tax resolver over the current tax rates
        manual_tax_override: Hand-edited tax amount; wins over computed tax
            for the total
        component_overrides: Hand-edited amounts per tax component ID. When
            given (and no manual_tax_override), the tax amount is the sum of
            the displayed components with these values substituted.

    Returns:
        Totals where ``total == round2(sub_total + tax_amount)``

    Raises:
        ValidationError: If a line is malformed or references an unknown tax
    """
    pricing_mode = PricingMode(pricing_mode)
    sub_total = ZERO
    computed_tax = ZERO
    merged: dict[int, TaxComponent] = {}

    for item in line_items:
        amount = line_amount(item)
        if item.tax_rate_id is None:
            sub_total = round2(sub_total + amount)
            continue

        breakdown = resolver.resolve(amount, item.tax_rate_id, pricing_mode)
        sub_total = round2(sub_total + breakdown.subtotal_contribution)
        computed_tax = round2(computed_tax + breakdown.tax_amount)
        for component in breakdown.components:
            existing = merged.get(component.id)
            if existing is None:
                merged[component.id] = component
                continue
            same_parent = existing.parent_id == component.parent_id
            merged[component.id] = TaxComponent(
                id=existing.id,
                name=existing.name,
                rate=existing.rate,
                amount=round2(existing.amount + component.amount),
                is_component=existing.is_component if same_parent else False,
                parent_id=existing.parent_id if same_parent else None,
                display_order=existing.display_order,
            )

    components = _ordered(merged.values())

    if component_overrides:
        unknown = set(component_overrides) - set(merged)
        if unknown:
            raise ValidationError(
                f"Tax component override for unused tax rate(s): {', '.join(str(i) for i in sorted(unknown))}"
            )

    if manual_tax_override is not None:
        tax_amount = round2(manual_tax_override)
        is_overridden = True
    elif component_overrides:
        tax_amount = ZERO
        for component in components:
            value = component_overrides.get(component.id, component.amount)
            tax_amount = round2(tax_amount + round2(value))
        is_overridden = True
    else:
        tax_amount = computed_tax
        is_overridden = False

    return Totals(
        sub_total=sub_total,
        tax_amount=tax_amount,
        total=round2(sub_total + tax_amount),
        tax_components=components,
        tax_names=tuple(c.name for c in components),
        computed_tax_amount=computed_tax,
        is_tax_overridden=is_overridden,
    )


def _ordered(components: Iterable[TaxComponent]) -> tuple[TaxComponent, ...]:
    """Components grouped by composite parent, then display order."""
    return tuple(
        sorted(
            components,
            key=lambda c: (
                c.parent_id if c.parent_id is not None else c.id,
                c.display_order,
                c.id,
            ),
        )
    )
