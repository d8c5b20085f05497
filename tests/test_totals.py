"""Tests for line item totalization."""

import pytest
from decimal import Decimal

from tallybook.domain.entities import LineItemInput, PricingMode, TaxRate
from tallybook.domain.errors import ValidationError
from tallybook.domain.tax import TaxResolver
from tallybook.domain.totals import line_amount, totalize


@pytest.fixture
def resolver():
    return TaxResolver(
        [
            TaxRate(id=1, name="GST+QST", rate=Decimal("14.975"), is_composite=True),
            TaxRate(id=2, name="GST", rate=Decimal("5"), parent_id=1, display_order=1),
            TaxRate(id=3, name="QST", rate=Decimal("9.975"), parent_id=1, display_order=2),
            TaxRate(id=4, name="GST only", rate=Decimal("5")),
            TaxRate(id=5, name="VAT", rate=Decimal("20")),
        ]
    )


def test_line_amount_quantity_times_price():
    item = LineItemInput(quantity=Decimal("3"), unit_price=Decimal("33.333"))
    assert line_amount(item) == Decimal("100.00")


def test_line_amount_flat():
    assert line_amount(LineItemInput(amount=Decimal("12.345"))) == Decimal("12.35")


def test_line_amount_needs_quantity_and_price():
    with pytest.raises(ValidationError, match="quantity and unit price"):
        line_amount(LineItemInput(description="Half", quantity=Decimal("2")))


def test_line_amount_needs_some_amount():
    with pytest.raises(ValidationError, match="no amount"):
        line_amount(LineItemInput(description="Empty"))


def test_composite_invoice_totals(resolver):
    """3 x 100.00 under GST 5% + QST 9.975% totals 344.93."""
    totals = totalize(
        [LineItemInput(quantity=Decimal("3"), unit_price=Decimal("100.00"), tax_rate_id=1)],
        PricingMode.EXCLUSIVE,
        resolver,
    )

    assert totals.sub_total == Decimal("300.00")
    assert [(c.name, c.amount) for c in totals.tax_components] == [
        ("GST", Decimal("15.00")),
        ("QST", Decimal("29.93")),
    ]
    assert totals.tax_names == ("GST", "QST")
    assert totals.tax_amount == Decimal("44.93")
    assert totals.total == Decimal("344.93")
    assert totals.is_tax_overridden is False


def test_untaxed_lines(resolver):
    totals = totalize(
        [LineItemInput(amount=Decimal("10.00")), LineItemInput(amount=Decimal("5.50"))],
        PricingMode.EXCLUSIVE,
        resolver,
    )
    assert totals.sub_total == Decimal("15.50")
    assert totals.tax_amount == Decimal("0.00")
    assert totals.total == Decimal("15.50")
    assert totals.tax_components == ()


def test_same_rate_on_several_lines_is_merged(resolver):
    totals = totalize(
        [
            LineItemInput(amount=Decimal("100.00"), tax_rate_id=5),
            LineItemInput(amount=Decimal("50.00"), tax_rate_id=5),
        ],
        PricingMode.EXCLUSIVE,
        resolver,
    )
    assert len(totals.tax_components) == 1
    assert totals.tax_components[0].amount == Decimal("30.00")
    assert totals.total == Decimal("180.00")


def test_standalone_and_component_with_same_rate_stay_separate(resolver):
    totals = totalize(
        [
            LineItemInput(amount=Decimal("100.00"), tax_rate_id=1),
            LineItemInput(amount=Decimal("100.00"), tax_rate_id=4),
        ],
        PricingMode.EXCLUSIVE,
        resolver,
    )
    assert [c.name for c in totals.tax_components] == ["GST", "QST", "GST only"]


def test_inclusive_totals(resolver):
    totals = totalize(
        [LineItemInput(amount=Decimal("120.00"), tax_rate_id=5)],
        PricingMode.INCLUSIVE,
        resolver,
    )
    assert totals.sub_total == Decimal("100.00")
    assert totals.tax_amount == Decimal("20.00")
    assert totals.total == Decimal("120.00")


def test_manual_override_wins(resolver):
    totals = totalize(
        [LineItemInput(amount=Decimal("300.00"), tax_rate_id=1)],
        PricingMode.EXCLUSIVE,
        resolver,
        manual_tax_override=Decimal("45.00"),
        component_overrides={2: Decimal("20.00")},
    )
    assert totals.tax_amount == Decimal("45.00")
    assert totals.computed_tax_amount == Decimal("44.93")
    assert totals.total == Decimal("345.00")
    assert totals.is_tax_overridden is True
    # Components stay as calculated for display
    assert totals.tax_components[0].amount == Decimal("15.00")


def test_component_override(resolver):
    totals = totalize(
        [LineItemInput(amount=Decimal("300.00"), tax_rate_id=1)],
        PricingMode.EXCLUSIVE,
        resolver,
        component_overrides={3: Decimal("30.00")},
    )
    assert totals.tax_amount == Decimal("45.00")
    assert totals.total == Decimal("345.00")
    assert totals.is_tax_overridden is True


def test_component_override_for_unused_rate(resolver):
    with pytest.raises(ValidationError, match="unused tax rate"):
        totalize(
            [LineItemInput(amount=Decimal("300.00"), tax_rate_id=5)],
            PricingMode.EXCLUSIVE,
            resolver,
            component_overrides={2: Decimal("1.00")},
        )


def test_unknown_tax_rate_on_line(resolver):
    with pytest.raises(ValidationError):
        totalize([LineItemInput(amount=Decimal("1.00"), tax_rate_id=77)], PricingMode.EXCLUSIVE, resolver)


def test_empty_document(resolver):
    totals = totalize([], PricingMode.EXCLUSIVE, resolver)
    assert totals.total == Decimal("0.00")


@pytest.mark.parametrize("direct_first", [True, False])
def test_rate_used_directly_and_through_composite(resolver, direct_first):
    lines = [
        LineItemInput(amount=Decimal("100.00"), tax_rate_id=2),
        LineItemInput(amount=Decimal("100.00"), tax_rate_id=1),
    ]
    if not direct_first:
        lines.reverse()

    totals = totalize(lines, PricingMode.EXCLUSIVE, resolver)

    by_id = {c.id: c for c in totals.tax_components}
    assert set(by_id) == {2, 3}
    assert by_id[2].amount == Decimal("10.00")
    assert by_id[2].parent_id is None
    assert by_id[2].is_component is False
    assert by_id[3].amount == Decimal("9.98")
    assert by_id[3].parent_id == 1
    assert totals.tax_amount == Decimal("19.98")
