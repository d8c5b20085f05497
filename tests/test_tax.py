"""Tests for tax rates and the tax resolver."""

import pytest
from decimal import Decimal

from tallybook.domain.entities import PricingMode, TaxRate
from tallybook.domain.errors import DataIntegrityError, ValidationError
from tallybook.domain.tax import TaxResolver, exclusive_tax, inclusive_tax, resolve_tax


class TestTaxFormulas:
    """Tests for the per-rate tax formulas."""

    def test_exclusive_tax(self):
        assert exclusive_tax(Decimal("300.00"), Decimal("5")) == Decimal("15.00")

    def test_exclusive_tax_rounds_half_up(self):
        # 300 * 9.975% = 29.925
        assert exclusive_tax(Decimal("300.00"), Decimal("9.975")) == Decimal("29.93")

    def test_inclusive_tax(self):
        # 115 includes 15% tax of 15.00
        assert inclusive_tax(Decimal("115.00"), Decimal("15")) == Decimal("15.00")

    def test_zero_rate(self):
        assert exclusive_tax(Decimal("80.00"), Decimal("0")) == Decimal("0.00")
        assert inclusive_tax(Decimal("80.00"), Decimal("0")) == Decimal("0.00")


class TestTaxResolver:
    """Tests for TaxResolver.resolve."""

    @pytest.fixture
    def rates(self):
        return [
            TaxRate(id=1, name="GST+QST", rate=Decimal("14.975"), is_composite=True),
            TaxRate(id=2, name="GST", rate=Decimal("5"), parent_id=1, display_order=1),
            TaxRate(id=3, name="QST", rate=Decimal("9.975"), parent_id=1, display_order=2),
            TaxRate(id=4, name="VAT", rate=Decimal("20")),
            TaxRate(id=5, name="Empty", rate=Decimal("7"), is_composite=True),
        ]

    def test_untaxed_line(self, rates):
        breakdown = TaxResolver(rates).resolve(Decimal("100.00"), None)
        assert breakdown.components == ()
        assert breakdown.tax_amount == Decimal("0.00")
        assert breakdown.subtotal_contribution == Decimal("100.00")

    def test_standalone_rate(self, rates):
        breakdown = TaxResolver(rates).resolve(Decimal("50.00"), 4)
        assert len(breakdown.components) == 1
        component = breakdown.components[0]
        assert component.name == "VAT"
        assert component.amount == Decimal("10.00")
        assert component.is_component is False
        assert breakdown.tax_amount == Decimal("10.00")

    def test_composite_uses_components_not_own_rate(self, rates):
        breakdown = TaxResolver(rates).resolve(Decimal("300.00"), 1)

        assert [c.name for c in breakdown.components] == ["GST", "QST"]
        assert [c.amount for c in breakdown.components] == [Decimal("15.00"), Decimal("29.93")]
        assert all(c.is_component for c in breakdown.components)
        assert all(c.parent_id == 1 for c in breakdown.components)
        assert breakdown.tax_amount == Decimal("44.93")
        assert breakdown.subtotal_contribution == Decimal("300.00")

    def test_components_are_not_compounded(self, rates):
        # QST against the GST-inclusive amount would be 31.42
        breakdown = TaxResolver(rates).resolve(Decimal("300.00"), 1)
        assert breakdown.components[1].amount == Decimal("29.93")

    def test_component_order_follows_display_order(self):
        rates = [
            TaxRate(id=1, name="Combo", rate=Decimal("0"), is_composite=True),
            TaxRate(id=2, name="Second", rate=Decimal("2"), parent_id=1, display_order=2),
            TaxRate(id=3, name="First", rate=Decimal("1"), parent_id=1, display_order=1),
        ]
        breakdown = TaxResolver(rates).resolve(Decimal("100.00"), 1)
        assert [c.name for c in breakdown.components] == ["First", "Second"]

    def test_composite_without_components_uses_own_rate(self, rates):
        breakdown = TaxResolver(rates).resolve(Decimal("100.00"), 5)
        assert len(breakdown.components) == 1
        assert breakdown.components[0].name == "Empty"
        assert breakdown.tax_amount == Decimal("7.00")

    def test_inclusive_composite(self, rates):
        breakdown = TaxResolver(rates).resolve(Decimal("114.98"), 1, PricingMode.INCLUSIVE)

        # Each component is extracted from the same gross amount
        assert breakdown.components[0].amount == inclusive_tax(Decimal("114.98"), Decimal("5"))
        assert breakdown.components[1].amount == inclusive_tax(Decimal("114.98"), Decimal("9.975"))
        assert breakdown.subtotal_contribution == Decimal("114.98") - breakdown.tax_amount

    def test_inclusive_pricing_mode_accepts_string(self, rates):
        breakdown = TaxResolver(rates).resolve(Decimal("120.00"), 4, "inclusive")
        assert breakdown.tax_amount == Decimal("20.00")
        assert breakdown.subtotal_contribution == Decimal("100.00")

    def test_unknown_tax_rate(self, rates):
        with pytest.raises(ValidationError, match="Tax rate 99 not found"):
            TaxResolver(rates).resolve(Decimal("10.00"), 99)

    def test_nested_components_rejected(self):
        rates = [
            TaxRate(id=1, name="Outer", rate=Decimal("0"), is_composite=True),
            TaxRate(id=2, name="Inner", rate=Decimal("1"), is_composite=True, parent_id=1),
            TaxRate(id=3, name="Deep", rate=Decimal("1"), parent_id=2),
        ]
        with pytest.raises(DataIntegrityError):
            TaxResolver(rates).resolve(Decimal("10.00"), 1)

    def test_self_parent_rejected(self):
        rates = [TaxRate(id=1, name="Loop", rate=Decimal("5"), is_composite=True, parent_id=1)]
        with pytest.raises(DataIntegrityError):
            TaxResolver(rates).resolve(Decimal("10.00"), 1)

    def test_resolve_tax_function(self, rates):
        breakdown = resolve_tax(Decimal("300.00"), 1, PricingMode.EXCLUSIVE, rates)
        assert breakdown.tax_amount == Decimal("44.93")


class TestTaxService:
    """Tests for TaxService."""

    def test_create_tax_rate(self, tax_service):
        tax_rate_id = tax_service.create_tax_rate("HST", Decimal("13"))
        tax_rate = tax_service.get_tax_rate(tax_rate_id)

        assert tax_rate.name == "HST"
        assert tax_rate.rate == Decimal("13")
        assert tax_rate.is_composite is False
        assert tax_rate.is_active is True

    def test_create_tax_rate_rejects_negative_rate(self, tax_service):
        with pytest.raises(ValidationError, match="negative"):
            tax_service.create_tax_rate("Bad", Decimal("-1"))

    def test_create_tax_rate_rejects_empty_name(self, tax_service):
        with pytest.raises(ValidationError, match="empty"):
            tax_service.create_tax_rate("  ", Decimal("5"))

    def test_add_components(self, tax_service, gst_qst):
        gst = tax_service.get_tax_rate(gst_qst["gst"])
        qst = tax_service.get_tax_rate(gst_qst["qst"])

        assert gst.parent_id == gst_qst["composite"]
        assert qst.parent_id == gst_qst["composite"]
        assert gst.display_order < qst.display_order

    def test_add_component_to_standalone_rate(self, tax_service, vat):
        with pytest.raises(ValidationError, match="not composite"):
            tax_service.add_component(vat, "Part", Decimal("1"))

    def test_add_component_to_missing_parent(self, tax_service):
        with pytest.raises(ValidationError, match="not found"):
            tax_service.add_component(42, "Part", Decimal("1"))

    def test_find_by_name(self, tax_service, gst_qst):
        assert tax_service.find_by_name("QST").id == gst_qst["qst"]
        assert tax_service.find_by_name("PST") is None

    def test_deactivated_rate_still_resolves(self, tax_service, vat):
        tax_service.deactivate(vat)

        assert [r.id for r in tax_service.list_tax_rates()] == []
        assert [r.id for r in tax_service.list_tax_rates(include_inactive=True)] == [vat]
        breakdown = tax_service.get_resolver().resolve(Decimal("10.00"), vat)
        assert breakdown.tax_amount == Decimal("2.00")

    def test_resolver_from_database(self, tax_service, gst_qst):
        breakdown = tax_service.get_resolver().resolve(Decimal("300.00"), gst_qst["composite"])
        assert breakdown.tax_amount == Decimal("44.93")
