"""Tax rate management and per-line tax resolution."""

from decimal import Decimal
from typing import Iterable, Optional

from tallybook.database.base import Database
from tallybook.domain.entities import PricingMode, TaxBreakdown, TaxComponent, TaxRate
from tallybook.domain.errors import (
    DataIntegrityError,
    ValidationError,
    tax_rate_not_found,
)
from tallybook.utils.money import ZERO, round2

HUNDRED = Decimal("100")


def exclusive_tax(amount: Decimal, rate: Decimal) -> Decimal:
    """Tax added on top of a net amount."""
    return round2(amount * rate / HUNDRED)


def inclusive_tax(amount: Decimal, rate: Decimal) -> Decimal:
    """Tax contained in a gross amount."""
    return round2(amount - (amount * HUNDRED) / (HUNDRED + rate))


class TaxResolver:
    """Resolve the tax owed on a line amount from a fixed set of tax rates.

    The resolver is built from a snapshot of the tax table and never touches
    the database, so it can be reused for every line of a document.
    """

    def __init__(self, tax_rates: Iterable[TaxRate]):
        self._rates: dict[int, TaxRate] = {}
        self._components: dict[int, list[TaxRate]] = {}
        for tax_rate in tax_rates:
            self._rates[tax_rate.id] = tax_rate
        for tax_rate in self._rates.values():
            if tax_rate.parent_id is not None:
                self._components.setdefault(tax_rate.parent_id, []).append(tax_rate)
        for components in self._components.values():
            components.sort(key=lambda c: (c.display_order, c.id))

    def get(self, tax_rate_id: int) -> TaxRate:
        """Return the tax rate with this ID or raise ValidationError."""
        tax_rate = self._rates.get(tax_rate_id)
        if tax_rate is None:
            raise ValidationError(tax_rate_not_found(tax_rate_id))
        return tax_rate

    def components_of(self, tax_rate_id: int) -> list[TaxRate]:
        """Return the component rates of a composite, in display order."""
        tax_rate = self.get(tax_rate_id)
        components = self._components.get(tax_rate.id, [])
        for component in components:
            if component.id == tax_rate.id:
                raise DataIntegrityError(f"Tax rate {tax_rate.id} lists itself as a component")
            if self._components.get(component.id):
                raise DataIntegrityError(
                    f"Tax rate {component.id} is a component of {tax_rate.id} "
                    "but has components of its own"
                )
        return list(components)

    def resolve(
        self,
        line_amount: Decimal,
        tax_rate_id: Optional[int],
        pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
    ) -> TaxBreakdown:
        """Compute the tax breakdown for one line amount.

        Args:
            line_amount: Quantity times unit price, already rounded to cents
            tax_rate_id: Tax rate to apply, or None for an untaxed line
            pricing_mode: Whether ``line_amount`` excludes or includes tax

        Returns:
            TaxBreakdown with one component per applied rate

        Raises:
            ValidationError: If the tax rate is unknown
            DataIntegrityError: If a composite's components are malformed
        """
        line_amount = round2(line_amount)
        if tax_rate_id is None:
            return TaxBreakdown(components=(), tax_amount=ZERO, subtotal_contribution=line_amount)

        pricing_mode = PricingMode(pricing_mode)
        compute = exclusive_tax if pricing_mode is PricingMode.EXCLUSIVE else inclusive_tax
        tax_rate = self.get(tax_rate_id)
        if tax_rate.parent_id is not None and tax_rate.parent_id == tax_rate.id:
            raise DataIntegrityError(f"Tax rate {tax_rate.id} is its own parent")

        components = self.components_of(tax_rate.id) if tax_rate.is_composite else []
        if components:
            # Each component is computed against the same base, never compounded
            results = tuple(
                TaxComponent(
                    id=component.id,
                    name=component.name,
                    rate=component.rate,
                    amount=compute(line_amount, component.rate),
                    is_component=True,
                    parent_id=tax_rate.id,
                    display_order=component.display_order,
                )
                for component in components
            )
        else:
            results = (
                TaxComponent(
                    id=tax_rate.id,
                    name=tax_rate.name,
                    rate=tax_rate.rate,
                    amount=compute(line_amount, tax_rate.rate),
                    is_component=False,
                    parent_id=None,
                    display_order=tax_rate.display_order,
                ),
            )

        tax_amount = ZERO
        for component in results:
            tax_amount = round2(tax_amount + component.amount)

        if pricing_mode is PricingMode.EXCLUSIVE:
            subtotal_contribution = line_amount
        else:
            subtotal_contribution = round2(line_amount - tax_amount)

        return TaxBreakdown(
            components=results,
            tax_amount=tax_amount,
            subtotal_contribution=subtotal_contribution,
        )


def resolve_tax(
    line_amount: Decimal,
    tax_rate_id: Optional[int],
    pricing_mode: PricingMode,
    tax_rates: Iterable[TaxRate],
) -> TaxBreakdown:
    """Resolve tax for one line without keeping a resolver around."""
    return TaxResolver(tax_rates).resolve(line_amount, tax_rate_id, pricing_mode)


class TaxService:
    """Service for managing tax rates."""

    def __init__(self, db: Database):
        """Initialize tax service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_tax_rate(self, name: str, rate: Decimal, is_composite: bool = False) -> int:
        """Create a standalone or composite tax rate.

        A composite's own rate is only a display label; its components carry
        the rates that are actually applied.

        Raises:
            ValidationError: If the name is empty or the rate is negative
        """
        name = name.strip()
        if not name:
            raise ValidationError("Tax rate name cannot be empty")
        if rate < 0:
            raise ValidationError(f"Tax rate cannot be negative (got {rate})")
        return self.db.create_tax_rate(name=name, rate=rate, is_composite=is_composite)

    def add_component(
        self, parent_id: int, name: str, rate: Decimal, display_order: Optional[int] = None
    ) -> int:
        """Add a component rate to a composite tax.

        Args:
            parent_id: Composite tax rate ID
            name: Component name (e.g., "GST")
            rate: Component percentage
            display_order: Position among siblings; appended last if None

        Returns:
            Component tax rate ID

        Raises:
            ValidationError: If the parent is missing, not composite, or itself a component
        """
        parent = self.db.get_tax_rate(parent_id)
        if parent is None:
            raise ValidationError(tax_rate_not_found(parent_id))
        if not parent.is_composite:
            raise ValidationError(f"Tax rate '{parent.name}' is not composite")
        if parent.parent_id is not None:
            raise ValidationError(f"Tax rate '{parent.name}' is a component and cannot have components")
        name = name.strip()
        if not name:
            raise ValidationError("Tax rate name cannot be empty")
        if rate < 0:
            raise ValidationError(f"Tax rate cannot be negative (got {rate})")

        if display_order is None:
            siblings = [r for r in self.db.list_tax_rates(include_inactive=True) if r.parent_id == parent_id]
            display_order = max((s.display_order for s in siblings), default=0) + 1

        return self.db.create_tax_rate(
            name=name,
            rate=rate,
            is_composite=False,
            parent_id=parent_id,
            display_order=display_order,
        )

    def get_tax_rate(self, tax_rate_id: int) -> Optional[TaxRate]:
        """Get tax rate by ID."""
        return self.db.get_tax_rate(tax_rate_id)

    def list_tax_rates(self, include_inactive: bool = False) -> list[TaxRate]:
        """List tax rates."""
        return self.db.list_tax_rates(include_inactive=include_inactive)

    def deactivate(self, tax_rate_id: int) -> None:
        """Hide a tax rate from new documents. Existing line items keep resolving it."""
        self.db.set_tax_rate_active(tax_rate_id, False)

    def find_by_name(self, name: str) -> Optional[TaxRate]:
        """Find a top-level or component tax rate by exact name."""
        for tax_rate in self.db.list_tax_rates(include_inactive=True):
            if tax_rate.name == name:
                return tax_rate
        return None

    def get_resolver(self) -> TaxResolver:
        """Build a resolver over every stored rate, including inactive ones."""
        return TaxResolver(self.db.list_tax_rates(include_inactive=True))
