"""
Pricing Calculator.

Pure functions deriving subtotal, tax and total from (unit price, quantity)
pairs. Prices are integer minor units (cents); amounts are only turned into
2-decimal currency values at the boundary, rounding half away from zero.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from shared.config.constants import TAX_RATE

CENT = Decimal("0.01")


def cents_to_amount(cents: int) -> Decimal:
    """1234 -> Decimal("12.34")"""
    return (Decimal(cents) / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total_cents(unit_price_cents: int, quantity: int) -> int:
    return unit_price_cents * quantity


def tax_cents(subtotal_cents: int, rate: Decimal = TAX_RATE) -> int:
    """Tax on a subtotal, rounded half-up to the cent."""
    return int((Decimal(subtotal_cents) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartSummary:
    """Totals for a set of cart lines. Amounts are in currency units."""

    item_count: int
    subtotal_cents: int
    tax_cents: int

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.tax_cents

    @property
    def subtotal(self) -> Decimal:
        return cents_to_amount(self.subtotal_cents)

    @property
    def tax(self) -> Decimal:
        return cents_to_amount(self.tax_cents)

    @property
    def total(self) -> Decimal:
        return cents_to_amount(self.total_cents)

    def to_dict(self) -> dict[str, float | int]:
        return {
            "itemCount": self.item_count,
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
        }


EMPTY_SUMMARY = CartSummary(item_count=0, subtotal_cents=0, tax_cents=0)


def summarize(lines: Iterable[tuple[int, int]]) -> CartSummary:
    """
    Summarize (unit_price_cents, quantity) pairs.

    item_count is the sum of quantities, not the number of lines.

        >>> summarize([(100000, 3)]).to_dict()
        {'itemCount': 3, 'subtotal': 3000.0, 'tax': 577.5, 'total': 3577.5}
    """
    item_count = 0
    subtotal = 0
    for unit_price_cents, quantity in lines:
        item_count += quantity
        subtotal += line_total_cents(unit_price_cents, quantity)

    if item_count == 0 and subtotal == 0:
        return EMPTY_SUMMARY

    return CartSummary(
        item_count=item_count,
        subtotal_cents=subtotal,
        tax_cents=tax_cents(subtotal),
    )
