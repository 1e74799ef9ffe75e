# Overview: Pure money calculations (integer cents) used by inventory and orders.

"""
Pricing and averaging functions.

All amounts are integer cents. Every division rounds to the nearest cent,
half-up (0.5 cent goes away from zero), so results are deterministic across
databases and platforms.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded half-up, for non-negative numerator and positive denominator."""
    return (numerator + denominator // 2) // denominator


def weighted_average_price(old_qty: int, old_price: int, new_qty: int, new_price: int) -> int:
    """
    Weighted average purchase price after receiving new_qty units at new_price.

    When there is no prior stock the new price is taken as-is.
    Raises ValueError for a negative prior quantity or a non-positive receipt.
    """
    if old_qty < 0:
        raise ValueError("old_qty must be >= 0")
    if new_qty <= 0:
        raise ValueError("new_qty must be > 0")
    if old_qty == 0:
        return new_price

    total_value = old_qty * old_price + new_qty * new_price
    return round_half_up(total_value, old_qty + new_qty)


def inventory_value(stock: int, avg_price: int) -> int:
    if stock < 0 or avg_price < 0:
        return 0
    return stock * avg_price


@dataclass(frozen=True)
class ProfitMargin:
    amount: int
    percentage: Decimal


def profit_margin(selling_price: int, avg_price: int) -> ProfitMargin:
    """
    Margin of selling price over average cost.

    With no known cost the whole selling price counts as margin (100%).
    """
    if avg_price == 0:
        return ProfitMargin(amount=selling_price, percentage=Decimal("100"))

    amount = selling_price - avg_price
    pct = (Decimal(amount) / Decimal(avg_price) * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return ProfitMargin(amount=amount, percentage=pct)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: int
    tax: int
    shipping: int
    total: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal,
            "tax_cents": self.tax,
            "shipping_cents": self.shipping,
            "total_cents": self.total,
        }


def order_totals(
    subtotal: int,
    *,
    tax_rate: Decimal | str = "0.18",
    free_shipping_threshold: int = 50000,
    flat_shipping: int = 5000,
) -> OrderTotals:
    """
    Tax, shipping and grand total for an order subtotal.

    Shipping is free strictly above the threshold.
    """
    rate = Decimal(str(tax_rate))
    tax = int((Decimal(subtotal) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    shipping = 0 if subtotal > free_shipping_threshold else flat_shipping
    return OrderTotals(subtotal=subtotal, tax=tax, shipping=shipping, total=subtotal + tax + shipping)
