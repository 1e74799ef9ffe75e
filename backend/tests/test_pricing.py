"""Money arithmetic: weighted average, margins and order totals (integer cents)."""

from decimal import Decimal

import pytest

from shopmaster.services.pricing import (
    round_half_up,
    weighted_average_price,
    inventory_value,
    profit_margin,
    order_totals,
)


class TestWeightedAverage:
    def test_equal_quantities_average_the_prices(self):
        assert weighted_average_price(10, 10000, 10, 20000) == 15000

    def test_first_receipt_takes_new_price(self):
        assert weighted_average_price(0, 0, 5, 12345) == 12345

    def test_weighted_by_quantity(self):
        # (30 * 100 + 10 * 200) / 40 = 125
        assert weighted_average_price(30, 100, 10, 200) == 125

    def test_rounds_half_up(self):
        # (1 * 1 + 1 * 2) / 2 = 1.5 -> 2
        assert weighted_average_price(1, 1, 1, 2) == 2
        # (2 * 1 + 1 * 2) / 3 = 1.33 -> 1
        assert weighted_average_price(2, 1, 1, 2) == 1

    @pytest.mark.parametrize("old_qty,new_qty", [(-1, 5), (5, 0), (5, -3)])
    def test_rejects_invalid_quantities(self, old_qty, new_qty):
        with pytest.raises(ValueError):
            weighted_average_price(old_qty, 100, new_qty, 100)


def test_round_half_up():
    assert round_half_up(5, 2) == 3
    assert round_half_up(4, 3) == 1
    assert round_half_up(0, 7) == 0


def test_inventory_value():
    assert inventory_value(12, 2500) == 30000
    assert inventory_value(0, 2500) == 0


class TestProfitMargin:
    def test_margin_over_cost(self):
        margin = profit_margin(15000, 10000)
        assert margin.amount == 5000
        assert margin.percentage == Decimal("50.00")

    def test_fractional_percentage_rounded_to_two_places(self):
        margin = profit_margin(10000, 3000)
        assert margin.amount == 7000
        assert margin.percentage == Decimal("233.33")

    def test_unknown_cost_is_full_margin(self):
        margin = profit_margin(9999, 0)
        assert margin.amount == 9999
        assert margin.percentage == Decimal("100")

    def test_negative_margin(self):
        margin = profit_margin(8000, 10000)
        assert margin.amount == -2000
        assert margin.percentage == Decimal("-20.00")


class TestOrderTotals:
    def test_flat_shipping_at_or_below_threshold(self):
        totals = order_totals(50000)
        assert totals.tax == 9000
        assert totals.shipping == 5000
        assert totals.total == 64000

    def test_free_shipping_above_threshold(self):
        totals = order_totals(50001)
        assert totals.shipping == 0
        assert totals.total == 50001 + totals.tax

    def test_tax_rounds_half_up(self):
        # 18% of 25 = 4.5 -> 5
        assert order_totals(25).tax == 5

    def test_custom_configuration(self):
        totals = order_totals(1000, tax_rate="0.05", free_shipping_threshold=500, flat_shipping=99)
        assert totals.to_dict() == {
            "subtotal_cents": 1000,
            "tax_cents": 50,
            "shipping_cents": 0,
            "total_cents": 1050,
        }
