"""
Order lifecycle tests.

Verifies:
- placing an order reserves stock and logs one order-reserve row per line
- an order that cannot be fully reserved leaves no trace
- cancellation (customer or staff) returns stock through order-cancel rows
- the transition table is enforced
- order numbers are sequential per day
"""

import pytest

from shopmaster.extensions import db
from shopmaster.models import Order, InventoryLog, DocumentSequence
from shopmaster.errors import (
    InsufficientStockError,
    InvalidStateError,
    EmptyOrderError,
    ForbiddenError,
    ProductUnavailableError,
    VariantUnavailableError,
)
from shopmaster.services import order_service, inventory_service, catalog_service
from shopmaster.time_utils import utcnow


SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


def _place(customer, *lines):
    return order_service.create_order(
        customer_id=customer.id,
        items=[{"product_id": p, "variant_id": v, "quantity": q} for p, v, q in lines],
        shipping_address=dict(SHIPPING_ADDRESS, country="India"),
    )


def _logs(log_type):
    return db.session.query(InventoryLog).filter_by(type=log_type).order_by(InventoryLog.id).all()


class TestReservation:
    def test_reserves_exact_stock(self, make_product, customer_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 5))

        assert product.current_stock == 0
        assert order.status == "pending"
        assert order.stock_reserved is True
        assert order.stock_deducted is False

        reserve = _logs("order-reserve")
        assert len(reserve) == 1
        assert reserve[0].qty_change == -5
        assert reserve[0].order_id == order.id
        assert reserve[0].created_by_user_id == customer_user.id

    def test_insufficient_stock_leaves_no_trace(self, make_product, customer_user):
        product = make_product(stock=5)
        with pytest.raises(InsufficientStockError) as exc:
            _place(customer_user, (product.id, None, 6))

        assert exc.value.details["available"] == 5
        assert exc.value.details["requested"] == 6
        assert product.current_stock == 5
        assert db.session.query(Order).count() == 0
        assert _logs("order-reserve") == []
        assert db.session.query(DocumentSequence).count() == 0

    def test_lines_for_same_product_are_summed(self, make_product, customer_user):
        product = make_product(stock=5)
        with pytest.raises(InsufficientStockError):
            _place(customer_user, (product.id, None, 3), (product.id, None, 3))
        assert product.current_stock == 5

    def test_failure_on_later_line_reserves_nothing(self, make_product, customer_user):
        plenty = make_product("Plenty", stock=10)
        scarce = make_product("Scarce", stock=1)
        with pytest.raises(InsufficientStockError):
            _place(customer_user, (plenty.id, None, 2), (scarce.id, None, 2))
        assert plenty.current_stock == 10
        assert scarce.current_stock == 1

    def test_empty_order(self, customer_user):
        with pytest.raises(EmptyOrderError):
            _place(customer_user)

    def test_inactive_product_unavailable(self, make_product, admin_user, customer_user):
        product = make_product(stock=3)
        catalog_service.archive_product(product.id, actor_id=admin_user.id)
        with pytest.raises(ProductUnavailableError):
            _place(customer_user, (product.id, None, 1))

    def test_unknown_product_unavailable(self, customer_user):
        with pytest.raises(ProductUnavailableError):
            _place(customer_user, (424242, None, 1))

    def test_totals_and_snapshot(self, make_product, customer_user):
        product = make_product(selling_price_cents=10000, stock=10)
        order = _place(customer_user, (product.id, None, 2))

        assert order.subtotal_cents == 20000
        assert order.tax_cents == 3600
        assert order.shipping_cents == 5000
        assert order.total_cents == 28600

        item = order.items[0]
        assert item.name == product.name
        assert item.sku == product.sku
        assert item.unit_price_cents == 10000
        assert item.line_total_cents == 20000

    def test_free_shipping_above_threshold(self, make_product, customer_user):
        product = make_product(selling_price_cents=30000, stock=10)
        order = _place(customer_user, (product.id, None, 2))
        assert order.shipping_cents == 0


class TestVariantReservation:
    @pytest.fixture
    def shirt(self, make_product, variant_entry, admin_user):
        product = make_product(
            "Crew T-Shirt",
            base_price_cents=50000,
            selling_price_cents=50000,
            variants=[variant_entry(size="M"), variant_entry(1000, size="L")],
        )
        for variant in product.variants:
            inventory_service.stock_in(
                product_id=product.id, variant_id=variant.id, quantity=3,
                purchase_price_cents=20000, actor_id=admin_user.id,
            )
        return product

    def test_reserves_from_variant(self, shirt, customer_user):
        medium, large = shirt.variants
        order = _place(customer_user, (shirt.id, large.id, 2))

        assert large.current_stock == 1
        assert medium.current_stock == 3
        assert shirt.current_stock == 0
        assert order.items[0].unit_price_cents == 51000
        assert order.items[0].variant_info == {"size": "L"}
        assert _logs("order-reserve")[0].variant_id == large.id

    def test_variant_required(self, shirt, customer_user):
        with pytest.raises(VariantUnavailableError):
            _place(customer_user, (shirt.id, None, 1))

    def test_variant_stock_checked_per_variant(self, shirt, customer_user):
        medium, _ = shirt.variants
        with pytest.raises(InsufficientStockError):
            _place(customer_user, (shirt.id, medium.id, 4))

    def test_cancel_returns_stock_to_variant(self, shirt, customer_user):
        _, large = shirt.variants
        order = _place(customer_user, (shirt.id, large.id, 2))
        order_service.cancel_order(order_id=order.id, customer_id=customer_user.id)

        assert large.current_stock == 3
        cancel = _logs("order-cancel")
        assert len(cancel) == 1
        assert cancel[0].variant_id == large.id
        assert cancel[0].qty_change == 2


class TestCancellation:
    def test_customer_cancel_restores_stock(self, make_product, customer_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 4))

        order = order_service.cancel_order(order_id=order.id, customer_id=customer_user.id)

        assert product.current_stock == 5
        assert order.status == "cancelled"
        assert order.stock_reserved is False
        assert order.cancelled_at is not None
        assert order.cancel_reason == order_service.DEFAULT_CUSTOMER_CANCEL_REASON
        cancel = _logs("order-cancel")
        assert [(log.qty_change, log.order_id) for log in cancel] == [(4, order.id)]

    def test_cancel_when_product_sold_out(self, make_product, customer_user):
        product = make_product(stock=3)
        order = _place(customer_user, (product.id, None, 3))
        assert product.current_stock == 0

        order_service.cancel_order(order_id=order.id, customer_id=customer_user.id)

        assert product.current_stock == 3
        cancel = _logs("order-cancel")
        assert [(log.prev_qty, log.new_qty) for log in cancel] == [(0, 3)]

    def test_customer_cannot_cancel_others_order(self, make_product, customer_user, other_customer):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 1))
        with pytest.raises(ForbiddenError):
            order_service.cancel_order(order_id=order.id, customer_id=other_customer.id)
        assert product.current_stock == 4

    def test_customer_cannot_cancel_after_shipping(self, make_product, customer_user, staff_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 1))
        order_service.update_order_status(order_id=order.id, new_status="confirmed", actor_id=staff_user.id)
        order_service.update_order_status(order_id=order.id, new_status="shipped", actor_id=staff_user.id)

        with pytest.raises(InvalidStateError):
            order_service.cancel_order(order_id=order.id, customer_id=customer_user.id, reason="Too slow")
        assert product.current_stock == 4
        assert _logs("order-cancel") == []

    def test_staff_cancel_of_confirmed_order_releases(self, make_product, customer_user, staff_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 2))
        order_service.update_order_status(order_id=order.id, new_status="confirmed", actor_id=staff_user.id)

        order = order_service.update_order_status(
            order_id=order.id, new_status="cancelled", actor_id=staff_user.id, cancel_reason="Out of area",
        )

        assert product.current_stock == 5
        assert order.cancel_reason == "Out of area"
        assert order.processed_by_user_id == staff_user.id
        assert _logs("order-cancel")[0].created_by_user_id == staff_user.id


class TestTransitions:
    @pytest.mark.parametrize(
        "current,new,allowed",
        [
            ("pending", "confirmed", True),
            ("pending", "shipped", False),
            ("confirmed", "shipped", True),
            ("processing", "delivered", False),
            ("shipped", "cancelled", False),
            ("shipped", "completed", True),
            ("delivered", "refunded", True),
            ("completed", "refunded", False),
            ("cancelled", "pending", False),
            ("refunded", "completed", False),
        ],
    )
    def test_table(self, current, new, allowed):
        assert order_service.can_transition(current, new) is allowed

    def test_disallowed_transition_raises(self, make_product, customer_user, staff_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 1))
        with pytest.raises(InvalidStateError):
            order_service.update_order_status(order_id=order.id, new_status="delivered", actor_id=staff_user.id)
        assert order.status == "pending"

    def test_full_lifecycle_to_completed(self, make_product, customer_user, staff_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 2))
        for status in ("confirmed", "processing", "shipped", "delivered", "completed"):
            order = order_service.update_order_status(order_id=order.id, new_status=status, actor_id=staff_user.id)

        assert order.status == "completed"
        assert order.stock_reserved is False
        assert order.stock_deducted is True
        assert order.completed_at is not None
        assert product.current_stock == 3

    def test_refund_marks_payment(self, make_product, customer_user, staff_user):
        product = make_product(stock=5)
        order = _place(customer_user, (product.id, None, 1))
        for status in ("confirmed", "shipped", "delivered", "refunded"):
            order = order_service.update_order_status(order_id=order.id, new_status=status, actor_id=staff_user.id)
        assert order.payment_status == "refunded"
        assert order.refunded_at is not None


class TestOrderNumbers:
    def test_sequential_per_day(self, make_product, customer_user):
        product = make_product(stock=10)
        first = _place(customer_user, (product.id, None, 1))
        second = _place(customer_user, (product.id, None, 1))

        today = utcnow().strftime("%y%m%d")
        assert first.order_number == f"ORD-{today}-0001"
        assert second.order_number == f"ORD-{today}-0002"

    def test_failed_order_does_not_consume_number(self, make_product, customer_user):
        product = make_product(stock=1)
        with pytest.raises(InsufficientStockError):
            _place(customer_user, (product.id, None, 2))
        order = _place(customer_user, (product.id, None, 1))
        assert order.order_number.endswith("-0001")


class TestOrderApi:
    def _payload(self, product_id, quantity=1):
        return {
            "items": [{"product_id": product_id, "quantity": quantity}],
            "shipping_address": SHIPPING_ADDRESS,
            "payment_info": {"method": "cod"},
        }

    def test_place_order(self, client, customer_headers, make_product):
        product = make_product(stock=3)
        resp = client.post("/api/orders", json=self._payload(product.id, 2), headers=customer_headers)
        assert resp.status_code == 201
        order = resp.get_json()["data"]["order"]
        assert order["status"] == "pending"
        assert order["shipping_address"]["country"] == "India"
        assert order["payment_info"]["method"] == "cod"
        assert len(order["items"]) == 1

    def test_empty_items_rejected(self, client, customer_headers):
        resp = client.post(
            "/api/orders",
            json={"items": [], "shipping_address": SHIPPING_ADDRESS},
            headers=customer_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "No order items"

    def test_missing_address_fields(self, client, customer_headers, make_product):
        product = make_product(stock=3)
        payload = self._payload(product.id)
        payload["shipping_address"] = {"full_name": "Asha"}
        resp = client.post("/api/orders", json=payload, headers=customer_headers)
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert "shipping_address.city" in fields

    def test_customer_sees_only_own_orders(self, client, customer_headers, login, other_customer, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/orders", json=self._payload(product.id), headers=customer_headers)
        order_id = resp.get_json()["data"]["order"]["id"]

        other_headers = login(other_customer.email)
        assert client.get(f"/api/orders/{order_id}", headers=other_headers).status_code == 403
        assert client.get("/api/orders/my-orders", headers=other_headers).get_json()["data"]["count"] == 0
        assert client.get(f"/api/orders/{order_id}", headers=customer_headers).status_code == 200

    def test_customer_cannot_list_all_or_change_status(self, client, customer_headers, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/orders", json=self._payload(product.id), headers=customer_headers)
        order_id = resp.get_json()["data"]["order"]["id"]

        assert client.get("/api/orders", headers=customer_headers).status_code == 403
        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=customer_headers)
        assert resp.status_code == 403

    def test_staff_status_flow_and_customer_cancel_rules(self, client, customer_headers, staff_headers, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/orders", json=self._payload(product.id), headers=customer_headers)
        order_id = resp.get_json()["data"]["order"]["id"]

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=staff_headers)
        assert resp.status_code == 400

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "confirmed"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["order"]["confirmed_at"] is not None

        resp = client.put(f"/api/orders/{order_id}/cancel", json={"reason": "Changed mind"}, headers=customer_headers)
        assert resp.status_code == 400

        listing = client.get("/api/orders?status=confirmed", headers=staff_headers).get_json()["data"]
        assert [o["id"] for o in listing["orders"]] == [order_id]

    def test_customer_cancel_endpoint(self, client, customer_headers, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/orders", json=self._payload(product.id, 2), headers=customer_headers)
        order_id = resp.get_json()["data"]["order"]["id"]

        resp = client.put(f"/api/orders/{order_id}/cancel", json={"reason": "Ordered twice"}, headers=customer_headers)
        assert resp.status_code == 200
        order = resp.get_json()["data"]["order"]
        assert order["status"] == "cancelled"
        assert order["cancel_reason"] == "Ordered twice"
        assert product.current_stock == 5
