"""
Inventory ledger tests.

Verifies:
- stock-in rolls the weighted-average purchase price forward
- every stock change writes exactly one balanced log row
- stock-out and adjustment never drive stock negative
- variant products require a variant for stock operations
- inventory endpoints are permission-gated
"""

import pytest

from shopmaster.extensions import db
from shopmaster.models import InventoryLog
from shopmaster.errors import InsufficientStockError, NotFoundError
from shopmaster.validation import ValidationError
from shopmaster.services import inventory_service


def _logs(product_id):
    return (
        db.session.query(InventoryLog).filter_by(product_id=product_id)
        .order_by(InventoryLog.id)
        .all()
    )


class TestStockIn:
    def test_first_receipt_sets_average(self, make_product, admin_user):
        product = make_product()
        product, log = inventory_service.stock_in(
            product_id=product.id, quantity=10, purchase_price_cents=10000, actor_id=admin_user.id,
            batch_number="B-1", supplier="Acme",
        )
        assert product.current_stock == 10
        assert product.avg_purchase_price_cents == 10000
        assert log.type == "stock-in"
        assert (log.prev_qty, log.qty_change, log.new_qty) == (0, 10, 10)
        assert log.avg_purchase_before_cents == 0
        assert log.avg_purchase_after_cents == 10000
        assert log.batch_number == "B-1"
        assert log.supplier == "Acme"

    def test_second_receipt_weighted_average(self, make_product, admin_user):
        product = make_product(stock=10, purchase_price_cents=10000)
        product, log = inventory_service.stock_in(
            product_id=product.id, quantity=10, purchase_price_cents=20000, actor_id=admin_user.id,
        )
        assert product.current_stock == 20
        assert product.avg_purchase_price_cents == 15000
        assert log.avg_purchase_before_cents == 10000
        assert log.avg_purchase_after_cents == 15000
        assert len(_logs(product.id)) == 2

    def test_rejects_non_positive_quantity(self, make_product, admin_user):
        product = make_product()
        with pytest.raises(ValidationError):
            inventory_service.stock_in(
                product_id=product.id, quantity=0, purchase_price_cents=100, actor_id=admin_user.id,
            )
        assert _logs(product.id) == []

    def test_unknown_product(self, admin_user):
        with pytest.raises(NotFoundError):
            inventory_service.stock_in(
                product_id=999999, quantity=1, purchase_price_cents=100, actor_id=admin_user.id,
            )

    def test_variant_product_requires_variant(self, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M"), variant_entry(size="L")])
        with pytest.raises(ValidationError) as exc:
            inventory_service.stock_in(
                product_id=product.id, quantity=1, purchase_price_cents=100, actor_id=admin_user.id,
            )
        assert exc.value.errors[0]["field"] == "variant_id"

    def test_variant_receipt_updates_variant_only(self, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M"), variant_entry(size="L")])
        medium = product.variants[0]
        product, log = inventory_service.stock_in(
            product_id=product.id, variant_id=medium.id, quantity=4, purchase_price_cents=500,
            actor_id=admin_user.id,
        )
        assert medium.current_stock == 4
        assert medium.avg_purchase_price_cents == 500
        assert product.current_stock == 0
        assert product.total_stock == 4
        assert log.variant_id == medium.id


class TestStockOut:
    def test_removes_stock_and_keeps_average(self, make_product, admin_user):
        product = make_product(stock=10, purchase_price_cents=700)
        product, log = inventory_service.stock_out(
            product_id=product.id, quantity=3, actor_id=admin_user.id, note="Damaged",
        )
        assert product.current_stock == 7
        assert product.avg_purchase_price_cents == 700
        assert (log.type, log.qty_change, log.prev_qty, log.new_qty) == ("stock-out", -3, 10, 7)
        assert log.note == "Damaged"

    def test_receipt_then_equal_removal_restores_stock(self, make_product, admin_user):
        product = make_product(stock=6, purchase_price_cents=900)

        received, _ = inventory_service.stock_in(
            product_id=product.id, quantity=4, purchase_price_cents=400, actor_id=admin_user.id,
        )
        average_after_receipt = received.avg_purchase_price_cents
        product, _ = inventory_service.stock_out(product_id=product.id, quantity=4, actor_id=admin_user.id)

        assert product.current_stock == 6
        # (6 * 900 + 4 * 400) / 10, untouched by the removal
        assert average_after_receipt == 700
        assert product.avg_purchase_price_cents == average_after_receipt
        assert sum(log.qty_change for log in _logs(product.id)) == 6

    def test_insufficient_stock_changes_nothing(self, make_product, admin_user):
        product = make_product(stock=2)
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.stock_out(product_id=product.id, quantity=3, actor_id=admin_user.id)
        assert exc.value.details["available"] == 2
        assert exc.value.details["requested"] == 3

        assert product.current_stock == 2
        assert [log.type for log in _logs(product.id)] == ["stock-in"]


class TestAdjust:
    def test_sets_counted_quantity_with_signed_delta(self, make_product, admin_user):
        product = make_product(stock=10)
        product, log = inventory_service.adjust_stock(
            product_id=product.id, new_quantity=4, actor_id=admin_user.id,
        )
        assert product.current_stock == 4
        assert (log.type, log.qty_change, log.prev_qty, log.new_qty) == ("adjustment", -6, 10, 4)
        assert log.note == inventory_service.DEFAULT_ADJUST_NOTE

    def test_adjust_up(self, make_product, admin_user):
        product = make_product(stock=1)
        _, log = inventory_service.adjust_stock(
            product_id=product.id, new_quantity=5, actor_id=admin_user.id, note="Recount",
        )
        assert log.qty_change == 4
        assert log.note == "Recount"

    def test_negative_target_rejected(self, make_product, admin_user):
        product = make_product(stock=1)
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(product_id=product.id, new_quantity=-1, actor_id=admin_user.id)


class TestLedgerQueries:
    def test_filter_by_type(self, make_product, admin_user):
        product = make_product(stock=10)
        inventory_service.stock_out(product_id=product.id, quantity=1, actor_id=admin_user.id)

        result = inventory_service.list_logs(log_type="stock-out")
        assert result["pagination"]["total"] == 1
        assert result["items"][0]["type"] == "stock-out"
        assert result["items"][0]["created_by"]["email"] == admin_user.email

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            inventory_service.list_logs(log_type="teleport")

    def test_bad_date_rejected(self):
        with pytest.raises(ValidationError):
            inventory_service.list_logs(start_date="not-a-date")

    def test_product_logs_newest_first(self, make_product, admin_user):
        product = make_product(stock=10)
        inventory_service.stock_out(product_id=product.id, quantity=2, actor_id=admin_user.id)

        result = inventory_service.list_product_logs(product.id)
        assert [item["type"] for item in result["items"]] == ["stock-out", "stock-in"]

    def test_summary(self, make_product):
        make_product("Plenty", stock=50, purchase_price_cents=100)
        make_product("Few", stock=3, purchase_price_cents=200)
        make_product("None")

        summary = inventory_service.get_inventory_summary()
        assert summary == {
            "total_inventory_value_cents": 50 * 100 + 3 * 200,
            "total_products": 3,
            "low_stock_count": 1,
            "out_of_stock_count": 1,
        }


class TestInventoryApi:
    def test_requires_auth(self, client, db_session):
        assert client.post("/api/inventory/stock-in", json={}).status_code == 401
        assert client.get("/api/inventory/summary").status_code == 401

    def test_customer_forbidden(self, client, customer_headers):
        assert client.get("/api/inventory/logs", headers=customer_headers).status_code == 403

    def test_staff_cannot_adjust(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "new_quantity": 1},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_stock_in_endpoint(self, client, staff_headers, make_product):
        product = make_product()
        resp = client.post(
            "/api/inventory/stock-in",
            json={"product_id": product.id, "quantity": 8, "purchase_price_cents": 2500, "supplier": "Acme"},
            headers=staff_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["data"]["product"]["current_stock"] == 8
        assert body["data"]["product"]["avg_purchase_price_cents"] == 2500
        assert body["data"]["log"]["type"] == "stock-in"

    def test_stock_out_insufficient_is_400(self, client, staff_headers, make_product):
        product = make_product(stock=1)
        resp = client.post(
            "/api/inventory/stock-out",
            json={"product_id": product.id, "quantity": 2},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False
        assert "Insufficient stock" in resp.get_json()["message"]

    def test_validation_errors_listed(self, client, staff_headers, db_session):
        resp = client.post("/api/inventory/stock-in", json={"quantity": 0}, headers=staff_headers)
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert {"product_id", "quantity", "purchase_price_cents"} <= fields

    def test_admin_adjust_endpoint(self, client, admin_headers, make_product):
        product = make_product(stock=5)
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "new_quantity": 9, "note": "Cycle count"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["log"]["qty_change"] == 4
