"""
Catalog tests: categories, products, variants, storefront listing.
"""

import pytest

from shopmaster.errors import ShopError, NotFoundError
from shopmaster.validation import ConflictError, ValidationError
from shopmaster.services import catalog_service, inventory_service
from shopmaster.services.identifier_service import (
    slugify,
    unique_slug,
    category_prefix,
    generate_variant_sku,
    to_base36,
)


# =============================================================================
# IDENTIFIERS
# =============================================================================


class TestIdentifiers:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Home & Living", "home-and-living"),
            ("  Café Crème  ", "cafe-creme"),
            ("USB-C Charger 30W", "usb-c-charger-30w"),
            ("***", "item"),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_unique_slug_appends_counter(self):
        taken = {"mug", "mug-1"}
        assert unique_slug("Mug", taken.__contains__) == "mug-2"

    def test_category_prefix(self):
        assert category_prefix("Electronics") == "ELE"
        assert category_prefix("3D") == "D"
        assert category_prefix(None) == "PRD"

    def test_variant_sku(self):
        assert generate_variant_sku("ELE-X", {"size": "M", "color": "Red"}) == "ELE-X-MRE"
        assert generate_variant_sku("ELE-X", {"size": "M"}, {"ELE-X-M"}) == "ELE-X-M2"

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "Z"
        assert to_base36(36) == "10"


# =============================================================================
# CATEGORIES
# =============================================================================


class TestCategories:
    def test_slug_regenerated_on_rename(self, db_session):
        category = catalog_service.create_category({"name": "Home & Living"})
        assert category.slug == "home-and-living"

        category = catalog_service.update_category(category.id, {"name": "Home Decor"})
        assert category.slug == "home-decor"

    def test_duplicate_names_get_distinct_slugs(self, db_session):
        first = catalog_service.create_category({"name": "Sale"})
        second = catalog_service.create_category({"name": "Sale"})
        assert (first.slug, second.slug) == ("sale", "sale-1")

    def test_cannot_be_own_parent(self, category):
        with pytest.raises(ValidationError):
            catalog_service.update_category(category.id, {"parent_id": category.id})

    def test_unknown_parent(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_category({"name": "Orphan", "parent_id": 9999})

    def test_delete_blocked_by_products(self, category, make_product):
        make_product()
        with pytest.raises(ShopError) as exc:
            catalog_service.delete_category(category.id)
        assert "associated products" in exc.value.message

    def test_delete_blocked_by_subcategories(self, category):
        catalog_service.create_category({"name": "Audio", "parent_id": category.id})
        with pytest.raises(ShopError):
            catalog_service.delete_category(category.id)

    def test_delete_empty_category(self, category):
        catalog_service.delete_category(category.id)
        with pytest.raises(NotFoundError):
            catalog_service.find_category(category.id)

    def test_tree_and_counts(self, category, make_product):
        catalog_service.create_category({"name": "Audio", "parent_id": category.id})
        catalog_service.create_category({"name": "Hidden", "parent_id": category.id, "is_active": False})
        make_product()

        tree = catalog_service.category_tree()
        assert [c["name"] for c in tree] == ["Electronics"]
        assert [c["name"] for c in tree[0]["subcategories"]] == ["Audio"]

        roots = catalog_service.list_categories(parent="null")
        assert roots[0]["product_count"] == 1
        children = catalog_service.list_categories(parent=str(category.id))
        assert {c["name"] for c in children} == {"Audio", "Hidden"}
        assert children[0]["parent"]["slug"] == "electronics"

    def test_api_permissions(self, client, customer_headers, staff_headers, admin_headers):
        assert client.post("/api/categories", json={"name": "X"}).status_code == 401
        assert client.post("/api/categories", json={"name": "X"}, headers=customer_headers).status_code == 403

        resp = client.post("/api/categories", json={"name": "Sports & Fitness"}, headers=staff_headers)
        assert resp.status_code == 201
        category_id = resp.get_json()["data"]["category"]["id"]

        assert client.delete(f"/api/categories/{category_id}", headers=staff_headers).status_code == 403
        assert client.delete(f"/api/categories/{category_id}", headers=admin_headers).status_code == 200

    def test_api_public_reads(self, client, category):
        resp = client.get("/api/categories")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["categories"][0]["slug"] == "electronics"

        resp = client.get("/api/categories/electronics")
        assert resp.get_json()["data"]["category"]["id"] == category.id

        assert client.get("/api/categories/no-such-thing").status_code == 404

    def test_api_rejects_unknown_fields(self, client, staff_headers):
        resp = client.post("/api/categories", json={"name": "X", "slug": "hack"}, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "slug"


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProducts:
    def test_sku_and_slug_generated(self, make_product):
        first = make_product("Wireless Earbuds")
        second = make_product("Wireless Earbuds")
        assert first.sku.startswith("ELE-")
        assert first.sku != second.sku
        assert (first.slug, second.slug) == ("wireless-earbuds", "wireless-earbuds-1")

    def test_variants_get_skus(self, make_product, variant_entry):
        product = make_product(variants=[variant_entry(size="M", color="Red"), variant_entry(size="L", color="Red")])
        assert product.has_variants is True
        assert [v.sku for v in product.variants] == [f"{product.sku}-MRE", f"{product.sku}-LRE"]

    def test_variant_replacement_keeps_stock(self, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M"), variant_entry(size="L")])
        medium, large = product.variants
        inventory_service.stock_in(
            product_id=product.id, variant_id=medium.id, quantity=5,
            purchase_price_cents=100, actor_id=admin_user.id,
        )

        kept = dict(variant_entry(size="M"), id=medium.id, name="Medium")
        product = catalog_service.update_product(
            product.id, patch={}, variants=[kept], actor_id=admin_user.id,
        )
        assert [v.id for v in product.variants] == [medium.id]
        assert product.variants[0].current_stock == 5
        assert product.variants[0].name == "Medium"

    def test_cannot_drop_variant_with_stock(self, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M"), variant_entry(size="L")])
        medium, large = product.variants
        inventory_service.stock_in(
            product_id=product.id, variant_id=large.id, quantity=2,
            purchase_price_cents=100, actor_id=admin_user.id,
        )
        with pytest.raises(ConflictError):
            catalog_service.update_product(
                product.id, patch={}, variants=[dict(variant_entry(size="M"), id=medium.id)],
                actor_id=admin_user.id,
            )
        assert len(product.variants) == 2

    def test_cannot_add_variants_over_product_stock(self, make_product, variant_entry, admin_user):
        product = make_product(stock=5)
        with pytest.raises(ConflictError):
            catalog_service.update_product(
                product.id, patch={}, variants=[variant_entry(size="M")], actor_id=admin_user.id,
            )
        assert product.has_variants is False
        assert product.variants == []
        assert product.total_stock == 5

    def test_variants_added_once_product_stock_cleared(self, make_product, variant_entry, admin_user):
        product = make_product(stock=5)
        inventory_service.stock_out(product_id=product.id, quantity=5, actor_id=admin_user.id)

        product = catalog_service.update_product(
            product.id, patch={}, variants=[variant_entry(size="M")], actor_id=admin_user.id,
        )
        assert product.has_variants is True
        assert len(product.variants) == 1

    def test_has_variants_follows_variant_list(self, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M")])
        product = catalog_service.update_product(product.id, patch={}, variants=[], actor_id=admin_user.id)
        assert product.has_variants is False
        assert "has_variants" not in catalog_service.PRODUCT_MUTABLE_FIELDS

    def test_margin_reported_per_variant(self, make_product, variant_entry, admin_user):
        product = make_product(base_price_cents=10000, variants=[variant_entry(500, size="XL")])
        inventory_service.stock_in(
            product_id=product.id, variant_id=product.variants[0].id, quantity=2,
            purchase_price_cents=7000, actor_id=admin_user.id,
        )
        data = product.to_dict(admin=True)
        assert data["profit_margin"] is None
        assert data["variants"][0]["profit_margin"] == {"amount_cents": 3500, "percentage": 50.0}

    def test_unknown_category(self, admin_user):
        with pytest.raises(ValidationError):
            catalog_service.create_product(
                patch={"name": "X", "category_id": 4040, "base_price_cents": 1, "selling_price_cents": 1},
                variants=None,
                actor_id=admin_user.id,
            )

    def test_listing_filters_and_sort(self, make_product):
        make_product("Budget Mug", selling_price_cents=500, tags=["kitchen"])
        make_product("Premium Mug", selling_price_cents=5000, is_featured=True)
        make_product("Desk Lamp", selling_price_cents=2500)

        result = catalog_service.list_products(search="mug", sort="price-desc")
        assert [p["name"] for p in result["items"]] == ["Premium Mug", "Budget Mug"]

        result = catalog_service.list_products(min_price_cents=1000, max_price_cents=3000)
        assert [p["name"] for p in result["items"]] == ["Desk Lamp"]

        result = catalog_service.list_products(search="kitchen")
        assert [p["name"] for p in result["items"]] == ["Budget Mug"]

        result = catalog_service.list_products(featured=True)
        assert [p["name"] for p in result["items"]] == ["Premium Mug"]

        result = catalog_service.list_products(category="electronics", sort="name-asc", per_page=2)
        assert result["pagination"]["total"] == 3
        assert result["pagination"]["total_pages"] == 2
        assert result["pagination"]["has_next"] is True
        assert [p["name"] for p in result["items"]] == ["Budget Mug", "Desk Lamp"]

    def test_low_stock_report(self, make_product):
        make_product("Plenty", stock=50)
        make_product("Low", stock=2)
        make_product("Empty")

        names = [p["name"] for p in catalog_service.low_stock_products()]
        assert names == ["Empty", "Low"]


class TestProductApi:
    def _payload(self, category_id, **extra):
        return {
            "name": "Yoga Mat",
            "category_id": category_id,
            "base_price_cents": 129900,
            "selling_price_cents": 159900,
            **extra,
        }

    def test_create_requires_catalog_permission(self, client, customer_headers, category):
        assert client.post("/api/products", json=self._payload(category.id)).status_code == 401
        resp = client.post("/api/products", json=self._payload(category.id), headers=customer_headers)
        assert resp.status_code == 403

    def test_create_with_variants(self, client, staff_headers, category):
        payload = self._payload(category.id, variants=[
            {"attributes": {"color": "Blue"}},
            {"attributes": {"color": "Green"}, "additional_price_cents": 1000},
        ])
        resp = client.post("/api/products", json=payload, headers=staff_headers)
        assert resp.status_code == 201
        product = resp.get_json()["data"]["product"]
        assert product["has_variants"] is True
        assert [v["name"] for v in product["variants"]] == ["Blue", "Green"]
        assert product["profit_margin"] is None
        assert product["variants"][1]["profit_margin"] == {"amount_cents": 130900, "percentage": 100.0}

    def test_create_validation_errors(self, client, staff_headers, category):
        resp = client.post(
            "/api/products",
            json={"category_id": category.id, "base_price_cents": -1, "selling_price_cents": "abc"},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert {"name"} <= fields

    def test_negative_price_rejected(self, client, staff_headers, category):
        resp = client.post(
            "/api/products", json=self._payload(category.id, base_price_cents=-5), headers=staff_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "base_price_cents"

    def test_stock_not_writable(self, client, staff_headers, category):
        resp = client.post(
            "/api/products", json=self._payload(category.id, current_stock=100), headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_public_view_hides_cost_and_inactive(self, client, make_product, admin_user):
        visible = make_product("Visible", stock=4, purchase_price_cents=3000)
        hidden = make_product("Hidden")
        catalog_service.archive_product(hidden.id, actor_id=admin_user.id)

        body = client.get("/api/products").get_json()["data"]
        assert [p["name"] for p in body["products"]] == ["Visible"]
        assert "avg_purchase_price_cents" not in body["products"][0]

        resp = client.get(f"/api/products/{visible.slug}")
        assert resp.status_code == 200
        assert "profit_margin" not in resp.get_json()["data"]["product"]
        assert client.get(f"/api/products/{hidden.id}").status_code == 404

    def test_admin_view_includes_inactive_and_cost(self, client, admin_headers, make_product, admin_user):
        make_product("Visible", stock=4, purchase_price_cents=3000, selling_price_cents=6000)
        hidden = make_product("Hidden")
        catalog_service.archive_product(hidden.id, actor_id=admin_user.id)

        body = client.get("/api/products?sort=name-asc", headers=admin_headers).get_json()["data"]
        assert [p["name"] for p in body["products"]] == ["Hidden", "Visible"]

        body = client.get("/api/products?is_active=false", headers=admin_headers).get_json()["data"]
        assert [p["name"] for p in body["products"]] == ["Hidden"]

        product = client.get(f"/api/products/{hidden.id}", headers=admin_headers).get_json()["data"]["product"]
        assert product["is_active"] is False

        visible = client.get("/api/products/visible", headers=admin_headers).get_json()["data"]["product"]
        assert visible["avg_purchase_price_cents"] == 3000
        assert visible["inventory_value_cents"] == 12000
        assert visible["profit_margin"] == {"amount_cents": 3000, "percentage": 100.0}

    def test_update_and_archive(self, client, staff_headers, admin_headers, make_product):
        product = make_product()
        resp = client.put(
            f"/api/products/{product.id}",
            json={"name": "Earbuds Pro", "selling_price_cents": 12000},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]["product"]
        assert data["slug"] == "earbuds-pro"
        assert data["selling_price_cents"] == 12000

        assert client.delete(f"/api/products/{product.id}", headers=staff_headers).status_code == 403
        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{product.id}").status_code == 404

    def test_variant_conflict_is_409(self, client, admin_headers, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M")])
        inventory_service.stock_in(
            product_id=product.id, variant_id=product.variants[0].id, quantity=1,
            purchase_price_cents=100, actor_id=admin_user.id,
        )
        resp = client.put(f"/api/products/{product.id}", json={"variants": []}, headers=admin_headers)
        assert resp.status_code == 409

    def test_has_variants_not_writable(self, client, admin_headers, make_product, variant_entry, admin_user):
        product = make_product(variants=[variant_entry(size="M")])
        inventory_service.stock_in(
            product_id=product.id, variant_id=product.variants[0].id, quantity=4,
            purchase_price_cents=1000, actor_id=admin_user.id,
        )
        resp = client.put(f"/api/products/{product.id}", json={"has_variants": False}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "has_variants"

        summary = inventory_service.get_inventory_summary()
        assert summary["total_inventory_value_cents"] == 4000

    def test_adding_variants_to_stocked_product_is_409(self, client, admin_headers, make_product):
        product = make_product(stock=2)
        resp = client.put(
            f"/api/products/{product.id}",
            json={"variants": [{"attributes": {"size": "M"}}]},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_featured_and_low_stock(self, client, staff_headers, customer_headers, make_product):
        make_product("Star", stock=50, is_featured=True)
        make_product("Scarce", stock=1)

        featured = client.get("/api/products/featured").get_json()["data"]["products"]
        assert [p["name"] for p in featured] == ["Star"]

        assert client.get("/api/products/admin/low-stock", headers=customer_headers).status_code == 403
        low = client.get("/api/products/admin/low-stock", headers=staff_headers).get_json()["data"]
        assert low["count"] == 1
        assert low["products"][0]["name"] == "Scarce"
