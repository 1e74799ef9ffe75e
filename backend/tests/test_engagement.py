"""Reviews and wishlist."""

import pytest

from shopmaster.extensions import db
from shopmaster.services import review_service, wishlist_service
from shopmaster.validation import ConflictError
from shopmaster.errors import NotFoundError


class TestReviews:
    def test_rating_aggregate(self, make_product, customer_user, other_customer):
        product = make_product()
        review_service.create_review(product_id=product.id, user=customer_user, rating=5, comment="Great")
        review_service.create_review(product_id=product.id, user=other_customer, rating=4)

        db.session.refresh(product)
        assert product.num_reviews == 2
        assert product.rating == 4.5

    def test_rating_rounds_half_up(self, make_product, customer_user, other_customer, staff_user):
        product = make_product()
        for user, rating in ((customer_user, 5), (other_customer, 5), (staff_user, 4)):
            review_service.create_review(product_id=product.id, user=user, rating=rating)

        db.session.refresh(product)
        assert product.rating == 4.67

    def test_one_review_per_user(self, make_product, customer_user):
        product = make_product()
        review_service.create_review(product_id=product.id, user=customer_user, rating=3)
        with pytest.raises(ConflictError):
            review_service.create_review(product_id=product.id, user=customer_user, rating=1)

        db.session.refresh(product)
        assert product.num_reviews == 1
        assert product.rating == 3.0

    def test_unknown_product(self, customer_user):
        with pytest.raises(NotFoundError):
            review_service.create_review(product_id=9999, user=customer_user, rating=4)

    def test_api(self, client, make_product, customer_user, customer_headers):
        product = make_product()

        resp = client.post(f"/api/reviews/{product.id}", json={"rating": 5, "comment": "Crisp sound"}, headers=customer_headers)
        assert resp.status_code == 201
        review = resp.get_json()["data"]["review"]
        assert review["name"] == customer_user.name
        assert review["rating"] == 5

        again = client.post(f"/api/reviews/{product.id}", json={"rating": 2}, headers=customer_headers)
        assert again.status_code == 409

        listing = client.get(f"/api/reviews/{product.id}").get_json()["data"]
        assert listing["count"] == 1
        assert listing["reviews"][0]["comment"] == "Crisp sound"

    @pytest.mark.parametrize("rating", [0, 6, "five", None])
    def test_api_rejects_bad_rating(self, client, make_product, customer_headers, rating):
        product = make_product()
        resp = client.post(f"/api/reviews/{product.id}", json={"rating": rating}, headers=customer_headers)
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "rating"


class TestWishlist:
    def test_toggle(self, make_product, customer_user):
        product = make_product()
        assert wishlist_service.toggle(user_id=customer_user.id, product_id=product.id) is True
        assert [p["id"] for p in wishlist_service.list_products(customer_user.id)] == [product.id]

        assert wishlist_service.toggle(user_id=customer_user.id, product_id=product.id) is False
        assert wishlist_service.list_products(customer_user.id) == []

    def test_lists_are_per_user(self, make_product, customer_user, other_customer):
        product = make_product()
        wishlist_service.toggle(user_id=customer_user.id, product_id=product.id)
        assert wishlist_service.list_products(other_customer.id) == []

    def test_unknown_product(self, customer_user):
        with pytest.raises(NotFoundError):
            wishlist_service.toggle(user_id=customer_user.id, product_id=9999)

    def test_api(self, client, make_product, customer_headers):
        product = make_product()

        added = client.post(f"/api/wishlist/{product.id}", headers=customer_headers)
        assert added.status_code == 200
        assert added.get_json()["message"] == "Added to wishlist"
        assert added.get_json()["data"] == {"product_id": product.id, "is_wishlisted": True}

        listing = client.get("/api/wishlist", headers=customer_headers).get_json()["data"]
        assert listing["count"] == 1
        assert "avg_purchase_price_cents" not in listing["products"][0]

        removed = client.post(f"/api/wishlist/{product.id}", headers=customer_headers)
        assert removed.get_json()["data"]["is_wishlisted"] is False
