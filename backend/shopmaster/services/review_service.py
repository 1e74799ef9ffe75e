# Overview: Product reviews with rating aggregation on the product row.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Review, Product, User
from ..errors import NotFoundError
from ..validation import ConflictError
from .concurrency import run_with_retry


def _refresh_product_rating(product: Product) -> None:
    count, avg = (
        db.session.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.product_id == product.id)
        .one()
    )
    product.num_reviews = int(count or 0)
    if count:
        product.rating = float(Decimal(str(avg)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    else:
        product.rating = 0.0


def create_review(*, product_id: int, user: User, rating: int, comment: str | None = None) -> Review:
    """One review per user per product; recomputes the product's rating and count."""

    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        existing = db.session.query(Review.id).filter_by(product_id=product_id, user_id=user.id).first()
        if existing:
            raise ConflictError("Product already reviewed")

        review = Review(product_id=product_id, user_id=user.id, name=user.name, rating=rating, comment=comment)
        db.session.add(review)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Product already reviewed")

        _refresh_product_rating(product)
        db.session.commit()
        return review

    return run_with_retry(_op)


def list_reviews(product_id: int) -> list[dict]:
    reviews = (
        db.session.query(Review)
        .filter(Review.product_id == product_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    return [r.to_dict() for r in reviews]
