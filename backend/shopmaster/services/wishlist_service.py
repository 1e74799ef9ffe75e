# Overview: Per-user wishlist toggle and listing.

from __future__ import annotations

from ..extensions import db
from ..models import WishlistItem, Product
from ..errors import NotFoundError


def toggle(*, user_id: int, product_id: int) -> bool:
    """Add the product if absent, remove it if present. Returns the new state."""
    item = db.session.query(WishlistItem).filter_by(user_id=user_id, product_id=product_id).first()
    if item is not None:
        db.session.delete(item)
        db.session.commit()
        return False

    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")

    db.session.add(WishlistItem(user_id=user_id, product_id=product_id))
    db.session.commit()
    return True


def list_products(user_id: int) -> list[dict]:
    items = (
        db.session.query(WishlistItem)
        .filter(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )
    return [item.product.to_dict(include_variants=False) for item in items if item.product]
