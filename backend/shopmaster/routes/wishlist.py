# Overview: Wishlist routes for the signed-in user.

from flask import Blueprint, g

from ..services import wishlist_service
from ..decorators import require_auth
from ..responses import success


wishlist_bp = Blueprint("wishlist", __name__, url_prefix="/api/wishlist")


@wishlist_bp.get("")
@require_auth
def list_wishlist_route():
    products = wishlist_service.list_products(g.current_user.id)
    return success({"products": products, "count": len(products)})


@wishlist_bp.post("/<int:product_id>")
@require_auth
def toggle_wishlist_route(product_id: int):
    added = wishlist_service.toggle(user_id=g.current_user.id, product_id=product_id)
    message = "Added to wishlist" if added else "Removed from wishlist"
    return success({"product_id": product_id, "is_wishlisted": added}, message)
