# Overview: Product review routes.

from flask import Blueprint, request, g

from ..services import review_service
from ..validation import validate_review
from ..decorators import require_auth
from ..responses import success


reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")


@reviews_bp.get("/<int:product_id>")
def list_reviews_route(product_id: int):
    reviews = review_service.list_reviews(product_id)
    return success({"reviews": reviews, "count": len(reviews)})


@reviews_bp.post("/<int:product_id>")
@require_auth
def create_review_route(product_id: int):
    data = validate_review(request.get_json(silent=True))
    review = review_service.create_review(
        product_id=product_id,
        user=g.current_user,
        rating=data["rating"],
        comment=data["comment"],
    )
    return success({"review": review.to_dict()}, "Review added", 201)
