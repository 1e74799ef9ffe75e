# Overview: Product routes (storefront reads, catalog management, low-stock report).

from flask import Blueprint, request, g

from ..models import Product
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    validate_variants,
    enforce_rules_product,
    parse_bool_arg,
    ValidationError,
)
from ..decorators import require_auth, require_permission, require_any_permission, optional_auth, current_user_can
from ..responses import success


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=catalog_service.PRODUCT_MUTABLE_FIELDS,
    required_on_create={"name", "category_id", "base_price_cents", "selling_price_cents"},
)


def _split_payload(payload):
    """Separate the nested variants list from the column fields."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_variants = payload.pop("variants", None)
    variants = validate_variants(raw_variants) if raw_variants is not None else None
    return payload, variants


@products_bp.get("")
@optional_auth
def list_products_route():
    """
    Query params: category (id or slug), featured, search, min_price_cents,
    max_price_cents, sort (price-asc|price-desc|name-asc|name-desc|newest),
    page, per_page. Catalog admins may also pass is_active.
    """
    admin = current_user_can("VIEW_CATALOG_ADMIN")
    result = catalog_service.list_products(
        include_inactive=admin,
        is_active=parse_bool_arg(request.args.get("is_active")) if admin else None,
        category=request.args.get("category"),
        featured=bool(parse_bool_arg(request.args.get("featured"))),
        search=request.args.get("search"),
        min_price_cents=request.args.get("min_price_cents", type=int),
        max_price_cents=request.args.get("max_price_cents", type=int),
        sort=request.args.get("sort"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        admin=admin,
    )
    return success({"products": result["items"], "pagination": result["pagination"]})


@products_bp.get("/featured")
def featured_products_route():
    limit = request.args.get("limit", default=8, type=int)
    return success({"products": catalog_service.featured_products(limit)})


@products_bp.get("/admin/low-stock")
@require_auth
@require_any_permission("VIEW_INVENTORY", "VIEW_CATALOG_ADMIN")
def low_stock_route():
    products = catalog_service.low_stock_products()
    return success({"products": products, "count": len(products)})


@products_bp.get("/<id_or_slug>")
@optional_auth
def get_product_route(id_or_slug: str):
    admin = current_user_can("VIEW_CATALOG_ADMIN")
    product = catalog_service.find_product(id_or_slug, include_inactive=admin)
    return success({"product": product.to_dict(admin=admin)})


@products_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_product_route():
    payload, variants = _split_payload(request.get_json(silent=True))
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = catalog_service.create_product(patch=patch, variants=variants, actor_id=g.current_user.id)
    return success({"product": product.to_dict(admin=True)}, "Product created successfully", 201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_product_route(product_id: int):
    payload, variants = _split_payload(request.get_json(silent=True))
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    product = catalog_service.update_product(
        product_id, patch=patch, variants=variants, actor_id=g.current_user.id
    )
    return success({"product": product.to_dict(admin=True)}, "Product updated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_CATALOG")
def archive_product_route(product_id: int):
    catalog_service.archive_product(product_id, actor_id=g.current_user.id)
    return success(message="Product archived successfully")
