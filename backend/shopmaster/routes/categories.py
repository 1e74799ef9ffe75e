# Overview: Category routes (public reads, staff/admin writes).

from flask import Blueprint, request

from ..models import Category
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_category,
    parse_bool_arg,
)
from ..decorators import require_auth, require_permission
from ..responses import success


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields=catalog_service.CATEGORY_MUTABLE_FIELDS,
    required_on_create={"name"},
)


@categories_bp.get("")
def list_categories_route():
    categories = catalog_service.list_categories(
        is_active=parse_bool_arg(request.args.get("is_active")),
        parent=request.args.get("parent_id"),
    )
    return success({"categories": categories})


@categories_bp.get("/tree")
def category_tree_route():
    return success({"categories": catalog_service.category_tree()})


@categories_bp.get("/<id_or_slug>")
def get_category_route(id_or_slug: str):
    return success({"category": catalog_service.get_category(id_or_slug)})


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_category_route():
    patch = validate_payload(
        model=Category,
        payload=request.get_json(silent=True),
        policy=CATEGORY_POLICY,
        partial=False,
    )
    enforce_rules_category(patch)
    category = catalog_service.create_category(patch)
    return success({"category": category.to_dict()}, "Category created successfully", 201)


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_category_route(category_id: int):
    patch = validate_payload(
        model=Category,
        payload=request.get_json(silent=True),
        policy=CATEGORY_POLICY,
        partial=True,
    )
    enforce_rules_category(patch)
    category = catalog_service.update_category(category_id, patch)
    return success({"category": category.to_dict()}, "Category updated successfully")


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("DELETE_CATALOG")
def delete_category_route(category_id: int):
    catalog_service.delete_category(category_id)
    return success(message="Category deleted successfully")
