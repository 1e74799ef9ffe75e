# backend/shopmaster/routes/inventory.py
"""
Inventory management routes.

SECURITY: All routes require authentication.
- View operations require VIEW_INVENTORY permission
- Stock-in requires RECEIVE_INVENTORY
- Stock-out requires REMOVE_INVENTORY
- Adjust requires ADJUST_INVENTORY (admin only)

Every write answers 201 with the updated product and the ledger entry.
"""
from flask import Blueprint, request, g

from ..services import inventory_service
from ..validation import validate_stock_in, validate_stock_out, validate_stock_adjust
from ..decorators import require_auth, require_permission
from ..responses import success


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _movement_response(product, log, message: str):
    return success(
        {"product": product.to_dict(admin=True), "log": log.to_dict()},
        message,
        201,
    )


@inventory_bp.post("/stock-in")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def stock_in_route():
    data = validate_stock_in(request.get_json(silent=True))
    product, log = inventory_service.stock_in(actor_id=g.current_user.id, **data)
    return _movement_response(product, log, "Stock added successfully")


@inventory_bp.post("/stock-out")
@require_auth
@require_permission("REMOVE_INVENTORY")
def stock_out_route():
    data = validate_stock_out(request.get_json(silent=True))
    product, log = inventory_service.stock_out(actor_id=g.current_user.id, **data)
    return _movement_response(product, log, "Stock removed successfully")


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_route():
    data = validate_stock_adjust(request.get_json(silent=True))
    product, log = inventory_service.adjust_stock(actor_id=g.current_user.id, **data)
    return _movement_response(product, log, "Stock adjusted successfully")


@inventory_bp.get("/logs")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_logs_route():
    """Query params: type, start_date, end_date (ISO-8601), page, per_page."""
    result = inventory_service.list_logs(
        log_type=request.args.get("type"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return success({"logs": result["items"], "pagination": result["pagination"]})


@inventory_bp.get("/logs/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def product_logs_route(product_id: int):
    result = inventory_service.list_product_logs(
        product_id,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return success({"logs": result["items"], "pagination": result["pagination"]})


@inventory_bp.get("/summary")
@require_auth
@require_permission("VIEW_INVENTORY")
def summary_route():
    return success(inventory_service.get_inventory_summary())
