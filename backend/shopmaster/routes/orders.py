# Overview: Flask API routes for order operations; parses input and returns JSON responses.

"""
Order routes.

- POST ""                 place an order (PLACE_ORDER), reserves stock
- GET ""                  all orders (VIEW_ALL_ORDERS)
- GET /my-orders          the caller's orders
- GET /<id>               owner or VIEW_ALL_ORDERS
- PUT /<id>/status        lifecycle transition (MANAGE_ORDERS)
- PUT /<id>/cancel        customer cancellation while pending
"""

from flask import Blueprint, request, g

from ..models import ORDER_STATUSES
from ..services import order_service
from ..validation import validate_order_create, validate_status_update, ValidationError
from ..decorators import require_auth, require_permission, current_user_can
from ..responses import success


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_permission("PLACE_ORDER")
def create_order_route():
    data = validate_order_create(request.get_json(silent=True))
    order = order_service.create_order(customer_id=g.current_user.id, **data)
    return success({"order": order.to_dict()}, "Order placed successfully", 201)


@orders_bp.get("")
@require_auth
@require_permission("VIEW_ALL_ORDERS")
def list_orders_route():
    status = request.args.get("status") or None
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError("Validation failed", [{"field": "status", "message": "Unknown order status"}])

    result = order_service.list_orders(
        status=status,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return success({"orders": result["items"], "pagination": result["pagination"]})


@orders_bp.get("/my-orders")
@require_auth
def my_orders_route():
    orders = order_service.list_my_orders(g.current_user.id)
    return success({"orders": orders, "count": len(orders)})


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    order = order_service.get_order_for_user(
        order_id,
        g.current_user,
        can_view_all=current_user_can("VIEW_ALL_ORDERS"),
    )
    return success({"order": order.to_dict()})


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_permission("MANAGE_ORDERS")
def update_status_route(order_id: int):
    data = validate_status_update(request.get_json(silent=True))
    order = order_service.update_order_status(
        order_id=order_id,
        new_status=data["status"],
        actor_id=g.current_user.id,
        admin_note=data["admin_note"],
        cancel_reason=data["cancel_reason"],
    )
    return success({"order": order.to_dict()}, "Order status updated")


@orders_bp.put("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    reason = payload.get("reason") if isinstance(payload, dict) else None
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("Validation failed", [{"field": "reason", "message": "reason must be a string"}])

    order = order_service.cancel_order(
        order_id=order_id,
        customer_id=g.current_user.id,
        reason=(reason or "").strip()[:255] or None,
    )
    return success({"order": order.to_dict()}, "Order cancelled successfully")
