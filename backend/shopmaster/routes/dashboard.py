# Overview: Admin dashboard reporting routes.

from flask import Blueprint, request

from ..services import reporting_service
from ..decorators import require_auth, require_permission
from ..responses import success


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _limit_arg(name: str, default: int, maximum: int) -> int:
    value = request.args.get(name, default=default, type=int)
    return max(1, min(value, maximum))


@dashboard_bp.get("/stats")
@require_auth
@require_permission("VIEW_DASHBOARD")
def stats_route():
    return success(reporting_service.dashboard_stats())


@dashboard_bp.get("/top-products")
@require_auth
@require_permission("VIEW_DASHBOARD")
def top_products_route():
    return success({"products": reporting_service.top_products(_limit_arg("limit", 5, 50))})


@dashboard_bp.get("/sales-chart")
@require_auth
@require_permission("VIEW_DASHBOARD")
def sales_chart_route():
    return success({"chart": reporting_service.sales_chart(_limit_arg("days", 7, 365))})


@dashboard_bp.get("/recent-orders")
@require_auth
@require_permission("VIEW_DASHBOARD")
def recent_orders_route():
    return success({"orders": reporting_service.recent_orders(_limit_arg("limit", 5, 50))})
