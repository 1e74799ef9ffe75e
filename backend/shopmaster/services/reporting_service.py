# Overview: Dashboard reporting (sales stats, top products, daily chart, recent orders).

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Order, OrderItem, Product, Role, UserRole
from shopmaster.time_utils import utcnow, start_of_day, to_utc_z

# Orders counted as realised revenue
REVENUE_STATUSES = ("completed", "delivered")


def _sum_total(*filters) -> int:
    return int(db.session.query(func.coalesce(func.sum(Order.total_cents), 0)).filter(*filters).scalar() or 0)


def dashboard_stats() -> dict:
    now = utcnow()
    today = start_of_day(now)
    month_start = today.replace(day=1)

    today_count = (
        db.session.query(func.count(Order.id))
        .filter(Order.created_at >= today, Order.status != "cancelled")
        .scalar()
    )

    products = (
        db.session.query(Product)
        .options(selectinload(Product.variants))
        .filter(Product.is_active.is_(True))
        .all()
    )
    inventory_value = sum(p.inventory_value_cents for p in products)
    low_stock = sum(1 for p in products if p.total_stock <= p.low_stock_threshold)

    customers = (
        db.session.query(func.count(func.distinct(UserRole.user_id)))
        .join(Role, Role.id == UserRole.role_id)
        .filter(Role.name == "customer")
        .scalar()
    )

    return {
        "total_sales_cents": _sum_total(Order.status.in_(REVENUE_STATUSES)),
        "today_sales_cents": _sum_total(Order.created_at >= today, Order.status != "cancelled"),
        "today_orders": int(today_count or 0),
        "total_orders": db.session.query(func.count(Order.id)).scalar() or 0,
        "pending_orders": db.session.query(func.count(Order.id)).filter(Order.status == "pending").scalar() or 0,
        "total_inventory_value_cents": inventory_value,
        "low_stock_count": low_stock,
        "total_products": len(products),
        "total_customers": int(customers or 0),
        "monthly_sales_cents": _sum_total(Order.created_at >= month_start, Order.status != "cancelled"),
    }


def top_products(limit: int = 5) -> list[dict]:
    """Best sellers by quantity over completed and delivered orders."""
    rows = (
        db.session.query(
            OrderItem.product_id,
            func.min(OrderItem.name).label("name"),
            func.sum(OrderItem.quantity).label("total_qty"),
            func.sum(OrderItem.line_total_cents).label("total_revenue"),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status.in_(REVENUE_STATUSES))
        .group_by(OrderItem.product_id)
        .order_by(func.sum(OrderItem.quantity).desc(), OrderItem.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": r.product_id,
            "name": r.name,
            "total_qty": int(r.total_qty or 0),
            "total_revenue_cents": int(r.total_revenue or 0),
        }
        for r in rows
    ]


def sales_chart(days: int = 7) -> list[dict]:
    """
    Daily totals for the last `days` days (today included), excluding
    cancelled orders. Days without orders are reported as zero.
    """
    days = max(1, min(days, 365))
    today = start_of_day(utcnow())
    start = today - timedelta(days=days - 1)

    orders = (
        db.session.query(Order.created_at, Order.total_cents)
        .filter(Order.created_at >= start, Order.status != "cancelled")
        .all()
    )

    buckets = {
        (start + timedelta(days=i)).strftime("%Y-%m-%d"): {"sales_cents": 0, "orders": 0}
        for i in range(days)
    }
    for created_at, total in orders:
        key = created_at.strftime("%Y-%m-%d")
        if key in buckets:
            buckets[key]["sales_cents"] += total
            buckets[key]["orders"] += 1

    return [{"date": day, **values} for day, values in buckets.items()]


def recent_orders(limit: int = 5) -> list[dict]:
    orders = (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": o.id,
            "order_number": o.order_number,
            "status": o.status,
            "total_cents": o.total_cents,
            "customer": o.customer.to_ref() if o.customer else None,
            "created_at": to_utc_z(o.created_at),
        }
        for o in orders
    ]
