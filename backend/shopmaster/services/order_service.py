# Overview: Order workflow: creation with stock reservation, status transitions and release.

"""
Order lifecycle.

STATE MACHINE (anything not listed is rejected with InvalidStateError):

    pending    -> confirmed, cancelled
    confirmed  -> processing, shipped, cancelled
    processing -> shipped, cancelled
    shipped    -> delivered, completed
    delivered  -> completed, refunded
    completed, cancelled, refunded: terminal

STOCK:
- create_order reserves every line in the same transaction that inserts the
  order: stock is decremented and an `order-reserve` log row written per line.
  Either every line is reserved or nothing is persisted.
- Cancelling a reserved order returns each line to its holder (variant or
  product) through release_reservation, writing `order-cancel` rows.
- Completing an order turns the reservation into a deduction without
  touching stock.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Order, OrderItem, Product, User
from ..errors import (
    NotFoundError,
    InvalidStateError,
    EmptyOrderError,
    ProductUnavailableError,
    VariantUnavailableError,
    ForbiddenError,
    InsufficientStockError,
)
from shopmaster.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_order_number
from .pagination import paginate
from .pricing import order_totals
from . import stock_service

logger = logging.getLogger(__name__)

TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "shipped", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "completed"}),
    "delivered": frozenset({"completed", "refunded"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}

STATUS_TIMESTAMP_FIELDS = {
    "confirmed": "confirmed_at",
    "processing": "processing_at",
    "shipped": "shipped_at",
    "delivered": "delivered_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
    "refunded": "refunded_at",
}

DEFAULT_CUSTOMER_CANCEL_REASON = "Cancelled by customer"


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def _pricing_config() -> dict:
    cfg = current_app.config
    return {
        "tax_rate": cfg.get("TAX_RATE", "0.18"),
        "free_shipping_threshold": cfg.get("FREE_SHIPPING_THRESHOLD_CENTS", 50000),
        "flat_shipping": cfg.get("FLAT_SHIPPING_CENTS", 5000),
    }


def _resolve_line(product: Product | None, product_id: int, variant_id: int | None):
    """Validate a cart line against the catalog; returns (variant, unit_price, sku, variant_info)."""
    if product is None or not product.is_active:
        raise ProductUnavailableError(f"Product unavailable: {product_id}", {"product_id": product_id})

    if variant_id is None:
        if product.has_variants and product.variants:
            raise VariantUnavailableError(
                f"Please choose a variant for {product.name}",
                {"product_id": product_id},
            )
        return None, product.selling_price_cents, product.sku, None

    variant = product.find_variant(variant_id)
    if variant is None or not variant.is_active:
        raise VariantUnavailableError(
            f"Variant unavailable for {product.name}",
            {"product_id": product_id, "variant_id": variant_id},
        )
    return variant, variant.unit_price_cents(), variant.sku or product.sku, dict(variant.attributes or {})


def create_order(
    *,
    customer_id: int,
    items: list[dict],
    shipping_address: dict,
    payment_method: str = "cod",
    customer_note: str | None = None,
) -> Order:
    """
    Create an order from cart lines and reserve its stock.

    items: [{"product_id", "variant_id" (optional), "quantity"}]

    Quantities for the same stock holder are summed before the availability
    check, so two lines for one product cannot together oversell it.
    """
    if not items:
        raise EmptyOrderError("No order items")

    def _op():
        order_number = next_order_number()

        holders: dict[tuple[int, int | None], stock_service.StockHolder] = {}
        requested: "OrderedDict[tuple[int, int | None], int]" = OrderedDict()
        lines = []

        for item in items:
            product_id = item["product_id"]
            variant_id = item.get("variant_id")
            quantity = item["quantity"]

            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            variant, unit_price, sku, variant_info = _resolve_line(product, product_id, variant_id)

            key = (product.id, variant.id if variant is not None else None)
            holders.setdefault(key, stock_service.StockHolder(product=product, variant=variant))
            requested[key] = requested.get(key, 0) + quantity
            lines.append((product, variant, quantity, unit_price, sku, variant_info))

        for key, qty in requested.items():
            holder = holders[key]
            available = holder.row.current_stock
            if available < qty:
                suffix = " (selected variant)" if holder.variant is not None else ""
                raise InsufficientStockError(
                    f"Insufficient stock for {holder.product.name}{suffix}",
                    {"product_id": key[0], "variant_id": key[1], "available": available, "requested": qty},
                )

        subtotal = sum(unit_price * quantity for _, _, quantity, unit_price, _, _ in lines)
        totals = order_totals(subtotal, **_pricing_config())

        order = Order(
            order_number=order_number,
            customer_id=customer_id,
            subtotal_cents=totals.subtotal,
            tax_cents=totals.tax,
            shipping_cents=totals.shipping,
            discount_cents=0,
            total_cents=totals.total,
            status="pending",
            shipping_address=shipping_address,
            payment_method=payment_method or "cod",
            payment_status="pending",
            customer_note=customer_note,
        )
        for product, variant, quantity, unit_price, sku, variant_info in lines:
            order.items.append(OrderItem(
                product_id=product.id,
                variant_id=variant.id if variant is not None else None,
                name=product.name,
                sku=sku,
                variant_info=variant_info,
                quantity=quantity,
                unit_price_cents=unit_price,
                line_total_cents=unit_price * quantity,
            ))
        db.session.add(order)
        db.session.flush()

        for item in order.items:
            holder = holders[(item.product_id, item.variant_id)]
            stock_service.change_stock(
                holder,
                -item.quantity,
                log_type="order-reserve",
                actor_id=customer_id,
                order_id=order.id,
                note=f"Reserved for order {order.order_number}",
            )

        order.stock_reserved = True
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Order %s created for customer %s (total=%s)", order.order_number, customer_id, order.total_cents)
    return order


def release_reservation(order: Order, *, actor_id: int) -> None:
    """
    Return every reserved line to its stock holder and clear stock_reserved.

    Writes one `order-cancel` log row per line. Lines whose variant no longer
    exists fall back to the product. Does not commit.
    """
    if not order.stock_reserved:
        return

    for item in order.items:
        variant_id = item.variant_id
        product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
        if product is None:
            logger.warning("Order %s line %s: product %s no longer exists", order.order_number, item.id, item.product_id)
            continue
        if variant_id is not None and product.find_variant(variant_id) is None:
            logger.warning("Order %s line %s: variant %s removed, restocking product", order.order_number, item.id, variant_id)
            variant_id = None
        holder = stock_service.load_holder(product.id, variant_id, lock=True)
        stock_service.change_stock(
            holder,
            item.quantity,
            log_type="order-cancel",
            actor_id=actor_id,
            order_id=order.id,
            note=f"Order {order.order_number} cancelled",
        )

    order.stock_reserved = False


def _load_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def update_order_status(
    *,
    order_id: int,
    new_status: str,
    actor_id: int,
    admin_note: str | None = None,
    cancel_reason: str | None = None,
) -> Order:
    """Move an order along the lifecycle (staff/admin)."""

    def _op():
        order = _load_order(order_id, lock=True)
        current = order.status
        if not can_transition(current, new_status):
            raise InvalidStateError(
                f"Cannot change order status from {current} to {new_status}",
                {"from": current, "to": new_status},
            )

        now = utcnow()
        if new_status == "cancelled":
            release_reservation(order, actor_id=actor_id)
            order.cancel_reason = cancel_reason
        elif new_status == "completed":
            # reservation becomes the final deduction; stock already moved
            order.stock_reserved = False
            order.stock_deducted = True
        elif new_status == "refunded":
            order.payment_status = "refunded"

        setattr(order, STATUS_TIMESTAMP_FIELDS[new_status], now)
        order.status = new_status
        order.processed_by_user_id = actor_id
        if admin_note is not None:
            order.admin_note = admin_note

        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Order %s status -> %s by user %s", order.order_number, new_status, actor_id)
    return order


def cancel_order(*, order_id: int, customer_id: int, reason: str | None = None) -> Order:
    """Customer cancellation: only the owner, only while pending."""

    def _op():
        order = _load_order(order_id, lock=True)
        if order.customer_id != customer_id:
            raise ForbiddenError("Not authorized to cancel this order")
        if order.status != "pending":
            raise InvalidStateError(
                f"Order cannot be cancelled once it is {order.status}",
                {"from": order.status, "to": "cancelled"},
            )

        release_reservation(order, actor_id=customer_id)
        order.status = "cancelled"
        order.cancelled_at = utcnow()
        order.cancel_reason = reason or DEFAULT_CUSTOMER_CANCEL_REASON
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Order %s cancelled by customer %s", order.order_number, customer_id)
    return order


def list_orders(*, status: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Order).options(selectinload(Order.items))
    if status:
        query = query.filter(Order.status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda o: o.to_dict())


def list_my_orders(customer_id: int) -> list[dict]:
    orders = (
        db.session.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [o.to_dict() for o in orders]


def get_order_for_user(order_id: int, user: User, *, can_view_all: bool) -> Order:
    order = _load_order(order_id)
    if not can_view_all and order.customer_id != user.id:
        raise ForbiddenError("Not authorized to view this order")
    return order
