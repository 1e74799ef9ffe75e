# Overview: Inventory ledger operations (stock-in, stock-out, adjust) and read-only ledger queries.

"""
Inventory invariants (authoritative):

- Stock lives on the holder row (product, or variant when one is given);
  every change goes through stock_service and appends one InventoryLog row.
- Each operation is one DB transaction: lock holder, compute, persist, log, commit.
  Any failure rolls back everything (see concurrency.run_with_retry).
- Only stock-in moves the weighted-average purchase price; stock-out and
  adjustments leave it unchanged.
- Products with variants keep saleable stock per variant, so stock
  operations on them must name the variant.

Time semantics:
- Log filters accept ISO-8601; a date-only end bound covers that whole day.
- Listings are newest first.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, InventoryLog, INVENTORY_LOG_TYPES
from ..errors import NotFoundError
from ..validation import ValidationError
from shopmaster.time_utils import parse_range_bound
from .concurrency import run_with_retry
from .pagination import paginate
from . import stock_service

logger = logging.getLogger(__name__)

DEFAULT_ADJUST_NOTE = "Manual stock adjustment"


def _load_holder_for_write(product_id: int, variant_id: int | None) -> stock_service.StockHolder:
    holder = stock_service.load_holder(product_id, variant_id, lock=True)
    if holder.variant is None and holder.product.has_variants and holder.product.variants:
        raise ValidationError(
            "Validation failed",
            [{"field": "variant_id", "message": "variant_id is required for products with variants"}],
        )
    return holder


def stock_in(
    *,
    product_id: int,
    quantity: int,
    purchase_price_cents: int,
    actor_id: int,
    variant_id: int | None = None,
    batch_number: str | None = None,
    supplier: str | None = None,
    note: str | None = None,
) -> tuple[Product, InventoryLog]:
    """
    Receive stock at a purchase price.

    New average = weighted_average_price(prior stock, prior average, quantity, price).
    Returns (product, log entry).
    """
    if quantity <= 0:
        raise ValidationError("Validation failed", [{"field": "quantity", "message": "Quantity must be a positive integer"}])
    if purchase_price_cents < 0:
        raise ValidationError("Validation failed", [{"field": "purchase_price_cents", "message": "Purchase price must be a positive number"}])

    def _op():
        holder = _load_holder_for_write(product_id, variant_id)
        log = stock_service.receive_stock(
            holder,
            quantity,
            purchase_price_cents,
            actor_id=actor_id,
            batch_number=batch_number,
            supplier=supplier,
            note=note,
        )
        db.session.commit()
        return holder.product, log

    product, log = run_with_retry(_op)
    logger.info("Stock in: product=%s variant=%s qty=%s price=%s", product_id, variant_id, quantity, purchase_price_cents)
    return product, log


def stock_out(
    *,
    product_id: int,
    quantity: int,
    actor_id: int,
    variant_id: int | None = None,
    note: str | None = None,
) -> tuple[Product, InventoryLog]:
    """Remove stock (damage, loss, internal use). Average price is unchanged."""
    if quantity <= 0:
        raise ValidationError("Validation failed", [{"field": "quantity", "message": "Quantity must be a positive integer"}])

    def _op():
        holder = _load_holder_for_write(product_id, variant_id)
        log = stock_service.change_stock(
            holder,
            -quantity,
            log_type="stock-out",
            actor_id=actor_id,
            note=note,
        )
        db.session.commit()
        return holder.product, log

    product, log = run_with_retry(_op)
    logger.info("Stock out: product=%s variant=%s qty=%s", product_id, variant_id, quantity)
    return product, log


def adjust_stock(
    *,
    product_id: int,
    new_quantity: int,
    actor_id: int,
    variant_id: int | None = None,
    note: str | None = None,
) -> tuple[Product, InventoryLog]:
    """Set stock to a counted quantity; the log records the signed delta."""
    if new_quantity < 0:
        raise ValidationError("Validation failed", [{"field": "new_quantity", "message": "New quantity must be a non-negative integer"}])

    def _op():
        holder = _load_holder_for_write(product_id, variant_id)
        log = stock_service.set_stock(
            holder,
            new_quantity,
            actor_id=actor_id,
            note=note or DEFAULT_ADJUST_NOTE,
        )
        db.session.commit()
        return holder.product, log

    product, log = run_with_retry(_op)
    logger.info("Stock adjusted: product=%s variant=%s new_qty=%s", product_id, variant_id, new_quantity)
    return product, log


def list_product_logs(product_id: int, *, page: int | None = None, per_page: int | None = None) -> dict:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")

    query = (
        db.session.query(InventoryLog)
        .filter(InventoryLog.product_id == product_id)
        .order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
    )
    return paginate(query, page=page, per_page=per_page, serialize=lambda log: log.to_dict())


def _parse_bound(value: str | None, field: str, *, upper: bool) -> datetime | None:
    try:
        return parse_range_bound(value, upper=upper)
    except ValueError:
        raise ValidationError("Validation failed", [{"field": field, "message": f"{field} must be an ISO-8601 date or datetime"}])


def list_logs(
    *,
    log_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    if log_type and log_type not in INVENTORY_LOG_TYPES:
        raise ValidationError(
            "Validation failed",
            [{"field": "type", "message": f"type must be one of: {', '.join(INVENTORY_LOG_TYPES)}"}],
        )

    start = _parse_bound(start_date, "start_date", upper=False)
    end = _parse_bound(end_date, "end_date", upper=True)

    query = db.session.query(InventoryLog)
    if log_type:
        query = query.filter(InventoryLog.type == log_type)
    if start is not None:
        query = query.filter(InventoryLog.created_at >= start)
    if end is not None:
        query = query.filter(InventoryLog.created_at <= end)

    query = query.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda log: log.to_dict())


def get_inventory_summary() -> dict:
    """
    Aggregate stock position over active products.

    low_stock_count: 0 < total stock <= low_stock_threshold
    out_of_stock_count: total stock == 0
    """
    products = (
        db.session.query(Product)
        .options(selectinload(Product.variants))
        .filter(Product.is_active.is_(True))
        .all()
    )

    total_value = 0
    low_stock = 0
    out_of_stock = 0
    for p in products:
        total_value += p.inventory_value_cents
        stock = p.total_stock
        if stock == 0:
            out_of_stock += 1
        elif stock <= p.low_stock_threshold:
            low_stock += 1

    return {
        "total_inventory_value_cents": total_value,
        "total_products": len(products),
        "low_stock_count": low_stock,
        "out_of_stock_count": out_of_stock,
    }
