# Overview: The single code path that mutates stock; every change writes its ledger row.

"""
Stock adjustment primitives.

Invariants:
- current_stock on a product or variant is only changed here.
- Each change appends exactly one InventoryLog row in the same DB transaction
  (flushed, never committed here; the caller owns the unit of work).
- Stock never goes negative: a change that would do so raises
  InsufficientStockError before anything is modified.
- When a variant is given it is the stock holder; otherwise the product is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..models import Product, ProductVariant, InventoryLog
from ..errors import NotFoundError, InsufficientStockError
from .concurrency import lock_for_update
from .pricing import weighted_average_price

logger = logging.getLogger(__name__)


@dataclass
class StockHolder:
    product: Product
    variant: ProductVariant | None = None

    @property
    def row(self):
        return self.variant if self.variant is not None else self.product

    @property
    def variant_id(self) -> int | None:
        return self.variant.id if self.variant is not None else None

    @property
    def label(self) -> str:
        if self.variant is not None:
            return f"{self.product.name} ({self.variant.name})"
        return self.product.name


def load_holder(product_id: int, variant_id: int | None = None, *, lock: bool = True) -> StockHolder:
    """Fetch (and row-lock) the product and optional variant that hold the stock."""
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")

    variant = None
    if variant_id is not None:
        vquery = db.session.query(ProductVariant).filter_by(id=variant_id, product_id=product.id)
        if lock:
            vquery = lock_for_update(vquery)
        variant = vquery.first()
        if variant is None:
            raise NotFoundError("Variant not found")

    return StockHolder(product=product, variant=variant)


def change_stock(
    holder: StockHolder,
    qty_change: int,
    *,
    log_type: str,
    actor_id: int,
    order_id: int | None = None,
    note: str | None = None,
    purchase_price_cents: int | None = None,
    avg_purchase_before_cents: int | None = None,
    avg_purchase_after_cents: int | None = None,
    batch_number: str | None = None,
    supplier: str | None = None,
) -> InventoryLog:
    row = holder.row
    prev_qty = row.current_stock
    new_qty = prev_qty + qty_change
    if new_qty < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {holder.label}. Available: {prev_qty}, requested: {-qty_change}",
            {"product_id": holder.product.id, "variant_id": holder.variant_id,
             "available": prev_qty, "requested": -qty_change},
        )

    row.current_stock = new_qty

    log = InventoryLog(
        product_id=holder.product.id,
        variant_id=holder.variant_id,
        order_id=order_id,
        type=log_type,
        qty_change=qty_change,
        prev_qty=prev_qty,
        new_qty=new_qty,
        purchase_price_cents=purchase_price_cents,
        avg_purchase_before_cents=avg_purchase_before_cents,
        avg_purchase_after_cents=avg_purchase_after_cents,
        batch_number=batch_number,
        supplier=supplier,
        note=note,
        created_by_user_id=actor_id,
    )
    db.session.add(log)
    db.session.flush()

    logger.info(
        "stock %s product=%s variant=%s %s->%s",
        log_type, holder.product.id, holder.variant_id, prev_qty, new_qty,
    )
    return log


def receive_stock(
    holder: StockHolder,
    quantity: int,
    purchase_price_cents: int,
    *,
    actor_id: int,
    batch_number: str | None = None,
    supplier: str | None = None,
    note: str | None = None,
) -> InventoryLog:
    """Add received units and roll the holder's weighted-average purchase price forward."""
    row = holder.row
    avg_before = row.avg_purchase_price_cents
    avg_after = weighted_average_price(row.current_stock, avg_before, quantity, purchase_price_cents)
    row.avg_purchase_price_cents = avg_after

    return change_stock(
        holder,
        quantity,
        log_type="stock-in",
        actor_id=actor_id,
        note=note,
        purchase_price_cents=purchase_price_cents,
        avg_purchase_before_cents=avg_before,
        avg_purchase_after_cents=avg_after,
        batch_number=batch_number,
        supplier=supplier,
    )


def set_stock(holder: StockHolder, new_quantity: int, *, actor_id: int, note: str | None = None) -> InventoryLog:
    """Set stock to a counted quantity; the ledger row records the signed delta."""
    if new_quantity < 0:
        raise ValueError("new_quantity must be >= 0")
    delta = new_quantity - holder.row.current_stock
    return change_stock(holder, delta, log_type="adjustment", actor_id=actor_id, note=note)
