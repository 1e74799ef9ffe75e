from __future__ import annotations

from ..extensions import db
from shopmaster.time_utils import to_utc_z


INVENTORY_LOG_TYPES = (
    "stock-in",
    "stock-out",
    "adjustment",
    "return",
    "order-reserve",
    "order-complete",
    "order-cancel",
)


class InventoryLog(db.Model):
    """
    Append-only record of a stock change.

    Rows are written by services.stock_service in the same DB transaction as the
    stock mutation they describe, and are never updated or deleted.

    INVARIANTS (also enforced by CHECK constraints):
    - new_qty = prev_qty + qty_change
    - prev_qty >= 0 and new_qty >= 0
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.CheckConstraint("new_qty = prev_qty + qty_change", name="ck_invlog_balance"),
        db.CheckConstraint("new_qty >= 0", name="ck_invlog_new_nonnegative"),
        db.CheckConstraint("prev_qty >= 0", name="ck_invlog_prev_nonnegative"),
        db.Index("ix_invlog_product_created", "product_id", "created_at"),
        db.Index("ix_invlog_type_created", "type", "created_at"),
        db.Index("ix_invlog_user_created", "created_by_user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, nullable=True)  # no FK: variants can be removed, history stays
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    type = db.Column(db.String(32), nullable=False)

    qty_change = db.Column(db.Integer, nullable=False)
    prev_qty = db.Column(db.Integer, nullable=False)
    new_qty = db.Column(db.Integer, nullable=False)

    # Purchase price info (stock-in only)
    purchase_price_cents = db.Column(db.Integer, nullable=True)
    avg_purchase_before_cents = db.Column(db.Integer, nullable=True)
    avg_purchase_after_cents = db.Column(db.Integer, nullable=True)

    batch_number = db.Column(db.String(64), nullable=True)
    supplier = db.Column(db.String(120), nullable=True)
    note = db.Column(db.String(500), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    product = db.relationship("Product")
    created_by = db.relationship("User")

    def __repr__(self) -> str:
        return (
            f"<InventoryLog id={self.id} type={self.type} product_id={self.product_id} "
            f"{self.prev_qty}->{self.new_qty}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": {"id": self.product.id, "name": self.product.name, "sku": self.product.sku}
            if self.product else None,
            "variant_id": self.variant_id,
            "order_id": self.order_id,
            "type": self.type,
            "qty_change": self.qty_change,
            "prev_qty": self.prev_qty,
            "new_qty": self.new_qty,
            "purchase_price_cents": self.purchase_price_cents,
            "avg_purchase_before_cents": self.avg_purchase_before_cents,
            "avg_purchase_after_cents": self.avg_purchase_after_cents,
            "batch_number": self.batch_number,
            "supplier": self.supplier,
            "note": self.note,
            "created_by": self.created_by.to_ref() if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
        }
