from __future__ import annotations

from ..extensions import db
from shopmaster.time_utils import to_utc_z


def _margin_dict(selling_price_cents: int, avg_purchase_price_cents: int) -> dict:
    from ..services.pricing import profit_margin

    margin = profit_margin(selling_price_cents, avg_purchase_price_cents)
    return {"amount_cents": margin.amount, "percentage": float(margin.percentage)}


class Category(db.Model):
    """
    Catalog category. Categories form a tree through parent_id.

    Slugs are globally unique and regenerated when the name changes.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.Index("ix_categories_parent_sort", "parent_id", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(140), nullable=False, unique=True, index=True)
    description = db.Column(db.String(500), nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    image = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    parent = db.relationship("Category", remote_side=[id], backref=db.backref("children", lazy=True))

    def __repr__(self) -> str:
        return f"<Category id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "parent_id": self.parent_id,
            "image": self.image,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"id": self.id, "name": self.name, "slug": self.slug}


class Product(db.Model):
    """
    Product master data and simple-stock fields.

    STOCK OWNERSHIP:
    - has_variants=False: current_stock / avg_purchase_price_cents on this row are authoritative.
    - has_variants=True: each ProductVariant holds its own stock and average cost;
      the product-level current_stock is not used for saleable quantity.

    current_stock is only ever changed through services.stock_service so that every
    change has a matching InventoryLog row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_nonnegative"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        db.Index("ix_products_active_featured", "is_active", "is_featured"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    slug = db.Column(db.String(240), nullable=False, unique=True, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    short_description = db.Column(db.String(300), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    # Authoritative storage in cents
    base_price_cents = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    avg_purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    has_variants = db.Column(db.Boolean, nullable=False, default=False)

    attributes = db.Column(db.JSON, nullable=True)
    images = db.Column(db.JSON, nullable=True)
    tags = db.Column(db.JSON, nullable=True)
    meta_title = db.Column(db.String(200), nullable=True)
    meta_description = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    rating = db.Column(db.Float, nullable=False, default=0.0)
    num_reviews = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        order_by="ProductVariant.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    @property
    def total_stock(self) -> int:
        if self.has_variants and self.variants:
            return sum(v.current_stock for v in self.variants)
        return self.current_stock

    @property
    def inventory_value_cents(self) -> int:
        from ..services.pricing import inventory_value

        if self.has_variants and self.variants:
            return sum(inventory_value(v.current_stock, v.avg_purchase_price_cents) for v in self.variants)
        return inventory_value(self.current_stock, self.avg_purchase_price_cents)

    @property
    def is_low_stock(self) -> bool:
        return self.total_stock <= self.low_stock_threshold

    def find_variant(self, variant_id: int | None) -> "ProductVariant | None":
        if variant_id is None:
            return None
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None

    def to_dict(self, *, include_variants: bool = True, admin: bool = False) -> dict:
        data = {
            "id": self.id,
            "sku": self.sku,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "short_description": self.short_description,
            "category_id": self.category_id,
            "category": self.category.to_ref() if self.category else None,
            "base_price_cents": self.base_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "current_stock": self.current_stock,
            "total_stock": self.total_stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "has_variants": self.has_variants,
            "attributes": self.attributes or {},
            "images": self.images or [],
            "tags": self.tags or [],
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "rating": self.rating,
            "num_reviews": self.num_reviews,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict(admin=admin) for v in self.variants]
        if admin:
            data["avg_purchase_price_cents"] = self.avg_purchase_price_cents
            data["inventory_value_cents"] = self.inventory_value_cents
            # Variant products carry cost per variant; see ProductVariant.to_dict
            data["profit_margin"] = (
                None if self.has_variants
                else _margin_dict(self.selling_price_cents, self.avg_purchase_price_cents)
            )
            data["created_by_user_id"] = self.created_by_user_id
            data["updated_by_user_id"] = self.updated_by_user_id
        return data


class ProductVariant(db.Model):
    """
    A purchasable configuration of a product (size/colour...).

    Owned exclusively by its Product: created and removed only through product updates.
    Carries its own stock and weighted-average purchase price.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_variants_stock_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    sku = db.Column(db.String(80), nullable=False, unique=True, index=True)
    attributes = db.Column(db.JSON, nullable=True)  # e.g. {"size": "M", "color": "Red"}
    additional_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    avg_purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)

    images = db.Column(db.JSON, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", back_populates="variants")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} sku={self.sku!r} product_id={self.product_id}>"

    def unit_price_cents(self) -> int:
        return self.product.base_price_cents + (self.additional_price_cents or 0)

    def to_dict(self, *, admin: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "attributes": self.attributes or {},
            "additional_price_cents": self.additional_price_cents,
            "current_stock": self.current_stock,
            "images": self.images or [],
            "is_active": self.is_active,
            "position": self.position,
        }
        if admin:
            data["avg_purchase_price_cents"] = self.avg_purchase_price_cents
            data["profit_margin"] = _margin_dict(self.unit_price_cents(), self.avg_purchase_price_cents)
        return data
