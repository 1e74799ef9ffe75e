# Overview: Category and product catalog operations (CRUD, listing, variants).

"""
Catalog service.

- Categories form a tree (parent_id). Deletion is refused while products or
  subcategories still reference the category.
- Products are archived (is_active=False), never hard-deleted, so order
  snapshots and inventory history keep their references.
- Variant lists are replaced wholesale on update. A variant survives (and keeps
  its stock and average price) when the incoming entry carries its id or
  generates the same SKU. Removing a variant that still holds stock is refused.
- Stock fields are never written here; see stock_service.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, String, cast
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Category, Product, ProductVariant
from ..errors import NotFoundError, ShopError
from ..validation import ValidationError, ConflictError
from .concurrency import run_with_retry
from .pagination import paginate
from .identifier_service import unique_slug, generate_sku, generate_variant_sku, category_prefix

logger = logging.getLogger(__name__)

PRODUCT_SORTS = {
    "price-asc": (Product.selling_price_cents.asc(), Product.id.asc()),
    "price-desc": (Product.selling_price_cents.desc(), Product.id.desc()),
    "name-asc": (Product.name.asc(), Product.id.asc()),
    "name-desc": (Product.name.desc(), Product.id.desc()),
    "newest": (Product.created_at.desc(), Product.id.desc()),
}

CATEGORY_MUTABLE_FIELDS = {"name", "description", "parent_id", "image", "is_active", "sort_order"}
PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "short_description",
    "category_id",
    "base_price_cents",
    "selling_price_cents",
    "low_stock_threshold",
    "attributes",
    "images",
    "tags",
    "meta_title",
    "meta_description",
    "is_active",
    "is_featured",
}


# =============================================================================
# Categories
# =============================================================================

def _category_slug_exists(exclude_id: int | None = None):
    def _exists(slug: str) -> bool:
        q = db.session.query(Category.id).filter(Category.slug == slug)
        if exclude_id is not None:
            q = q.filter(Category.id != exclude_id)
        return q.first() is not None
    return _exists


def _product_counts(category_ids: list[int]) -> dict[int, int]:
    if not category_ids:
        return {}
    rows = (
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.in_(category_ids))
        .group_by(Product.category_id)
        .all()
    )
    return {cid: count for cid, count in rows}


def _category_out(category: Category, counts: dict[int, int]) -> dict:
    data = category.to_dict()
    data["parent"] = category.parent.to_ref() if category.parent else None
    data["product_count"] = counts.get(category.id, 0)
    return data


def list_categories(*, is_active: bool | None = None, parent: str | int | None = None) -> list[dict]:
    """
    parent: None (no filter), "null" (roots only) or a parent category id.
    """
    query = db.session.query(Category)
    if is_active is not None:
        query = query.filter(Category.is_active.is_(is_active))
    if parent == "null":
        query = query.filter(Category.parent_id.is_(None))
    elif parent is not None:
        query = query.filter(Category.parent_id == int(parent))

    categories = query.order_by(Category.sort_order.asc(), Category.name.asc()).all()
    counts = _product_counts([c.id for c in categories])
    return [_category_out(c, counts) for c in categories]


def category_tree() -> list[dict]:
    """Active root categories with their active subcategories."""
    roots = (
        db.session.query(Category)
        .filter(Category.parent_id.is_(None), Category.is_active.is_(True))
        .order_by(Category.sort_order.asc(), Category.name.asc())
        .all()
    )
    out = []
    for root in roots:
        data = root.to_dict()
        children = sorted(
            (c for c in root.children if c.is_active),
            key=lambda c: (c.sort_order, c.name),
        )
        data["subcategories"] = [c.to_dict() for c in children]
        out.append(data)
    return out


def find_category(id_or_slug: str | int) -> Category:
    category = None
    if isinstance(id_or_slug, int) or str(id_or_slug).isdigit():
        category = db.session.get(Category, int(id_or_slug))
    if category is None:
        category = db.session.query(Category).filter_by(slug=str(id_or_slug)).first()
    if category is None:
        raise NotFoundError("Category not found")
    return category


def get_category(id_or_slug: str | int) -> dict:
    category = find_category(id_or_slug)
    return _category_out(category, _product_counts([category.id]))


def _require_parent(parent_id: int | None) -> None:
    if parent_id is not None and db.session.get(Category, parent_id) is None:
        raise ValidationError("Parent category not found", [{"field": "parent_id", "message": "Parent category not found"}])


def create_category(patch: dict) -> Category:
    _require_parent(patch.get("parent_id"))

    category = Category(
        name=patch["name"],
        slug=unique_slug(patch["name"], _category_slug_exists()),
        description=patch.get("description"),
        parent_id=patch.get("parent_id"),
        image=patch.get("image"),
        sort_order=patch.get("sort_order") or 0,
        is_active=patch["is_active"] if patch.get("is_active") is not None else True,
    )
    db.session.add(category)
    db.session.commit()
    logger.info("Category created: %s (%s)", category.name, category.slug)
    return category


def update_category(category_id: int, patch: dict) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")

    if "parent_id" in patch:
        if patch["parent_id"] == category.id:
            raise ValidationError(
                "Category cannot be its own parent",
                [{"field": "parent_id", "message": "Category cannot be its own parent"}],
            )
        _require_parent(patch["parent_id"])

    name = patch.get("name")
    if name and name != category.name:
        category.slug = unique_slug(name, _category_slug_exists(exclude_id=category.id))

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")

    product_count = db.session.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar()
    if product_count:
        raise ShopError(
            f"Cannot delete category with {product_count} associated products. "
            "Please move or delete products first."
        )

    sub_count = db.session.query(func.count(Category.id)).filter(Category.parent_id == category.id).scalar()
    if sub_count:
        raise ShopError(
            f"Cannot delete category with {sub_count} subcategories. "
            "Please move or delete subcategories first."
        )

    db.session.delete(category)
    db.session.commit()
    logger.info("Category deleted: %s", category_id)


# =============================================================================
# Products
# =============================================================================

def _product_slug_exists(exclude_id: int | None = None):
    def _exists(slug: str) -> bool:
        q = db.session.query(Product.id).filter(Product.slug == slug)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        return q.first() is not None
    return _exists


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise ValidationError("Category not found", [{"field": "category_id", "message": "Category not found"}])
    return category


def list_products(
    *,
    include_inactive: bool = False,
    is_active: bool | None = None,
    category: str | None = None,
    featured: bool = False,
    search: str | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    sort: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    admin: bool = False,
) -> dict:
    """
    Storefront/admin product listing.

    Active products only unless the caller may see inactive ones
    (include_inactive) and asks for them via is_active.
    """
    query = db.session.query(Product).options(selectinload(Product.variants), selectinload(Product.category))

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    elif is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))

    if category:
        if str(category).isdigit():
            query = query.filter(Product.category_id == int(category))
        else:
            cat = db.session.query(Category).filter_by(slug=category).first()
            # unknown slug matches nothing
            query = query.filter(Product.category_id == (cat.id if cat else -1))

    if featured:
        query = query.filter(Product.is_featured.is_(True))

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.name.ilike(like),
            Product.description.ilike(like),
            cast(Product.tags, String).ilike(like),
        ))

    if min_price_cents is not None:
        query = query.filter(Product.selling_price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Product.selling_price_cents <= max_price_cents)

    query = query.order_by(*PRODUCT_SORTS.get(sort or "newest", PRODUCT_SORTS["newest"]))

    return paginate(
        query,
        page=page,
        per_page=per_page,
        serialize=lambda p: p.to_dict(include_variants=False, admin=admin),
    )


def featured_products(limit: int = 8) -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.is_featured.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(max(1, min(limit, 50)))
        .all()
    )
    return [p.to_dict(include_variants=False) for p in products]


def find_product(id_or_slug: str | int, *, include_inactive: bool = False) -> Product:
    product = None
    if isinstance(id_or_slug, int) or str(id_or_slug).isdigit():
        product = db.session.get(Product, int(id_or_slug))
    if product is None:
        product = db.session.query(Product).filter_by(slug=str(id_or_slug)).first()
    if product is None or (not product.is_active and not include_inactive):
        raise NotFoundError("Product not found")
    return product


def _apply_variants(product: Product, incoming: list[dict]) -> None:
    """Replace the variant list; has_variants always follows the result."""
    if incoming and not product.variants and (product.current_stock or 0) > 0:
        raise ConflictError(
            f"Cannot add variants while {product.current_stock} units are held on the product itself; "
            "stock them out first"
        )

    existing_by_id = {v.id: v for v in product.variants}
    existing_by_sku = {v.sku: v for v in product.variants}
    taken = set(existing_by_sku)
    kept: list[ProductVariant] = []
    kept_ids: set[int] = set()

    for position, entry in enumerate(incoming):
        variant = None
        if entry["id"] is not None:
            variant = existing_by_id.get(entry["id"])
            if variant is None:
                raise ValidationError(
                    "Validation failed",
                    [{"field": f"variants[{position}].id", "message": "Variant does not belong to this product"}],
                )
        else:
            candidate_sku = generate_variant_sku(product.sku, entry["attributes"])
            match = existing_by_sku.get(candidate_sku)
            if match is not None and match.id not in kept_ids:
                variant = match

        if variant is None:
            sku = generate_variant_sku(product.sku, entry["attributes"], taken)
            taken.add(sku)
            variant = ProductVariant(sku=sku, current_stock=0, avg_purchase_price_cents=0)

        if variant.id is not None:
            kept_ids.add(variant.id)

        variant.name = entry["name"]
        variant.attributes = entry["attributes"]
        variant.additional_price_cents = entry["additional_price_cents"]
        variant.is_active = entry["is_active"]
        variant.images = entry["images"]
        variant.position = position
        kept.append(variant)

    for v in product.variants:
        if v.id not in kept_ids and v.current_stock > 0:
            raise ConflictError(
                f"Cannot remove variant {v.sku} with {v.current_stock} units in stock; stock it out first"
            )

    product.variants = kept
    product.has_variants = bool(kept)


def create_product(*, patch: dict, variants: list[dict] | None, actor_id: int) -> Product:
    category = _require_category(patch["category_id"])

    product = Product(
        sku=generate_sku(category_prefix(category.name)),
        slug=unique_slug(patch["name"], _product_slug_exists()),
        current_stock=0,
        avg_purchase_price_cents=0,
        created_by_user_id=actor_id,
        updated_by_user_id=actor_id,
    )
    for k, v in patch.items():
        if k in PRODUCT_MUTABLE_FIELDS and v is not None:
            setattr(product, k, v)

    if variants:
        _apply_variants(product, variants)

    db.session.add(product)
    db.session.commit()
    logger.info("Product created: %s (%s)", product.name, product.sku)
    return product


def update_product(product_id: int, *, patch: dict, variants: list[dict] | None, actor_id: int) -> Product:
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        if "category_id" in patch and patch["category_id"] != product.category_id:
            _require_category(patch["category_id"])

        name = patch.get("name")
        if name and name != product.name:
            product.slug = unique_slug(name, _product_slug_exists(exclude_id=product.id))

        for k, v in patch.items():
            if k in PRODUCT_MUTABLE_FIELDS:
                setattr(product, k, v)

        if variants is not None:
            _apply_variants(product, variants)

        product.updated_by_user_id = actor_id
        db.session.commit()
        return product

    return run_with_retry(_op)


def archive_product(product_id: int, *, actor_id: int) -> Product:
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        product.is_active = False
        product.updated_by_user_id = actor_id
        db.session.commit()
        return product

    product = run_with_retry(_op)
    logger.info("Product archived: %s", product_id)
    return product


def low_stock_products() -> list[dict]:
    """Active products whose total stock is at or below their threshold, lowest first."""
    products = (
        db.session.query(Product)
        .options(selectinload(Product.variants), selectinload(Product.category))
        .filter(Product.is_active.is_(True))
        .all()
    )
    low = [p for p in products if p.total_stock <= p.low_stock_threshold]
    low.sort(key=lambda p: (p.total_stock, p.id))
    return [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "category": p.category.to_ref() if p.category else None,
            "current_stock": p.current_stock,
            "total_stock": p.total_stock,
            "low_stock_threshold": p.low_stock_threshold,
        }
        for p in low
    ]
