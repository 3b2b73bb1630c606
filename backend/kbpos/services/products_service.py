# backend/kbpos/services/products_service.py
"""
Products Service

Catalog CRUD. total_sold is deliberately absent from PRODUCT_MUTABLE_FIELDS:
it belongs to ledger_service and is only moved by sales.
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product, SaleItem
from ..validation import ConflictError, NotFoundError

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "price",
    "discount_price",
    "category",
    "tags",
    "ingredients",
    "image_url",
    "is_available",
}

TOP_PRODUCTS_LIMIT = 5


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _get_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product with id {product_id} not found")
    return product


def list_products(*, category: str | None = None, available_only: bool = False) -> list[dict]:
    query = db.session.query(Product)
    if category:
        query = query.filter(Product.category == category)
    if available_only:
        query = query.filter(Product.is_available.is_(True))
    return [p.to_dict() for p in query.order_by(Product.name.asc(), Product.id.asc()).all()]


def count_products() -> int:
    return db.session.query(func.count(Product.id)).scalar() or 0


def top_products(limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    """Best sellers by total_sold."""
    rows = (
        db.session.query(Product)
        .order_by(Product.total_sold.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [p.to_dict() for p in rows]


def get_product(product_id: int) -> dict:
    return _get_or_404(product_id).to_dict()


def create_product(*, patch: dict) -> dict:
    """Create product using a validated patch dict."""
    product = Product(total_sold=0)
    apply_product_patch(product, patch)
    db.session.add(product)
    db.session.commit()
    return product.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    product = _get_or_404(product_id)
    apply_product_patch(product, patch)
    db.session.commit()
    return product.to_dict()


def delete_product(*, product_id: int) -> None:
    """
    Delete a product.

    Raises ConflictError while sale items still reference it: those sales
    would otherwise have nothing to reverse their quantities against.
    """
    product = _get_or_404(product_id)
    in_use = db.session.query(SaleItem.id).filter_by(product_id=product_id).first()
    if in_use:
        raise ConflictError(f"Product with id {product_id} is referenced by existing sales")
    db.session.delete(product)
    db.session.commit()
