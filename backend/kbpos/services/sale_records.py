# Overview: Persistence for sale documents; no product or ledger logic lives here.

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, SaleItem
from ..validation import NotFoundError, enforce_rules_sale, enforce_rules_sale_items
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_order_number

logger = logging.getLogger(__name__)

SALE_MUTABLE_FIELDS = {
    "customer_id",
    "employee_id",
    "total_amount",
    "payment_method",
    "payment_status",
    "order_status",
    "order_type",
    "notes",
}

# Attempts at inserting a sale whose order number hit the unique constraint
ORDER_NUMBER_ATTEMPTS = 3


def _build_items(items: list[dict]) -> list[SaleItem]:
    return [
        SaleItem(
            position=i + 1,
            product_id=item["product_id"],
            name=item["name"],
            price=item["price"],
            quantity=item["quantity"],
        )
        for i, item in enumerate(items)
    ]


def snapshot_sale(sale: Sale) -> tuple[dict, list[dict]]:
    """Mutable fields and items of a sale, in the shape update_sale_record takes."""
    fields = {k: getattr(sale, k) for k in SALE_MUTABLE_FIELDS}
    items = [
        {"product_id": it.product_id, "name": it.name, "price": it.price, "quantity": it.quantity}
        for it in sale.items
    ]
    return fields, items


def create_sale_record(
    *,
    fields: dict,
    items: list[dict],
    created_at: datetime,
    created_by_user_id: int | None = None,
) -> Sale:
    """
    Insert a sale with a freshly allocated order number.

    Sequence increment and insert commit in one transaction; if either fails
    nothing is persisted.
    """
    enforce_rules_sale(fields)
    enforce_rules_sale_items(items)

    def _op() -> Sale:
        order_number = next_order_number(created_at)
        sale = Sale(
            order_number=order_number,
            created_at=created_at,
            updated_at=created_at,
            created_by_user_id=created_by_user_id,
            **{k: v for k, v in fields.items() if k in SALE_MUTABLE_FIELDS},
        )
        sale.items = _build_items(items)
        db.session.add(sale)
        db.session.commit()
        return sale

    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        try:
            return run_with_retry(_op)
        except IntegrityError:
            # uq_sales_order_number backstop; allocate again
            db.session.rollback()
            logger.warning("Order number collision on attempt %d", attempt + 1)
            if attempt >= ORDER_NUMBER_ATTEMPTS - 1:
                raise


def find_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise NotFoundError(f"Sale with id {sale_id} not found")
    return sale


def _lock_sale(sale_id: int) -> Sale:
    """
    Row-lock a sale and reload it, items included, from the database.

    Items read after this call are the ones the locked transaction replaces
    or deletes; a concurrent writer cannot change them in between.
    """
    sale = (
        lock_for_update(db.session.query(Sale).filter_by(id=sale_id))
        .populate_existing()
        .first()
    )
    if not sale:
        raise NotFoundError(f"Sale with id {sale_id} not found")
    db.session.expire(sale, ["items"])
    return sale


def update_sale_record(
    sale_id: int, patch: dict, items: list[dict] | None = None
) -> tuple[Sale, dict, list[dict]]:
    """
    Apply a validated patch (and optionally a full replacement item list).

    Returns (sale, previous_fields, previous_items), the previous values read
    under the same row lock as the write. order_number and created_at are
    never written here.
    """
    enforce_rules_sale(patch)
    if items is not None:
        enforce_rules_sale_items(items)

    def _op() -> tuple[Sale, dict, list[dict]]:
        sale = _lock_sale(sale_id)
        previous_fields, previous_items = snapshot_sale(sale)

        for k, v in patch.items():
            if k not in SALE_MUTABLE_FIELDS:
                continue
            setattr(sale, k, v)

        if items is not None:
            sale.items.clear()
            db.session.flush()
            sale.items.extend(_build_items(items))

        db.session.commit()
        return sale, previous_fields, previous_items

    return run_with_retry(_op)


def delete_sale_record(sale_id: int) -> dict:
    """
    Delete a sale and return what was deleted, read under the row lock.

    The returned dict is accepted by restore_sale_record.
    """
    def _op() -> dict:
        sale = _lock_sale(sale_id)
        fields, items = snapshot_sale(sale)
        deleted = {
            "id": sale.id,
            "order_number": sale.order_number,
            "created_at": sale.created_at,
            "created_by_user_id": sale.created_by_user_id,
            "fields": fields,
            "items": items,
        }
        db.session.delete(sale)
        db.session.commit()
        return deleted

    return run_with_retry(_op)


def restore_sale_record(deleted: dict) -> Sale:
    """Re-insert a sale removed by delete_sale_record, with its id and order number."""
    def _op() -> Sale:
        sale = Sale(
            id=deleted["id"],
            order_number=deleted["order_number"],
            created_at=deleted["created_at"],
            created_by_user_id=deleted["created_by_user_id"],
            **deleted["fields"],
        )
        sale.items = _build_items(deleted["items"])
        db.session.add(sale)
        db.session.commit()
        return sale

    return run_with_retry(_op)
