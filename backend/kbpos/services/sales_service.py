"""
Sales Service - sale documents kept in step with Product.total_sold

WHY: A sale row and the sold counters of the products on it are written in
separate steps (sale insert, then one counter UPDATE per line). This module
owns that sequence: it validates references before anything is written,
tracks every counter change that committed, and on failure undoes exactly
those changes together with the sale write before re-raising the original
error.

Callers pass an already authenticated and authorized CallerContext; identity
is never re-derived here.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from flask import current_app

from ..extensions import db
from ..models import Customer, Employee, Product, Sale, SaleItem
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_sale,
    enforce_rules_sale_items,
    validate_payload,
)
from kbpos.time_utils import business_day_bounds, utcnow
from . import sale_records
from .ledger_service import LedgerAdjustments, net_quantity_diff
from .session_service import CallerContext

logger = logging.getLogger(__name__)

SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "employee_id",
        "total_amount",
        "payment_method",
        "payment_status",
        "order_status",
        "order_type",
        "notes",
    },
    required_on_create={"total_amount", "payment_method"},
)

SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "name", "price", "quantity"},
    required_on_create={"product_id", "name", "price", "quantity"},
)

# Client field names accepted alongside the column names
_SALE_ALIASES = {
    "customer": "customer_id",
    "employee": "employee_id",
    "totalAmount": "total_amount",
    "paymentMethod": "payment_method",
    "paymentStatus": "payment_status",
    "orderStatus": "order_status",
    "orderType": "order_type",
}
_ITEM_ALIASES = {"product": "product_id"}

RECENT_SALES_LIMIT = 5


def _unalias(payload: dict, aliases: dict) -> dict:
    out = {}
    for k, v in payload.items():
        out[aliases.get(k, k)] = v
    return out


def validate_sale_payload(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None]:
    """
    Validate a sale request body.

    Returns (patch, items). `items` is None when the body has no "items" key
    (only allowed for partial updates).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    body = _unalias(payload, _SALE_ALIASES)
    raw_items = body.pop("items", None)

    patch = validate_payload(model=Sale, payload=body, policy=SALE_POLICY, partial=partial)
    enforce_rules_sale(patch)

    if raw_items is None:
        if not partial:
            raise ValidationError("At least one item is required", "items")
        return patch, None

    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list", "items")

    items = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("item must be an object", f"items[{i}]")
        items.append(
            validate_payload(
                model=SaleItem,
                payload=_unalias(raw, _ITEM_ALIASES),
                policy=SALE_ITEM_POLICY,
                partial=False,
                prefix=f"items[{i}].",
            )
        )
    enforce_rules_sale_items(items)
    return patch, items


def _require_products(items: list[dict]) -> None:
    wanted = [item["product_id"] for item in items]
    found = {
        pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(set(wanted))).all()
    }
    for pid in wanted:
        if pid not in found:
            raise NotFoundError(f"Product with id {pid} not found")


def _require_people(patch: dict) -> None:
    customer_id = patch.get("customer_id")
    if customer_id is not None and not db.session.get(Customer, customer_id):
        raise NotFoundError(f"Customer with id {customer_id} not found")
    employee_id = patch.get("employee_id")
    if employee_id is not None and not db.session.get(Employee, employee_id):
        raise NotFoundError(f"Employee with id {employee_id} not found")


def _reconcile_timeout() -> float | None:
    return current_app.config.get("SALE_RECONCILE_TIMEOUT_SECONDS")


def create_sale(
    *,
    fields: dict,
    items: list[dict],
    caller: CallerContext,
    now: datetime | None = None,
) -> Sale:
    """
    Persist a sale and add each line's quantity to its product's total_sold.

    Fails fast (nothing written) on missing items or unknown references.
    If a counter update fails, times out or is interrupted after the sale was
    written, the sale is deleted, the increments that committed are reversed
    and the original error is re-raised.
    """
    if not items:
        raise ValidationError("At least one item is required", "items")
    _require_products(items)
    _require_people(fields)

    created_at = now or utcnow()
    sale = sale_records.create_sale_record(
        fields=fields,
        items=items,
        created_at=created_at,
        created_by_user_id=caller.user_id,
    )
    sale_id = sale.id
    order_number = sale.order_number

    adjustments = LedgerAdjustments(timeout_seconds=_reconcile_timeout())
    try:
        # One UPDATE per line so a failure leaves an exact applied set
        for item in items:
            adjustments.apply(item["product_id"], item["quantity"])
    except BaseException as exc:
        db.session.rollback()
        try:
            sale_records.delete_sale_record(sale_id)
        except Exception:
            logger.exception("Rollback: could not delete sale %s (%s)", sale_id, order_number)
        failed = adjustments.revert()
        logger.warning(
            "Sale %s rolled back after %s; %d counter reversal(s) failed",
            order_number, type(exc).__name__, len(failed),
        )
        raise

    logger.info("Sale %s created by user %s", order_number, caller.user_id)
    return sale_records.find_sale(sale_id)


def update_sale(
    sale_id: int,
    *,
    patch: dict,
    items: list[dict] | None = None,
    caller: CallerContext,
) -> Sale:
    """
    Patch a sale. When `items` is given the item list is replaced and each
    product's total_sold moves by one net difference (new qty - old qty).

    The old items are the ones read under the row lock that replaces them,
    so overlapping updates each apply the difference against what they
    actually replaced.

    On a counter failure the previous fields and items are restored and the
    applied differences reversed before the original error is re-raised.
    Status fields carry no ledger effect and any listed value is accepted.
    """
    sale_records.find_sale(sale_id)
    if items is not None:
        if not items:
            raise ValidationError("At least one item is required", "items")
        _require_products(items)
    _require_people(patch)

    sale, old_fields, old_items = sale_records.update_sale_record(sale_id, patch, items)
    if items is None:
        return sale

    diff = net_quantity_diff(
        [(it["product_id"], it["quantity"]) for it in old_items],
        [(it["product_id"], it["quantity"]) for it in items],
    )

    adjustments = LedgerAdjustments(timeout_seconds=_reconcile_timeout())
    try:
        for product_id, delta in diff.items():
            adjustments.apply(product_id, delta)
    except BaseException as exc:
        db.session.rollback()
        try:
            sale_records.update_sale_record(sale_id, old_fields, old_items)
        except Exception:
            logger.exception("Rollback: could not restore sale %s", sale_id)
        failed = adjustments.revert()
        logger.warning(
            "Update of sale %s rolled back after %s; %d counter reversal(s) failed",
            sale_id, type(exc).__name__, len(failed),
        )
        raise

    logger.info("Sale %s re-itemized by user %s", sale_id, caller.user_id)
    return sale_records.find_sale(sale_id)


def delete_sale(sale_id: int, *, caller: CallerContext) -> None:
    """
    Delete the sale, then subtract each deleted line's quantity from
    total_sold.

    The lines are read under the row lock that deletes the sale, so an
    update landing in between cannot leave stale quantities behind. If a
    decrement fails, the sale is re-inserted as it was, the applied
    decrements are reversed and the error re-raised.
    """
    deleted = sale_records.delete_sale_record(sale_id)
    order_number = deleted["order_number"]

    adjustments = LedgerAdjustments(timeout_seconds=_reconcile_timeout())
    try:
        for item in deleted["items"]:
            adjustments.apply(item["product_id"], -item["quantity"])
    except BaseException as exc:
        db.session.rollback()
        try:
            sale_records.restore_sale_record(deleted)
        except Exception:
            logger.exception("Rollback: could not restore deleted sale %s", order_number)
        failed = adjustments.revert()
        logger.warning(
            "Delete of sale %s rolled back after %s; %d counter reversal(s) failed",
            order_number, type(exc).__name__, len(failed),
        )
        raise

    logger.info("Sale %s deleted by user %s", order_number, caller.user_id)


# =============================================================================
# Read projections
# =============================================================================


def get_sale(sale_id: int) -> Sale:
    return sale_records.find_sale(sale_id)


def list_sales(page: int | None = None, per_page: int | None = None) -> dict:
    """
    All sales, newest first, with optional pagination.

    Returns dict with 'items', 'count' and, when paginated, 'pagination'.
    """
    base_query = db.session.query(Sale).order_by(Sale.created_at.desc(), Sale.id.desc())

    if page is None:
        sales = base_query.all()
        return {"items": [s.to_dict() for s in sales], "count": len(sales)}

    per_page = max(1, min(per_page or 20, 100))  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    sales = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_sales_in_range(start_date: date, end_date: date) -> list[Sale]:
    """Sales created from the start of `start_date` to the end of `end_date` (business days)."""
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date", "end_date")
    tz_name = current_app.config["BUSINESS_TIMEZONE"]
    start, _ = business_day_bounds(start_date, tz_name)
    _, end = business_day_bounds(end_date, tz_name)
    return (
        db.session.query(Sale)
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )


def recent_sales(limit: int = RECENT_SALES_LIMIT) -> list[Sale]:
    return (
        db.session.query(Sale)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
