# Overview: Service-layer operations for the product sold-quantity ledger.

from __future__ import annotations

import logging
import time

from sqlalchemy import func, update

from ..extensions import db
from ..models import Product, SaleItem
from ..validation import NotFoundError
from .concurrency import StorageError, run_with_retry

"""
Product ledger invariants (authoritative)

- Product.total_sold == sum(SaleItem.quantity) over all persisted sale items
  of that product.
- Counters only move through adjust_total_sold: one atomic
  UPDATE ... SET total_sold = total_sold + :delta per call, committed
  immediately. Never read-modify-write from a loaded Product.
- No clamping at zero. A negative result means some earlier reversal was
  wrong; it is logged as drift and left visible for reconcile_total_sold.
"""

logger = logging.getLogger(__name__)


class LedgerTimeoutError(StorageError):
    """Raised when ledger reconciliation runs past its deadline."""


def adjust_total_sold(product_id: int, delta: int) -> int:
    """
    Atomically add `delta` (positive or negative) to a product's total_sold.

    Returns the new counter value.
    Raises NotFoundError if the product does not exist, StorageError if the
    database stays unavailable.
    """
    def _op() -> int:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(total_sold=Product.total_sold + delta)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if not result.rowcount:
            db.session.rollback()
            raise NotFoundError(f"Product with id {product_id} not found")

        new_total = (
            db.session.query(Product.total_sold)
            .filter(Product.id == product_id)
            .scalar()
        )
        db.session.commit()
        return new_total

    new_total = run_with_retry(_op)
    if new_total < 0:
        logger.warning(
            "Ledger drift: product %s total_sold is %s after delta %+d",
            product_id, new_total, delta,
        )
    return new_total


class LedgerAdjustments:
    """
    Applied-deltas tracker for one sale operation.

    Every delta is recorded only after its UPDATE committed, so revert()
    undoes exactly what reached the database and nothing else.
    """

    def __init__(self, timeout_seconds: float | None = None):
        self.applied: list[tuple[int, int]] = []
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds else None

    def apply(self, product_id: int, delta: int) -> None:
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise LedgerTimeoutError("Timed out while updating product sales totals")
        adjust_total_sold(product_id, delta)
        self.applied.append((product_id, delta))

    def revert(self) -> list[tuple[int, int]]:
        """
        Best-effort reversal, newest first. Never raises; returns the deltas
        that could not be reversed (each failure is logged).
        """
        failed: list[tuple[int, int]] = []
        while self.applied:
            product_id, delta = self.applied.pop()
            try:
                adjust_total_sold(product_id, -delta)
            except Exception:
                logger.exception(
                    "Ledger rollback failed: product %s delta %+d left applied", product_id, delta
                )
                failed.append((product_id, delta))
        return failed


def net_quantity_diff(old_items: list[tuple[int, int]], new_items: list[tuple[int, int]]) -> dict[int, int]:
    """
    Per-product change in sold quantity between two item sets given as
    (product_id, quantity) pairs. Products whose quantity is unchanged are
    omitted.
    """
    diff: dict[int, int] = {}
    for product_id, qty in old_items:
        diff[product_id] = diff.get(product_id, 0) - qty
    for product_id, qty in new_items:
        diff[product_id] = diff.get(product_id, 0) + qty
    return {product_id: delta for product_id, delta in diff.items() if delta}


def reconcile_total_sold(*, fix: bool = False) -> list[dict]:
    """
    Recompute every product's total_sold from persisted sale items.

    Returns one row per mismatching product. With fix=True the counters are
    overwritten with the recomputed values; run this while the shop is
    closed, since concurrent sales would race the overwrite.
    """
    expected = dict(
        db.session.query(SaleItem.product_id, func.sum(SaleItem.quantity))
        .group_by(SaleItem.product_id)
        .all()
    )

    mismatches = []
    rows = db.session.query(Product.id, Product.total_sold).order_by(Product.id.asc()).all()
    for product_id, recorded in rows:
        want = int(expected.get(product_id) or 0)
        if recorded != want:
            mismatches.append({"product_id": product_id, "recorded": recorded, "expected": want})

    if fix and mismatches:
        for row in mismatches:
            db.session.execute(
                update(Product)
                .where(Product.id == row["product_id"])
                .values(total_sold=row["expected"])
                .execution_options(synchronize_session=False)
            )
        db.session.commit()
        logger.warning("Ledger reconcile corrected %d product(s)", len(mismatches))

    return mismatches
