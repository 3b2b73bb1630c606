# Overview: Service-layer operations for order numbers; allocates per-day sequence values.

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderSequence
from kbpos.time_utils import business_date

ORDER_NUMBER_PREFIX = "KB"


class DocumentSequenceError(Exception):
    """Raised when order sequence operations fail."""
    pass


def format_order_number(day: date, number: int, *, prefix: str = ORDER_NUMBER_PREFIX, pad: int = 4) -> str:
    return f"{prefix}-{day:%y%m%d}-{number:0{pad}d}"


def _ensure_sequence_row(day: date) -> None:
    """
    Make sure the sequence row for `day` exists, committed.

    Must run before the caller has pending changes: a lost insert race is
    resolved with a plain rollback.
    """
    exists = db.session.query(OrderSequence.id).filter_by(sequence_date=day).first()
    if exists:
        return
    db.session.add(OrderSequence(sequence_date=day, next_number=1))
    try:
        db.session.commit()
    except IntegrityError:
        # Another request created it first
        db.session.rollback()


def next_order_number(created_at: datetime) -> str:
    """
    Atomically allocate the next order number for the business day of
    `created_at` (UTC-naive), e.g. "KB-250614-0007".

    The increment is left uncommitted: call this inside the transaction that
    inserts the sale so the number and the sale commit or roll back together.
    Callers wrap the whole unit in run_with_retry.
    """
    if created_at is None:
        raise DocumentSequenceError("created_at is required")

    day = business_date(created_at, current_app.config["BUSINESS_TIMEZONE"])
    _ensure_sequence_row(day)

    stmt = (
        update(OrderSequence)
        .where(OrderSequence.sequence_date == day)
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise DocumentSequenceError(f"Order sequence for {day.isoformat()} missing")

    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(sequence_date=day)
        .scalar()
    )
    return format_order_number(day, current - 1)
