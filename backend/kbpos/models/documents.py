from __future__ import annotations

from ..extensions import db


class OrderSequence(db.Model):
    """
    Atomic per-day order number sequence.

    WHY: Counting today's sales and adding one hands out the same number to
    concurrent checkouts. One row per business day is incremented with a
    single UPDATE inside the transaction that inserts the sale instead.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("sequence_date", name="uq_order_sequences_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())