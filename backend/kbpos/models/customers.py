from __future__ import annotations

from ..extensions import db
from kbpos.time_utils import to_utc_z


class Customer(db.Model):
    """Customer directory entry. Sales reference customers weakly."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    address = db.Column(db.String(500), nullable=False)
    join_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    notes = db.Column(db.String(1000), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "phone": self.phone}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "join_date": to_utc_z(self.join_date),
            "total_orders": self.total_orders,
            "total_spent": self.total_spent,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
