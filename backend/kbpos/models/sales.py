from __future__ import annotations

from ..extensions import db
from kbpos.time_utils import to_utc_z

PAYMENT_METHODS = ("Cash", "Credit Card", "Debit Card", "Bank Transfer", "E-Wallet", "Other")
PAYMENT_STATUSES = ("Unpaid", "Paid", "Cancelled")
# New -> Processing -> Ready -> Completed; Cancelled from any non-terminal state.
# Transitions are not enforced.
ORDER_STATUSES = ("New", "Processing", "Ready", "Completed", "Cancelled")
ORDER_TYPES = ("Dine-in", "Take Away", "Delivery")


class Sale(db.Model):
    """
    Sale document.

    WHY: Each line item contributes its quantity to Product.total_sold.
    Sales are only created, re-itemized and deleted through sales_service,
    which keeps those counters in step with the rows here.

    order_number ("KB-YYMMDD-NNNN") is assigned once at creation and never
    rewritten.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_sales_order_number"),
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_payment_status_created", "payment_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)

    # Weak references: lookup only, the sale does not own these rows
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="Unpaid")
    order_status = db.Column(db.String(16), nullable=False, default="New")
    order_type = db.Column(db.String(16), nullable=False, default="Dine-in")
    notes = db.Column(db.String(500), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "SaleItem",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        backref=db.backref("sale", lazy=True),
        lazy=True,
    )
    customer = db.relationship("Customer")
    employee = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer": self.customer.summary() if self.customer else None,
            "employee_id": self.employee_id,
            "employee": self.employee.summary() if self.employee else None,
            "items": [item.to_dict() for item in self.items],
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "order_type": self.order_type,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleItem(db.Model):
    """Line item on a sale (name and price are snapshots at sale time)."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }
