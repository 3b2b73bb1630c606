# backend/kbpos/services/customers_service.py
"""Customer directory CRUD."""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Sale
from ..validation import NotFoundError

CUSTOMER_MUTABLE_FIELDS = {
    "name",
    "email",
    "phone",
    "address",
    "join_date",
    "total_orders",
    "total_spent",
    "notes",
}


def _get_or_404(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer with id {customer_id} not found")
    return customer


def list_customers(*, search: str | None = None) -> list[dict]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
    return [c.to_dict() for c in query.order_by(Customer.name.asc(), Customer.id.asc()).all()]


def count_customers() -> int:
    return db.session.query(func.count(Customer.id)).scalar() or 0


def get_customer(customer_id: int) -> dict:
    return _get_or_404(customer_id).to_dict()


def create_customer(*, patch: dict) -> dict:
    customer = Customer()
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.add(customer)
    db.session.commit()
    return customer.to_dict()


def update_customer(*, customer_id: int, patch: dict) -> dict:
    customer = _get_or_404(customer_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer.to_dict()


def delete_customer(*, customer_id: int) -> None:
    """Delete a customer; their sales keep existing without the reference."""
    customer = _get_or_404(customer_id)
    db.session.query(Sale).filter_by(customer_id=customer_id).update(
        {Sale.customer_id: None}, synchronize_session=False
    )
    db.session.delete(customer)
    db.session.commit()
