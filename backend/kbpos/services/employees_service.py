# backend/kbpos/services/employees_service.py
"""Employee roster CRUD."""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Employee, Sale
from ..validation import ConflictError, NotFoundError

EMPLOYEE_MUTABLE_FIELDS = {
    "name",
    "email",
    "phone",
    "position",
    "salary",
    "join_date",
    "address",
    "status",
    "notes",
}


def _get_or_404(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise NotFoundError(f"Employee with id {employee_id} not found")
    return employee


def _ensure_email_free(email: str | None, exclude_id: int | None = None) -> None:
    if not email:
        return
    query = db.session.query(Employee.id).filter(func.lower(Employee.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first():
        raise ConflictError("Email already used by another employee")


def list_employees(*, status: str | None = None) -> list[dict]:
    query = db.session.query(Employee)
    if status:
        query = query.filter(Employee.status == status)
    return [e.to_dict() for e in query.order_by(Employee.name.asc(), Employee.id.asc()).all()]


def count_employees() -> int:
    return db.session.query(func.count(Employee.id)).scalar() or 0


def get_employee(employee_id: int) -> dict:
    return _get_or_404(employee_id).to_dict()


def create_employee(*, patch: dict) -> dict:
    _ensure_email_free(patch.get("email"))
    employee = Employee()
    for k, v in patch.items():
        if k in EMPLOYEE_MUTABLE_FIELDS:
            setattr(employee, k, v)
    db.session.add(employee)
    db.session.commit()
    return employee.to_dict()


def update_employee(*, employee_id: int, patch: dict) -> dict:
    employee = _get_or_404(employee_id)
    _ensure_email_free(patch.get("email"), exclude_id=employee_id)
    for k, v in patch.items():
        if k in EMPLOYEE_MUTABLE_FIELDS:
            setattr(employee, k, v)
    db.session.commit()
    return employee.to_dict()


def delete_employee(*, employee_id: int) -> None:
    """Delete an employee; their sales keep existing without the reference."""
    employee = _get_or_404(employee_id)
    db.session.query(Sale).filter_by(employee_id=employee_id).update(
        {Sale.employee_id: None}, synchronize_session=False
    )
    db.session.delete(employee)
    db.session.commit()
