from __future__ import annotations

from ..extensions import db
from kbpos.time_utils import to_utc_z

EMPLOYEE_POSITIONS = ("Manager", "Cashier", "Chef", "Waiter", "Courier", "Other")
EMPLOYEE_STATUSES = ("Active", "On Leave", "Inactive")


class Employee(db.Model):
    """Staff roster entry (not a login account; see User)."""
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_employees_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    position = db.Column(db.String(16), nullable=False)
    salary = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    join_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    address = db.Column(db.String(500), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Active")
    notes = db.Column(db.String(1000), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "position": self.position,
            "salary": self.salary,
            "join_date": to_utc_z(self.join_date),
            "address": self.address,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
