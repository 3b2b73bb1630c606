# Overview: Flask API routes for employees operations; parses input and returns JSON responses.

# backend/kbpos/routes/employees.py
"""
Employee roster routes.

SECURITY: All routes require authentication.
- Read operations: any role
- Write operations: admin
"""
from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models import Employee
from ..responses import ok, fail, invalid
from ..services import employees_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_employee,
    ValidationError,
    ConflictError,
    NotFoundError,
)

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "email",
        "phone",
        "position",
        "salary",
        "join_date",
        "address",
        "status",
        "notes",
    },
    required_on_create={"name", "email", "phone", "position", "salary", "address"},
)

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
def list_employees():
    """Query params: status (Active, On Leave, Inactive)."""
    items = employees_service.list_employees(status=request.args.get("status"))
    return ok(items, count=len(items))


@employees_bp.get("/count")
@require_auth
def count_employees():
    return ok({"count": employees_service.count_employees()})


@employees_bp.get("/<int:employee_id>")
@require_auth
def get_employee(employee_id: int):
    try:
        return ok(employees_service.get_employee(employee_id))
    except NotFoundError as e:
        return fail(str(e), 404)


@employees_bp.post("")
@require_auth
@require_role("admin")
def create_employee_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
        enforce_rules_employee(patch)
        return ok(employees_service.create_employee(patch=patch), 201)
    except ValidationError as e:
        return invalid(e)
    except ConflictError as e:
        return fail(str(e), 409)


@employees_bp.put("/<int:employee_id>")
@require_auth
@require_role("admin")
def update_employee_route(employee_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True)
        enforce_rules_employee(patch)
        return ok(employees_service.update_employee(employee_id=employee_id, patch=patch))
    except ValidationError as e:
        return invalid(e)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ConflictError as e:
        return fail(str(e), 409)


@employees_bp.delete("/<int:employee_id>")
@require_auth
@require_role("admin")
def delete_employee_route(employee_id: int):
    try:
        employees_service.delete_employee(employee_id=employee_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok({})
