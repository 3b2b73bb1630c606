# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

# backend/kbpos/routes/customers.py
"""
Customer directory routes.

SECURITY: All routes require authentication.
- Read, create, update: any role
- Delete: admin
"""
from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models import Customer
from ..responses import ok, fail, invalid
from ..services import customers_service
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, NotFoundError

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "email",
        "phone",
        "address",
        "join_date",
        "total_orders",
        "total_spent",
        "notes",
    },
    required_on_create={"name", "email", "phone", "address"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _enforce_rules_customer(patch: dict) -> None:
    for field in ("total_orders", "total_spent"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0", field)


@customers_bp.get("")
@require_auth
def list_customers():
    """Query params: search (matches name, email or phone)."""
    items = customers_service.list_customers(search=request.args.get("search"))
    return ok(items, count=len(items))


@customers_bp.get("/count")
@require_auth
def count_customers():
    return ok({"count": customers_service.count_customers()})


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer(customer_id: int):
    try:
        return ok(customers_service.get_customer(customer_id))
    except NotFoundError as e:
        return fail(str(e), 404)


@customers_bp.post("")
@require_auth
@require_role("admin", "staff")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        _enforce_rules_customer(patch)
    except ValidationError as e:
        return invalid(e)

    return ok(customers_service.create_customer(patch=patch), 201)


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_role("admin", "staff")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        _enforce_rules_customer(patch)
    except ValidationError as e:
        return invalid(e)

    try:
        return ok(customers_service.update_customer(customer_id=customer_id, patch=patch))
    except NotFoundError as e:
        return fail(str(e), 404)


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role("admin")
def delete_customer_route(customer_id: int):
    try:
        customers_service.delete_customer(customer_id=customer_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok({})
