# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/kbpos/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations: any role
- Write operations: admin
"""
from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models import Product
from ..responses import ok, fail, invalid
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)

# total_sold is not writable: it is maintained by sales
PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "price",
        "discount_price",
        "category",
        "tags",
        "ingredients",
        "image_url",
        "is_available",
    },
    required_on_create={"name", "description", "price", "category"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - category: str (optional)
    - available: "true" to hide unavailable items (optional)
    """
    items = products_service.list_products(
        category=request.args.get("category"),
        available_only=request.args.get("available", "").lower() == "true",
    )
    return ok(items, count=len(items))


@products_bp.get("/count")
@require_auth
def count_products():
    return ok({"count": products_service.count_products()})


@products_bp.get("/top")
@require_auth
def top_products():
    return ok(products_service.top_products())


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        return ok(products_service.get_product(product_id))
    except NotFoundError as e:
        return fail(str(e), 404)


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return invalid(e)

    return ok(products_service.create_product(patch=patch), 201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return invalid(e)

    try:
        return ok(products_service.update_product(product_id=product_id, patch=patch))
    except NotFoundError as e:
        return fail(str(e), 404)


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ConflictError as e:
        return fail(str(e), 409)
    return ok({})
