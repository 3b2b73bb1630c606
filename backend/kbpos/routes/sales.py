# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/kbpos/routes/sales.py
"""
Sales API routes.

SECURITY: All routes require authentication.
- Create/update: admin, staff
- Delete: admin
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_role
from ..responses import ok, fail, invalid
from ..services import sales_service, reporting_service
from ..services.concurrency import StorageError
from ..validation import ValidationError, NotFoundError
from kbpos.time_utils import parse_iso_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    result = sales_service.list_sales(page=page, per_page=per_page)
    extra = {"count": result["count"]}
    if "pagination" in result:
        extra["pagination"] = result["pagination"]
    return ok(result["items"], **extra)


@sales_bp.get("/range")
@require_auth
def sales_in_range_route():
    """Sales between start_date and end_date (YYYY-MM-DD, both days inclusive)."""
    raw_start = request.args.get("start_date")
    raw_end = request.args.get("end_date")
    if not raw_start or not raw_end:
        return fail("start_date and end_date are required", 400)

    try:
        start_date = parse_iso_date(raw_start)
        end_date = parse_iso_date(raw_end)
    except ValueError:
        return fail("start_date and end_date must be ISO-8601 dates", 400)

    try:
        sales = sales_service.list_sales_in_range(start_date, end_date)
    except ValidationError as e:
        return invalid(e)

    return ok([s.to_dict() for s in sales], count=len(sales))


@sales_bp.get("/recent")
@require_auth
def recent_sales_route():
    sales = sales_service.recent_sales()
    return ok([s.to_dict() for s in sales])


@sales_bp.get("/stats")
@require_auth
def sales_stats_route():
    return ok(reporting_service.sales_stats())


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(sale.to_dict())


@sales_bp.post("")
@require_auth
@require_role("admin", "staff")
def create_sale_route():
    """
    Create a sale and add its quantities to the products' sold totals.

    Body: {items: [{product, name, price, quantity}], total_amount,
    payment_method, order_type?, payment_status?, order_status?,
    customer?, employee?, notes?}
    """
    payload = request.get_json(silent=True)

    try:
        patch, items = sales_service.validate_sale_payload(payload, partial=False)
        sale = sales_service.create_sale(fields=patch, items=items, caller=g.caller)
    except ValidationError as e:
        return invalid(e)
    except NotFoundError as e:
        return fail(str(e), 404)
    except StorageError:
        current_app.logger.exception("Failed to create sale")
        return fail("Internal server error", 500)

    return ok(sale.to_dict(), 201)


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_role("admin", "staff")
def update_sale_route(sale_id: int):
    """Partial update; replacing items re-balances product sold totals."""
    payload = request.get_json(silent=True)

    try:
        patch, items = sales_service.validate_sale_payload(payload, partial=True)
        sale = sales_service.update_sale(sale_id, patch=patch, items=items, caller=g.caller)
    except ValidationError as e:
        return invalid(e)
    except NotFoundError as e:
        return fail(str(e), 404)
    except StorageError:
        current_app.logger.exception("Failed to update sale %s", sale_id)
        return fail("Internal server error", 500)

    return ok(sale.to_dict())


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_role("admin")
def delete_sale_route(sale_id: int):
    try:
        sales_service.delete_sale(sale_id, caller=g.caller)
    except NotFoundError as e:
        return fail(str(e), 404)
    except StorageError:
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return fail("Internal server error", 500)

    return ok({})
