from __future__ import annotations
import math
from datetime import datetime
from kbpos.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from kbpos.models.products import PRODUCT_CATEGORIES
from kbpos.models.employees import EMPLOYEE_POSITIONS, EMPLOYEE_STATUSES
from kbpos.models.sales import PAYMENT_METHODS, PAYMENT_STATUSES, ORDER_STATUSES, ORDER_TYPES


# Maximum amount: 9,999,999,999.99 fits Numeric(12, 2)
MAX_AMOUNT = 9_999_999_999.99


class ValidationError(ValueError):
    """400-level input problem. `field` names the offending input when known."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate email)."""


class NotFoundError(LookupError):
    """404-level: a referenced record does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any, field: str):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{field} must be an integer", field)
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field)
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{field} must be an integer (no decimals)", field)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{field} must be an integer", field)
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{field} must be an integer, not a decimal", field)
        # Other types
        raise ValidationError(f"{field} must be an integer", field)

    # Money amounts
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{field} must be a number", field)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                raise ValidationError(f"{field} must be a number", field)
        if not isinstance(value, (int, float)):
            raise ValidationError(f"{field} must be a number", field)
        value = float(value)
        if math.isnan(value) or math.isinf(value):
            raise ValidationError(f"{field} must be a finite number", field)
        if abs(value) > MAX_AMOUNT:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,.2f}", field)
        return round(value, 2)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{field} must be a boolean", field)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{field} must be an ISO-8601 datetime", field)
            if dt is None:
                raise ValidationError(f"{field} must be an ISO-8601 datetime", field)
            return dt
        raise ValidationError(f"{field} must be a datetime", field)

    # JSON columns hold lists of short strings (tags, ingredients)
    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{field} must be a list of strings", field)
        return [v.strip() for v in value if v.strip()]

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
    prefix: str = "",
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(prefix + f for f in missing)}", prefix + missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {prefix}{k}", prefix + k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {prefix}{k}", prefix + k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]
        field = prefix + k

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{field} cannot be null", field)
            patch[k] = None
            continue

        val = _coerce_value(col, raw, field)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{field} cannot be blank", field)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{field} exceeds max length {col.type.length}", field)

        patch[k] = val

    return patch


def enforce_choice(patch: dict, field: str, choices: tuple[str, ...], label: str | None = None) -> None:
    if field in patch and patch[field] is not None and patch[field] not in choices:
        raise ValidationError(f"{label or field} must be one of: {', '.join(choices)}", field)


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("price", "discount_price"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0", field)
    enforce_choice(patch, "category", PRODUCT_CATEGORIES)


def enforce_rules_employee(patch: dict) -> None:
    enforce_choice(patch, "position", EMPLOYEE_POSITIONS)
    enforce_choice(patch, "status", EMPLOYEE_STATUSES)
    if "salary" in patch and patch["salary"] is not None and patch["salary"] < 0:
        raise ValidationError("salary must be >= 0", "salary")


def enforce_rules_sale(patch: dict) -> None:
    # Applied on every sale write, create and update alike
    if "total_amount" in patch:
        if patch["total_amount"] is None or patch["total_amount"] <= 0:
            raise ValidationError("total_amount must be > 0", "total_amount")
    enforce_choice(patch, "payment_method", PAYMENT_METHODS)
    enforce_choice(patch, "payment_status", PAYMENT_STATUSES)
    enforce_choice(patch, "order_status", ORDER_STATUSES)
    enforce_choice(patch, "order_type", ORDER_TYPES)


def enforce_rules_sale_items(items: list[dict]) -> None:
    if not items:
        raise ValidationError("At least one item is required", "items")
    for i, item in enumerate(items):
        qty = item.get("quantity")
        if qty is None or qty < 1:
            raise ValidationError("quantity must be >= 1", f"items[{i}].quantity")
        price = item.get("price")
        if price is None or price <= 0:
            raise ValidationError("price must be > 0", f"items[{i}].price")
