# Overview: JSON envelope helpers shared by all API routes.

from flask import jsonify

from .validation import ValidationError


def ok(data=None, status: int = 200, **extra):
    body = {"success": True, "data": data if data is not None else {}}
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def invalid(exc: ValidationError):
    """400 with field-level errors when the failing field is known."""
    if exc.field:
        return jsonify({
            "success": False,
            "errors": [{"field": exc.field, "message": str(exc)}],
        }), 400
    return fail(str(exc), 400)
