# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'caller')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.caller: CallerContext passed on to services
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (for logout)

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"success": False, "error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.caller = context.caller
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of `roles`.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"success": False, "error": "Authentication required"}), 401

            if g.caller.role not in roles:
                current_app.logger.warning(
                    "Role %s denied %s %s", g.caller.role, request.method, request.path
                )
                return jsonify({
                    "success": False,
                    "error": f"Role {g.caller.role} is not allowed to access this route",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
