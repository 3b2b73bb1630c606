# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/kbpos/routes/auth.py
"""
Authentication routes.

Login returns an opaque bearer token; only its hash is stored server-side.
"""
from flask import Blueprint, current_app, jsonify, request, g

from ..decorators import require_auth, require_role
from ..responses import ok, fail
from ..services import auth_service, login_throttle_service, session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ConflictError

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _token_response(user, status: int = 200):
    _, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return ok({"token": token, "user": user.to_dict()}, status, token=token)


@auth_bp.post("/register")
@require_auth
@require_role("admin")
def register_route():
    """
    Create a back-office account.

    Only admins may create accounts (bootstrap the first admin with
    `flask system init`).
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "staff",
        )
    except PasswordValidationError as e:
        return fail(str(e), 400)
    except ConflictError as e:
        return fail(str(e), 409)
    except ValueError as e:
        return fail(str(e), 400)

    return ok(user.to_dict(), 201)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and issue a session token.

    SECURITY:
    - Checks for lockout before attempting authentication (429)
    - Records failed attempts for throttling
    - Records successful logins for audit trail
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        return fail("Email and password are required", 400)

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
    if is_locked:
        return jsonify({
            "success": False,
            "error": "Account temporarily locked due to too many failed login attempts",
            "retry_after_seconds": seconds_remaining,
        }), 429

    user = auth_service.authenticate(email, password)
    if not user:
        failed_count = login_throttle_service.record_failed_attempt(
            email, ip_address=ip_address, user_agent=user_agent
        )
        remaining = current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"] - failed_count
        if remaining <= 0:
            current_app.logger.warning("Login locked for %s from %s", email, ip_address)
            return fail("Account locked due to too many failed login attempts", 429)
        return fail("Invalid email or password", 401)

    login_throttle_service.record_successful_login(
        user.id, email, ip_address=ip_address, user_agent=user_agent
    )
    return _token_response(user)


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok(g.current_user.to_dict())


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return ok({})


@auth_bp.put("/updatepassword")
@require_auth
def update_password_route():
    """Change own password; all existing sessions are revoked and a new token issued."""
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")

    if not isinstance(current_password, str) or not isinstance(new_password, str):
        return fail("current_password and new_password are required", 400)

    try:
        user = auth_service.change_password(g.current_user, current_password, new_password)
    except PermissionError as e:
        return fail(str(e), 401)
    except PasswordValidationError as e:
        return fail(str(e), 400)

    session_service.revoke_all_user_sessions(user.id, reason="Password changed")
    return _token_response(user)
