# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopmaster/routes/auth.py
"""
Authentication API routes

- register: customer self-registration (customer role only)
- login: returns the plaintext session token once
- logout: revokes the presented token
- me: current user with resolved permissions
"""

from flask import Blueprint, request, g, current_app

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..validation import validate_user_fields, FieldErrors, validate_email
from ..decorators import require_auth
from ..responses import success, failure
from shopmaster.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token) -> dict:
    return {
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
    }


@auth_bp.post("/register")
def register_route():
    """Customer self-registration. Always assigns the customer role."""
    data = validate_user_fields(request.get_json(silent=True), partial=False)

    user = auth_service.create_user(
        name=data["name"],
        email=data["email"],
        password=data["password"],
        phone=data.get("phone"),
        role="customer",
    )
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return success(_session_payload(user, session, token), "Registration successful", 201)


@auth_bp.post("/login")
def login_route():
    payload = request.get_json(silent=True) or {}
    errors = FieldErrors()
    email = validate_email(errors, payload)
    password = payload.get("password")
    if not password:
        errors.add("password", "Password is required")
    errors.raise_if_any()

    user = auth_service.authenticate(email, password)
    if not user:
        current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
        return failure("Invalid email or password", 401)

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return success(_session_payload(user, session, token), "Login successful")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token, reason="User logout")
    return success(message="Logout successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return success({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
    })
