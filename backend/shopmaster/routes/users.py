# Overview: Admin user management routes.

from flask import Blueprint, request, g

from ..services import auth_service, user_service
from ..validation import validate_user_fields, parse_bool_arg
from ..decorators import require_auth, require_permission
from ..responses import success


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    result = user_service.list_users(
        role=request.args.get("role"),
        is_active=parse_bool_arg(request.args.get("is_active")),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return success({"users": result["items"], "pagination": result["pagination"]})


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def get_user_route(user_id: int):
    return success({"user": user_service.get_user(user_id).to_dict()})


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """Create any kind of account; role defaults to staff."""
    data = validate_user_fields(request.get_json(silent=True), partial=False)
    user = auth_service.create_user(
        name=data["name"],
        email=data["email"],
        password=data["password"],
        phone=data.get("phone"),
        role=data.get("role") or "staff",
        is_active=data.get("is_active", True),
    )
    return success({"user": user.to_dict()}, "User created successfully", 201)


@users_bp.put("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    data = validate_user_fields(request.get_json(silent=True), partial=True)
    data.pop("password", None)
    user = user_service.update_user(user_id, data, actor_id=g.current_user.id)
    return success({"user": user.to_dict()}, "User updated successfully")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def deactivate_user_route(user_id: int):
    user_service.deactivate_user(user_id, actor_id=g.current_user.id)
    return success(message="User deactivated successfully")
