# Overview: Admin user management (list, update, deactivate).

from __future__ import annotations

import logging

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import User, Role, UserRole
from ..errors import NotFoundError, ShopError
from ..validation import ConflictError
from .pagination import paginate
from . import auth_service, session_service

logger = logging.getLogger(__name__)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(
    *,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(User).options(selectinload(User.user_roles).selectinload(UserRole.role))
    if role:
        query = query.filter(
            User.id.in_(
                db.session.query(UserRole.user_id)
                .join(Role, Role.id == UserRole.role_id)
                .filter(Role.name == role)
            )
        )
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(User.name.ilike(like), User.email.ilike(like)))

    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda u: u.to_dict())


def update_user(user_id: int, data: dict, *, actor_id: int) -> User:
    """Admin edit of another account: name, email, phone, role, is_active."""
    if user_id == actor_id:
        raise ShopError("Cannot modify your own account through this endpoint")

    user = get_user(user_id)

    email = data.get("email")
    if email and email != user.email:
        clash = db.session.query(User.id).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ConflictError("Email already registered")
        user.email = email

    if data.get("name"):
        user.name = data["name"]
    if "phone" in data:
        user.phone = data["phone"]
    if data.get("role"):
        auth_service.set_role(user, data["role"])

    deactivated = False
    if "is_active" in data:
        deactivated = user.is_active and not data["is_active"]
        user.is_active = data["is_active"]

    db.session.commit()

    if deactivated:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def deactivate_user(user_id: int, *, actor_id: int) -> User:
    if user_id == actor_id:
        raise ShopError("Cannot delete your own account")

    user = get_user(user_id)
    user.is_active = False
    db.session.commit()

    session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    logger.info("User %s deactivated by %s", user_id, actor_id)
    return user
