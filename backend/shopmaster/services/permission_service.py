# Overview: Resolve permission codes from roles and enforce them.

"""
Permission checking.

DESIGN PRINCIPLES:
- Fail closed: deny unless one of the user's roles grants the code
- Role -> permission mapping is static (shopmaster.permissions)
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Role, UserRole
from ..permissions import DEFAULT_ROLE_PERMISSIONS

logger = logging.getLogger(__name__)


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_role_names(user_id: int) -> set[str]:
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {name for (name,) in rows}


def get_user_permissions(user_id: int) -> set[str]:
    """Union of the permission codes granted by each of the user's roles."""
    codes: set[str] = set()
    for role_name in get_role_names(user_id):
        codes.update(DEFAULT_ROLE_PERMISSIONS.get(role_name, ()))
    return codes


def has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(user_id: int, permission_code: str, resource: str | None = None) -> None:
    """Raises PermissionDeniedError if the user lacks the permission."""
    if not has_permission(user_id, permission_code):
        logger.warning("Permission denied: user=%s permission=%s resource=%s", user_id, permission_code, resource)
        raise PermissionDeniedError(f"Missing permission: {permission_code}")
