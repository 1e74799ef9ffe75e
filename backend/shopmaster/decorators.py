# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import failure
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext

    Returns 401 if the header is missing, the token is invalid/expired/revoked,
    or the account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return failure("Authentication required", 401)

        context = session_service.validate_session(token)
        if not context:
            return failure("Invalid or expired token", 401)

        g.current_user = context.user
        g.session_context = context
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """Like require_auth, but anonymous requests pass through without g.current_user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.pop("current_user", None)
        g.pop("session_context", None)
        token = _bearer_token()
        if token:
            context = session_service.validate_session(token)
            if context:
                g.current_user = context.user
                g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a specific permission (use after @require_auth)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return failure("Authentication required", 401)

            try:
                permission_service.require_permission(
                    user_id=g.current_user.id,
                    permission_code=permission_code,
                    resource=request.path,
                )
            except PermissionDeniedError:
                return failure(f"Permission denied: requires {permission_code}", 403)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_codes):
    """Require any of the specified permissions (use after @require_auth)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return failure("Authentication required", 401)

            user_permissions = permission_service.get_user_permissions(g.current_user.id)
            if not any(code in user_permissions for code in permission_codes):
                return failure(f"Permission denied: requires any of {', '.join(permission_codes)}", 403)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def current_user_can(permission_code: str) -> bool:
    """Permission check for routes that vary their output by caller."""
    if not _is_authenticated():
        return False
    return permission_service.has_permission(g.current_user.id, permission_code)
