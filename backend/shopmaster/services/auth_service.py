# Overview: Service-layer operations for auth; password hashing, user accounts and roles.

"""
Authentication and user account service.

Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters; upper, lower, digit and special char required
- Emails are unique and compared case-insensitively (stored lower-cased)
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..extensions import db
from ..models import User, Role, UserRole
from ..permissions import ROLE_DESCRIPTIONS
from ..validation import ConflictError, ValidationError
from shopmaster.time_utils import utcnow

logger = logging.getLogger(__name__)

ROLE_NAMES = ("admin", "staff", "customer")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, [{"field": "password", "message": message}])


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash with bcrypt (cost 12) after the strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValidationError(f"Role {role_name} not found", [{"field": "role", "message": f"Unknown role: {role_name}"}])
    return role


def create_default_roles() -> None:
    """Create the standard roles if they don't exist."""
    for name in ROLE_NAMES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=ROLE_DESCRIPTIONS.get(name)))
    db.session.commit()


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str = "customer",
    phone: str | None = None,
    is_active: bool = True,
) -> User:
    """
    Create a user with a bcrypt password hash and a single role.

    Raises:
        PasswordValidationError: password too weak
        ConflictError: email already registered
        ValidationError: unknown role
    """
    email = email.strip().lower()
    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("Email already registered")

    role_obj = get_role(role)
    password_hash = hash_password(password)

    user = User(name=name, email=email, phone=phone, password_hash=password_hash, is_active=is_active)
    db.session.add(user)
    db.session.flush()
    db.session.add(UserRole(user_id=user.id, role_id=role_obj.id))
    db.session.commit()

    logger.info("User created: %s (%s)", user.email, role)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns the active User for valid credentials, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def set_role(user: User, role_name: str) -> None:
    """Replace the user's roles with exactly one role. Does not commit."""
    role = get_role(role_name)
    for ur in list(user.user_roles):
        if ur.role_id != role.id:
            user.user_roles.remove(ur)
    if not any(ur.role_id == role.id for ur in user.user_roles):
        user.user_roles.append(UserRole(role_id=role.id))
