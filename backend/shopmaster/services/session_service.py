# Overview: Bearer session tokens for storefront customers and back-office users.

"""
Session tokens.

The client receives a 64-hex token once, at login or registration; only its
SHA-256 digest is stored. A session dies when any of these hold:
- SESSION_ABSOLUTE_TIMEOUT has passed since creation
- it has been idle longer than SESSION_IDLE_TIMEOUT (revoked on detection)
- the user was deactivated (revoked on detection)
- it was revoked explicitly (logout, admin deactivation)
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..extensions import db
from ..models import SessionToken, User
from shopmaster.time_utils import utcnow

logger = logging.getLogger(__name__)

SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _mark_revoked(session: SessionToken, reason: str, when: datetime) -> None:
    session.is_revoked = True
    session.revoked_at = when
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Returns (stored session row, plaintext token)."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("Cannot open a session for a missing or deactivated user")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """Resolve a bearer token to its user, refreshing last_used_at. None if dead."""
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if now >= session.expires_at:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _mark_revoked(session, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user
    if user is None or not user.is_active:
        _mark_revoked(session, "User account deactivated", now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _mark_revoked(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Returns how many live sessions were revoked."""
    now = utcnow()
    sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for session in sessions:
        _mark_revoked(session, reason, now)
    db.session.commit()

    if sessions:
        logger.info("Revoked %s session(s) for user %s: %s", len(sessions), user_id, reason)
    return len(sessions)
