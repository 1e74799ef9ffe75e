# Overview: Atomic allocation of human-readable document numbers.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from shopmaster.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_number(document_type: str, scope: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, scope=scope)
        .scalar()
    )


def next_document_number(*, document_type: str, scope: str) -> int:
    """
    Atomically allocate the next number for (document_type, scope).

    Uses UPDATE ... SET next_number = next_number + 1 so concurrent callers
    serialize on the sequence row. The first caller for a scope inserts the row;
    a racing insert rolls back and takes the UPDATE path.

    Runs inside the caller's transaction, so call it before any other change
    in the unit of work (the insert race rolls the session back).
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not scope:
        raise DocumentSequenceError("scope is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.scope == scope,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_number(document_type, scope) - 1

    db.session.add(DocumentSequence(document_type=document_type, scope=scope, next_number=2))
    try:
        db.session.flush()
        return 1
    except IntegrityError:
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate {document_type} number for {scope}")
        return _current_number(document_type, scope) - 1


def next_order_number(now: datetime | None = None) -> str:
    """ORD-YYMMDD-NNNN, sequential per UTC day."""
    now = now or utcnow()
    scope = now.strftime("%y%m%d")
    number = next_document_number(document_type="ORDER", scope=scope)
    return f"ORD-{scope}-{number:04d}"
