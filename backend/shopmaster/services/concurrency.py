# Overview: Row locking and retry for stock and order units of work.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

# Lock waits, deadlocks and version_id mismatches on products/variants/orders
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """SELECT ... FOR UPDATE on stock holder and order rows (a no-op on SQLite)."""
    return query.with_for_update()


def run_with_retry(unit_of_work, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run unit_of_work(), which is expected to commit on its own.

    A retryable error rolls back and reruns it, sleeping backoff_base * 2**n
    between tries. Anything else rolls back and propagates untouched.
    """
    attempt = 1
    while True:
        try:
            return unit_of_work()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                logger.error("Giving up after %s attempts: %s", attempts, exc)
                raise
            logger.warning("Concurrent update conflict, retrying (%s/%s): %s", attempt, attempts, exc)
            time.sleep(backoff_base * (2 ** (attempt - 1)))
            attempt += 1
        except Exception:
            db.session.rollback()
            raise
