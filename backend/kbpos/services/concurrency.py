# Overview: Service-layer operations for concurrency; retry and locking helpers shared by writers.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the database stays unavailable after retries."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 5, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). When attempts are exhausted the failure
    is re-raised as StorageError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Database operation failed after %d attempts: %s", attempts, exc)
                raise StorageError("Database unavailable") from exc
            logger.debug("Retrying database operation (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))

