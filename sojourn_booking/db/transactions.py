"""
Transaction helper for reservation writes.

Every state-changing operation runs inside ``booking_transaction``. Lock waits and
statement runtimes are bounded on PostgreSQL; when either limit is hit the
transaction is rolled back and ``TransactionTimeout`` is raised so callers can
tell "try again" apart from a genuine availability ``Conflict``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from sojourn_booking.config import TRANSACTION_TIMEOUT_SECONDS
from sojourn_booking.errors import TransactionTimeout
from sojourn_booking.metrics import transaction_timeouts

logger = structlog.get_logger(__name__)

# lock_not_available, query_canceled, serialization_failure, deadlock_detected
RETRYABLE_PGCODES = {"55P03", "57014", "40001", "40P01"}


def is_lock_timeout(exc: DBAPIError) -> bool:
    """
    Decide whether a driver error means the transaction ran out of time or lost a race.

    Args:
        exc: Wrapped DBAPI error raised by SQLAlchemy

    Returns:
        bool: True for lock timeouts, cancellations, serialization failures and deadlocks
    """
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in RETRYABLE_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


@contextmanager
def booking_transaction(engine: Engine) -> Iterator[Connection]:
    """
    Open a transaction for a reservation write.

    Commits when the block exits normally, rolls back on any exception.

    Args:
        engine: SQLAlchemy engine

    Yields:
        Connection: Connection bound to the open transaction

    Raises:
        TransactionTimeout: Lock wait or statement timeout exhausted
    """
    try:
        with engine.begin() as conn:
            if conn.dialect.name == "postgresql":
                timeout_ms = TRANSACTION_TIMEOUT_SECONDS * 1000
                conn.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
                conn.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            yield conn
    except DBAPIError as e:
        if not is_lock_timeout(e):
            raise
        transaction_timeouts.inc()
        logger.warning("transaction_timeout", error=str(e.orig))
        raise TransactionTimeout("Reservation is busy, please retry") from e
