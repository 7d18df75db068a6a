"""
SQLAlchemy engine singleton with production-ready connection pooling.

PostgreSQL gets a tuned connection pool. SQLite (local runs and the test-suite)
gets foreign keys switched on and every transaction opened with BEGIN IMMEDIATE,
so writers serialize on the database lock the way PostgreSQL writers serialize
on the per-room row lock.
"""

from typing import Any, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url

from sojourn_booking.config import DATABASE_URL, TRANSACTION_TIMEOUT_SECONDS

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given database URL.

    Args:
        url: SQLAlchemy database URL
        echo: Log every SQL statement (development only)

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    if make_url(url).get_backend_name() == "sqlite":
        sqlite_engine = create_engine(
            url,
            future=True,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": TRANSACTION_TIMEOUT_SECONDS},
        )
        _enable_sqlite_locking(sqlite_engine)
        return sqlite_engine

    return create_engine(
        url,
        future=True,
        # Connection pool settings
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Verify connections before using (detect stale connections)
        pool_recycle=3600,  # Recycle connections after 1 hour (prevents stale connections)
        echo=echo,
    )


def _enable_sqlite_locking(sqlite_engine: Engine) -> None:
    # pysqlite's own transaction handling is disabled so SQLAlchemy controls BEGIN
    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(target: Optional[Engine] = None) -> bool:
    """
    Check if database engine is healthy and connections are working.

    This function is used by the /ready endpoint to verify database
    connectivity before allowing traffic to the service.

    Args:
        target: Engine to check (defaults to the module engine)

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
