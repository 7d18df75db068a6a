"""
Generic upsert helper with IS DISTINCT FROM optimization.

Works on PostgreSQL and SQLite: both dialects support INSERT ... ON CONFLICT DO
UPDATE, so the dialect-specific insert construct is picked from the connection.
"""

from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_column: str,
    update_columns: list[str],
    distinct_columns: Optional[list[str]] = None,
) -> None:
    """
    Perform upsert, skipping the UPDATE when nothing observable changed.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., Payment)
        rows: List of row dicts to upsert
        conflict_column: Unique column for ON CONFLICT (e.g., "order_id")
        update_columns: Columns to overwrite on conflict
        distinct_columns: Only update when one of these differs (default: update_columns)

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=Payment,
        ...         rows=[{"order_id": "...", "gateway_order_id": "order_X", ...}],
        ...         conflict_column="order_id",
        ...         update_columns=["gateway_order_id", "status", "updated_at"],
        ...         distinct_columns=["gateway_order_id", "status"],
        ...     )

    Raises:
        NotImplementedError: Dialect has no ON CONFLICT support wired here
    """
    if not rows:
        return

    insert = _DIALECT_INSERTS.get(conn.dialect.name)
    if insert is None:
        raise NotImplementedError(f"Upsert not supported for dialect {conn.dialect.name}")

    stmt = insert(table).values(rows)

    set_dict = {col: getattr(stmt.excluded, col) for col in update_columns}

    distinct_check = or_(
        *[
            getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
            for col in (distinct_columns or update_columns)
        ]
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=[conflict_column],
        set_=set_dict,
        where=distinct_check,
    )

    conn.execute(stmt)
