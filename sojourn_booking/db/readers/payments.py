from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from sojourn_booking.models.payments import Payment


def _fetch_one(conn: Connection, condition: Any, lock: bool) -> Optional[dict[str, Any]]:
    stmt = select(Payment.__table__).where(condition)
    if lock:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_payment_for_order(
    conn: Connection, order_id: str, lock: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch the payment attached to an order (at most one exists).

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        order_id (str): Order ID, which is also the reservation ID.
        lock (bool): Lock the payment row for the rest of the transaction.

    Returns:
        Optional[dict[str, Any]]: Payment row or None.
    """
    return _fetch_one(conn, Payment.order_id == order_id, lock)


def get_payment_by_gateway_order(
    conn: Connection, gateway_order_id: str, lock: bool = False
) -> Optional[dict[str, Any]]:
    """Fetch the payment whose gateway order reference matches."""
    return _fetch_one(conn, Payment.gateway_order_id == gateway_order_id, lock)


def get_payment_by_gateway_payment(
    conn: Connection, gateway_payment_id: str, lock: bool = False
) -> Optional[dict[str, Any]]:
    """Fetch the payment whose captured gateway payment reference matches."""
    return _fetch_one(conn, Payment.gateway_payment_id == gateway_payment_id, lock)
