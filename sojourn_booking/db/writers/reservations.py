import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from sojourn_booking.config import DEBUG
from sojourn_booking.models.payments import Payment
from sojourn_booking.models.reservations import Guest, Order, Reservation

logger = logging.getLogger(__name__)


def insert_reservation_aggregate(
    conn: Connection,
    order: dict[str, Any],
    reservation: dict[str, Any],
    guests: list[dict[str, Any]],
) -> None:
    """
    Insert an Order, its Reservation and the Guests in one go.

    Must run inside the caller's transaction so the three are created together or not at all.

    Args:
        conn (Connection): Connection inside an open transaction.
        order (dict[str, Any]): Order row. Its id is reused as the reservation id.
        reservation (dict[str, Any]): Reservation row.
        guests (list[dict[str, Any]]): Guest rows (reservation_id filled in here).
    """
    if DEBUG:
        logger.info(f"Reservation to insert:\n{json.dumps(reservation, default=str, indent=2)}")

    conn.execute(insert(Order).values(order))
    conn.execute(insert(Reservation).values({**reservation, "id": order["id"]}))
    if guests:
        conn.execute(
            insert(Guest),
            [{**guest, "reservation_id": order["id"]} for guest in guests],
        )


def update_reservation_status(
    conn: Connection, reservation_id: str, status: str, now: datetime
) -> None:
    """
    Write a new status to the Reservation and its Order together.

    Args:
        conn (Connection): Connection inside an open transaction.
        reservation_id (str): Reservation / order ID.
        status (str): New ReservationStatus value.
        now (datetime): Timestamp for updated_at.
    """
    conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .values(status=status, updated_at=now)
    )
    conn.execute(update(Order).where(Order.id == reservation_id).values(status=status, updated_at=now))


def delete_reservation_aggregates(conn: Connection, reservation_ids: list[str]) -> int:
    """
    Delete reservations with their guests, payment and order.

    Children are removed before parents so foreign keys hold at every step.

    Args:
        conn (Connection): Connection inside an open transaction.
        reservation_ids (list[str]): Reservation IDs to remove.

    Returns:
        int: Number of reservations actually deleted (rows already gone count zero).
    """
    if not reservation_ids:
        return 0

    conn.execute(delete(Guest).where(Guest.reservation_id.in_(reservation_ids)))
    conn.execute(delete(Payment).where(Payment.order_id.in_(reservation_ids)))
    result = conn.execute(delete(Reservation).where(Reservation.id.in_(reservation_ids)))
    conn.execute(delete(Order).where(Order.id.in_(reservation_ids)))

    logger.info(f"Deleted {result.rowcount} reservations")
    return result.rowcount
