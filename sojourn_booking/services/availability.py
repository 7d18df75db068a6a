"""
Availability calculator.

A reservation holds its room over [check_in, check_out) when it overlaps the
requested range and is either CONFIRMED, PENDING with a SUCCESS payment, or
PENDING and still inside the grace window. DRAFT, CANCELLED and COMPLETED
reservations, and stale unpaid PENDING ones, never hold a room.

The rule lives in one SQL predicate (``blocking_condition``) shared by the
single-room check and the property-wide search.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.elements import ColumnElement

from sojourn_booking.config import PENDING_GRACE_PERIOD
from sojourn_booking.db.readers.reservations import payment_succeeded
from sojourn_booking.db.readers.rooms import get_room, list_property_rooms
from sojourn_booking.errors import InvalidRange, NotFound
from sojourn_booking.models.enums import ReservationStatus
from sojourn_booking.models.reservations import Reservation
from sojourn_booking.utils.datetime import utc_now, utc_today

logger = structlog.get_logger(__name__)


def validate_stay_range(check_in: date, check_out: date, today: date) -> None:
    """
    Raise InvalidRange unless check_in < check_out and check_in is not in the past.
    """
    if check_in >= check_out:
        raise InvalidRange("Check-out date must be after check-in date")
    if check_in < today:
        raise InvalidRange("Check-in date cannot be in the past")


def overlap_condition(check_in: date, check_out: date) -> ColumnElement[bool]:
    return and_(Reservation.check_in < check_out, Reservation.check_out > check_in)


def blocking_condition(now: datetime) -> ColumnElement[bool]:
    """
    SQL predicate: the reservation currently holds its room.

    Args:
        now: Reference instant for the grace window

    Returns:
        ColumnElement[bool]: Predicate over the reservations table
    """
    grace_cutoff = now - PENDING_GRACE_PERIOD
    return or_(
        Reservation.status == ReservationStatus.CONFIRMED.value,
        and_(
            Reservation.status == ReservationStatus.PENDING.value,
            or_(payment_succeeded(), Reservation.created_at >= grace_cutoff),
        ),
    )


def settled_condition() -> ColumnElement[bool]:
    """SQL predicate: the reservation holds its room because it is paid for."""
    return or_(
        Reservation.status == ReservationStatus.CONFIRMED.value,
        and_(Reservation.status == ReservationStatus.PENDING.value, payment_succeeded()),
    )


def _first_overlapping(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    condition: ColumnElement[bool],
    exclude_reservation_id: Optional[str],
) -> Optional[str]:
    stmt = select(Reservation.id).where(
        Reservation.room_id == room_id,
        overlap_condition(check_in, check_out),
        condition,
    )
    if exclude_reservation_id is not None:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)
    return conn.execute(stmt.limit(1)).scalar_one_or_none()


def is_blocked(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Check whether any reservation holds the room for an overlapping range.

    Must run on the caller's connection, after the room lock, for the answer to
    stay true until commit.

    Args:
        conn: Active database connection
        room_id: Room to check
        check_in: Requested first night
        check_out: Requested departure day
        exclude_reservation_id: Ignore this reservation (re-checking one's own hold)
        now: Reference instant for the grace window (default: current UTC time)

    Returns:
        bool: True if at least one blocking reservation exists
    """
    blocker = _first_overlapping(
        conn,
        room_id,
        check_in,
        check_out,
        blocking_condition(now or utc_now()),
        exclude_reservation_id,
    )
    if blocker is not None:
        logger.debug("room_blocked", room_id=room_id, blocking_reservation_id=blocker)
    return blocker is not None


def has_settled_overlap(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[str] = None,
) -> bool:
    """Check whether a paid or confirmed reservation already holds the range."""
    return (
        _first_overlapping(
            conn, room_id, check_in, check_out, settled_condition(), exclude_reservation_id
        )
        is not None
    )


def find_available_rooms(
    conn: Connection,
    property_id: str,
    check_in: date,
    check_out: date,
    guests: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """
    List a property's rooms that can take a booking for the range.

    A room qualifies when the vendor has it switched on, it sleeps at least
    ``guests`` people (when given) and no reservation blocks it.

    Args:
        conn: Active database connection
        property_id: Property to search
        check_in: Requested first night
        check_out: Requested departure day
        guests: Minimum capacity
        now: Reference instant for the grace window

    Returns:
        list[dict[str, Any]]: Room rows
    """
    blocked = (
        select(Reservation.room_id)
        .where(
            Reservation.property_id == property_id,
            overlap_condition(check_in, check_out),
            blocking_condition(now or utc_now()),
        )
        .distinct()
    )
    blocked_ids = set(conn.execute(blocked).scalars())

    rooms = list_property_rooms(conn, property_id, min_capacity=guests)
    return [room for room in rooms if room["id"] not in blocked_ids]


def check_room_availability(
    engine: Engine,
    room_id: str,
    check_in: date,
    check_out: date,
    now: Optional[datetime] = None,
) -> bool:
    """
    Public availability check for a single room.

    Raises:
        InvalidRange: Bad or past date range
        NotFound: Room does not exist

    Returns:
        bool: True if the room is open for booking and free for the range
    """
    now = now or utc_now()
    validate_stay_range(check_in, check_out, utc_today(now))
    with engine.connect() as conn:
        room = get_room(conn, room_id)
        if room is None:
            raise NotFound(f"Room {room_id} not found")
        if not room["is_available"]:
            return False
        return not is_blocked(conn, room_id, check_in, check_out, now=now)


def search_available_rooms(
    engine: Engine,
    property_id: str,
    check_in: date,
    check_out: date,
    guests: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Public availability search across one property's rooms."""
    now = now or utc_now()
    validate_stay_range(check_in, check_out, utc_today(now))
    with engine.connect() as conn:
        return find_available_rooms(conn, property_id, check_in, check_out, guests, now)
