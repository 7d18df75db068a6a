"""
Read queries for reservations and their aggregates.

Reservation, Order, Guest and Payment rows are assembled into plain dicts here;
nothing outside the db package sees ORM objects or rows.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, exists, func, not_, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from sojourn_booking.models.enums import PaymentStatus, ReservationStatus
from sojourn_booking.models.payments import Payment
from sojourn_booking.models.properties import Property, Room
from sojourn_booking.models.reservations import Guest, Order, Reservation


def payment_succeeded() -> ColumnElement[bool]:
    """Correlated EXISTS: the reservation's order has a SUCCESS payment."""
    return exists().where(
        Payment.order_id == Reservation.id,
        Payment.status == PaymentStatus.SUCCESS.value,
    )


def vendor_visible(pending_visible_since: datetime) -> ColumnElement[bool]:
    """Settled or terminal reservations, plus PENDING ones created at or after the cutoff."""
    return or_(
        Reservation.status.in_(
            [
                ReservationStatus.CONFIRMED.value,
                ReservationStatus.CANCELLED.value,
                ReservationStatus.COMPLETED.value,
            ]
        ),
        and_(
            Reservation.status == ReservationStatus.PENDING.value,
            Reservation.created_at >= pending_visible_since,
        ),
    )


def is_vendor_visible(
    conn: Connection, reservation_id: str, pending_visible_since: datetime
) -> bool:
    stmt = select(Reservation.id).where(
        Reservation.id == reservation_id, vendor_visible(pending_visible_since)
    )
    return conn.execute(stmt).fetchone() is not None


def get_reservation(
    conn: Connection, reservation_id: str, lock: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a reservation with its order's guest, vendor and commission.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        reservation_id (str): Reservation ID (shared with the order).
        lock (bool): Lock the reservation row for the rest of the transaction.

    Returns:
        Optional[dict[str, Any]]: Flat reservation dict or None if not found.
    """
    stmt = (
        select(
            Reservation.__table__,
            Order.guest_user_id,
            Order.vendor_id,
            Order.commission_amount,
        )
        .join(Order, Order.id == Reservation.id)
        .where(Reservation.id == reservation_id)
    )
    if lock:
        stmt = stmt.with_for_update(of=Reservation.__table__)
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def _load_details(conn: Connection, reservation_ids: list[str]) -> list[dict[str, Any]]:
    if not reservation_ids:
        return []

    stmt = (
        select(
            Reservation.__table__,
            Order.guest_user_id,
            Order.vendor_id,
            Order.commission_amount,
            Room.room_type,
            Room.room_number,
            Room.capacity,
            Room.amenities,
            Property.name.label("property_name"),
            Property.address.label("property_address"),
        )
        .join(Order, Order.id == Reservation.id)
        .join(Room, Room.id == Reservation.room_id)
        .join(Property, Property.id == Reservation.property_id)
        .where(Reservation.id.in_(reservation_ids))
    )
    rows = {row["id"]: dict(row) for row in conn.execute(stmt).mappings()}

    guests: dict[str, list[dict[str, Any]]] = {rid: [] for rid in rows}
    guest_stmt = (
        select(Guest.__table__)
        .where(Guest.reservation_id.in_(reservation_ids))
        .order_by(Guest.is_primary.desc(), Guest.created_at, Guest.id)
    )
    for guest in conn.execute(guest_stmt).mappings():
        guests[guest["reservation_id"]].append(dict(guest))

    payments = {
        payment["order_id"]: dict(payment)
        for payment in conn.execute(
            select(Payment.__table__).where(Payment.order_id.in_(reservation_ids))
        ).mappings()
    }

    details = []
    # Preserve caller order (list pages are already sorted)
    for rid in reservation_ids:
        row = rows.get(rid)
        if row is None:
            continue
        row["room"] = {
            "id": row["room_id"],
            "room_type": row.pop("room_type"),
            "room_number": row.pop("room_number"),
            "capacity": row.pop("capacity"),
            "amenities": row.pop("amenities") or [],
        }
        row["property"] = {
            "id": row["property_id"],
            "name": row.pop("property_name"),
            "address": row.pop("property_address"),
        }
        row["guests"] = guests[rid]
        row["payment"] = payments.get(rid)
        details.append(row)
    return details


def get_reservation_detail(conn: Connection, reservation_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch a reservation with nested room, property, guests and payment.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        reservation_id (str): Reservation ID.

    Returns:
        Optional[dict[str, Any]]: Nested reservation dict or None if not found.
    """
    details = _load_details(conn, [reservation_id])
    return details[0] if details else None


def list_reservation_details(
    conn: Connection,
    guest_user_id: Optional[str] = None,
    vendor_id: Optional[str] = None,
    status: Optional[str] = None,
    hide_drafts: bool = False,
    pending_visible_since: Optional[datetime] = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """
    Page through reservations, newest first.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        guest_user_id (Optional[str]): Only this guest's reservations.
        vendor_id (Optional[str]): Only reservations on this vendor's properties.
        status (Optional[str]): Only this status. Replaces the vendor PENDING window.
        hide_drafts (bool): Exclude DRAFT reservations, even when status asks for them.
        pending_visible_since (Optional[datetime]): Vendor view. Show CONFIRMED, CANCELLED
            and COMPLETED reservations, plus PENDING ones created at or after this instant.
        limit (int): Page size.
        offset (int): Rows to skip.

    Returns:
        tuple[list[dict[str, Any]], int]: Page of nested reservation dicts and the total count.
    """
    conditions: list[ColumnElement[bool]] = []
    if guest_user_id is not None:
        conditions.append(Order.guest_user_id == guest_user_id)
    if vendor_id is not None:
        conditions.append(Order.vendor_id == vendor_id)

    if hide_drafts:
        conditions.append(Reservation.status != ReservationStatus.DRAFT.value)

    if status is not None:
        conditions.append(Reservation.status == status)
    elif pending_visible_since is not None:
        conditions.append(vendor_visible(pending_visible_since))

    base = select(Reservation.id).join(Order, Order.id == Reservation.id).where(*conditions)

    total = conn.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    page_ids = list(
        conn.execute(
            base.order_by(Reservation.created_at.desc(), Reservation.id).limit(limit).offset(offset)
        ).scalars()
    )
    return _load_details(conn, page_ids), total


def find_expired_drafts(conn: Connection, created_before: datetime) -> list[str]:
    """
    Lock and return DRAFT reservations created before the cutoff.

    Rows already locked by another transaction are skipped (PostgreSQL), so
    concurrent sweeps never wait on each other or delete the same row twice.

    Args:
        conn (Connection): Connection inside an open transaction.
        created_before (datetime): Retention cutoff.

    Returns:
        list[str]: Reservation IDs.
    """
    stmt = (
        select(Reservation.id)
        .where(
            Reservation.status == ReservationStatus.DRAFT.value,
            Reservation.created_at < created_before,
        )
        .with_for_update(skip_locked=True)
    )
    return list(conn.execute(stmt).scalars())


def find_abandoned_pending(conn: Connection, created_before: datetime) -> list[str]:
    """
    Lock and return PENDING reservations created before the cutoff without a SUCCESS payment.

    Args:
        conn (Connection): Connection inside an open transaction.
        created_before (datetime): Grace window cutoff.

    Returns:
        list[str]: Reservation IDs.
    """
    stmt = (
        select(Reservation.id)
        .where(
            Reservation.status == ReservationStatus.PENDING.value,
            Reservation.created_at < created_before,
            not_(payment_succeeded()),
        )
        .with_for_update(skip_locked=True)
    )
    return list(conn.execute(stmt).scalars())
