"""
Booking state machine.

    DRAFT -> PENDING -> CONFIRMED -> COMPLETED
      \\         \\          \\
       +---------+----------+--> CANCELLED

PENDING -> PENDING is allowed (payment re-initiation). CANCELLED and COMPLETED
are terminal. Every write takes the room row lock first and the reservation row
second, so two guests can never both hold the same room for overlapping dates.
"""

from __future__ import annotations

from datetime import date, datetime
from math import ceil
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from sojourn_booking.actors import Actor
from sojourn_booking.config import SWEEP_BEFORE_CREATE, VENDOR_PENDING_VISIBILITY
from sojourn_booking.db.readers.payments import get_payment_for_order
from sojourn_booking.db.readers.reservations import (
    get_reservation,
    get_reservation_detail,
    is_vendor_visible,
    list_reservation_details,
)
from sojourn_booking.db.readers.rooms import get_room
from sojourn_booking.db.transactions import booking_transaction
from sojourn_booking.db.writers.reservations import (
    insert_reservation_aggregate,
    update_reservation_status,
)
from sojourn_booking.errors import (
    Conflict,
    InvalidInput,
    InvalidTransition,
    NotFound,
    Unauthorized,
)
from sojourn_booking.metrics import (
    availability_conflicts,
    reservation_transitions,
    reservations_created,
)
from sojourn_booking.models.base import new_id
from sojourn_booking.models.enums import BookingType, PaymentStatus, ReservationStatus
from sojourn_booking.services.availability import is_blocked, validate_stay_range
from sojourn_booking.services.pricing import commission_for, count_nights, quote_total
from sojourn_booking.services.projections import (
    VENDOR_AUDIENCE,
    audience_for,
    project_reservation,
)
from sojourn_booking.services.reaper import sweep_abandoned_quietly
from sojourn_booking.utils.datetime import utc_now, utc_today

logger = structlog.get_logger(__name__)

S = ReservationStatus

TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    S.DRAFT: frozenset({S.PENDING, S.CANCELLED}),
    S.PENDING: frozenset({S.PENDING, S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.CANCELLED, S.COMPLETED}),
    S.CANCELLED: frozenset(),
    S.COMPLETED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return S(target) in TRANSITIONS[S(current)]


def assert_transition(current: str, target: str) -> None:
    """
    Raise InvalidTransition unless current -> target is an edge of the state machine.
    """
    if not can_transition(current, target):
        raise InvalidTransition(S(current).value, S(target).value)


def _apply_transition(
    conn: Connection, reservation: dict[str, Any], target: ReservationStatus, now: datetime
) -> None:
    assert_transition(reservation["status"], target)
    update_reservation_status(conn, reservation["id"], target.value, now)
    reservation_transitions.labels(from_status=reservation["status"], to_status=target.value).inc()
    logger.info(
        "reservation_transition",
        reservation_id=reservation["id"],
        from_status=reservation["status"],
        to_status=target.value,
    )


def _validate_guests(guests: list[dict[str, Any]], guest_count: int) -> None:
    if guest_count < 1:
        raise InvalidInput("At least one guest is required")
    if not guests:
        raise InvalidInput("Guest details are required")
    if len(guests) > guest_count:
        raise InvalidInput("More guest details than guests on the reservation")
    primaries = sum(1 for guest in guests if guest.get("is_primary"))
    if primaries != 1:
        raise InvalidInput("Exactly one primary guest is required")


def create_reservation(
    engine: Engine,
    *,
    actor: Actor,
    room_id: str,
    check_in: date,
    check_out: date,
    guest_count: int,
    guests: list[dict[str, Any]],
    special_requests: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Create a DRAFT reservation with its order and guests.

    Abandoned reservations are swept first (best effort). The rest runs in one
    transaction holding the room lock: load room, validate capacity and range,
    check availability, price the stay, insert the aggregate.

    Args:
        engine: SQLAlchemy engine
        actor: Booking customer
        room_id: Room to book
        check_in: First night
        check_out: Departure day
        guest_count: Number of people staying
        guests: Guest detail dicts; exactly one has is_primary=True
        special_requests: Free text for the property
        now: Reference instant (default: current UTC time)

    Returns:
        dict[str, Any]: id, status, nights, total_amount and commission_amount

    Raises:
        Unauthorized: Actor is not a customer
        NotFound: Room does not exist
        Conflict: Room switched off, over capacity, or held for overlapping dates
        InvalidRange: Bad or past date range
        InvalidInput: Guest details invalid
        TransactionTimeout: Room lock not acquired in time
    """
    now = now or utc_now()
    if not actor.is_customer:
        raise Unauthorized("Only customers can create reservations")

    if SWEEP_BEFORE_CREATE:
        sweep_abandoned_quietly(engine, now=now)

    with booking_transaction(engine) as conn:
        room = get_room(conn, room_id, lock=True)
        if room is None:
            raise NotFound(f"Room {room_id} not found")
        if not room["is_available"]:
            raise Conflict("Room is not available for booking")
        if guest_count > room["capacity"]:
            raise Conflict(f"Room capacity is {room['capacity']} guests")

        validate_stay_range(check_in, check_out, utc_today(now))

        if is_blocked(conn, room_id, check_in, check_out, now=now):
            availability_conflicts.labels(stage="create").inc()
            raise Conflict("Room is not available for selected dates")

        total = quote_total(room, check_in, check_out)
        commission = commission_for(total, room["commission_rate"])

        _validate_guests(guests, guest_count)

        reservation_id = new_id()
        insert_reservation_aggregate(
            conn,
            order={
                "id": reservation_id,
                "guest_user_id": actor.user_id,
                "vendor_id": room["vendor_id"],
                "booking_type": BookingType.HOTEL.value,
                "total_amount": total,
                "commission_amount": commission,
                "status": S.DRAFT.value,
                "created_at": now,
                "updated_at": now,
            },
            reservation={
                "room_id": room_id,
                "property_id": room["property_id"],
                "check_in": check_in,
                "check_out": check_out,
                "guest_count": guest_count,
                "total_amount": total,
                "status": S.DRAFT.value,
                "special_requests": special_requests,
                "created_at": now,
                "updated_at": now,
            },
            guests=[
                {
                    "id": new_id(),
                    "first_name": guest["first_name"],
                    "last_name": guest["last_name"],
                    "age": guest.get("age"),
                    "id_proof_type": guest.get("id_proof_type"),
                    "id_proof_number": guest.get("id_proof_number"),
                    "is_primary": bool(guest.get("is_primary")),
                    "special_requests": guest.get("special_requests"),
                    "created_at": now,
                }
                for guest in guests
            ],
        )

    reservations_created.inc()
    logger.info(
        "reservation_created",
        reservation_id=reservation_id,
        room_id=room_id,
        check_in=check_in.isoformat(),
        check_out=check_out.isoformat(),
        total_amount=str(total),
    )
    return {
        "id": reservation_id,
        "status": S.DRAFT.value,
        "nights": count_nights(check_in, check_out),
        "total_amount": total,
        "commission_amount": commission,
    }


def initiate_payment(
    engine: Engine, reservation_id: str, actor: Actor, now: Optional[datetime] = None
) -> dict[str, Any]:
    """
    Move a reservation to PENDING and open a gateway order for it.

    Availability is re-checked under the room lock, ignoring the reservation itself,
    as the final guard against double booking. A failed gateway call rolls the whole
    transaction back and leaves the reservation untouched.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation to pay for
        actor: Must be the guest who booked
        now: Reference instant

    Returns:
        dict[str, Any]: Checkout parameters for the gateway's client-side widget

    Raises:
        NotFound, Unauthorized, InvalidTransition, Conflict, PaymentGatewayError, TransactionTimeout
    """
    from sojourn_booking.services.payments import create_gateway_order

    now = now or utc_now()
    with booking_transaction(engine) as conn:
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        if not actor.is_customer or reservation["guest_user_id"] != actor.user_id:
            raise Unauthorized("Only the guest who booked can pay for this reservation")

        # Room first, reservation second
        room = get_room(conn, reservation["room_id"], lock=True)
        reservation = get_reservation(conn, reservation_id, lock=True)
        if room is None or reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")

        assert_transition(reservation["status"], S.PENDING)

        payment = get_payment_for_order(conn, reservation_id)
        if payment is not None and payment["status"] == PaymentStatus.SUCCESS.value:
            raise Conflict("Reservation is already paid")

        if is_blocked(
            conn,
            reservation["room_id"],
            reservation["check_in"],
            reservation["check_out"],
            exclude_reservation_id=reservation_id,
            now=now,
        ):
            availability_conflicts.labels(stage="initiate").inc()
            raise Conflict("Room is not available for selected dates")

        _apply_transition(conn, reservation, S.PENDING, now)
        checkout = create_gateway_order(conn, reservation, room, now=now)

    return checkout


def confirm_from_payment(
    conn: Connection, reservation_id: str, now: Optional[datetime] = None
) -> bool:
    """
    Move a PENDING reservation to CONFIRMED after its payment succeeded.

    Only the payment orchestrator calls this, on its own transaction.

    Returns:
        bool: True if the status changed, False if the reservation was already CONFIRMED

    Raises:
        NotFound: Reservation does not exist
        InvalidTransition: Reservation is in any other state
    """
    reservation = get_reservation(conn, reservation_id, lock=True)
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found")
    if reservation["status"] == S.CONFIRMED.value:
        return False
    _apply_transition(conn, reservation, S.CONFIRMED, now or utc_now())
    return True


def mark_cancelled(conn: Connection, reservation: dict[str, Any], now: datetime) -> None:
    """Cancel a reservation on the caller's transaction (payment orchestrator use)."""
    _apply_transition(conn, reservation, S.CANCELLED, now)


def _can_manage(reservation: dict[str, Any], actor: Actor) -> bool:
    # guest owner, owning vendor, or admin
    return audience_for(reservation, actor) is not None


def cancel_reservation(
    engine: Engine,
    reservation_id: str,
    actor: Actor,
    schedule_refund: Optional[Callable[[str], Any]] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Cancel a DRAFT, PENDING or CONFIRMED reservation.

    When a SUCCESS payment exists a full refund is requested after the
    cancellation commits. The refund never blocks or fails the cancellation.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation to cancel
        actor: Guest who booked, owning vendor, or admin
        schedule_refund: Called with the reservation id to queue the refund
            (e.g. a FastAPI background task). Defaults to refunding inline.
        now: Reference instant

    Returns:
        dict[str, Any]: id, status and refund_initiated
    """
    now = now or utc_now()
    with booking_transaction(engine) as conn:
        reservation = get_reservation(conn, reservation_id, lock=True)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        if not _can_manage(reservation, actor):
            raise Unauthorized("Not allowed to cancel this reservation")

        _apply_transition(conn, reservation, S.CANCELLED, now)

        payment = get_payment_for_order(conn, reservation_id)
        refund_due = payment is not None and payment["status"] == PaymentStatus.SUCCESS.value

    if refund_due:
        if schedule_refund is not None:
            schedule_refund(reservation_id)
        else:
            from sojourn_booking.services.payments import refund_after_cancellation

            refund_after_cancellation(engine, reservation_id)

    return {"id": reservation_id, "status": S.CANCELLED.value, "refund_initiated": refund_due}


def complete_reservation(
    engine: Engine, reservation_id: str, actor: Actor, now: Optional[datetime] = None
) -> dict[str, Any]:
    """
    Mark a CONFIRMED stay COMPLETED once the guest has checked out.

    Only the owning vendor or an admin may do this.
    """
    now = now or utc_now()
    with booking_transaction(engine) as conn:
        reservation = get_reservation(conn, reservation_id, lock=True)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        if not (actor.is_admin or (actor.is_vendor and actor.user_id == reservation["vendor_id"])):
            raise Unauthorized("Only the property's vendor can complete a reservation")

        assert_transition(reservation["status"], S.COMPLETED)
        if reservation["check_out"] > utc_today(now):
            raise InvalidInput("Reservation cannot be completed before check-out")

        _apply_transition(conn, reservation, S.COMPLETED, now)

    return {"id": reservation_id, "status": S.COMPLETED.value}


def get_reservation_view(
    engine: Engine, reservation_id: str, actor: Actor, now: Optional[datetime] = None
) -> dict[str, Any]:
    """
    Load one reservation shaped for the actor viewing it.

    Vendors get the same window as their list: drafts and PENDING reservations
    older than the vendor visibility window read as missing.
    """
    now = now or utc_now()
    with engine.connect() as conn:
        detail = get_reservation_detail(conn, reservation_id)
        if detail is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        audience = audience_for(detail, actor)
        if audience is None:
            raise Unauthorized("Not allowed to view this reservation")
        if audience == VENDOR_AUDIENCE and not is_vendor_visible(
            conn, reservation_id, now - VENDOR_PENDING_VISIBILITY
        ):
            raise NotFound(f"Reservation {reservation_id} not found")
    return project_reservation(detail, actor)


def list_reservations(
    engine: Engine,
    actor: Actor,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Page through the reservations an actor may see, newest first.

    Customers see their own reservations except drafts. Vendors see their
    properties' CONFIRMED, CANCELLED and COMPLETED reservations plus PENDING ones
    from the last few minutes. Admins see everything. An explicit status filter
    replaces the vendor PENDING window; drafts stay hidden from customers and vendors.

    Returns:
        dict[str, Any]: items, page, limit, total and total_pages
    """
    if page < 1 or limit < 1:
        raise InvalidInput("page and limit must be positive")
    if status is not None and status not in S.__members__:
        raise InvalidInput(f"Unknown status {status}")

    now = now or utc_now()
    filters: dict[str, Any] = {"status": status}
    if actor.is_customer:
        filters.update(guest_user_id=actor.user_id, hide_drafts=True)
    elif actor.is_vendor:
        filters.update(
            vendor_id=actor.user_id,
            hide_drafts=True,
            pending_visible_since=now - VENDOR_PENDING_VISIBILITY,
        )

    with engine.connect() as conn:
        details, total = list_reservation_details(
            conn, limit=limit, offset=(page - 1) * limit, **filters
        )

    return {
        "items": [project_reservation(detail, actor) for detail in details],
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": ceil(total / limit) if total else 0,
    }
