"""
Payment orchestrator.

Opens gateway orders for PENDING reservations, settles payments from the checkout
callback or from gateway webhooks, and issues refunds. Payment rows are written
only from here. Settlement is idempotent: the same capture reported by both the
callback and a webhook confirms the reservation once.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from sojourn_booking.actors import Actor
from sojourn_booking.config import CURRENCY, GATEWAY_KEY_ID, MERCHANT_NAME
from sojourn_booking.db.readers.payments import (
    get_payment_by_gateway_order,
    get_payment_by_gateway_payment,
    get_payment_for_order,
)
from sojourn_booking.db.readers.reservations import get_reservation
from sojourn_booking.db.readers.rooms import get_room
from sojourn_booking.db.transactions import booking_transaction
from sojourn_booking.db.writers.payments import (
    mark_payment_failed,
    mark_payment_refunded,
    mark_payment_succeeded,
    upsert_pending_payment,
)
from sojourn_booking.errors import (
    Conflict,
    InvalidInput,
    NotFound,
    PaymentVerificationFailed,
    Unauthorized,
)
from sojourn_booking.gateway.client import (
    create_order,
    refund_payment,
    verify_payment_signature,
    verify_webhook_signature,
)
from sojourn_booking.metrics import (
    availability_conflicts,
    payment_verifications,
    refunds,
    webhook_events,
)
from sojourn_booking.models.base import new_id
from sojourn_booking.models.enums import PaymentMethod, PaymentStatus, ReservationStatus
from sojourn_booking.services.availability import has_settled_overlap
from sojourn_booking.services.booking import confirm_from_payment, mark_cancelled
from sojourn_booking.services.pricing import from_minor_units, to_minor_units
from sojourn_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# Settlement outcomes
CONFIRMED = "confirmed"
DUPLICATE = "duplicate"
REFUND_REQUIRED = "refund_required"
FAILED = "failed"
REFUNDED = "refunded"
IGNORED = "ignored"


def build_receipt(reservation_id: str, now: datetime) -> str:
    """Merchant receipt reference: ``bk_<id tail>_<epoch ms tail>``, well under 40 chars."""
    millis = str(int(now.timestamp() * 1000))
    return f"bk_{reservation_id[-8:]}_{millis[-8:]}"


def create_gateway_order(
    conn: Connection,
    reservation: dict[str, Any],
    room: dict[str, Any],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Open a gateway order for a PENDING reservation and upsert its payment row.

    Runs on the caller's transaction (initiate_payment), so a gateway failure rolls
    back the status change too.

    Args:
        conn: Connection inside the initiation transaction
        reservation: Locked reservation dict
        room: Locked room dict (with property name and vendor)
        now: Reference instant

    Returns:
        dict[str, Any]: Checkout parameters for the client-side widget
    """
    now = now or utc_now()
    amount = to_minor_units(reservation["total_amount"])
    order = create_order(
        amount=amount,
        currency=CURRENCY,
        receipt=build_receipt(reservation["id"], now),
        notes={
            "reservation_id": reservation["id"],
            "guest_user_id": reservation["guest_user_id"],
            "vendor_id": reservation["vendor_id"],
            "property_name": room["property_name"],
            "room_type": room["room_type"],
        },
    )

    total = Decimal(reservation["total_amount"])
    commission = Decimal(reservation["commission_amount"])
    upsert_pending_payment(
        conn,
        {
            "id": new_id(),
            "order_id": reservation["id"],
            "vendor_id": reservation["vendor_id"],
            "payment_method": PaymentMethod.RAZORPAY.value,
            "gateway_order_id": order["id"],
            "total_amount": total,
            "commission_amount": commission,
            "vendor_amount": total - commission,
            "created_at": now,
            "updated_at": now,
        },
    )

    logger.info(
        "payment_initiated",
        reservation_id=reservation["id"],
        gateway_order_id=order["id"],
        amount=amount,
    )
    return {
        "order_id": order["id"],
        "amount": amount,
        "currency": CURRENCY,
        "key": GATEWAY_KEY_ID,
        "name": MERCHANT_NAME,
        "description": f"{room['room_type']} at {room['property_name']}",
        "reservation": {
            "id": reservation["id"],
            "check_in": reservation["check_in"],
            "check_out": reservation["check_out"],
            "total_amount": reservation["total_amount"],
        },
    }


def _lock_for_settlement(
    conn: Connection, reservation_id: str
) -> tuple[dict[str, Any], Optional[dict[str, Any]]]:
    # Same lock order as initiate_payment: room, reservation, payment
    reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found")
    get_room(conn, reservation["room_id"], lock=True)
    reservation = get_reservation(conn, reservation_id, lock=True)
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found")
    payment = get_payment_for_order(conn, reservation_id, lock=True)
    return reservation, payment


def _settle_success(
    conn: Connection,
    reservation: dict[str, Any],
    payment: dict[str, Any],
    gateway_payment_id: str,
    signature: Optional[str],
    now: datetime,
) -> str:
    """
    Record a captured payment and confirm its reservation.

    A capture that lands on a reservation that can no longer be honoured (already
    CANCELLED, or its dates taken by a settled reservation while it sat unpaid) is
    still recorded, the reservation ends CANCELLED, and a refund is required.

    Returns:
        str: CONFIRMED, DUPLICATE or REFUND_REQUIRED
    """
    status = reservation["status"]

    if payment["status"] == PaymentStatus.REFUNDED.value:
        return DUPLICATE
    if payment["status"] == PaymentStatus.SUCCESS.value:
        if status == ReservationStatus.PENDING.value:
            confirm_from_payment(conn, reservation["id"], now)
            return CONFIRMED
        return DUPLICATE

    mark_payment_succeeded(conn, payment["id"], gateway_payment_id, signature, now)

    if status == ReservationStatus.CANCELLED.value:
        logger.warning("payment_captured_after_cancellation", reservation_id=reservation["id"])
        return REFUND_REQUIRED

    if status == ReservationStatus.PENDING.value and has_settled_overlap(
        conn,
        reservation["room_id"],
        reservation["check_in"],
        reservation["check_out"],
        exclude_reservation_id=reservation["id"],
    ):
        availability_conflicts.labels(stage="settle").inc()
        logger.warning("payment_captured_for_taken_dates", reservation_id=reservation["id"])
        mark_cancelled(conn, reservation, now)
        return REFUND_REQUIRED

    confirm_from_payment(conn, reservation["id"], now)
    return CONFIRMED


def verify_callback(
    engine: Engine,
    reservation_id: str,
    gateway_payment_id: str,
    gateway_order_id: str,
    signature: str,
    actor: Optional[Actor] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Verify the checkout callback and settle the payment.

    The signature must be the HMAC of ``gateway_order_id|gateway_payment_id`` and the
    order reference must be the one stored for this reservation. On mismatch the
    payment is marked FAILED (never downgrading a settled one), the reservation is
    left as it is, and PaymentVerificationFailed is raised after the commit.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation being paid for
        gateway_payment_id: Payment reference returned by checkout
        gateway_order_id: Order reference returned by checkout
        signature: Signature returned by checkout
        actor: Caller; when given, must be the guest who booked or an admin.
            Guests can only refund a reservation they have cancelled
        now: Reference instant

    Returns:
        dict[str, Any]: id, status, payment_status and outcome
    """
    now = now or utc_now()
    with booking_transaction(engine) as conn:
        reservation, payment = _lock_for_settlement(conn, reservation_id)
        if actor is not None and not (
            actor.is_admin or reservation["guest_user_id"] == actor.user_id
        ):
            raise Unauthorized("Only the guest who booked can verify this payment")
        if payment is None or not payment["gateway_order_id"]:
            raise Conflict("Payment has not been initiated for this reservation")

        authentic = payment["gateway_order_id"] == gateway_order_id and verify_payment_signature(
            gateway_order_id, gateway_payment_id, signature
        )
        if authentic:
            outcome = _settle_success(
                conn, reservation, payment, gateway_payment_id, signature, now
            )
        else:
            mark_payment_failed(conn, payment["id"], now)
            outcome = FAILED

    if outcome == FAILED:
        payment_verifications.labels(source="callback", result="failed").inc()
        logger.warning(
            "payment_verification_failed",
            reservation_id=reservation_id,
            gateway_order_id=gateway_order_id,
        )
        raise PaymentVerificationFailed("Payment signature verification failed")

    payment_verifications.labels(
        source="callback", result="duplicate" if outcome == DUPLICATE else "success"
    ).inc()
    logger.info("payment_verified", reservation_id=reservation_id, outcome=outcome)

    if outcome == REFUND_REQUIRED:
        refund_after_cancellation(engine, reservation_id)
        status = ReservationStatus.CANCELLED.value
    else:
        status = ReservationStatus.CONFIRMED.value
        if outcome == DUPLICATE:
            with engine.connect() as conn:
                current = get_reservation(conn, reservation_id)
            status = current["status"] if current else status

    return {
        "id": reservation_id,
        "status": status,
        "payment_status": PaymentStatus.SUCCESS.value,
        "outcome": outcome,
    }


def _on_payment_captured(engine: Engine, payload: dict[str, Any], now: datetime) -> str:
    entity = payload.get("payment", {}).get("entity", {})
    gateway_order_id = entity.get("order_id")
    gateway_payment_id = entity.get("id")
    if not gateway_order_id or not gateway_payment_id:
        return IGNORED

    with booking_transaction(engine) as conn:
        known = get_payment_by_gateway_order(conn, gateway_order_id)
        if known is None:
            logger.warning("webhook_unknown_order", gateway_order_id=gateway_order_id)
            return IGNORED
        reservation, payment = _lock_for_settlement(conn, known["order_id"])
        if payment is None or payment["gateway_order_id"] != gateway_order_id:
            # Superseded by a newer gateway order
            return IGNORED
        outcome = _settle_success(conn, reservation, payment, gateway_payment_id, None, now)

    payment_verifications.labels(
        source="webhook", result="duplicate" if outcome == DUPLICATE else "success"
    ).inc()
    if outcome == REFUND_REQUIRED:
        refund_after_cancellation(engine, known["order_id"])
    return outcome


def _on_payment_failed(engine: Engine, payload: dict[str, Any], now: datetime) -> str:
    entity = payload.get("payment", {}).get("entity", {})
    gateway_order_id = entity.get("order_id")
    if not gateway_order_id:
        return IGNORED

    with booking_transaction(engine) as conn:
        payment = get_payment_by_gateway_order(conn, gateway_order_id, lock=True)
        if payment is None:
            return IGNORED
        changed = mark_payment_failed(conn, payment["id"], now)

    if changed:
        logger.info(
            "payment_failed",
            reservation_id=payment["order_id"],
            reason=entity.get("error_description"),
        )
        return FAILED
    return IGNORED


def _on_refund_processed(engine: Engine, payload: dict[str, Any], now: datetime) -> str:
    entity = payload.get("refund", {}).get("entity", {})
    gateway_payment_id = entity.get("payment_id")
    refund_id = entity.get("id")
    if not gateway_payment_id or not refund_id:
        return IGNORED

    with booking_transaction(engine) as conn:
        payment = get_payment_by_gateway_payment(conn, gateway_payment_id, lock=True)
        if payment is None:
            return IGNORED
        if payment["status"] == PaymentStatus.REFUNDED.value:
            return DUPLICATE
        if payment["status"] != PaymentStatus.SUCCESS.value:
            return IGNORED
        amount = entity.get("amount")
        refund_amount = (
            from_minor_units(int(amount)) if amount is not None else payment["total_amount"]
        )
        mark_payment_refunded(conn, payment["id"], refund_id, refund_amount, now)

    logger.info("refund_recorded_from_webhook", reservation_id=payment["order_id"])
    return REFUNDED


WEBHOOK_HANDLERS: dict[str, Callable[[Engine, dict[str, Any], datetime], str]] = {
    "payment.captured": _on_payment_captured,
    "order.paid": _on_payment_captured,
    "payment.failed": _on_payment_failed,
    "refund.processed": _on_refund_processed,
}


def handle_webhook(
    engine: Engine,
    raw_body: bytes,
    signature: Optional[str],
    now: Optional[datetime] = None,
) -> str:
    """
    Authenticate and dispatch a gateway webhook delivery.

    Args:
        engine: SQLAlchemy engine
        raw_body: Request body exactly as received (the signature covers these bytes)
        signature: X-Razorpay-Signature header value
        now: Reference instant

    Returns:
        str: Outcome label (confirmed, duplicate, failed, refunded, refund_required, ignored)

    Raises:
        PaymentVerificationFailed: Signature missing or wrong
        InvalidInput: Body is not a JSON object
    """
    if not verify_webhook_signature(raw_body, signature):
        payment_verifications.labels(source="webhook", result="failed").inc()
        webhook_events.labels(event="unknown", outcome="rejected").inc()
        logger.warning("webhook_signature_invalid")
        raise PaymentVerificationFailed("Invalid webhook signature")

    try:
        event = json.loads(raw_body)
    except ValueError as e:
        raise InvalidInput("Webhook body is not valid JSON") from e
    if not isinstance(event, dict):
        raise InvalidInput("Webhook body must be a JSON object")

    event_type = str(event.get("event") or "unknown")
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info("webhook_event_ignored", event_type=event_type)
        outcome = IGNORED
    else:
        outcome = handler(engine, event.get("payload") or {}, now or utc_now())

    webhook_events.labels(event=event_type, outcome=outcome).inc()
    logger.info("webhook_processed", event_type=event_type, outcome=outcome)
    return outcome


def refund(
    engine: Engine,
    reservation_id: str,
    amount: Optional[Decimal] = None,
    actor: Optional[Actor] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Refund a settled payment through the gateway.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation whose payment is refunded
        amount: Amount to refund; defaults to the full payment total
        actor: Caller; when given, must be the guest who booked or an admin.
            Guests can only refund a reservation they have cancelled
        now: Reference instant

    Returns:
        dict[str, Any]: id, payment_status, refund_id and refund_amount

    Raises:
        NotFound: Reservation does not exist
        Unauthorized: Actor may not refund this reservation
        Conflict: Guest refund on a reservation that is not cancelled, or no SUCCESS
            payment with a gateway payment reference
        InvalidInput: Amount not in (0, total]
        PaymentGatewayError: Gateway refused or was unreachable; nothing is recorded
    """
    now = now or utc_now()
    with booking_transaction(engine) as conn:
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        if actor is not None and not (
            actor.is_admin or reservation["guest_user_id"] == actor.user_id
        ):
            raise Unauthorized("Only the guest who booked can request a refund")
        if (
            actor is not None
            and not actor.is_admin
            and reservation["status"] != ReservationStatus.CANCELLED.value
        ):
            raise Conflict("Cancel the reservation before requesting a refund")

        payment = get_payment_for_order(conn, reservation_id, lock=True)
        if (
            payment is None
            or payment["status"] != PaymentStatus.SUCCESS.value
            or not payment["gateway_payment_id"]
        ):
            raise Conflict("Payment is not eligible for refund")

        total = Decimal(payment["total_amount"])
        refund_amount = total if amount is None else Decimal(amount)
        if refund_amount <= 0 or refund_amount > total:
            raise InvalidInput("Refund amount must be greater than zero and at most the amount paid")

        try:
            result = refund_payment(
                payment["gateway_payment_id"],
                amount=to_minor_units(refund_amount),
                notes={"reservation_id": reservation_id, "reason": "Reservation refund"},
            )
        except Exception:
            refunds.labels(result="failure").inc()
            raise
        mark_payment_refunded(conn, payment["id"], result["id"], refund_amount, now)

    refunds.labels(result="success").inc()
    logger.info(
        "payment_refunded",
        reservation_id=reservation_id,
        refund_id=result["id"],
        refund_amount=str(refund_amount),
    )
    return {
        "id": reservation_id,
        "payment_status": PaymentStatus.REFUNDED.value,
        "refund_id": result["id"],
        "refund_amount": refund_amount,
    }


def refund_after_cancellation(engine: Engine, reservation_id: str) -> None:
    """
    Best-effort full refund after a cancellation or a capture that cannot be honoured.

    Never raises: failures are logged for manual follow-up.
    """
    try:
        refund(engine, reservation_id)
    except Exception as e:
        logger.exception(
            "refund_after_cancellation_failed", reservation_id=reservation_id, error=str(e)
        )
