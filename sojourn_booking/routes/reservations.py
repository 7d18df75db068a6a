from functools import partial
from typing import Any, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sojourn_booking.actors import Actor
from sojourn_booking.dependencies import get_actor, get_db_engine
from sojourn_booking.errors import BookingError
from sojourn_booking.routes._reservation_helpers import raise_http_error
from sojourn_booking.schemas.reservations import (
    PaymentVerifyPayload,
    RefundPayload,
    ReservationCreatePayload,
)
from sojourn_booking.services.booking import (
    cancel_reservation,
    complete_reservation,
    create_reservation,
    get_reservation_view,
    initiate_payment,
    list_reservations,
)
from sojourn_booking.services.payments import refund, refund_after_cancellation, verify_callback

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
def create_reservation_endpoint(
    payload: ReservationCreatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Create a DRAFT reservation for one room and date range.

    Args:
        payload: Room, dates, guest count and guest details
        actor: Booking customer
        engine: Database engine

    Returns:
        dict: Reservation id, status, nights and price
    """
    try:
        result = create_reservation(
            engine,
            actor=actor,
            room_id=payload.room_id,
            check_in=payload.check_in,
            check_out=payload.check_out,
            guest_count=payload.guest_count,
            guests=[guest.model_dump() for guest in payload.guests],
            special_requests=payload.special_requests,
        )
        return {"message": "Reservation created", **result}

    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("reservation_creation_failed", room_id=payload.room_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations", status_code=status.HTTP_200_OK)
def list_reservations_endpoint(
    reservation_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    List the caller's reservations (guest), their properties' reservations (vendor), or all (admin).

    Args:
        reservation_status: Optional status filter
        page: 1-based page number
        limit: Page size
        actor: Caller
        engine: Database engine

    Returns:
        dict: items plus pagination fields
    """
    try:
        return list_reservations(
            engine,
            actor,
            status=reservation_status.upper() if reservation_status else None,
            page=page,
            limit=limit,
        )
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("reservation_list_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/{reservation_id}", status_code=status.HTTP_200_OK)
def get_reservation_endpoint(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Fetch one reservation, shaped for the caller's role."""
    try:
        return get_reservation_view(engine, reservation_id, actor)
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("reservation_fetch_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/payment/order", status_code=status.HTTP_200_OK)
def initiate_payment_endpoint(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Move the reservation to PENDING and open a gateway order.

    Returns:
        dict: Checkout parameters for the gateway's client-side widget
    """
    try:
        return initiate_payment(engine, reservation_id, actor)
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception(
            "payment_initiation_failed", reservation_id=reservation_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/payment/verify", status_code=status.HTTP_200_OK)
def verify_payment_endpoint(
    reservation_id: str,
    payload: PaymentVerifyPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Verify the checkout callback signature and confirm the reservation.

    Returns:
        dict: Reservation id, status, payment status and outcome
    """
    try:
        result = verify_callback(
            engine,
            reservation_id,
            gateway_payment_id=payload.gateway_payment_id,
            gateway_order_id=payload.gateway_order_id,
            signature=payload.signature,
            actor=actor,
        )
        return {"message": "Payment verified", **result}
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("payment_verification_error", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/payment/refund", status_code=status.HTTP_200_OK)
def refund_payment_endpoint(
    reservation_id: str,
    payload: Optional[RefundPayload] = None,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Refund the reservation's payment, fully or partially.

    Returns:
        dict: Refund reference and amount
    """
    try:
        result = refund(
            engine,
            reservation_id,
            amount=payload.amount if payload else None,
            actor=actor,
        )
        return {"message": "Refund processed", **result}
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("refund_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/cancel", status_code=status.HTTP_200_OK)
def cancel_reservation_endpoint(
    reservation_id: str,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Cancel a reservation. A paid reservation is refunded in the background.

    Returns:
        dict: Reservation id, status and whether a refund was started
    """
    try:
        result = cancel_reservation(
            engine,
            reservation_id,
            actor,
            schedule_refund=partial(
                background_tasks.add_task, refund_after_cancellation, engine
            ),
        )
        logger.info(
            "reservation_cancelled",
            reservation_id=reservation_id,
            refund_initiated=result["refund_initiated"],
        )
        return {"message": "Reservation cancelled", **result}
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("reservation_cancel_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/complete", status_code=status.HTTP_200_OK)
def complete_reservation_endpoint(
    reservation_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Mark a confirmed stay as completed after check-out (vendor or admin)."""
    try:
        result = complete_reservation(engine, reservation_id, actor)
        return {"message": "Reservation completed", **result}
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception(
            "reservation_complete_failed", reservation_id=reservation_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")
