"""Public availability endpoints (no identity required)."""

from datetime import date
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from sojourn_booking.dependencies import get_db_engine
from sojourn_booking.errors import BookingError
from sojourn_booking.routes._reservation_helpers import raise_http_error
from sojourn_booking.services.availability import check_room_availability, search_available_rooms
from sojourn_booking.services.pricing import count_nights, nightly_rate, quote_total

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/rooms/{room_id}/availability")
def room_availability(
    room_id: str,
    check_in: date = Query(..., description="First night (YYYY-MM-DD)"),
    check_out: date = Query(..., description="Departure day (YYYY-MM-DD)"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Check whether one room can be booked for a date range.

    Returns:
        dict: room_id, dates and an ``available`` flag
    """
    try:
        available = check_room_availability(engine, room_id, check_in, check_out)
        return {
            "room_id": room_id,
            "check_in": check_in,
            "check_out": check_out,
            "available": available,
        }
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("availability_check_failed", room_id=room_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/properties/{property_id}/available-rooms")
def available_rooms(
    property_id: str,
    check_in: date = Query(...),
    check_out: date = Query(...),
    guests: Optional[int] = Query(None, ge=1),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    List a property's rooms free for a date range, with the quoted price.

    Returns:
        dict: property_id, nights and the list of rooms
    """
    try:
        rooms = search_available_rooms(engine, property_id, check_in, check_out, guests)
        return {
            "property_id": property_id,
            "check_in": check_in,
            "check_out": check_out,
            "nights": count_nights(check_in, check_out),
            "rooms": [
                {
                    "id": room["id"],
                    "room_type": room["room_type"],
                    "room_number": room["room_number"],
                    "capacity": room["capacity"],
                    "amenities": room["amenities"] or [],
                    "nightly_rate": nightly_rate(room, check_in),
                    "total_amount": quote_total(room, check_in, check_out),
                }
                for room in rooms
            ],
        }
    except BookingError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("available_rooms_failed", property_id=property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
