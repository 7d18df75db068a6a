"""
Role-shaped views of a reservation.

Pure functions over the nested dict produced by the reservations reader. The
guest who booked sees their own guests' identity documents and refund details;
the vendor sees who is coming but never identity document numbers; admins see
everything except the raw gateway signature.
"""

from __future__ import annotations

from typing import Any, Optional

from sojourn_booking.actors import Actor
from sojourn_booking.models.enums import PaymentStatus
from sojourn_booking.services.pricing import count_nights

GUEST_AUDIENCE = "guest"
VENDOR_AUDIENCE = "vendor"
ADMIN_AUDIENCE = "admin"


def mask_identifier(value: Optional[str], visible: int = 4) -> Optional[str]:
    """
    Replace all but the last ``visible`` characters with asterisks.

    Example:
        >>> mask_identifier("9876543210", visible=2)
        '********10'
    """
    if not value:
        return value
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


def audience_for(detail: dict[str, Any], actor: Actor) -> Optional[str]:
    """
    Decide which view an actor gets of a reservation, or None if they get none.
    """
    if actor.is_admin:
        return ADMIN_AUDIENCE
    if actor.is_customer and actor.user_id == detail["guest_user_id"]:
        return GUEST_AUDIENCE
    if actor.is_vendor and actor.user_id == detail["vendor_id"]:
        return VENDOR_AUDIENCE
    return None


def project_guest(guest: dict[str, Any], audience: str) -> dict[str, Any]:
    view = {
        "first_name": guest["first_name"],
        "last_name": guest["last_name"],
        "age": guest["age"],
        "is_primary": guest["is_primary"],
        "special_requests": guest["special_requests"],
    }
    if audience == VENDOR_AUDIENCE:
        view["has_id_proof"] = bool(guest["id_proof_number"])
        view["id_proof_type"] = guest["id_proof_type"]
    else:
        view["id_proof_type"] = guest["id_proof_type"]
        view["id_proof_number"] = guest["id_proof_number"]
    return view


def project_payment(payment: Optional[dict[str, Any]], audience: str) -> Optional[dict[str, Any]]:
    """
    Shape a payment row for one audience.

    Args:
        payment: Payment row, or None when payment was never initiated
        audience: guest, vendor or admin

    Returns:
        Optional[dict[str, Any]]: Sanitized payment view
    """
    if payment is None:
        return None

    view: dict[str, Any] = {
        "status": payment["status"],
        "payment_method": payment["payment_method"],
        "total_amount": payment["total_amount"],
    }
    if payment["status"] == PaymentStatus.SUCCESS.value:
        view["processed_at"] = payment["processed_at"]

    if audience == GUEST_AUDIENCE:
        view["refund_amount"] = payment["refund_amount"]
        view["refund_status"] = (
            PaymentStatus.REFUNDED.value if payment["refund_id"] is not None else None
        )
    elif audience == VENDOR_AUDIENCE:
        view["vendor_amount"] = payment["vendor_amount"]
    else:
        view.update(
            {
                "processed_at": payment["processed_at"],
                "commission_amount": payment["commission_amount"],
                "vendor_amount": payment["vendor_amount"],
                "gateway_order_id": payment["gateway_order_id"],
                "gateway_payment_id": payment["gateway_payment_id"],
                "refund_id": payment["refund_id"],
                "refund_amount": payment["refund_amount"],
            }
        )
    return view


def project_reservation(detail: dict[str, Any], actor: Actor) -> dict[str, Any]:
    """
    Shape a reservation for the actor viewing it.

    Args:
        detail: Nested reservation dict (room, property, guests, payment)
        actor: Viewer; callers must already have checked access with audience_for

    Returns:
        dict[str, Any]: JSON-ready view
    """
    audience = audience_for(detail, actor) or VENDOR_AUDIENCE

    view: dict[str, Any] = {
        "id": detail["id"],
        "status": detail["status"],
        "check_in": detail["check_in"],
        "check_out": detail["check_out"],
        "nights": count_nights(detail["check_in"], detail["check_out"]),
        "guest_count": detail["guest_count"],
        "total_amount": detail["total_amount"],
        "special_requests": detail["special_requests"],
        "created_at": detail["created_at"],
        "room": dict(detail["room"]),
        "property": {"id": detail["property"]["id"], "name": detail["property"]["name"]},
        "guests": [project_guest(guest, audience) for guest in detail["guests"]],
        "payment": project_payment(detail["payment"], audience),
    }

    if audience == VENDOR_AUDIENCE:
        view["guest_user_id"] = mask_identifier(detail["guest_user_id"])
    else:
        view["guest_user_id"] = detail["guest_user_id"]
        view["property"]["address"] = detail["property"]["address"]

    if audience == ADMIN_AUDIENCE:
        view["vendor_id"] = detail["vendor_id"]
        view["commission_amount"] = detail["commission_amount"]

    return view
