"""
Integration tests for /api/v1/reservations endpoints.

Runs the full HTTP stack against a throw-away database. Routes use the real
clock, so stays are booked relative to today and rooms have a flat base price.
"""

from datetime import date, timedelta
from typing import Any, Callable
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sojourn_booking.db.readers.payments import get_payment_for_order
from sojourn_booking.gateway.client import compute_payment_signature
from sojourn_booking.utils.datetime import utc_now
from tests.helpers import CUSTOMER_ID, OTHER_CUSTOMER_ID, VENDOR_ID

CUSTOMER = {"X-User-Id": CUSTOMER_ID, "X-User-Role": "CUSTOMER"}
OTHER_CUSTOMER = {"X-User-Id": OTHER_CUSTOMER_ID, "X-User-Role": "CUSTOMER"}
VENDOR = {"X-User-Id": VENDOR_ID, "X-User-Role": "VENDOR"}
ADMIN = {"X-User-Id": "admin-0001", "X-User-Role": "ADMIN"}

CHECK_IN = date.today() + timedelta(days=30)
CHECK_OUT = CHECK_IN + timedelta(days=2)


@pytest.fixture
def flat_room(make_room: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    """Room priced at 2000 a night all year round."""
    return make_room(summer_price=None, winter_price=None)


def _booking_body(room_id: str, guests: list[dict[str, Any]], **overrides: Any) -> dict[str, Any]:
    body = {
        "room_id": room_id,
        "check_in": CHECK_IN.isoformat(),
        "check_out": CHECK_OUT.isoformat(),
        "guest_count": 2,
        "guests": guests,
    }
    body.update(overrides)
    return body


def _create(client: TestClient, room_id: str, guests: list[dict[str, Any]]) -> str:
    response = client.post(
        "/api/v1/reservations", json=_booking_body(room_id, guests), headers=CUSTOMER
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


@pytest.mark.integration
@patch("sojourn_booking.services.payments.refund_payment")
@patch("sojourn_booking.services.payments.create_order")
def test_reservation_round_trip(
    mock_create_order: Mock,
    mock_refund: Mock,
    client: TestClient,
    engine: Engine,
    flat_room: dict[str, Any],
    guests: list[dict[str, Any]],
) -> None:
    """Book, pay, verify, view and cancel one stay over HTTP."""
    mock_create_order.return_value = {"id": "order_http"}
    mock_refund.return_value = {"id": "rfnd_http"}

    # Create
    response = client.post(
        "/api/v1/reservations", json=_booking_body(flat_room["id"], guests), headers=CUSTOMER
    )
    assert response.status_code == 201
    created = response.json()
    assert created["message"] == "Reservation created"
    assert created["status"] == "DRAFT"
    assert created["nights"] == 2
    assert float(created["total_amount"]) == 4000
    reservation_id = created["id"]

    # A draft does not hold the room
    availability_url = f"/api/v1/rooms/{flat_room['id']}/availability"
    dates = {"check_in": CHECK_IN.isoformat(), "check_out": CHECK_OUT.isoformat()}
    assert client.get(availability_url, params=dates).json()["available"] is True

    # Initiate payment
    response = client.post(
        f"/api/v1/reservations/{reservation_id}/payment/order", headers=CUSTOMER
    )
    assert response.status_code == 200
    checkout = response.json()
    assert checkout["order_id"] == "order_http"
    assert checkout["amount"] == 400000
    assert client.get(availability_url, params=dates).json()["available"] is False

    # Verify with the gateway's own field names
    response = client.post(
        f"/api/v1/reservations/{reservation_id}/payment/verify",
        json={
            "razorpay_order_id": "order_http",
            "razorpay_payment_id": "pay_http",
            "razorpay_signature": compute_payment_signature("order_http", "pay_http"),
        },
        headers=CUSTOMER,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Payment verified"
    assert response.json()["status"] == "CONFIRMED"

    # Role-shaped views
    guest_view = client.get(f"/api/v1/reservations/{reservation_id}", headers=CUSTOMER).json()
    assert guest_view["guests"][0]["id_proof_number"] == "P1234567"
    assert guest_view["payment"]["status"] == "SUCCESS"

    vendor_view = client.get(f"/api/v1/reservations/{reservation_id}", headers=VENDOR).json()
    assert vendor_view["guest_user_id"] != CUSTOMER_ID
    assert "id_proof_number" not in vendor_view["guests"][0]
    assert "gateway_payment_id" not in vendor_view["payment"]

    # Cancel: refund runs as a background task after the response
    response = client.post(f"/api/v1/reservations/{reservation_id}/cancel", headers=CUSTOMER)
    assert response.status_code == 200
    assert response.json()["refund_initiated"] is True
    mock_refund.assert_called_once()
    with engine.connect() as conn:
        assert get_payment_for_order(conn, reservation_id)["status"] == "REFUNDED"

    assert client.get(availability_url, params=dates).json()["available"] is True


@pytest.mark.integration
def test_missing_identity_is_401(client: TestClient, flat_room: dict[str, Any]) -> None:
    response = client.post("/api/v1/reservations", json={})
    assert response.status_code == 401
    assert client.get("/api/v1/reservations").status_code == 401


@pytest.mark.integration
def test_invalid_payload_is_422(
    client: TestClient, flat_room: dict[str, Any], guests: list[dict[str, Any]]
) -> None:
    response = client.post(
        "/api/v1/reservations",
        json=_booking_body(flat_room["id"], [], guest_count=0),
        headers=CUSTOMER,
    )
    assert response.status_code == 422


@pytest.mark.integration
def test_domain_errors_map_to_status_codes(
    client: TestClient,
    flat_room: dict[str, Any],
    guests: list[dict[str, Any]],
    make_reservation: Callable[..., str],
) -> None:
    # Past stay
    past = _booking_body(
        flat_room["id"],
        guests,
        check_in=(date.today() - timedelta(days=3)).isoformat(),
        check_out=(date.today() - timedelta(days=1)).isoformat(),
    )
    response = client.post("/api/v1/reservations", json=past, headers=CUSTOMER)
    assert response.status_code == 400
    assert response.json()["detail"] == "Check-in date cannot be in the past"

    # Unknown room
    response = client.post(
        "/api/v1/reservations", json=_booking_body("no-such-room", guests), headers=CUSTOMER
    )
    assert response.status_code == 404

    # Vendors cannot book
    response = client.post(
        "/api/v1/reservations", json=_booking_body(flat_room["id"], guests), headers=VENDOR
    )
    assert response.status_code == 403

    # Dates already held
    make_reservation(
        status="CONFIRMED",
        room_id=flat_room["id"],
        check_in=CHECK_IN,
        check_out=CHECK_OUT,
        created_at=utc_now(),
    )
    response = client.post(
        "/api/v1/reservations", json=_booking_body(flat_room["id"], guests), headers=CUSTOMER
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Room is not available for selected dates"


@pytest.mark.integration
def test_view_permissions(
    client: TestClient, flat_room: dict[str, Any], guests: list[dict[str, Any]]
) -> None:
    reservation_id = _create(client, flat_room["id"], guests)

    url = f"/api/v1/reservations/{reservation_id}"
    assert client.get(url, headers=OTHER_CUSTOMER).status_code == 403
    assert client.get(url, headers=ADMIN).status_code == 200
    assert client.get("/api/v1/reservations/no-such-id", headers=ADMIN).status_code == 404


@pytest.mark.integration
def test_list_reservations_endpoint(
    client: TestClient, flat_room: dict[str, Any], guests: list[dict[str, Any]]
) -> None:
    _create(client, flat_room["id"], guests)

    # Drafts are hidden from the guest list
    response = client.get("/api/v1/reservations", headers=CUSTOMER)
    assert response.status_code == 200
    assert response.json()["total"] == 0

    response = client.get(
        "/api/v1/reservations", params={"status": "draft", "limit": 5}, headers=ADMIN
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["limit"] == 5
    assert body["items"][0]["status"] == "DRAFT"

    response = client.get("/api/v1/reservations", params={"status": "BOGUS"}, headers=ADMIN)
    assert response.status_code == 400


@pytest.mark.integration
@patch("sojourn_booking.services.payments.create_order")
def test_tampered_verification_is_400(
    mock_create_order: Mock,
    client: TestClient,
    flat_room: dict[str, Any],
    guests: list[dict[str, Any]],
) -> None:
    mock_create_order.return_value = {"id": "order_tamper"}
    reservation_id = _create(client, flat_room["id"], guests)
    client.post(f"/api/v1/reservations/{reservation_id}/payment/order", headers=CUSTOMER)

    response = client.post(
        f"/api/v1/reservations/{reservation_id}/payment/verify",
        json={
            "gateway_order_id": "order_tamper",
            "gateway_payment_id": "pay_tamper",
            "signature": "0" * 64,
        },
        headers=CUSTOMER,
    )

    assert response.status_code == 400


@pytest.mark.integration
@patch("sojourn_booking.services.payments.create_order")
def test_gateway_outage_is_502(
    mock_create_order: Mock,
    client: TestClient,
    flat_room: dict[str, Any],
    guests: list[dict[str, Any]],
) -> None:
    from sojourn_booking.errors import PaymentGatewayError

    mock_create_order.side_effect = PaymentGatewayError("Payment gateway unreachable")
    reservation_id = _create(client, flat_room["id"], guests)

    response = client.post(
        f"/api/v1/reservations/{reservation_id}/payment/order", headers=CUSTOMER
    )

    assert response.status_code == 502


@pytest.mark.integration
@patch("sojourn_booking.services.payments.refund_payment")
def test_partial_refund_endpoint(
    mock_refund: Mock, client: TestClient, make_reservation: Callable[..., str]
) -> None:
    mock_refund.return_value = {"id": "rfnd_partial"}
    reservation_id = make_reservation(status="CONFIRMED", payment_status="SUCCESS")

    response = client.post(
        f"/api/v1/reservations/{reservation_id}/payment/refund",
        json={"amount": "1000.00"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Refund processed"
    assert response.json()["refund_id"] == "rfnd_partial"
    assert mock_refund.call_args.kwargs["amount"] == 100000


@pytest.mark.integration
@patch("sojourn_booking.services.payments.refund_payment")
def test_guest_refund_endpoint_requires_cancellation(
    mock_refund: Mock, client: TestClient, make_reservation: Callable[..., str]
) -> None:
    reservation_id = make_reservation(status="CONFIRMED", payment_status="SUCCESS")

    response = client.post(
        f"/api/v1/reservations/{reservation_id}/payment/refund",
        json={"amount": "1000.00"},
        headers=OTHER_CUSTOMER,
    )

    assert response.status_code == 409
    mock_refund.assert_not_called()


@pytest.mark.integration
def test_complete_endpoint_requires_checkout(
    client: TestClient, make_reservation: Callable[..., str]
) -> None:
    past_stay = make_reservation(
        status="CONFIRMED",
        check_in=date.today() - timedelta(days=3),
        check_out=date.today() - timedelta(days=1),
    )
    future_stay = make_reservation(status="CONFIRMED", check_in=CHECK_IN, check_out=CHECK_OUT)

    def complete(reservation_id: str) -> int:
        url = f"/api/v1/reservations/{reservation_id}/complete"
        return client.post(url, headers=VENDOR).status_code

    assert complete(past_stay) == 200
    assert complete(future_stay) == 400
    assert complete(past_stay) == 409


@pytest.mark.integration
def test_available_rooms_endpoint(
    client: TestClient,
    flat_room: dict[str, Any],
    make_room: Callable[..., dict[str, Any]],
) -> None:
    make_room(property_id=flat_room["property_id"], capacity=1)

    response = client.get(
        f"/api/v1/properties/{flat_room['property_id']}/available-rooms",
        params={
            "check_in": CHECK_IN.isoformat(),
            "check_out": CHECK_OUT.isoformat(),
            "guests": 2,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["nights"] == 2
    assert [room["id"] for room in body["rooms"]] == [flat_room["id"]]
    assert float(body["rooms"][0]["total_amount"]) == 4000


@pytest.mark.integration
def test_admin_sweep_endpoint(
    client: TestClient, make_reservation: Callable[..., str]
) -> None:
    make_reservation(status="DRAFT", created_at=utc_now() - timedelta(days=2))

    assert client.post("/api/v1/admin/reservations/sweep", headers=VENDOR).status_code == 403

    response = client.post(
        "/api/v1/admin/reservations/sweep", params={"dry_run": "true"}, headers=ADMIN
    )
    assert response.json()["draft_removed"] == 1
    assert response.json()["dry_run"] is True

    response = client.post("/api/v1/admin/reservations/sweep", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["total_removed"] == 1
