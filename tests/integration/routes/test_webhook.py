"""Integration tests for the payment gateway webhook endpoint."""

import json
from typing import Any, AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.engine import Engine

from sojourn_booking.db.readers.reservations import get_reservation
from sojourn_booking.dependencies import get_db_engine
from sojourn_booking.gateway.client import compute_webhook_signature
from sojourn_booking.main import app
from sojourn_booking.routes.webhook import delivery_cache
from sojourn_booking.utils.datetime import utc_now

WEBHOOK_URL = "/api/v1/payments/webhook"


@pytest_asyncio.fixture
async def ac(engine: Engine) -> AsyncGenerator[AsyncClient, None]:
    """Async client wired to the per-test database, with an empty delivery cache."""
    app.dependency_overrides[get_db_engine] = lambda: engine
    delivery_cache.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
    delivery_cache.clear()


def _captured(gateway_order_id: str) -> bytes:
    return json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {"entity": {"id": "pay_hook", "order_id": gateway_order_id}}
            },
        }
    ).encode("utf-8")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_missing_signature(ac: AsyncClient) -> None:
    """Test that webhook returns 401 when the signature header is missing."""
    response = await ac.post(WEBHOOK_URL, content=b'{"event": "payment.captured"}')

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_invalid_signature(ac: AsyncClient) -> None:
    """Test that webhook returns 401 when the signature does not match the body."""
    body = b'{"event": "payment.captured"}'
    response = await ac.post(
        WEBHOOK_URL,
        content=body,
        headers={"X-Razorpay-Signature": compute_webhook_signature(body + b" ")},
    )

    assert response.status_code == 401


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_malformed_body(ac: AsyncClient) -> None:
    body = b"{not json"
    response = await ac.post(
        WEBHOOK_URL, content=body, headers={"X-Razorpay-Signature": compute_webhook_signature(body)}
    )

    assert response.status_code == 400


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_confirms_reservation_and_dedupes_redelivery(
    ac: AsyncClient, engine: Engine, make_reservation: Callable[..., str]
) -> None:
    """Test that a signed capture confirms the reservation once."""
    reservation_id = make_reservation(
        status="PENDING", payment_status="PENDING", created_at=utc_now()
    )
    body = _captured(f"order_{reservation_id[:8]}")
    headers: dict[str, Any] = {
        "X-Razorpay-Signature": compute_webhook_signature(body),
        "X-Razorpay-Event-Id": "evt_001",
    }

    first = await ac.post(WEBHOOK_URL, content=body, headers=headers)
    second = await ac.post(WEBHOOK_URL, content=body, headers=headers)

    assert first.status_code == 200
    assert first.json() == {"status": "confirmed"}
    assert second.status_code == 200
    assert second.json() == {"status": "duplicate"}
    with engine.connect() as conn:
        assert get_reservation(conn, reservation_id)["status"] == "CONFIRMED"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_unknown_event_is_acknowledged(ac: AsyncClient) -> None:
    """Test that events the service does not handle still get a 2xx."""
    body = json.dumps({"event": "settlement.processed", "payload": {}}).encode("utf-8")
    response = await ac.post(
        WEBHOOK_URL, content=body, headers={"X-Razorpay-Signature": compute_webhook_signature(body)}
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
