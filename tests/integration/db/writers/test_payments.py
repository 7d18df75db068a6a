"""
Integration tests for the payments database writer.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from sojourn_booking.db.readers.payments import get_payment_for_order
from sojourn_booking.db.writers.payments import (
    mark_payment_failed,
    mark_payment_refunded,
    mark_payment_succeeded,
    upsert_pending_payment,
)
from sojourn_booking.models.base import new_id
from sojourn_booking.models.payments import Payment
from tests.helpers import NOW, VENDOR_ID


def _payment_row(order_id: str, gateway_order_id: str) -> dict[str, Any]:
    return {
        "id": new_id(),
        "order_id": order_id,
        "vendor_id": VENDOR_ID,
        "payment_method": "RAZORPAY",
        "gateway_order_id": gateway_order_id,
        "total_amount": Decimal("6000"),
        "commission_amount": Decimal("960"),
        "vendor_amount": Decimal("5040"),
        "created_at": NOW,
        "updated_at": NOW,
    }


@pytest.mark.integration
def test_upsert_pending_payment_creates_then_updates_one_row(
    engine: Engine, make_reservation: Callable[..., str]
) -> None:
    """Test that re-initiation swaps the gateway order on the existing row."""
    reservation_id = make_reservation(status="PENDING")

    with engine.begin() as conn:
        upsert_pending_payment(conn, _payment_row(reservation_id, "order_one"))
    with engine.connect() as conn:
        first = get_payment_for_order(conn, reservation_id)

    with engine.begin() as conn:
        row = _payment_row(reservation_id, "order_two")
        row["updated_at"] = NOW + timedelta(minutes=5)
        upsert_pending_payment(conn, row)

    with engine.connect() as conn:
        count = conn.execute(
            select(func.count()).select_from(Payment).where(Payment.order_id == reservation_id)
        ).scalar_one()
        second = get_payment_for_order(conn, reservation_id)

    assert count == 1
    assert second["id"] == first["id"]
    assert second["gateway_order_id"] == "order_two"
    assert second["status"] == "PENDING"


@pytest.mark.integration
def test_upsert_resets_failed_payment_to_pending(
    engine: Engine, make_reservation: Callable[..., str]
) -> None:
    reservation_id = make_reservation(status="PENDING", payment_status="FAILED")

    with engine.begin() as conn:
        upsert_pending_payment(conn, _payment_row(reservation_id, "order_retry"))

    with engine.connect() as conn:
        payment = get_payment_for_order(conn, reservation_id)
    assert payment["status"] == "PENDING"
    assert payment["gateway_order_id"] == "order_retry"


@pytest.mark.integration
def test_mark_payment_failed_never_downgrades_success(
    engine: Engine, make_reservation: Callable[..., str]
) -> None:
    pending_id = make_reservation(status="PENDING", payment_status="PENDING")
    settled_id = make_reservation(status="CONFIRMED", payment_status="SUCCESS")

    with engine.begin() as conn:
        pending = get_payment_for_order(conn, pending_id)
        settled = get_payment_for_order(conn, settled_id)
        assert mark_payment_failed(conn, pending["id"], NOW) is True
        assert mark_payment_failed(conn, settled["id"], NOW) is False

    with engine.connect() as conn:
        assert get_payment_for_order(conn, pending_id)["status"] == "FAILED"
        assert get_payment_for_order(conn, settled_id)["status"] == "SUCCESS"


@pytest.mark.integration
def test_mark_payment_succeeded_then_refunded(
    engine: Engine, make_reservation: Callable[..., str]
) -> None:
    reservation_id = make_reservation(status="PENDING", payment_status="PENDING")

    with engine.begin() as conn:
        payment = get_payment_for_order(conn, reservation_id)
        mark_payment_succeeded(conn, payment["id"], "pay_123", "sig_abc", NOW)

    with engine.connect() as conn:
        settled = get_payment_for_order(conn, reservation_id)
    assert settled["status"] == "SUCCESS"
    assert settled["gateway_payment_id"] == "pay_123"
    assert settled["gateway_signature"] == "sig_abc"
    assert settled["processed_at"] is not None

    with engine.begin() as conn:
        mark_payment_refunded(conn, payment["id"], "rfnd_1", Decimal("1000"), NOW)

    with engine.connect() as conn:
        refunded = get_payment_for_order(conn, reservation_id)
    assert refunded["status"] == "REFUNDED"
    assert refunded["refund_id"] == "rfnd_1"
    assert refunded["refund_amount"] == Decimal("1000")
