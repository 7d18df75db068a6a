"""
Shared fixtures for the test-suite.

Environment is set before anything from sojourn_booking is imported, because the
config module reads it at import time. Integration tests get a fresh SQLite file
database per test, created from the ORM metadata.
"""

from __future__ import annotations

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="sojourn-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/app.db"
os.environ["ALLOWED_ORIGINS"] = "*"
os.environ["GATEWAY_KEY_ID"] = "rzp_test_key"
os.environ["GATEWAY_KEY_SECRET"] = "test_key_secret"
os.environ["GATEWAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["SWEEP_BEFORE_CREATE"] = "true"

from datetime import date, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any, Callable, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from sojourn_booking.actors import Actor  # noqa: E402
from sojourn_booking.db.engine import build_engine  # noqa: E402
from sojourn_booking.db.writers.reservations import insert_reservation_aggregate  # noqa: E402
from sojourn_booking.dependencies import get_db_engine  # noqa: E402
from sojourn_booking.models.base import Base, new_id  # noqa: E402
from sojourn_booking.models.enums import Role  # noqa: E402
from sojourn_booking.models.payments import Payment  # noqa: E402
from sojourn_booking.models.properties import Property, Room  # noqa: E402
from tests.helpers import (  # noqa: E402
    CUSTOMER_ID,
    NOW,
    OTHER_CUSTOMER_ID,
    STAY_IN,
    STAY_OUT,
    VENDOR_ID,
)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant: 1 June 2026, noon UTC."""
    return NOW


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Throw-away SQLite database with all tables created."""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id=CUSTOMER_ID, role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Actor:
    return Actor(user_id=OTHER_CUSTOMER_ID, role=Role.CUSTOMER)


@pytest.fixture
def vendor() -> Actor:
    return Actor(user_id=VENDOR_ID, role=Role.VENDOR)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-0001", role=Role.ADMIN)


@pytest.fixture
def guests() -> list[dict[str, Any]]:
    return [
        {
            "first_name": "Asha",
            "last_name": "Rao",
            "age": 34,
            "id_proof_type": "PASSPORT",
            "id_proof_number": "P1234567",
            "is_primary": True,
        },
        {"first_name": "Vikram", "last_name": "Rao", "age": 36, "is_primary": False},
    ]


@pytest.fixture
def make_room(engine: Engine) -> Callable[..., dict[str, Any]]:
    """Factory that inserts a property and one room, returning the room's ids."""

    def _make(
        base_price: str = "2000",
        summer_price: Optional[str] = "3000",
        winter_price: Optional[str] = None,
        capacity: int = 2,
        commission_rate: Optional[str] = None,
        is_available: bool = True,
        property_id: Optional[str] = None,
        vendor_id: str = VENDOR_ID,
    ) -> dict[str, Any]:
        room_id = new_id()
        with engine.begin() as conn:
            if property_id is None:
                property_id = new_id()
                conn.execute(
                    insert(Property).values(
                        id=property_id,
                        vendor_id=vendor_id,
                        name="Lakeview Residency",
                        address="12 Lake Road, Udaipur",
                        commission_rate=Decimal(commission_rate) if commission_rate else None,
                        created_at=NOW,
                    )
                )
            conn.execute(
                insert(Room).values(
                    id=room_id,
                    property_id=property_id,
                    room_type="Deluxe",
                    room_number=f"R-{room_id[:4]}",
                    capacity=capacity,
                    base_price=Decimal(base_price),
                    summer_price=Decimal(summer_price) if summer_price else None,
                    winter_price=Decimal(winter_price) if winter_price else None,
                    amenities=["wifi", "breakfast"],
                    is_available=is_available,
                    created_at=NOW,
                    updated_at=NOW,
                )
            )
        return {"id": room_id, "property_id": property_id, "vendor_id": vendor_id}

    return _make


@pytest.fixture
def room(make_room: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    """Deluxe room: base 2000, summer 3000, sleeps 2."""
    return make_room()


@pytest.fixture
def make_reservation(engine: Engine, room: dict[str, Any]) -> Callable[..., str]:
    """
    Factory that writes a reservation aggregate directly, bypassing the state machine.

    Lets tests place reservations in any status with any age.
    """

    def _make(
        status: str = "PENDING",
        created_at: datetime = NOW,
        check_in: date = STAY_IN,
        check_out: date = STAY_OUT,
        payment_status: Optional[str] = None,
        room_id: Optional[str] = None,
        guest_user_id: str = OTHER_CUSTOMER_ID,
    ) -> str:
        reservation_id = new_id()
        with engine.begin() as conn:
            insert_reservation_aggregate(
                conn,
                order={
                    "id": reservation_id,
                    "guest_user_id": guest_user_id,
                    "vendor_id": room["vendor_id"],
                    "total_amount": Decimal("6000"),
                    "commission_amount": Decimal("960"),
                    "status": status,
                    "created_at": created_at,
                    "updated_at": created_at,
                },
                reservation={
                    "room_id": room_id or room["id"],
                    "property_id": room["property_id"],
                    "check_in": check_in,
                    "check_out": check_out,
                    "guest_count": 1,
                    "total_amount": Decimal("6000"),
                    "status": status,
                    "created_at": created_at,
                    "updated_at": created_at,
                },
                guests=[
                    {
                        "id": new_id(),
                        "first_name": "Meera",
                        "last_name": "Iyer",
                        "is_primary": True,
                        "created_at": created_at,
                    }
                ],
            )
            if payment_status is not None:
                conn.execute(
                    insert(Payment).values(
                        id=new_id(),
                        order_id=reservation_id,
                        vendor_id=room["vendor_id"],
                        status=payment_status,
                        payment_method="RAZORPAY",
                        gateway_order_id=f"order_{reservation_id[:8]}",
                        gateway_payment_id=(
                            f"pay_{reservation_id[:8]}" if payment_status == "SUCCESS" else None
                        ),
                        total_amount=Decimal("6000"),
                        commission_amount=Decimal("960"),
                        vendor_amount=Decimal("5040"),
                        created_at=created_at,
                        updated_at=created_at,
                    )
                )
        return reservation_id

    return _make


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the per-test database."""
    from sojourn_booking.main import app

    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()
