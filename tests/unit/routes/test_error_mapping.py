"""Unit tests for domain error to HTTP status translation."""

import pytest
from fastapi import HTTPException

from sojourn_booking.actors import Actor
from sojourn_booking.errors import (
    BookingError,
    Conflict,
    InvalidInput,
    InvalidRange,
    InvalidTransition,
    NotFound,
    PaymentGatewayError,
    PaymentVerificationFailed,
    TransactionTimeout,
    Unauthorized,
)
from sojourn_booking.models.enums import Role
from sojourn_booking.routes._reservation_helpers import (
    raise_http_error,
    status_code_for,
    validate_admin_or_403,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "error,expected",
    [
        (NotFound("x"), 404),
        (InvalidInput("x"), 400),
        (InvalidRange("x"), 400),
        (Conflict("x"), 409),
        (InvalidTransition("DRAFT", "CONFIRMED"), 409),
        (Unauthorized("x"), 403),
        (PaymentVerificationFailed("x"), 400),
        (PaymentGatewayError("x"), 502),
        (TransactionTimeout("x"), 503),
        (BookingError("x"), 500),
    ],
)
def test_status_code_for(error: BookingError, expected: int) -> None:
    assert status_code_for(error) == expected


@pytest.mark.unit
def test_transaction_timeout_is_not_a_conflict() -> None:
    """Callers must be able to tell 'retry' apart from 'dates taken'."""
    assert not issubclass(TransactionTimeout, Conflict)

    with pytest.raises(HTTPException) as exc_info:
        raise_http_error(TransactionTimeout("busy"))
    assert exc_info.value.status_code == 503
    assert exc_info.value.headers == {"Retry-After": "1"}


@pytest.mark.unit
def test_validate_admin_or_403() -> None:
    validate_admin_or_403(Actor(user_id="a", role=Role.ADMIN))

    with pytest.raises(HTTPException) as exc_info:
        validate_admin_or_403(Actor(user_id="c", role=Role.CUSTOMER))
    assert exc_info.value.status_code == 403
