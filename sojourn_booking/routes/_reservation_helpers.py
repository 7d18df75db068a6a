"""
Internal helper functions for reservation route handlers.

Translates domain errors raised by the services into HTTP responses so the
route handlers stay a thin try/except around one service call.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, status

from sojourn_booking.actors import Actor
from sojourn_booking.errors import (
    BookingError,
    Conflict,
    InvalidInput,
    NotFound,
    PaymentGatewayError,
    PaymentVerificationFailed,
    TransactionTimeout,
    Unauthorized,
)

# Order matters: subclasses before their parents
ERROR_STATUS_CODES: list[tuple[type[BookingError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (Conflict, status.HTTP_409_CONFLICT),
    (Unauthorized, status.HTTP_403_FORBIDDEN),
    (PaymentVerificationFailed, status.HTTP_400_BAD_REQUEST),
    (PaymentGatewayError, status.HTTP_502_BAD_GATEWAY),
    (TransactionTimeout, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(error: BookingError) -> int:
    """
    Map a domain error to its HTTP status code.

    Args:
        error: Error raised by a service

    Returns:
        int: HTTP status code (500 for an unmapped BookingError)
    """
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_http_error(error: BookingError) -> NoReturn:
    """
    Re-raise a domain error as an HTTPException with the mapped status.

    Raises:
        HTTPException: Always
    """
    headers = {"Retry-After": "1"} if isinstance(error, TransactionTimeout) else None
    raise HTTPException(status_code=status_code_for(error), detail=str(error), headers=headers)


def validate_admin_or_403(actor: Actor) -> None:
    """
    Validate that the caller is an admin, raise 403 if not.

    Raises:
        HTTPException: 403 for any other role
    """
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
