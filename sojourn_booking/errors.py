"""
Domain exceptions raised by the reservation services.

Services raise these; the HTTP layer translates them to status codes in
routes/_reservation_helpers.py. Nothing in the services layer knows about HTTP.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for every error the reservation engine raises on purpose."""


class NotFound(BookingError):
    """Room, reservation or payment does not exist."""


class InvalidInput(BookingError):
    """Request is malformed or violates a business rule on its own data."""


class InvalidRange(InvalidInput):
    """Check-in is not strictly before check-out, or lies in the past."""


class Conflict(BookingError):
    """Request is well formed but collides with current state."""


class InvalidTransition(Conflict):
    """Reservation cannot move from its current status to the requested one."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move reservation from {current} to {target}")


class Unauthorized(BookingError):
    """Actor is not allowed to act on this resource."""


class PaymentVerificationFailed(BookingError):
    """Gateway signature did not match the expected value."""


class PaymentGatewayError(BookingError):
    """Gateway call failed at the transport level or returned a non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TransactionTimeout(BookingError):
    """Lock wait or statement timeout exhausted; the transaction was rolled back."""
