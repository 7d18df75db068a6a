"""
Stay pricing: seasonal nightly rate, stay total and marketplace commission.

The season is decided by the check-in month and applies to the whole stay.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from sojourn_booking.config import DEFAULT_COMMISSION_RATE

SUMMER_MONTHS = frozenset({6, 7, 8})
WINTER_MONTHS = frozenset({12, 1, 2})

CENTS = Decimal("0.01")


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def nightly_rate(room: Mapping[str, Any], check_in: date) -> Decimal:
    """
    Pick the nightly rate for a stay starting on check_in.

    June to August uses the summer price and December to February the winter
    price, when the room has one set. Every other case uses the base price.

    Args:
        room: Room row with base_price, summer_price and winter_price
        check_in: First night of the stay

    Returns:
        Decimal: Nightly rate
    """
    if check_in.month in SUMMER_MONTHS and room.get("summer_price") is not None:
        return _money(room["summer_price"])
    if check_in.month in WINTER_MONTHS and room.get("winter_price") is not None:
        return _money(room["winter_price"])
    return _money(room["base_price"])


def count_nights(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def quote_total(room: Mapping[str, Any], check_in: date, check_out: date) -> Decimal:
    """Stay total: nights times the seasonal nightly rate."""
    return _money(nightly_rate(room, check_in) * count_nights(check_in, check_out))


def commission_for(total: Decimal, rate: Optional[Any] = None) -> Decimal:
    """
    Marketplace commission on a stay total.

    Args:
        total: Stay total
        rate: Commission percent from the property; None falls back to DEFAULT_COMMISSION_RATE

    Returns:
        Decimal: Commission rounded to cents
    """
    percent = DEFAULT_COMMISSION_RATE if rate is None else Decimal(str(rate))
    return _money(Decimal(total) * percent / Decimal(100))


def to_minor_units(amount: Any) -> int:
    """Convert a currency amount to the gateway's integer minor units (paise)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return _money(Decimal(amount) / 100)
