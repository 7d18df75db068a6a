"""Caller identity as forwarded by the upstream auth layer."""

from __future__ import annotations

from dataclasses import dataclass

from sojourn_booking.models.enums import Role


@dataclass(frozen=True)
class Actor:
    """
    Authenticated caller.

    For a VENDOR actor, ``user_id`` is the vendor id that owns properties.
    """

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER
