from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class GuestPayload(BaseModel):
    """
    Schema for one person staying under a reservation.
    """

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    age: Optional[int] = Field(None, ge=0, le=150)
    id_proof_type: Optional[str] = Field(None, description="e.g. PASSPORT, AADHAAR")
    id_proof_number: Optional[str] = Field(None, max_length=100)
    is_primary: bool = Field(False, description="Exactly one guest must be primary")
    special_requests: Optional[str] = None


class ReservationCreatePayload(BaseModel):
    """
    Schema for creating a DRAFT reservation.
    """

    room_id: str = Field(..., description="Room to book")
    check_in: date = Field(..., description="First night (YYYY-MM-DD)")
    check_out: date = Field(..., description="Departure day (YYYY-MM-DD)")
    guest_count: int = Field(..., ge=1, description="Number of people staying")
    guests: list[GuestPayload] = Field(..., min_length=1)
    special_requests: Optional[str] = None


class PaymentVerifyPayload(BaseModel):
    """
    Schema for the checkout callback. Accepts the gateway's own field names too.
    """

    gateway_payment_id: str = Field(
        ..., validation_alias=AliasChoices("gateway_payment_id", "razorpay_payment_id")
    )
    gateway_order_id: str = Field(
        ..., validation_alias=AliasChoices("gateway_order_id", "razorpay_order_id")
    )
    signature: str = Field(
        ..., validation_alias=AliasChoices("signature", "razorpay_signature")
    )


class RefundPayload(BaseModel):
    """
    Schema for a refund request. Omit amount for a full refund.
    """

    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
