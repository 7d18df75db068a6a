# models/payments.py

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String

from sojourn_booking.models.base import Base, new_id
from sojourn_booking.models.enums import PaymentMethod, PaymentStatus
from sojourn_booking.utils.datetime import utc_now


class Payment(Base):
    """
    ORM model for the gateway payment attached to an order.

    At most one row per order. Created on the first payment initiation and
    updated in place afterwards; only the payment orchestrator writes it.
    """

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    vendor_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.RAZORPAY.value)
    gateway_order_id = Column(String(100), nullable=True, index=True)
    gateway_payment_id = Column(String(100), nullable=True, index=True)
    gateway_signature = Column(String(255), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    vendor_amount = Column(Numeric(12, 2), nullable=False)
    refund_id = Column(String(100), nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
