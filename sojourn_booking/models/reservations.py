# models/reservations.py

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from sojourn_booking.models.base import Base, new_id
from sojourn_booking.models.enums import BookingType, ReservationStatus
from sojourn_booking.utils.datetime import utc_now


class Order(Base):
    """
    ORM model for the vendor-agnostic order aggregate.

    An Order carries the commission and payment accounting for one reservation.
    Its id is shared with the Reservation row, so callers only ever handle one id.
    Status is always written together with Reservation.status.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    guest_user_id = Column(String(36), nullable=False, index=True)
    vendor_id = Column(String(36), nullable=False, index=True)
    booking_type = Column(String(20), nullable=False, default=BookingType.HOTEL.value)
    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.DRAFT.value)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)


class Reservation(Base):
    """
    ORM model for a guest's claim on one room over a half-open date range.

    check_in is the first night, check_out the departure day, so a stay ending
    on day D never overlaps a stay starting on day D.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_room_dates", "room_id", "check_in", "check_out"),
        Index("ix_reservations_status_created", "status", "created_at"),
    )

    id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guest_count = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.DRAFT.value)
    special_requests = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)


class Guest(Base):
    """ORM model for a person staying under a reservation. Exactly one is primary."""

    __tablename__ = "guests"

    id = Column(String(36), primary_key=True, default=new_id)
    reservation_id = Column(
        String(36), ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    age = Column(Integer, nullable=True)
    id_proof_type = Column(String(50), nullable=True)
    id_proof_number = Column(String(100), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    special_requests = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
