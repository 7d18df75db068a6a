# models/properties.py

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)

from sojourn_booking.models.base import Base, new_id
from sojourn_booking.utils.datetime import utc_now


class Property(Base):
    """
    ORM model for a vendor's lodging property (a hotel).

    Properties are onboarded by a separate vendor service; this engine only reads
    them for ownership checks, commission and gateway order metadata.
    """

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=new_id)
    vendor_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    commission_rate = Column(Numeric(5, 2), nullable=True)  # percent; NULL uses the default
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)


class Room(Base):
    """
    ORM model for a bookable room.

    Seasonal prices are optional; when a season price is NULL the base price applies.
    The room row doubles as the per-room lock taken before every conflict check.
    """

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_type = Column(String(100), nullable=False)
    room_number = Column(String(50), nullable=True)
    capacity = Column(Integer, nullable=False, default=2)
    base_price = Column(Numeric(12, 2), nullable=False)
    summer_price = Column(Numeric(12, 2), nullable=True)
    winter_price = Column(Numeric(12, 2), nullable=True)
    amenities = Column(JSON, nullable=False, default=list)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
