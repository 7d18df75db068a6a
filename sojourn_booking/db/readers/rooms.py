from typing import Any, Optional

from sqlalchemy import Select, select
from sqlalchemy.engine import Connection

from sojourn_booking.models.properties import Property, Room


def _room_query() -> Select:
    return select(
        Room.__table__,
        Property.vendor_id,
        Property.name.label("property_name"),
        Property.address.label("property_address"),
        Property.commission_rate,
    ).join(Property, Property.id == Room.property_id)


def get_room(conn: Connection, room_id: str, lock: bool = False) -> Optional[dict[str, Any]]:
    """
    Fetch a room together with the owning property's vendor, name and commission rate.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_id (str): Room ID.
        lock (bool): Take a row lock on the room (SELECT ... FOR UPDATE) for the
            rest of the transaction. This is the per-room lock that serializes
            competing reservations.

    Returns:
        Optional[dict[str, Any]]: Room row merged with property fields, or None if not found.
    """
    stmt = _room_query().where(Room.id == room_id)
    if lock:
        stmt = stmt.with_for_update(of=Room.__table__)
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def list_property_rooms(
    conn: Connection,
    property_id: str,
    min_capacity: Optional[int] = None,
    only_available: bool = True,
) -> list[dict[str, Any]]:
    """
    List a property's rooms ordered by room number.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (str): Property ID.
        min_capacity (Optional[int]): Only rooms that sleep at least this many guests.
        only_available (bool): Skip rooms the vendor has switched off.

    Returns:
        list[dict[str, Any]]: Room rows merged with property fields.
    """
    stmt = _room_query().where(Room.property_id == property_id)
    if only_available:
        stmt = stmt.where(Room.is_available.is_(True))
    if min_capacity is not None:
        stmt = stmt.where(Room.capacity >= min_capacity)
    stmt = stmt.order_by(Room.room_number, Room.id)
    return [dict(row) for row in conn.execute(stmt).mappings()]
