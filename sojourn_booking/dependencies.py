"""
FastAPI dependency injection providers.

Routes receive the database engine and the calling actor through these
providers, so tests can swap either via app.dependency_overrides.
"""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.engine import Engine

from sojourn_booking.actors import Actor
from sojourn_booking.db.engine import engine
from sojourn_booking.models.enums import Role


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
    """
    yield engine


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """
    Build the calling actor from the identity headers set by the upstream auth layer.

    Args:
        x_user_id: X-User-Id header
        x_user_role: X-User-Role header (CUSTOMER, VENDOR or ADMIN)

    Returns:
        Actor: Authenticated caller

    Raises:
        HTTPException: 401 if either header is missing or the role is unknown
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role {x_user_role}",
        )
    return Actor(user_id=x_user_id, role=role)
