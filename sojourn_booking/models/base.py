import uuid

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Tables are created unqualified (no schema) so the same metadata works on
    PostgreSQL and on the SQLite databases used by the test-suite.
    """

    pass


def new_id() -> str:
    """Primary key generator for every table: a UUID4 string."""
    return str(uuid.uuid4())
