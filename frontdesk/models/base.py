from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for the front-desk ORM models."""

    pass
