"""Shared declarative base for all ORM models.

Having a single ``Base`` keeps the metadata in one place so that schema
creation (``scripts/create_schema.py``) and the test database built from
``Base.metadata`` see the same tables.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass
