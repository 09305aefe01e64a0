"""
Declarative base shared by all ORM models.
"""

from sqlalchemy.orm import DeclarativeBase

SCHEMA = "saferoute"


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass
