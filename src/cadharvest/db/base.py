"""
SQLAlchemy Base and Mixins

Provides declarative base and reusable mixins for database models.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """
    Base class for all database models.
    """

    # Type annotation for primary keys
    id: Any


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamp columns.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was first stored"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Timestamp when record was last merged"
    )


def import_all_models():
    """
    Import all models to register them with SQLAlchemy Base.
    """
    from src.cadharvest.db import models  # noqa: F401
