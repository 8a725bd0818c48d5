"""
Base model class for all SQLAlchemy models.

WHY: Centralizing common model functionality (timestamps, ID) in a base class
ensures consistency across all models and reduces code duplication.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    WHY: DeclarativeBase provides the foundation for SQLAlchemy 2.0 models
    with improved type hints and async support.
    """

    pass


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    """

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PrimaryKeyMixin:
    """
    Mixin to add a UUID primary key to models.

    WHY: Ids travel through the payment provider (merchant-order-id) and
    the storefront URLs, so they must not be guessable sequence numbers.
    """

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)


def enum_values(enum_cls) -> list:
    """Persist enum values (lowercase) rather than member names."""
    return [member.value for member in enum_cls]
