"""
botstack.models.base - Base SQLAlchemy Models

Provides base classes with common functionality:
- Base: SQLAlchemy declarative base
- TimestampedModel: Automatic created_at/updated_at timestamps
- IdentifiedModel: String primary key with generated UUID value
- JSONType: JSON column that becomes JSONB on PostgreSQL
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a new primary key value."""
    return str(uuid4())


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base.

    All models inherit from this class.
    """

    pass


class TimestampedModel:
    """
    Mixin for models with automatic timestamps.

    Provides:
    - created_at: Set on insert
    - updated_at: Set on insert, updated on every update
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        comment="When this record was created (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        comment="When this record was last updated (UTC)",
    )


class IdentifiedModel(TimestampedModel, Base):
    """
    Base class for botstack records.

    Provides:
    - id: String primary key (UUID text), stable across databases
    - Timestamps (created_at, updated_at)
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
        comment="Unique identifier",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<{self.__class__.__name__}(id={self.id})>"
