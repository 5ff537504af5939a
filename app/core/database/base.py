"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models should inherit from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from app.core.database.base import Base

        class Invitation(Base):
            __tablename__ = "invitations"

            id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    """
    pass


class ULIDPrimaryKeyMixin:
    """26-character ULID primary key, sortable by creation time."""
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.

    Usage:
        class User(Base, TimestampMixin):
            __tablename__ = "users"
            id: Mapped[str] = mapped_column(primary_key=True)
    """
    # Fetch server-generated timestamps on flush so async code never lazy-loads them
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
