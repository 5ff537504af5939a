"""
User model: the identity store behind every principal.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import String, Boolean, ForeignKey, JSON, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin
from app.features.permissions.roles import UserRole


class User(Base, ULIDPrimaryKeyMixin, TimestampMixin):
    """
    A principal scoped to an organization.

    ``organization_id`` is NULL exactly for platform roles (ADMIN, SUPERADMIN).
    ``permissions`` is an ordered list of grants, each
    ``{"feature": str, "sub_features": [str], "actions": [str]}``; it is
    always replaced as a whole, never merged.
    """
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, native_enum=False, length=20),
        default=UserRole.USER,
        nullable=False,
        index=True,
    )

    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    permissions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by_id: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id"), nullable=True)
    updated_by_id: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id"), nullable=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    organization: Mapped["Organization | None"] = relationship(  # type: ignore  # noqa: F821
        "Organization",
        foreign_keys=[organization_id],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"
