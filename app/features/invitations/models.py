"""
Invitation model.

An invitation is a short-lived, single-use token that provisions a new user
with a pre-approved role, organization and permission set.
"""
import enum
from datetime import datetime
from typing import Any
from sqlalchemy import String, ForeignKey, JSON, DateTime, Index, Enum as SQLEnum, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin
from app.features.permissions.roles import UserRole


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Invitation(Base, ULIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "invitations"
    __table_args__ = (
        # At most one outstanding invitation per (email, organization, role).
        # coalesce() folds NULL organizations together so platform invites are covered too.
        Index(
            "uq_invitations_pending_target",
            "email",
            text("coalesce(organization_id, '')"),
            "role",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole, native_enum=False, length=20), nullable=False)
    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    permissions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    # Optional names proposed by the inviter, used when the invitee gives none
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    invited_by_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)

    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(
            InvitationStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=InvitationStatus.PENDING,
        nullable=False,
        index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def is_lapsed(self, now: datetime) -> bool:
        """Pending but past its expiry; redemption will refuse it."""
        return self.status == InvitationStatus.PENDING and self.expires_at <= now

    def effective_status(self, now: datetime) -> InvitationStatus:
        """Stored status with lazy expiry applied."""
        if self.is_lapsed(now):
            return InvitationStatus.EXPIRED
        return self.status

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, email={self.email!r}, role={self.role}, status={self.status})>"
