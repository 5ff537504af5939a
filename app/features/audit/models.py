"""
Audit log model.

Records who changed access-control state, when, and from where.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin


class AuditLog(Base, ULIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "audit_logs"

    # Actor; NULL for anonymous actions such as invitation redemption
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # e.g. "create", "accept", "resend", "replace_permissions", "update_features"
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # e.g. "invitation", "user", "organization", "feature"
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
