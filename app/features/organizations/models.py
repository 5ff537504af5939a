"""
Organization models.

Organizations are tenants. Each carries an ordered list of feature toggles,
conceptually one per catalog feature; a missing toggle means disabled.
"""
import re
from typing import Any
from sqlalchemy import String, ForeignKey, Boolean, JSON, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin


DEFAULT_MAX_USERS = 100


def default_settings() -> dict[str, Any]:
    return {"max_users": DEFAULT_MAX_USERS, "allowed_features": []}


def slugify(name: str) -> str:
    """Lower-case, whitespace to hyphens, drop anything that is not a word character or hyphen."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^\w-]", "", slug)


class Organization(Base, ULIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # {"max_users": int, "allowed_features": [str]}; stored, not enforced
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, default=default_settings, nullable=False)

    created_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )

    features: Mapped[list["OrganizationFeature"]] = relationship(
        "OrganizationFeature",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrganizationFeature.position",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug!r})>"


class OrganizationFeature(Base, ULIDPrimaryKeyMixin):
    """
    Enable/disable state of one catalog feature for one organization.

    ``sub_features`` is an ordered list of ``{"name": str, "is_enabled": bool}``.
    """
    __tablename__ = "organization_features"

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sub_features: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="features")

    def __repr__(self) -> str:
        return f"<OrganizationFeature(org_id={self.organization_id}, name={self.name!r}, enabled={self.is_enabled})>"
