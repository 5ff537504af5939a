"""
Feature catalog models.

The catalog is the system-wide list of features and their sub-features.
Only SUPERADMIN edits it.
"""
from sqlalchemy import String, ForeignKey, Boolean, JSON, Integer, Text, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULIDPrimaryKeyMixin
from app.features.permissions.roles import UserRole, FeatureLevel, FeatureStatus


class Feature(Base, ULIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "features"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    required_role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, native_enum=False, length=20),
        default=UserRole.USER,
        nullable=False,
    )
    is_system_feature: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    feature_level: Mapped[FeatureLevel] = mapped_column(
        SQLEnum(FeatureLevel, native_enum=False, length=20),
        nullable=False,
    )
    status: Mapped[FeatureStatus] = mapped_column(
        SQLEnum(FeatureStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=FeatureStatus.DONE,
        nullable=False,
    )

    sub_features: Mapped[list["SubFeature"]] = relationship(
        "SubFeature",
        back_populates="feature",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SubFeature.position",
    )

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, name={self.name!r}, level={self.feature_level})>"


class SubFeature(Base, ULIDPrimaryKeyMixin):
    """A named part of a feature and the actions it legitimately supports (UI hint only)."""
    __tablename__ = "sub_features"
    __table_args__ = (UniqueConstraint("feature_id", "name", name="uq_sub_feature_name"),)

    feature_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("features.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    actions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    feature: Mapped["Feature"] = relationship("Feature", back_populates="sub_features")

    def __repr__(self) -> str:
        return f"<SubFeature(feature_id={self.feature_id}, name={self.name!r})>"
