"""Feature catalog and school entitlement models."""

from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel


class PricingType(str, Enum):
    """Unit of measure a feature is priced in."""

    PER_STUDENT = "per_student"
    PER_STAFF = "per_staff"
    PER_TERM = "per_term"
    PER_SEMESTER = "per_semester"
    PER_SCHOOL = "per_school"
    PER_MONTH = "per_month"
    PER_YEAR = "per_year"
    ONE_TIME = "one_time"
    PAY_AS_YOU_GO = "pay_as_you_go"
    CUSTOM = "custom"
    FREE = "free"


class Feature(BaseModel):
    """A billable platform feature."""

    __tablename__ = "features"

    key: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)  # kobo
    pricing_type: Mapped[PricingType] = mapped_column(
        String(20),
        default=PricingType.PER_SCHOOL,
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String(50), default="general", nullable=False)
    is_core: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requires_date_range: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Ordered list of {name, href, icon, enabled}
    menu_links: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    schools: Mapped[list["SchoolFeature"]] = relationship(
        "SchoolFeature", back_populates="feature"
    )

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, key={self.key})>"


class SchoolFeature(BaseModel):
    """Entitlement: a feature granted (enabled or not) to a school."""

    __tablename__ = "school_features"
    __table_args__ = (
        UniqueConstraint("school_id", "feature_id", name="uq_school_feature"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("features.id", ondelete="CASCADE"),
        nullable=False,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    school: Mapped["School"] = relationship("School", back_populates="features")
    feature: Mapped["Feature"] = relationship("Feature", back_populates="schools")

    def __repr__(self) -> str:
        return (
            f"<SchoolFeature(school={self.school_id}, feature={self.feature_id}, "
            f"enabled={self.enabled})>"
        )


class SchoolFeatureSetup(BaseModel):
    """Per-school override of a feature's default menu links."""

    __tablename__ = "school_feature_setups"
    __table_args__ = (
        UniqueConstraint("school_id", "feature_id", name="uq_school_feature_setup"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("features.id", ondelete="CASCADE"),
        nullable=False,
    )
    menu_links: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)

    feature: Mapped["Feature"] = relationship("Feature")
