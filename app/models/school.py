"""School and Branch models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel


class SchoolType(str, Enum):
    """Kind of institution; drives the default academic structure."""

    K12 = "K12"
    NIGERIAN = "NIGERIAN"
    SKILL_ACQUISITION = "SKILL_ACQUISITION"
    ADULT_LEARNING = "ADULT_LEARNING"
    TRAINING_CENTER = "TRAINING_CENTER"
    VOCATIONAL = "VOCATIONAL"
    TERTIARY = "TERTIARY"


class SchoolStatus(str, Enum):
    """Operator-controlled tenant status."""

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class PaymentStatus(str, Enum):
    """Subscription payment state read by the access gate."""

    PENDING = "PENDING"
    PAID = "PAID"
    UNPAID = "UNPAID"


class BranchStatus(str, Enum):
    """Branch lifecycle status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class School(BaseModel):
    """School model - represents a tenant in the system."""

    __tablename__ = "schools"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    short_name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    abbreviation: Mapped[str | None] = mapped_column(String(50))
    motto: Mapped[str | None] = mapped_column(Text)
    state: Mapped[str | None] = mapped_column(String(100))
    lga: Mapped[str | None] = mapped_column(String(100))
    address: Mapped[str | None] = mapped_column(String(500))
    phones: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    logo_url: Mapped[str | None] = mapped_column(String(500))

    type: Mapped[SchoolType] = mapped_column(
        String(30),
        default=SchoolType.K12,
        nullable=False,
    )
    status: Mapped[SchoolStatus] = mapped_column(
        String(20),
        default=SchoolStatus.ACTIVE,
        nullable=False,
    )
    main_branch_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    # Billing state
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    next_payment_due: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    access_blocked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    users: Mapped[list["User"]] = relationship("User", back_populates="school")
    branches: Mapped[list["Branch"]] = relationship("Branch", back_populates="school")
    features: Mapped[list["SchoolFeature"]] = relationship(
        "SchoolFeature", back_populates="school"
    )
    invoices: Mapped[list["Invoice"]] = relationship("Invoice", back_populates="school")

    @property
    def is_active(self) -> bool:
        """Check if the tenant is enabled."""
        return self.status == SchoolStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<School(id={self.id}, short_name={self.short_name})>"


class Branch(BaseModel):
    """Physical or administrative branch of a school."""

    __tablename__ = "branches"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_main: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[BranchStatus] = mapped_column(
        String(20),
        default=BranchStatus.ACTIVE,
        nullable=False,
    )

    school: Mapped["School"] = relationship("School", back_populates="branches")

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name={self.name})>"
