"""Payment access gate."""

import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.models.school import PaymentStatus, School
from app.utils.time import as_utc, utcnow

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class AccessDecision:
    """Whether a school's users may use the platform right now."""

    allowed: bool
    payment_status: PaymentStatus
    days_overdue: int = 0


def evaluate_access(
    payment_status: PaymentStatus | str,
    access_blocked_at: datetime | None,
    now: datetime,
    grace_days: int = 7,
) -> AccessDecision:
    """
    Decide access from the school's payment state.

    PAID and PENDING schools are always allowed. An UNPAID school keeps
    access until ``grace_days`` have elapsed since ``access_blocked_at``;
    with no block timestamp the grace period has not started yet.
    """
    status = PaymentStatus(payment_status)

    if status != PaymentStatus.UNPAID or access_blocked_at is None:
        return AccessDecision(allowed=True, payment_status=status)

    elapsed = (as_utc(now) - as_utc(access_blocked_at)).total_seconds() / SECONDS_PER_DAY
    days_overdue = max(math.floor(elapsed), 0)

    return AccessDecision(
        allowed=elapsed < grace_days,
        payment_status=status,
        days_overdue=days_overdue,
    )


def evaluate_school_access(school: School, now: datetime | None = None) -> AccessDecision:
    """Run the gate for a loaded school with the configured grace period."""
    return evaluate_access(
        school.payment_status,
        school.access_blocked_at,
        now or utcnow(),
        grace_days=settings.ACCESS_GRACE_PERIOD_DAYS,
    )


def apply_payment_status(
    school: School,
    payment_status: PaymentStatus,
    now: datetime | None = None,
) -> None:
    """
    Set the payment status on a school without committing.

    Becoming UNPAID stamps ``access_blocked_at`` (starting the grace period)
    unless the school is already blocked. Becoming PAID clears it.
    """
    now = now or utcnow()
    if payment_status == PaymentStatus.UNPAID:
        if school.payment_status != PaymentStatus.UNPAID or school.access_blocked_at is None:
            school.access_blocked_at = now
    elif payment_status == PaymentStatus.PAID:
        school.access_blocked_at = None
    school.payment_status = payment_status


async def set_school_payment_status(
    db: AsyncSession,
    school: School,
    payment_status: PaymentStatus,
    next_payment_due: datetime | None = None,
) -> School:
    """Change a school's payment status and persist it."""
    previous = school.payment_status
    apply_payment_status(school, payment_status)
    if next_payment_due is not None:
        school.next_payment_due = next_payment_due

    await db.commit()
    await db.refresh(school)

    logger.info(
        "School payment status changed",
        extra={
            "school_id": str(school.id),
            "from": str(PaymentStatus(previous).value),
            "to": payment_status.value,
        },
    )
    return school
