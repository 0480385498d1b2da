"""Authentication service."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash, verify_password
from app.core.permissions import Role
from app.models.user import User


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get user by email address."""
    result = await db.execute(
        select(User).where(User.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
) -> User | None:
    """Authenticate user with email and password."""
    user = await get_user_by_email(db, email)

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


async def create_superadmin(
    db: AsyncSession,
    email: str,
    password: str,
    name: str,
) -> User:
    """Create a platform operator account."""
    user = User(
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
        name=name,
        role=Role.SUPERADMIN,
        school_id=None,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
