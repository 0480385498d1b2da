"""Dependencies for FastAPI routes."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import PaymentRequiredError
from app.core.permissions import Role, has_permission
from app.core.security import decode_access_token
from app.models.school import School
from app.models.user import User
from app.services.access import evaluate_school_access
from app.services.entitlement import is_feature_enabled
from app.services.notifications import Notifier
from app.services.storage import Storage

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/form")

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: DbSession,
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        uuid_id = UUID(user_id)
    except ValueError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == uuid_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )

    return user


def require_permission(permission: str):
    """Dependency factory to check if user has a specific permission."""

    async def permission_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not has_permission(current_user.role, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return permission_checker


def require_roles(*roles: Role):
    """Dependency factory to check if user has one of the specified roles."""

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return role_checker


async def require_school_access(
    current_user: Annotated[User, Depends(get_current_user)],
    db: DbSession,
) -> User:
    """
    Payment access gate for tenant-scoped routes.

    Runs after authentication and before feature checks. Superadmins are
    never gated. Raises 402 when the school's grace period has run out.
    """
    if current_user.is_superadmin:
        return current_user

    if current_user.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No school associated with this account",
        )

    school = await db.get(School, current_user.school_id)
    if school is None or not school.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="School is disabled",
        )

    decision = evaluate_school_access(school)
    if not decision.allowed:
        raise PaymentRequiredError(
            payment_status=decision.payment_status.value,
            days_overdue=decision.days_overdue,
        )

    return current_user


async def ensure_feature_enabled(db: AsyncSession, user: User, key: str) -> None:
    """Raise 403 unless the user's school has feature ``key`` enabled."""
    if user.is_superadmin:
        return
    if user.school_id is None or not await is_feature_enabled(db, user.school_id, key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Feature '{key}' is not enabled for this school",
        )


async def require_enabled_feature(
    key: str,
    current_user: Annotated[User, Depends(require_school_access)],
    db: DbSession,
) -> User:
    """
    Feature entitlement gate for routes taking a ``{key}`` path parameter.

    Runs after the payment gate, so a blocked school gets 402 before 403.
    """
    await ensure_feature_enabled(db, current_user, key)
    return current_user


def get_notifier(request: Request) -> Notifier:
    """Notification collaborator built at startup."""
    return request.app.state.notifier


def get_storage(request: Request) -> Storage:
    """Object storage collaborator built at startup."""
    return request.app.state.storage


# Common dependency aliases
CurrentUser = Annotated[User, Depends(get_current_user)]
SuperAdmin = Annotated[User, Depends(require_roles(Role.SUPERADMIN))]
SchoolUser = Annotated[User, Depends(require_school_access)]
FeatureUser = Annotated[User, Depends(require_enabled_feature)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
StorageDep = Annotated[Storage, Depends(get_storage)]
