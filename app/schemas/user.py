"""User schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.core.permissions import Role


class UserResponse(BaseModel):
    """User response schema."""

    id: UUID
    email: str
    name: str
    role: Role
    school_id: UUID | None
    branch_id: UUID | None
    force_password_change: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
