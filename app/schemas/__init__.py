"""Pydantic schemas."""

from app.schemas.auth import (
    Token,
    LoginRequest,
    RefreshRequest,
)
from app.schemas.user import UserResponse

__all__ = [
    # Auth
    "Token",
    "LoginRequest",
    "RefreshRequest",
    # User
    "UserResponse",
]
