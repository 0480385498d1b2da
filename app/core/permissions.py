"""User roles and permissions."""

from enum import Enum


class Role(str, Enum):
    """User roles in the system."""

    SUPERADMIN = "superadmin"  # Platform operator, manages catalog and billing
    SCHOOL_ADMIN = "school_admin"  # Full access to their school
    BRANCH_ADMIN = "branch_admin"  # Access to one branch of their school
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


# Permissions by role
ROLE_PERMISSIONS = {
    Role.SUPERADMIN: [
        "schools:read",
        "schools:write",
        "features:read",
        "features:write",
        "entitlements:read",
        "entitlements:write",
        "invoices:read",
        "invoices:write",
        "templates:read",
        "templates:write",
    ],
    Role.SCHOOL_ADMIN: [
        "features:read",
        "entitlements:read",
        "invoices:read",
        "templates:read",
    ],
    Role.BRANCH_ADMIN: [
        "features:read",
        "entitlements:read",
    ],
    Role.TEACHER: [
        "entitlements:read",
    ],
    Role.STUDENT: [
        "entitlements:read",
    ],
    Role.PARENT: [
        "entitlements:read",
    ],
}


def has_permission(role: Role, permission: str) -> bool:
    """Check if a role has a specific permission."""
    return permission in ROLE_PERMISSIONS.get(role, [])
