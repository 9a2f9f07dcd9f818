"""Role-based access control (RBAC) for course tracking.

Hierarchical permission system:
- ADMIN (level 2): Full system access
- INSTRUCTOR (level 1): Author courses, lessons and quizzes
- STUDENT (level 0): Enroll in courses and record progress
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels.

    Higher level = more permissions.
    ADMIN can do everything INSTRUCTOR can do, and more.
    """

    STUDENT = "student"  # Level 0: Course attendee
    INSTRUCTOR = "instructor"  # Level 1: Course author
    ADMIN = "admin"  # Level 2: System administrator


# Role hierarchy mapping (role -> permission level)
ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 0,
    UserRole.INSTRUCTOR: 1,
    UserRole.ADMIN: 2,
}

# Level of unknown role strings, below every real role
UNKNOWN_ROLE_LEVEL = -1


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role.

    Args:
        role: UserRole enum or string representation (case insensitive)

    Returns:
        Permission level (0-2), -1 for unknown roles
    """
    if isinstance(role, str) and not isinstance(role, UserRole):
        try:
            role = UserRole(role.lower())
        except ValueError:
            return UNKNOWN_ROLE_LEVEL
    return ROLE_HIERARCHY.get(role, UNKNOWN_ROLE_LEVEL)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Uses hierarchical comparison: ADMIN >= INSTRUCTOR >= STUDENT

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.INSTRUCTOR)
        True
        >>> has_permission(UserRole.STUDENT, UserRole.INSTRUCTOR)
        False
        >>> has_permission("Instructor", "student")
        True
    """
    required_level = get_role_level(required_role)
    if required_level == UNKNOWN_ROLE_LEVEL:
        return False
    return get_role_level(user_role) >= required_level


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]


def is_at_least_instructor(role: UserRole | str) -> bool:
    """Check if role is INSTRUCTOR or higher (ADMIN)."""
    return has_permission(role, UserRole.INSTRUCTOR)
