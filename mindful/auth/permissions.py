"""Role-based access control (RBAC) for Mindful.

Hierarchical permission system:
- ADMIN (level 3): Full system access
- TEACHER (level 2): Instructors, see enrollments and statistics of courses
- STUDENT (level 1): Learner with at least one enrollment
- USER (level 0): Registered user
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels.

    Higher level = more permissions.
    """

    USER = "user"
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


# Role hierarchy mapping (role -> permission level)
ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.USER: 0,
    UserRole.STUDENT: 1,
    UserRole.TEACHER: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role.

    Args:
        role: UserRole enum or string representation

    Returns:
        Permission level (0-3), defaults to 0 for unknown roles
    """
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.TEACHER)
        True
        >>> has_permission(UserRole.STUDENT, UserRole.TEACHER)
        False
        >>> has_permission("admin", "student")
        True
    """
    return get_role_level(user_role) >= get_role_level(required_role)
