"""Tests for auth permissions."""

import pytest

from mindful.auth.permissions import (
    ROLE_HIERARCHY,
    UserRole,
    get_role_level,
    has_permission,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.USER.value == "user"
        assert UserRole.STUDENT.value == "student"
        assert UserRole.TEACHER.value == "teacher"
        assert UserRole.ADMIN.value == "admin"

    def test_all_roles_have_levels(self) -> None:
        """All UserRole members should have defined levels."""
        for role in UserRole:
            assert role in ROLE_HIERARCHY


class TestGetRoleLevel:
    """Tests for get_role_level function."""

    @pytest.mark.parametrize(
        "role,expected_level",
        [
            (UserRole.USER, 0),
            (UserRole.STUDENT, 1),
            ("teacher", 2),
            ("admin", 3),
        ],
    )
    def test_levels(self, role: UserRole | str, expected_level: int) -> None:
        """Should return correct level for enum and string roles."""
        assert get_role_level(role) == expected_level

    def test_invalid_role_returns_zero(self) -> None:
        """Invalid roles should return level 0."""
        assert get_role_level("superadmin") == 0


class TestHasPermission:
    """Tests for has_permission function."""

    def test_teacher_permissions(self) -> None:
        """Teacher should have access up to teacher level."""
        assert has_permission(UserRole.TEACHER, UserRole.STUDENT) is True
        assert has_permission(UserRole.TEACHER, UserRole.TEACHER) is True
        assert has_permission(UserRole.TEACHER, UserRole.ADMIN) is False

    def test_student_cannot_reach_teacher(self) -> None:
        assert has_permission(UserRole.STUDENT, UserRole.TEACHER) is False

    def test_string_roles(self) -> None:
        """Should work with string role values."""
        assert has_permission("admin", "teacher") is True
        assert has_permission("user", "admin") is False
