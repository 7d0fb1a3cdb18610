"""Shared test fixtures."""

import os
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest


# Must be set before settings are first loaded
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("MASTER_API_KEY", "test-master-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "mindful-test-logs"))

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from mindful.auth.permissions import UserRole  # noqa: E402
from mindful.auth.security import create_access_token  # noqa: E402
from mindful.courses.models import (  # noqa: E402
    ContentType,
    CurriculumLesson,
    CurriculumModule,
    CurriculumSnapshot,
)
from mindful.enrollments.aggregate import Enrollment  # noqa: E402


MASTER_API_KEY = "test-master-key"


@pytest.fixture
def now() -> datetime:
    """Fixed clock value."""
    return datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def course_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_curriculum() -> Callable[..., CurriculumSnapshot]:
    """Factory building a curriculum from per-module content types.

    ``make_curriculum(course_id, ["video", "video"], ["quiz"])`` gives two
    modules, the first with two video lessons, the second with one quiz.
    """

    def _make(course_id: UUID, *modules: list[str]) -> CurriculumSnapshot:
        return CurriculumSnapshot(
            course_id=course_id,
            modules=tuple(
                CurriculumModule(
                    module_id=uuid4(),
                    lessons=tuple(
                        CurriculumLesson(lesson_id=uuid4(), content_type=content_type)
                        for content_type in content_types
                    ),
                )
                for content_types in modules
            ),
        )

    return _make


@pytest.fixture
def make_enrollment(
    make_curriculum, user_id, course_id, now
) -> Callable[..., Enrollment]:
    """Factory creating a fresh enrollment for the given module layout."""

    def _make(*modules: list[str]) -> Enrollment:
        if not modules:
            modules = ([ContentType.VIDEO.value, ContentType.VIDEO.value],)
        curriculum = make_curriculum(course_id, *modules)
        return Enrollment.create(user_id, course_id, curriculum, now)

    return _make


@pytest.fixture
def app() -> FastAPI:
    """Application without lifespan (no database connections)."""
    from mindful.main import create_app

    return create_app()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client for the application."""
    return TestClient(app)


def _token(user_id: UUID, role: UserRole) -> str:
    return create_access_token(
        {
            "sub": str(user_id),
            "email": f"{role.value}@test.com",
            "role": role.value,
        }
    )


@pytest.fixture
def student_headers(user_id: UUID) -> dict[str, str]:
    """Authorization header for a student user."""
    return {"Authorization": f"Bearer {_token(user_id, UserRole.STUDENT)}"}


@pytest.fixture
def teacher_headers() -> dict[str, str]:
    """Authorization header for a teacher user."""
    return {"Authorization": f"Bearer {_token(uuid4(), UserRole.TEACHER)}"}


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    return {"X-API-Key": MASTER_API_KEY}
