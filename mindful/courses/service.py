"""Course catalog read service.

Business logic for:
- Published course lookup for the enrollment gate
- Curriculum snapshot assembly (ordered modules and lessons)
- Quiz definition lookup for grading
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from mindful.courses.models import (
    DEFAULT_PASSING_SCORE,
    Course,
    CurriculumLesson,
    CurriculumModule,
    CurriculumSnapshot,
    Quiz,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class QuizNotFoundError(CourseError):
    """Lesson has no quiz definition."""

    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message, "quiz_not_found")


# ==============================================================================
# Curriculum Service
# ==============================================================================


class CurriculumService:
    """Read-only access to courses, their curriculum and quizzes."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        default_passing_score: int = DEFAULT_PASSING_SCORE,
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.default_passing_score = default_passing_score
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_course_modules = self.session.prepare(f"""
            SELECT module_id FROM {self.keyspace}.course_modules
            WHERE course_id = ?
        """)
        self._get_module_lessons = self.session.prepare(f"""
            SELECT lesson_id FROM {self.keyspace}.module_lessons
            WHERE module_id = ?
        """)
        self._get_lesson_type = self.session.prepare(
            f"SELECT content_type FROM {self.keyspace}.lessons WHERE id = ?"
        )
        self._get_lesson_quiz = self.session.prepare(
            f"SELECT quiz FROM {self.keyspace}.lessons WHERE id = ?"
        )

    async def get_course(self, course_id: UUID) -> Course:
        """Get course by ID.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        if not row:
            raise CourseNotFoundError
        return Course.from_row(row)

    async def get_published_course(self, course_id: UUID) -> Course:
        """Get a course that accepts enrollments.

        Unpublished courses are reported as missing so drafts stay hidden.
        """
        course = await self.get_course(course_id)
        if not course.is_published:
            logger.info(
                "course_not_published",
                course_id=str(course_id),
                status=course.status,
            )
            raise CourseNotFoundError
        return course

    async def get_curriculum(self, course_id: UUID) -> CurriculumSnapshot:
        """Build the ordered module/lesson snapshot of a course.

        Rows come back in clustering order (position ASC), which is the
        curriculum order.
        """
        module_rows = await self.session.aexecute(
            self._get_course_modules, [course_id]
        )
        modules = []
        for module_row in module_rows:
            lesson_rows = await self.session.aexecute(
                self._get_module_lessons, [module_row.module_id]
            )
            lessons = []
            for lesson_row in lesson_rows:
                type_result = await self.session.aexecute(
                    self._get_lesson_type, [lesson_row.lesson_id]
                )
                type_row = type_result.one()
                lessons.append(
                    CurriculumLesson(
                        lesson_id=lesson_row.lesson_id,
                        content_type=type_row.content_type if type_row else None,
                    )
                )
            modules.append(
                CurriculumModule(module_id=module_row.module_id, lessons=tuple(lessons))
            )

        snapshot = CurriculumSnapshot(course_id=course_id, modules=tuple(modules))
        logger.debug(
            "curriculum_loaded",
            course_id=str(course_id),
            modules=len(snapshot.modules),
            lessons=snapshot.total_lessons,
        )
        return snapshot

    async def get_quiz(self, lesson_id: UUID) -> Quiz:
        """Get the quiz definition of a lesson.

        Raises:
            QuizNotFoundError: If the lesson is missing or carries no quiz
        """
        result = await self.session.aexecute(self._get_lesson_quiz, [lesson_id])
        row = result.one()
        if not row or not row.quiz:
            raise QuizNotFoundError
        return Quiz.from_json(row.quiz, self.default_passing_score)
