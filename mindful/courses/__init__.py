"""Course catalog module (read side).

Provides:
- Published course lookup
- Curriculum snapshots for new enrollments
- Quiz definitions and grading
"""

from mindful.courses.models import (
    COURSES_TABLES_CQL,
    ContentStatus,
    ContentType,
    Course,
    CurriculumLesson,
    CurriculumModule,
    CurriculumSnapshot,
    Quiz,
    QuizQuestion,
    QuizResult,
)


__all__ = [
    "COURSES_TABLES_CQL",
    "ContentStatus",
    "ContentType",
    "Course",
    "CurriculumLesson",
    "CurriculumModule",
    "CurriculumSnapshot",
    "Quiz",
    "QuizQuestion",
    "QuizResult",
]
