"""Database models for the course catalog (read side).

Courses are authored elsewhere; this service only reads them to build the
curriculum snapshot copied into each enrollment and to grade quizzes.

Cassandra table definitions for:
- Courses: Main course table with pricing
- Lessons: Lesson content type, duration and quiz definition
- Junction tables: course_modules, module_lessons (ordered by position)
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import orjson

from mindful.utils import ensure_utc_aware, percent_of


class ContentStatus(str, Enum):
    """Content publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Lesson content type."""

    VIDEO = "video"
    AUDIO = "audio"  # Guided meditations
    TEXT = "text"
    QUIZ = "quiz"  # Completes only through a passing attempt


class PricingType(str, Enum):
    """How a course is sold."""

    FREE = "free"
    PAID = "paid"
    PREMIUM = "premium"  # Included in subscription plans


DEFAULT_PASSING_SCORE = 70


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    status TEXT,
    pricing_type TEXT,
    price DECIMAL,
    currency TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    title TEXT,
    content_type TEXT,
    duration_seconds INT,
    quiz TEXT,
    status TEXT,
    created_at TIMESTAMP
)
"""

COURSE_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
    course_id UUID,
    position INT,
    module_id UUID,
    PRIMARY KEY (course_id, position, module_id)
) WITH CLUSTERING ORDER BY (position ASC, module_id ASC)
"""

MODULE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_lessons (
    module_id UUID,
    position INT,
    lesson_id UUID,
    PRIMARY KEY (module_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LESSON_TABLE_CQL,
    COURSE_MODULES_TABLE_CQL,
    MODULE_LESSONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Course:
    """Course entity (catalog fields needed for enrollment)."""

    id: UUID
    title: str = ""
    status: str = ContentStatus.DRAFT.value
    pricing_type: str = PricingType.FREE.value
    price: Decimal | None = None
    currency: str = "USD"
    created_at: datetime | None = None

    @property
    def is_published(self) -> bool:
        """Only published courses accept enrollments."""
        return self.status == ContentStatus.PUBLISHED.value

    @property
    def is_free(self) -> bool:
        """Free courses are enrolled without payment."""
        return self.pricing_type == PricingType.FREE.value or not self.price

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            status=row.status or ContentStatus.DRAFT.value,
            pricing_type=row.pricing_type or PricingType.FREE.value,
            price=row.price,
            currency=row.currency or "USD",
            created_at=ensure_utc_aware(row.created_at),
        )

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status}, {self.pricing_type})>"


@dataclass
class QuizQuestion:
    """One multiple-choice question; ``correct_answer`` is an option index."""

    question: str
    options: list[str]
    correct_answer: int
    explanation: str | None = None


@dataclass
class QuizResult:
    """Outcome of grading a set of answers."""

    score: int
    passed: bool
    correct_answers: int
    total_questions: int
    passing_score: int


@dataclass
class Quiz:
    """Quiz definition attached to a quiz lesson."""

    questions: list[QuizQuestion] = field(default_factory=list)
    passing_score: int = DEFAULT_PASSING_SCORE

    def grade(self, answers: list[Any]) -> QuizResult:
        """Grade answers positionally against each question's correct option.

        Missing answers count as wrong; extra answers are ignored.
        """
        correct = sum(
            1
            for index, question in enumerate(self.questions)
            if index < len(answers) and answers[index] == question.correct_answer
        )
        score = percent_of(correct, len(self.questions))
        return QuizResult(
            score=score,
            passed=score >= self.passing_score,
            correct_answers=correct,
            total_questions=len(self.questions),
            passing_score=self.passing_score,
        )

    @classmethod
    def from_json(
        cls, raw: str | bytes, default_passing_score: int = DEFAULT_PASSING_SCORE
    ) -> "Quiz":
        """Parse the quiz document stored in the lessons table."""
        data = orjson.loads(raw)
        return cls(
            questions=[
                QuizQuestion(
                    question=q.get("question", ""),
                    options=list(q.get("options", [])),
                    correct_answer=q["correct_answer"],
                    explanation=q.get("explanation"),
                )
                for q in data.get("questions", [])
            ],
            passing_score=data.get("passing_score", default_passing_score),
        )


# ==============================================================================
# Curriculum Snapshot
# ==============================================================================


@dataclass(frozen=True)
class CurriculumLesson:
    """A lesson as seen by an enrollment: identity and content type only."""

    lesson_id: UUID
    content_type: str | None = None


@dataclass(frozen=True)
class CurriculumModule:
    """An ordered module of the curriculum."""

    module_id: UUID
    lessons: tuple[CurriculumLesson, ...] = ()


@dataclass(frozen=True)
class CurriculumSnapshot:
    """Ordered module/lesson structure of a course at one point in time."""

    course_id: UUID
    modules: tuple[CurriculumModule, ...] = ()

    @property
    def total_lessons(self) -> int:
        """Number of lessons across all modules."""
        return sum(len(module.lessons) for module in self.modules)
