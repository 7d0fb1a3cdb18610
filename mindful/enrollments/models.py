"""Enrollment progress tree and value objects.

Cassandra table definitions for:
- Enrollments: one row per (course, user) holding the whole progress tree
- Lookup table: enrollments by user for "my courses" queries

Architecture: the module/lesson progress tree is an embedded JSON document
(orjson) so that one conditional write covers every derived field. The
lookup table is dual-written after each successful save.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import orjson

from mindful.utils import ensure_utc_aware, parse_datetime


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ENROLLED = "enrolled"  # Enrolled, no lesson completed yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Every lesson completed
    DROPPED = "dropped"  # Left by the learner, sticky


ACTIVE_STATUSES = frozenset({EnrollmentStatus.ENROLLED, EnrollmentStatus.IN_PROGRESS})

MIN_PLAYBACK_SPEED = 0.25
MAX_PLAYBACK_SPEED = 4.0


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by course_id: "who is enrolled in this course?"
# version guards every update (lightweight transaction)
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    status TEXT,
    modules_progress TEXT,
    progress_percent INT,
    completed_lessons INT,
    total_lessons INT,
    completed_modules INT,
    total_modules INT,
    total_watch_time INT,
    current_lesson TEXT,
    rating TEXT,
    payment_info TEXT,
    certificate TEXT,
    settings TEXT,
    enrolled_at TIMESTAMP,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    dropped_at TIMESTAMP,
    version INT,
    PRIMARY KEY (course_id, user_id)
)
"""

# Lookup: courses by user, partitioned by user_id
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    course_id UUID,
    status TEXT,
    progress_percent INT,
    completed_lessons INT,
    total_lessons INT,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (user_id, enrolled_at, course_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, course_id ASC)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _dumps(value: Any) -> str | None:
    if value is None:
        return None
    return orjson.dumps(value).decode()


def _loads(raw: str | None) -> Any:
    if not raw:
        return None
    return orjson.loads(raw)


# ==============================================================================
# Value Objects
# ==============================================================================


@dataclass
class QuizAttempt:
    """One graded quiz attempt (append-only history)."""

    attempted_at: datetime
    score: int
    answers: list[Any]
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted_at": _iso(self.attempted_at),
            "score": self.score,
            "answers": self.answers,
            "passed": self.passed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizAttempt":
        return cls(
            attempted_at=parse_datetime(data["attempted_at"]),
            score=data["score"],
            answers=list(data.get("answers", [])),
            passed=data["passed"],
        )


@dataclass
class LessonNote:
    """Learner annotation; ``timestamp`` is the media offset in seconds."""

    timestamp: int
    content: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LessonNote":
        return cls(
            timestamp=data["timestamp"],
            content=data["content"],
            created_at=parse_datetime(data["created_at"]),
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    """Course-level aggregate, always recomputed from the tree."""

    percentage: int = 0
    completed_lessons: int = 0
    total_lessons: int = 0
    completed_modules: int = 0
    total_modules: int = 0
    total_watch_time: int = 0


@dataclass(frozen=True)
class CurrentLesson:
    """Pointer to the most recently accessed lesson."""

    module_id: UUID
    lesson_id: UUID
    position: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_id": str(self.module_id),
            "lesson_id": str(self.lesson_id),
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrentLesson":
        return cls(
            module_id=UUID(data["module_id"]),
            lesson_id=UUID(data["lesson_id"]),
            position=data.get("position", 0),
        )


@dataclass(frozen=True)
class Rating:
    """Learner rating of the course (1-5)."""

    score: int
    review: str | None
    rated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "review": self.review,
            "rated_at": _iso(self.rated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rating":
        return cls(
            score=data["score"],
            review=data.get("review"),
            rated_at=parse_datetime(data["rated_at"]),
        )


@dataclass(frozen=True)
class PaymentInfo:
    """Verified payment recorded at enrollment time. Immutable."""

    transaction_id: str
    amount: Decimal
    currency: str = "USD"
    payment_method: str | None = None
    paid_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "payment_method": self.payment_method,
            "paid_at": _iso(self.paid_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentInfo":
        return cls(
            transaction_id=data["transaction_id"],
            amount=Decimal(data["amount"]),
            currency=data.get("currency", "USD"),
            payment_method=data.get("payment_method"),
            paid_at=parse_datetime(data.get("paid_at")),
        )


@dataclass
class Certificate:
    """Completion certificate state."""

    issued: bool = False
    issued_at: datetime | None = None
    certificate_id: str | None = None
    download_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "issued": self.issued,
            "issued_at": _iso(self.issued_at),
            "certificate_id": self.certificate_id,
            "download_url": self.download_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Certificate":
        return cls(
            issued=data.get("issued", False),
            issued_at=parse_datetime(data.get("issued_at")),
            certificate_id=data.get("certificate_id"),
            download_url=data.get("download_url"),
        )


@dataclass
class EnrollmentSettings:
    """Learner playback preferences for the course."""

    notifications: bool = True
    auto_play: bool = True
    playback_speed: float = 1.0
    subtitles: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "notifications": self.notifications,
            "auto_play": self.auto_play,
            "playback_speed": self.playback_speed,
            "subtitles": self.subtitles,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnrollmentSettings":
        defaults = cls()
        return cls(
            notifications=data.get("notifications", defaults.notifications),
            auto_play=data.get("auto_play", defaults.auto_play),
            playback_speed=data.get("playback_speed", defaults.playback_speed),
            subtitles=data.get("subtitles", defaults.subtitles),
        )


# ==============================================================================
# Progress Tree
# ==============================================================================


@dataclass
class LessonProgress:
    """One learner's state for one lesson.

    ``completed`` and ``watch_time`` only move forward; ``last_position``
    is overwritten because learners rewind.
    """

    lesson_id: UUID
    content_type: str | None = None
    completed: bool = False
    completed_at: datetime | None = None
    watch_time: int = 0
    last_position: int = 0
    attempts: list[QuizAttempt] = field(default_factory=list)
    notes: list[LessonNote] = field(default_factory=list)

    def mark_complete(self, watch_time: int, now: datetime) -> None:
        """Complete the lesson and merge watch time. Idempotent."""
        if not self.completed:
            self.completed = True
            self.completed_at = now
        self.watch_time = max(self.watch_time, watch_time)

    def update_progress(self, position: int, watch_time: int) -> None:
        """Record playback position and merge watch time."""
        self.last_position = position
        self.watch_time = max(self.watch_time, watch_time)

    def record_quiz_attempt(
        self, score: int, answers: list[Any], passed: bool, now: datetime
    ) -> QuizAttempt:
        """Append an attempt; a passing one completes the lesson."""
        attempt = QuizAttempt(
            attempted_at=now, score=score, answers=list(answers), passed=passed
        )
        self.attempts.append(attempt)
        if passed:
            self.mark_complete(0, now)
        return attempt

    def add_note(self, timestamp: int, content: str, now: datetime) -> LessonNote:
        """Append a note taken at a media offset."""
        note = LessonNote(timestamp=timestamp, content=content, created_at=now)
        self.notes.append(note)
        return note

    def to_dict(self) -> dict[str, Any]:
        return {
            "lesson_id": str(self.lesson_id),
            "content_type": self.content_type,
            "completed": self.completed,
            "completed_at": _iso(self.completed_at),
            "watch_time": self.watch_time,
            "last_position": self.last_position,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
            "notes": [note.to_dict() for note in self.notes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LessonProgress":
        return cls(
            lesson_id=UUID(data["lesson_id"]),
            content_type=data.get("content_type"),
            completed=data.get("completed", False),
            completed_at=parse_datetime(data.get("completed_at")),
            watch_time=data.get("watch_time", 0),
            last_position=data.get("last_position", 0),
            attempts=[QuizAttempt.from_dict(a) for a in data.get("attempts", [])],
            notes=[LessonNote.from_dict(n) for n in data.get("notes", [])],
        )

    def __repr__(self) -> str:
        return (
            f"<LessonProgress lesson={self.lesson_id} "
            f"completed={self.completed} watch_time={self.watch_time}>"
        )


@dataclass
class ModuleProgress:
    """Progress of one curriculum module.

    ``progress_percentage``, ``completed`` and ``completed_at`` are derived
    by the engine and never set by callers.
    """

    module_id: UUID
    lessons_progress: list[LessonProgress] = field(default_factory=list)
    progress_percentage: int = 0
    completed: bool = False
    completed_at: datetime | None = None

    def find_lesson(self, lesson_id: UUID) -> LessonProgress | None:
        for lesson in self.lessons_progress:
            if lesson.lesson_id == lesson_id:
                return lesson
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_id": str(self.module_id),
            "lessons_progress": [lesson.to_dict() for lesson in self.lessons_progress],
            "progress_percentage": self.progress_percentage,
            "completed": self.completed,
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleProgress":
        return cls(
            module_id=UUID(data["module_id"]),
            lessons_progress=[
                LessonProgress.from_dict(lesson)
                for lesson in data.get("lessons_progress", [])
            ],
            progress_percentage=data.get("progress_percentage", 0),
            completed=data.get("completed", False),
            completed_at=parse_datetime(data.get("completed_at")),
        )

    def __repr__(self) -> str:
        return (
            f"<ModuleProgress module={self.module_id} "
            f"{self.progress_percentage}% completed={self.completed}>"
        )


def dump_modules(modules: list[ModuleProgress]) -> str:
    """Serialize the progress tree for the modules_progress column."""
    return _dumps([module.to_dict() for module in modules])


def load_modules(raw: str | None) -> list[ModuleProgress]:
    """Deserialize the modules_progress column."""
    return [ModuleProgress.from_dict(m) for m in _loads(raw) or []]


def dump_value(value: Any) -> str | None:
    """Serialize an optional value object (rating, certificate, ...)."""
    return _dumps(value.to_dict()) if value is not None else None


def load_value(cls: Any, raw: str | None) -> Any:
    """Deserialize an optional value object column."""
    data = _loads(raw)
    return cls.from_dict(data) if data is not None else None


# ==============================================================================
# Lookup Row
# ==============================================================================


@dataclass
class EnrollmentSummary:
    """Row of the enrollments_by_user lookup table."""

    user_id: UUID
    course_id: UUID
    status: str
    enrolled_at: datetime
    progress_percent: int = 0
    completed_lessons: int = 0
    total_lessons: int = 0
    last_accessed_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "EnrollmentSummary":
        """Create EnrollmentSummary instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            status=row.status or EnrollmentStatus.ENROLLED.value,
            enrolled_at=ensure_utc_aware(row.enrolled_at),
            progress_percent=row.progress_percent or 0,
            completed_lessons=row.completed_lessons or 0,
            total_lessons=row.total_lessons or 0,
            last_accessed_at=ensure_utc_aware(row.last_accessed_at),
        )


# ==============================================================================
# Course Statistics
# ==============================================================================


@dataclass(frozen=True)
class StatusStats:
    """Aggregates over the enrollments of one status."""

    count: int = 0
    avg_progress: float = 0.0
    avg_watch_time: float = 0.0


@dataclass(frozen=True)
class CourseEnrollmentStats:
    """Enrollment statistics of a course."""

    course_id: UUID
    total_enrollments: int
    by_status: dict[str, StatusStats]
    rating_average: float | None = None
    rating_count: int = 0
