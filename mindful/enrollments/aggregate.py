"""Enrollment root aggregate.

Binds one learner to one course and owns the module/lesson progress tree
copied from the curriculum at creation. Every operation validates its input,
raising before anything changes, then mutates, stamps ``last_accessed_at``
and recomputes derived state with an explicit ``now``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from mindful.courses.models import ContentType, CurriculumSnapshot
from mindful.utils import ensure_utc_aware

from .engine import recompute
from .exceptions import (
    InvalidEnrollmentStateError,
    InvalidProgressInputError,
    LessonProgressNotFoundError,
    ModuleProgressNotFoundError,
)
from .models import (
    ACTIVE_STATUSES,
    MAX_PLAYBACK_SPEED,
    MIN_PLAYBACK_SPEED,
    Certificate,
    CurrentLesson,
    EnrollmentSettings,
    EnrollmentStatus,
    LessonNote,
    LessonProgress,
    ModuleProgress,
    PaymentInfo,
    ProgressSnapshot,
    QuizAttempt,
    Rating,
    dump_modules,
    dump_value,
    load_modules,
    load_value,
)


MAX_NOTE_LENGTH = 5000
MAX_REVIEW_LENGTH = 2000

# Column order shared by the insert and update statements
ENROLLMENT_COLUMNS = (
    "status",
    "modules_progress",
    "progress_percent",
    "completed_lessons",
    "total_lessons",
    "completed_modules",
    "total_modules",
    "total_watch_time",
    "current_lesson",
    "rating",
    "payment_info",
    "certificate",
    "settings",
    "enrolled_at",
    "started_at",
    "completed_at",
    "last_accessed_at",
    "dropped_at",
)


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise InvalidProgressInputError(f"{name} must be non-negative")


@dataclass
class Enrollment:
    """Course enrollment aggregate.

    Attributes:
        user_id: Learner UUID
        course_id: Course UUID
        status: enrolled, in_progress, completed or dropped
        modules_progress: Progress tree, 1:1 with the curriculum snapshot
        progress: Derived course-level snapshot
        current_lesson: Last lesson whose position was updated
        version: Optimistic concurrency token, bumped by every save
    """

    user_id: UUID
    course_id: UUID
    enrolled_at: datetime
    status: str = EnrollmentStatus.ENROLLED.value
    modules_progress: list[ModuleProgress] = field(default_factory=list)
    progress: ProgressSnapshot = field(default_factory=ProgressSnapshot)
    current_lesson: CurrentLesson | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    dropped_at: datetime | None = None
    rating: Rating | None = None
    payment_info: PaymentInfo | None = None
    certificate: Certificate = field(default_factory=Certificate)
    settings: EnrollmentSettings = field(default_factory=EnrollmentSettings)
    version: int = 0

    # ==========================================================================
    # Creation
    # ==========================================================================

    @classmethod
    def create(
        cls,
        user_id: UUID,
        course_id: UUID,
        curriculum: CurriculumSnapshot,
        now: datetime,
        payment_info: PaymentInfo | None = None,
    ) -> "Enrollment":
        """Enroll a learner, mirroring the curriculum with zeroed progress."""
        if curriculum.course_id != course_id:
            raise InvalidProgressInputError("Curriculum belongs to another course")

        modules = [
            ModuleProgress(
                module_id=module.module_id,
                lessons_progress=[
                    LessonProgress(
                        lesson_id=lesson.lesson_id,
                        content_type=lesson.content_type,
                    )
                    for lesson in module.lessons
                ],
            )
            for module in curriculum.modules
        ]
        enrollment = cls(
            user_id=user_id,
            course_id=course_id,
            enrolled_at=now,
            modules_progress=modules,
            last_accessed_at=now,
            payment_info=payment_info,
        )
        return recompute(enrollment, now)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    @property
    def is_dropped(self) -> bool:
        return self.status == EnrollmentStatus.DROPPED.value

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED.value

    def find_module(self, module_id: UUID) -> ModuleProgress:
        for module in self.modules_progress:
            if module.module_id == module_id:
                return module
        raise ModuleProgressNotFoundError

    def find_lesson(self, module_id: UUID, lesson_id: UUID) -> LessonProgress:
        """Locate a lesson inside the enrollment's own curriculum snapshot."""
        lesson = self.find_module(module_id).find_lesson(lesson_id)
        if lesson is None:
            raise LessonProgressNotFoundError
        return lesson

    def _ensure_active(self) -> None:
        if self.is_dropped:
            raise InvalidEnrollmentStateError("Enrollment has been dropped")

    def _touch(self, now: datetime) -> None:
        self.last_accessed_at = now
        recompute(self, now)

    # ==========================================================================
    # Progress Operations
    # ==========================================================================

    def mark_lesson_complete(
        self, module_id: UUID, lesson_id: UUID, watch_time: int, now: datetime
    ) -> LessonProgress:
        """Complete a non-quiz lesson."""
        self._ensure_active()
        _require_non_negative("watch_time", watch_time)
        lesson = self.find_lesson(module_id, lesson_id)
        if lesson.content_type == ContentType.QUIZ.value:
            raise InvalidProgressInputError(
                "Quiz lessons are completed by passing the quiz"
            )

        lesson.mark_complete(watch_time, now)
        self._touch(now)
        return lesson

    def update_lesson_progress(
        self,
        module_id: UUID,
        lesson_id: UUID,
        position: int,
        watch_time: int,
        now: datetime,
    ) -> LessonProgress:
        """Record playback position and watch time, moving the resume pointer."""
        self._ensure_active()
        _require_non_negative("position", position)
        _require_non_negative("watch_time", watch_time)
        lesson = self.find_lesson(module_id, lesson_id)

        lesson.update_progress(position, watch_time)
        self.current_lesson = CurrentLesson(
            module_id=module_id, lesson_id=lesson_id, position=position
        )
        self._touch(now)
        return lesson

    def submit_quiz_attempt(
        self,
        module_id: UUID,
        lesson_id: UUID,
        score: int,
        answers: list[Any],
        passed: bool,
        now: datetime,
    ) -> QuizAttempt:
        """Append a graded attempt; passing completes the lesson."""
        self._ensure_active()
        if not 0 <= score <= 100:
            raise InvalidProgressInputError("score must be between 0 and 100")
        lesson = self.find_lesson(module_id, lesson_id)
        if lesson.content_type not in (None, ContentType.QUIZ.value):
            raise InvalidProgressInputError("Lesson is not a quiz")

        attempt = lesson.record_quiz_attempt(score, answers, passed, now)
        self._touch(now)
        return attempt

    def add_note(
        self,
        module_id: UUID,
        lesson_id: UUID,
        timestamp: int,
        content: str,
        now: datetime,
    ) -> LessonNote:
        self._ensure_active()
        _require_non_negative("timestamp", timestamp)
        content = content.strip()
        if not content or len(content) > MAX_NOTE_LENGTH:
            raise InvalidProgressInputError(
                f"Note must have between 1 and {MAX_NOTE_LENGTH} characters"
            )
        lesson = self.find_lesson(module_id, lesson_id)

        note = lesson.add_note(timestamp, content, now)
        self._touch(now)
        return note

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    def rate_course(self, score: int, review: str | None, now: datetime) -> Rating:
        """Rate the course. A new rating replaces the previous one."""
        self._ensure_active()
        if not 1 <= score <= 5:
            raise InvalidProgressInputError("Rating must be between 1 and 5")
        if review is not None and len(review) > MAX_REVIEW_LENGTH:
            raise InvalidProgressInputError(
                f"Review must have at most {MAX_REVIEW_LENGTH} characters"
            )

        self.rating = Rating(score=score, review=review, rated_at=now)
        self._touch(now)
        return self.rating

    def update_settings(
        self,
        now: datetime,
        notifications: bool | None = None,
        auto_play: bool | None = None,
        playback_speed: float | None = None,
        subtitles: bool | None = None,
    ) -> EnrollmentSettings:
        """Change playback preferences; ``None`` keeps the current value."""
        self._ensure_active()
        if playback_speed is not None and not (
            MIN_PLAYBACK_SPEED <= playback_speed <= MAX_PLAYBACK_SPEED
        ):
            raise InvalidProgressInputError(
                f"playback_speed must be between {MIN_PLAYBACK_SPEED} "
                f"and {MAX_PLAYBACK_SPEED}"
            )

        if notifications is not None:
            self.settings.notifications = notifications
        if auto_play is not None:
            self.settings.auto_play = auto_play
        if playback_speed is not None:
            self.settings.playback_speed = playback_speed
        if subtitles is not None:
            self.settings.subtitles = subtitles
        self._touch(now)
        return self.settings

    def drop(self, now: datetime) -> None:
        """Leave the course. Only enrolled or in-progress enrollments drop."""
        if EnrollmentStatus(self.status) not in ACTIVE_STATUSES:
            raise InvalidEnrollmentStateError(
                f"Cannot drop an enrollment that is {self.status}"
            )
        self.status = EnrollmentStatus.DROPPED.value
        self.dropped_at = now
        self._touch(now)

    def issue_certificate(
        self, certificate_id: str, download_url: str | None, now: datetime
    ) -> Certificate:
        """Record the completion certificate, once."""
        if not self.is_completed:
            raise InvalidEnrollmentStateError(
                "Certificates are issued only for completed enrollments"
            )
        if self.certificate.issued:
            raise InvalidEnrollmentStateError("Certificate already issued")

        self.certificate = Certificate(
            issued=True,
            issued_at=now,
            certificate_id=certificate_id,
            download_url=download_url,
        )
        self._touch(now)
        return self.certificate

    # ==========================================================================
    # Persistence Mapping
    # ==========================================================================

    def to_row(self) -> dict[str, Any]:
        """Column values for the enrollments table (without keys and version)."""
        return {
            "status": self.status,
            "modules_progress": dump_modules(self.modules_progress),
            "progress_percent": self.progress.percentage,
            "completed_lessons": self.progress.completed_lessons,
            "total_lessons": self.progress.total_lessons,
            "completed_modules": self.progress.completed_modules,
            "total_modules": self.progress.total_modules,
            "total_watch_time": self.progress.total_watch_time,
            "current_lesson": dump_value(self.current_lesson),
            "rating": dump_value(self.rating),
            "payment_info": dump_value(self.payment_info),
            "certificate": dump_value(self.certificate),
            "settings": dump_value(self.settings),
            "enrolled_at": self.enrolled_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "last_accessed_at": self.last_accessed_at,
            "dropped_at": self.dropped_at,
        }

    def row_values(self) -> list[Any]:
        """Column values in ENROLLMENT_COLUMNS order."""
        row = self.to_row()
        return [row[column] for column in ENROLLMENT_COLUMNS]

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            enrolled_at=ensure_utc_aware(row.enrolled_at),
            status=row.status or EnrollmentStatus.ENROLLED.value,
            modules_progress=load_modules(row.modules_progress),
            progress=ProgressSnapshot(
                percentage=row.progress_percent or 0,
                completed_lessons=row.completed_lessons or 0,
                total_lessons=row.total_lessons or 0,
                completed_modules=row.completed_modules or 0,
                total_modules=row.total_modules or 0,
                total_watch_time=row.total_watch_time or 0,
            ),
            current_lesson=load_value(CurrentLesson, row.current_lesson),
            started_at=ensure_utc_aware(row.started_at),
            completed_at=ensure_utc_aware(row.completed_at),
            last_accessed_at=ensure_utc_aware(row.last_accessed_at),
            dropped_at=ensure_utc_aware(row.dropped_at),
            rating=load_value(Rating, row.rating),
            payment_info=load_value(PaymentInfo, row.payment_info),
            certificate=load_value(Certificate, row.certificate) or Certificate(),
            settings=load_value(EnrollmentSettings, row.settings)
            or EnrollmentSettings(),
            version=row.version or 0,
        )

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status} {self.progress.percentage}%>"
        )
