"""Pydantic schemas for enrollments and progress.

Request and response models for:
- Enrollment (free and paid)
- Lesson progress, completion, quizzes and notes
- Rating, settings, drop and certificate
- Course enrollment listings and statistics
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mindful.courses.models import QuizResult

from .aggregate import MAX_NOTE_LENGTH, MAX_REVIEW_LENGTH, Enrollment
from .models import (
    MAX_PLAYBACK_SPEED,
    MIN_PLAYBACK_SPEED,
    Certificate,
    CourseEnrollmentStats,
    CurrentLesson,
    EnrollmentSettings,
    EnrollmentStatus,
    EnrollmentSummary,
    LessonNote,
    LessonProgress,
    ModuleProgress,
    PaymentInfo,
    ProgressSnapshot,
    QuizAttempt,
    Rating,
)


# ==============================================================================
# Enrollment Requests
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll the current user in a free course."""

    course_id: UUID = Field(..., description="Course UUID")


class PaymentInfoSchema(BaseModel):
    """Verified payment details sent by the payment service."""

    transaction_id: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    payment_method: str | None = Field(default=None, max_length=50)
    paid_at: datetime | None = None

    def to_entity(self) -> PaymentInfo:
        return PaymentInfo(
            transaction_id=self.transaction_id,
            amount=self.amount,
            currency=self.currency.upper(),
            payment_method=self.payment_method,
            paid_at=self.paid_at,
        )


class InternalEnrollRequest(BaseModel):
    """Request from the payment service to enroll a user after payment."""

    user_id: UUID
    course_id: UUID
    payment: PaymentInfoSchema


# ==============================================================================
# Progress Requests
# ==============================================================================


class UpdateLessonProgressRequest(BaseModel):
    """Playback progress update (sent periodically by the player)."""

    position: int = Field(..., ge=0, description="Current position in seconds")
    watch_time: int = Field(..., ge=0, description="Total seconds watched")
    completed: bool = Field(default=False, description="Also mark lesson complete")


class MarkLessonCompleteRequest(BaseModel):
    """Request to mark a non-quiz lesson as complete."""

    watch_time: int = Field(default=0, ge=0)


class SubmitQuizRequest(BaseModel):
    """Quiz answers, one option index per question."""

    answers: list[int] = Field(..., description="Selected option per question")


class AddNoteRequest(BaseModel):
    timestamp: int = Field(..., ge=0, description="Media offset in seconds")
    content: str = Field(..., min_length=1, max_length=MAX_NOTE_LENGTH)


class RateCourseRequest(BaseModel):
    score: int = Field(..., ge=1, le=5)
    review: str | None = Field(default=None, max_length=MAX_REVIEW_LENGTH)


class UpdateSettingsRequest(BaseModel):
    """Partial settings update; omitted fields keep their value."""

    notifications: bool | None = None
    auto_play: bool | None = None
    playback_speed: float | None = Field(
        default=None, ge=MIN_PLAYBACK_SPEED, le=MAX_PLAYBACK_SPEED
    )
    subtitles: bool | None = None


class IssueCertificateRequest(BaseModel):
    certificate_id: str = Field(..., min_length=1, max_length=255)
    download_url: str | None = Field(default=None, max_length=2048)


# ==============================================================================
# Tree Responses
# ==============================================================================


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempted_at: datetime
    score: int
    answers: list[Any]
    passed: bool

    @classmethod
    def from_entity(cls, entity: QuizAttempt) -> "QuizAttemptResponse":
        return cls.model_validate(entity)


class LessonNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timestamp: int
    content: str
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: LessonNote) -> "LessonNoteResponse":
        return cls.model_validate(entity)


class LessonProgressResponse(BaseModel):
    """Lesson progress response."""

    lesson_id: UUID
    content_type: str | None = None
    completed: bool
    completed_at: datetime | None = None
    watch_time: int
    last_position: int = Field(description="Resume position in seconds")
    attempts: list[QuizAttemptResponse] = []
    notes: list[LessonNoteResponse] = []

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        """Create response from entity."""
        return cls(
            lesson_id=entity.lesson_id,
            content_type=entity.content_type,
            completed=entity.completed,
            completed_at=entity.completed_at,
            watch_time=entity.watch_time,
            last_position=entity.last_position,
            attempts=[QuizAttemptResponse.from_entity(a) for a in entity.attempts],
            notes=[LessonNoteResponse.from_entity(n) for n in entity.notes],
        )


class ModuleProgressResponse(BaseModel):
    """Module progress response (aggregated)."""

    module_id: UUID
    progress_percentage: int
    completed: bool
    completed_at: datetime | None = None
    lessons_progress: list[LessonProgressResponse]

    @classmethod
    def from_entity(cls, entity: ModuleProgress) -> "ModuleProgressResponse":
        """Create response from entity."""
        return cls(
            module_id=entity.module_id,
            progress_percentage=entity.progress_percentage,
            completed=entity.completed,
            completed_at=entity.completed_at,
            lessons_progress=[
                LessonProgressResponse.from_entity(lesson)
                for lesson in entity.lessons_progress
            ],
        )


class ProgressSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    percentage: int = Field(description="0-100 percentage")
    completed_lessons: int
    total_lessons: int
    completed_modules: int
    total_modules: int
    total_watch_time: int

    @classmethod
    def from_entity(cls, entity: ProgressSnapshot) -> "ProgressSnapshotResponse":
        return cls.model_validate(entity)


class CurrentLessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    module_id: UUID
    lesson_id: UUID
    position: int


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    score: int
    review: str | None = None
    rated_at: datetime


class CertificateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    issued: bool
    issued_at: datetime | None = None
    certificate_id: str | None = None
    download_url: str | None = None

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        return cls.model_validate(entity)


class SettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notifications: bool
    auto_play: bool
    playback_speed: float
    subtitles: bool

    @classmethod
    def from_entity(cls, entity: EnrollmentSettings) -> "SettingsResponse":
        return cls.model_validate(entity)


class PaymentInfoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal
    currency: str
    payment_method: str | None = None
    paid_at: datetime | None = None


def _optional(schema: type[BaseModel], entity: Any) -> Any:
    return schema.model_validate(entity) if entity is not None else None


# ==============================================================================
# Enrollment Responses
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Full enrollment with its progress tree."""

    user_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    progress: ProgressSnapshotResponse
    modules_progress: list[ModuleProgressResponse]
    current_lesson: CurrentLessonResponse | None = None
    enrolled_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    dropped_at: datetime | None = None
    rating: RatingResponse | None = None
    payment_info: PaymentInfoResponse | None = None
    certificate: CertificateResponse
    settings: SettingsResponse

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            status=EnrollmentStatus(entity.status),
            progress=ProgressSnapshotResponse.from_entity(entity.progress),
            modules_progress=[
                ModuleProgressResponse.from_entity(module)
                for module in entity.modules_progress
            ],
            current_lesson=_optional(CurrentLessonResponse, entity.current_lesson),
            enrolled_at=entity.enrolled_at,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            last_accessed_at=entity.last_accessed_at,
            dropped_at=entity.dropped_at,
            rating=_optional(RatingResponse, entity.rating),
            payment_info=_optional(PaymentInfoResponse, entity.payment_info),
            certificate=CertificateResponse.from_entity(entity.certificate),
            settings=SettingsResponse.from_entity(entity.settings),
        )


class EnrollmentProgressResponse(BaseModel):
    """Progress, status and resume pointer of an enrollment."""

    course_id: UUID
    status: EnrollmentStatus
    progress: ProgressSnapshotResponse
    current_lesson: CurrentLessonResponse | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentProgressResponse":
        return cls(
            course_id=entity.course_id,
            status=EnrollmentStatus(entity.status),
            progress=ProgressSnapshotResponse.from_entity(entity.progress),
            current_lesson=_optional(CurrentLessonResponse, entity.current_lesson),
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            last_accessed_at=entity.last_accessed_at,
        )


class EnrollmentSummaryResponse(BaseModel):
    """Enrollment list item."""

    user_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    progress_percent: int
    completed_lessons: int
    total_lessons: int
    enrolled_at: datetime
    last_accessed_at: datetime | None = None

    @classmethod
    def from_summary(cls, entity: EnrollmentSummary) -> "EnrollmentSummaryResponse":
        """Create from a lookup table row."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            status=EnrollmentStatus(entity.status),
            progress_percent=entity.progress_percent,
            completed_lessons=entity.completed_lessons,
            total_lessons=entity.total_lessons,
            enrolled_at=entity.enrolled_at,
            last_accessed_at=entity.last_accessed_at,
        )

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentSummaryResponse":
        """Create from a full enrollment."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            status=EnrollmentStatus(entity.status),
            progress_percent=entity.progress.percentage,
            completed_lessons=entity.progress.completed_lessons,
            total_lessons=entity.progress.total_lessons,
            enrolled_at=entity.enrolled_at,
            last_accessed_at=entity.last_accessed_at,
        )


class EnrollmentListResponse(BaseModel):
    items: list[EnrollmentSummaryResponse]
    total: int


# ==============================================================================
# Operation Responses
# ==============================================================================


class QuizSubmissionResponse(BaseModel):
    """Graded quiz attempt and the lesson state after recording it."""

    score: int
    passed: bool
    correct_answers: int
    total_questions: int
    passing_score: int
    lesson: LessonProgressResponse
    progress: ProgressSnapshotResponse
    status: EnrollmentStatus

    @classmethod
    def from_result(
        cls, result: QuizResult, enrollment: Enrollment, lesson: LessonProgress
    ) -> "QuizSubmissionResponse":
        return cls(
            score=result.score,
            passed=result.passed,
            correct_answers=result.correct_answers,
            total_questions=result.total_questions,
            passing_score=result.passing_score,
            lesson=LessonProgressResponse.from_entity(lesson),
            progress=ProgressSnapshotResponse.from_entity(enrollment.progress),
            status=EnrollmentStatus(enrollment.status),
        )


class LessonUpdateResponse(BaseModel):
    """Lesson state plus the recomputed course progress."""

    lesson: LessonProgressResponse
    module_progress_percentage: int
    module_completed: bool
    progress: ProgressSnapshotResponse
    status: EnrollmentStatus

    @classmethod
    def from_entity(
        cls, enrollment: Enrollment, module_id: UUID, lesson_id: UUID
    ) -> "LessonUpdateResponse":
        module = enrollment.find_module(module_id)
        return cls(
            lesson=LessonProgressResponse.from_entity(
                enrollment.find_lesson(module_id, lesson_id)
            ),
            module_progress_percentage=module.progress_percentage,
            module_completed=module.completed,
            progress=ProgressSnapshotResponse.from_entity(enrollment.progress),
            status=EnrollmentStatus(enrollment.status),
        )


# ==============================================================================
# Statistics
# ==============================================================================


class StatusStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    avg_progress: float
    avg_watch_time: float


class CourseEnrollmentStatsResponse(BaseModel):
    """Enrollment statistics for course instructors."""

    course_id: UUID
    total_enrollments: int
    by_status: dict[str, StatusStatsResponse]
    rating_average: float | None = None
    rating_count: int = 0

    @classmethod
    def from_entity(
        cls, entity: CourseEnrollmentStats
    ) -> "CourseEnrollmentStatsResponse":
        return cls(
            course_id=entity.course_id,
            total_enrollments=entity.total_enrollments,
            by_status={
                status: StatusStatsResponse.model_validate(stats)
                for status, stats in entity.by_status.items()
            },
            rating_average=entity.rating_average,
            rating_count=entity.rating_count,
        )
