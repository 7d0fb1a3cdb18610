"""Enrollment service layer.

Business logic for:
- Enrollment creation (free and paid) with the curriculum snapshot
- Read-modify-write of the progress tree with optimistic concurrency
- Enrollment listings and per-course statistics

Every mutation loads the enrollment, applies one aggregate operation with a
fresh ``now``, and saves it with ``UPDATE ... IF version = ?``. A lost race
reloads and re-applies, up to ``max_write_retries`` times. When Redis is
configured, writers of the same enrollment are also serialized by a lock,
which only reduces conflicts; the conditional write is what guarantees that
no concurrent change is lost.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import UUID

import structlog
from redis.exceptions import LockError, RedisError

from mindful.core.redis import enrollment_lock_key
from mindful.courses.models import QuizResult
from mindful.courses.service import CurriculumService
from mindful.utils import utcnow

from .aggregate import ENROLLMENT_COLUMNS, Enrollment
from .exceptions import (
    ConcurrentUpdateError,
    DuplicateEnrollmentError,
    EnrollmentNotFoundError,
    PaymentRequiredError,
)
from .models import (
    Certificate,
    CourseEnrollmentStats,
    EnrollmentSettings,
    EnrollmentStatus,
    EnrollmentSummary,
    LessonNote,
    LessonProgress,
    PaymentInfo,
    QuizAttempt,
    Rating,
    StatusStats,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Sort key for enrollments never accessed
_NEVER = datetime.min.replace(tzinfo=UTC)


class EnrollmentService:
    """Service for enrollments and their progress tree."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        curriculum_service: CurriculumService,
        redis: "Redis | None" = None,
        max_write_retries: int = 5,
        lock_timeout: float = 10.0,
        lock_blocking_timeout: float = 3.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize with Cassandra session.

        Args:
            session: Cassandra session with aexecute()
            keyspace: Keyspace holding the enrollment tables
            curriculum_service: Course catalog reader
            redis: Optional Redis client for the per-enrollment lock
            max_write_retries: Conditional write attempts before giving up
            lock_timeout: Seconds before a held lock expires
            lock_blocking_timeout: Seconds to wait for the lock
            clock: Source of ``now`` for every mutation
        """
        self.session = session
        self.keyspace = keyspace
        self.curriculum = curriculum_service
        self.redis = redis
        self.max_write_retries = max_write_retries
        self.lock_timeout = lock_timeout
        self.lock_blocking_timeout = lock_blocking_timeout
        self._clock = clock
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        columns = ", ".join(ENROLLMENT_COLUMNS)
        placeholders = ", ".join("?" for _ in ENROLLMENT_COLUMNS)
        assignments = ", ".join(f"{column} = ?" for column in ENROLLMENT_COLUMNS)

        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._get_course_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, {columns}, version)
            VALUES (?, ?, {placeholders}, ?)
            IF NOT EXISTS
        """)

        self._update_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET {assignments}, version = ?
            WHERE course_id = ? AND user_id = ?
            IF version = ?
        """)

        # Enrollments by user (lookup)
        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        self._upsert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, course_id, status, progress_percent,
             completed_lessons, total_lessons, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(
        self,
        user_id: UUID,
        course_id: UUID,
        payment_info: PaymentInfo | None = None,
    ) -> Enrollment:
        """Enroll user in a published course.

        Args:
            user_id: User UUID
            course_id: Course UUID
            payment_info: Verified payment, required for paid courses

        Returns:
            Enrollment entity

        Raises:
            CourseNotFoundError: If the course is missing or not published
            PaymentRequiredError: If a paid course is enrolled without payment
            DuplicateEnrollmentError: If user already enrolled
        """
        course = await self.curriculum.get_published_course(course_id)
        if not course.is_free and payment_info is None:
            raise PaymentRequiredError

        curriculum = await self.curriculum.get_curriculum(course_id)
        enrollment = Enrollment.create(
            user_id=user_id,
            course_id=course_id,
            curriculum=curriculum,
            now=self._clock(),
            payment_info=payment_info,
        )
        enrollment.version = 1

        result = await self.session.aexecute(
            self._insert_enrollment,
            [course_id, user_id, *enrollment.row_values(), enrollment.version],
        )
        if not result.was_applied:
            raise DuplicateEnrollmentError

        await self._write_lookup(enrollment)

        logger.info(
            "enrollment_created",
            user_id=str(user_id),
            course_id=str(course_id),
            paid=payment_info is not None,
            total_lessons=enrollment.progress.total_lessons,
        )
        return enrollment

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Get enrollment by user and course.

        Raises:
            EnrollmentNotFoundError: If the user is not enrolled
        """
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        if not row:
            raise EnrollmentNotFoundError
        return Enrollment.from_row(row)

    async def list_user_enrollments(
        self, user_id: UUID, status: EnrollmentStatus | None = None
    ) -> list[EnrollmentSummary]:
        """List a user's enrollments, most recently accessed first.

        Never-accessed enrollments come last; ties are broken by
        enrollment date, newest first.
        """
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        summaries = [EnrollmentSummary.from_row(row) for row in rows]
        if status is not None:
            summaries = [s for s in summaries if s.status == status.value]

        summaries.sort(key=lambda s: s.enrolled_at, reverse=True)
        summaries.sort(
            key=lambda s: (s.last_accessed_at is not None, s.last_accessed_at or _NEVER),
            reverse=True,
        )
        return summaries

    async def list_course_enrollments(
        self, course_id: UUID, status: EnrollmentStatus | None = None
    ) -> list[Enrollment]:
        """List a course's enrollments, newest first."""
        rows = await self.session.aexecute(self._get_course_enrollments, [course_id])
        enrollments = [Enrollment.from_row(row) for row in rows]
        if status is not None:
            enrollments = [e for e in enrollments if e.status == status.value]
        enrollments.sort(key=lambda e: e.enrolled_at, reverse=True)
        return enrollments

    async def get_course_stats(self, course_id: UUID) -> CourseEnrollmentStats:
        """Per-status counts and averages plus the rating summary of a course."""
        enrollments = await self.list_course_enrollments(course_id)

        by_status: dict[str, StatusStats] = {}
        for status in EnrollmentStatus:
            group = [e for e in enrollments if e.status == status.value]
            if not group:
                continue
            by_status[status.value] = StatusStats(
                count=len(group),
                avg_progress=round(
                    sum(e.progress.percentage for e in group) / len(group), 2
                ),
                avg_watch_time=round(
                    sum(e.progress.total_watch_time for e in group) / len(group), 2
                ),
            )

        scores = [e.rating.score for e in enrollments if e.rating is not None]
        return CourseEnrollmentStats(
            course_id=course_id,
            total_enrollments=len(enrollments),
            by_status=by_status,
            rating_average=round(sum(scores) / len(scores), 1) if scores else None,
            rating_count=len(scores),
        )

    # ==========================================================================
    # Progress Operations
    # ==========================================================================

    async def update_lesson_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        module_id: UUID,
        lesson_id: UUID,
        position: int,
        watch_time: int,
        completed: bool = False,
    ) -> Enrollment:
        """Record playback position, optionally completing the lesson."""

        def operation(enrollment: Enrollment, now: datetime) -> LessonProgress:
            lesson = enrollment.update_lesson_progress(
                module_id, lesson_id, position, watch_time, now
            )
            if completed:
                lesson = enrollment.mark_lesson_complete(
                    module_id, lesson_id, watch_time, now
                )
            return lesson

        enrollment, _ = await self._apply(user_id, course_id, operation)
        return enrollment

    async def mark_lesson_complete(
        self,
        user_id: UUID,
        course_id: UUID,
        module_id: UUID,
        lesson_id: UUID,
        watch_time: int = 0,
    ) -> Enrollment:
        """Mark a non-quiz lesson as complete."""

        def operation(enrollment: Enrollment, now: datetime) -> bool:
            was_completed = enrollment.find_lesson(module_id, lesson_id).completed
            enrollment.mark_lesson_complete(module_id, lesson_id, watch_time, now)
            return not was_completed

        enrollment, newly_completed = await self._apply(user_id, course_id, operation)
        if newly_completed:
            logger.info(
                "lesson_completed",
                user_id=str(user_id),
                course_id=str(course_id),
                lesson_id=str(lesson_id),
                progress=enrollment.progress.percentage,
            )
        return enrollment

    async def submit_quiz_attempt(
        self,
        user_id: UUID,
        course_id: UUID,
        module_id: UUID,
        lesson_id: UUID,
        score: int,
        answers: list[Any],
        passed: bool,
    ) -> tuple[Enrollment, QuizAttempt]:
        """Record an already graded quiz attempt."""

        def operation(enrollment: Enrollment, now: datetime) -> QuizAttempt:
            return enrollment.submit_quiz_attempt(
                module_id, lesson_id, score, answers, passed, now
            )

        enrollment, attempt = await self._apply(user_id, course_id, operation)
        logger.info(
            "quiz_attempt_recorded",
            user_id=str(user_id),
            course_id=str(course_id),
            lesson_id=str(lesson_id),
            score=score,
            passed=passed,
        )
        return enrollment, attempt

    async def grade_and_submit_quiz(
        self,
        user_id: UUID,
        course_id: UUID,
        module_id: UUID,
        lesson_id: UUID,
        answers: list[int],
    ) -> tuple[Enrollment, QuizResult]:
        """Grade answers against the lesson's quiz and record the attempt.

        Raises:
            EnrollmentNotFoundError: If the user is not enrolled
            LessonProgressNotFoundError: If the lesson is not in the enrollment
            QuizNotFoundError: If the lesson has no quiz definition
        """
        enrollment = await self.get_enrollment(user_id, course_id)
        enrollment.find_lesson(module_id, lesson_id)

        quiz = await self.curriculum.get_quiz(lesson_id)
        result = quiz.grade(answers)

        enrollment, _ = await self.submit_quiz_attempt(
            user_id,
            course_id,
            module_id,
            lesson_id,
            result.score,
            answers,
            result.passed,
        )
        return enrollment, result

    async def add_note(
        self,
        user_id: UUID,
        course_id: UUID,
        module_id: UUID,
        lesson_id: UUID,
        timestamp: int,
        content: str,
    ) -> LessonNote:
        def operation(enrollment: Enrollment, now: datetime) -> LessonNote:
            return enrollment.add_note(module_id, lesson_id, timestamp, content, now)

        _, note = await self._apply(user_id, course_id, operation)
        return note

    # ==========================================================================
    # Rating, Settings and Lifecycle
    # ==========================================================================

    async def rate_course(
        self, user_id: UUID, course_id: UUID, score: int, review: str | None
    ) -> Rating:
        def operation(enrollment: Enrollment, now: datetime) -> Rating:
            return enrollment.rate_course(score, review, now)

        _, rating = await self._apply(user_id, course_id, operation)
        logger.info(
            "course_rated",
            user_id=str(user_id),
            course_id=str(course_id),
            score=score,
        )
        return rating

    async def update_settings(
        self, user_id: UUID, course_id: UUID, **changes: Any
    ) -> EnrollmentSettings:
        """Update playback settings; accepts the EnrollmentSettings field names."""

        def operation(enrollment: Enrollment, now: datetime) -> EnrollmentSettings:
            return enrollment.update_settings(now, **changes)

        _, settings = await self._apply(user_id, course_id, operation)
        return settings

    async def drop(self, user_id: UUID, course_id: UUID) -> Enrollment:
        def operation(enrollment: Enrollment, now: datetime) -> None:
            enrollment.drop(now)

        enrollment, _ = await self._apply(user_id, course_id, operation)
        logger.info(
            "enrollment_dropped",
            user_id=str(user_id),
            course_id=str(course_id),
            progress=enrollment.progress.percentage,
        )
        return enrollment

    async def issue_certificate(
        self,
        user_id: UUID,
        course_id: UUID,
        certificate_id: str,
        download_url: str | None = None,
    ) -> Certificate:
        def operation(enrollment: Enrollment, now: datetime) -> Certificate:
            return enrollment.issue_certificate(certificate_id, download_url, now)

        _, certificate = await self._apply(user_id, course_id, operation)
        logger.info(
            "certificate_issued",
            user_id=str(user_id),
            course_id=str(course_id),
            certificate_id=certificate_id,
        )
        return certificate

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def _apply(
        self,
        user_id: UUID,
        course_id: UUID,
        operation: Callable[[Enrollment, datetime], T],
    ) -> tuple[Enrollment, T]:
        """Run one aggregate operation as a conditional read-modify-write.

        Domain errors raised by the operation propagate before anything is
        written.

        Raises:
            EnrollmentNotFoundError: If the user is not enrolled
            ConcurrentUpdateError: If every attempt lost the race
        """
        async with self._enrollment_lock(course_id, user_id):
            for attempt in range(1, self.max_write_retries + 1):
                enrollment = await self.get_enrollment(user_id, course_id)
                previous_status = enrollment.status

                outcome = operation(enrollment, self._clock())

                if await self._save(enrollment):
                    if (
                        enrollment.is_completed
                        and previous_status != EnrollmentStatus.COMPLETED.value
                    ):
                        logger.info(
                            "enrollment_completed",
                            user_id=str(user_id),
                            course_id=str(course_id),
                            total_watch_time=enrollment.progress.total_watch_time,
                        )
                    return enrollment, outcome

                logger.warning(
                    "enrollment_write_conflict",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    attempt=attempt,
                )

        logger.error(
            "enrollment_write_retries_exhausted",
            user_id=str(user_id),
            course_id=str(course_id),
            attempts=self.max_write_retries,
        )
        raise ConcurrentUpdateError

    async def _save(self, enrollment: Enrollment) -> bool:
        """Write the enrollment if nobody saved it since it was read.

        Returns:
            True when the write was applied
        """
        expected = enrollment.version
        result = await self.session.aexecute(
            self._update_enrollment,
            [
                *enrollment.row_values(),
                expected + 1,
                enrollment.course_id,
                enrollment.user_id,
                expected,
            ],
        )
        if not result.was_applied:
            return False

        enrollment.version = expected + 1
        await self._write_lookup(enrollment)
        return True

    async def _write_lookup(self, enrollment: Enrollment) -> None:
        """Mirror the enrollment summary into enrollments_by_user (dual write)."""
        await self.session.aexecute(
            self._upsert_enrollment_by_user,
            [
                enrollment.user_id,
                enrollment.enrolled_at,
                enrollment.course_id,
                enrollment.status,
                enrollment.progress.percentage,
                enrollment.progress.completed_lessons,
                enrollment.progress.total_lessons,
                enrollment.last_accessed_at,
            ],
        )

    @asynccontextmanager
    async def _enrollment_lock(
        self, course_id: UUID, user_id: UUID
    ) -> AsyncIterator[None]:
        """Serialize writers of one enrollment through Redis when available.

        Failing to take the lock is logged and the write proceeds, guarded
        by the conditional update alone.
        """
        if self.redis is None:
            yield
            return

        lock = self.redis.lock(
            enrollment_lock_key(course_id, user_id),
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_blocking_timeout,
        )
        acquired = False
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.warning("enrollment_lock_error", course_id=str(course_id), error=str(e))
        if not acquired:
            logger.warning(
                "enrollment_lock_not_acquired",
                course_id=str(course_id),
                user_id=str(user_id),
            )

        try:
            yield
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError:
                    # Expired while held; the conditional write already decided
                    logger.warning(
                        "enrollment_lock_expired",
                        course_id=str(course_id),
                        user_id=str(user_id),
                    )
