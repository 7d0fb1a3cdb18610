"""Enrollment and progress API endpoints.

Provides routes for:
- Enrollment (free courses by the learner, paid courses by the payment service)
- Lesson progress, completion, quizzes and notes
- Rating, playback settings and dropping a course
- Course enrollment listings and statistics for instructors
- Certificate issuance (internal)
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from mindful.auth.dependencies import CurrentUser, MasterApiKey, TeacherUser
from mindful.core.context import set_course_id
from mindful.courses.dependencies import handle_course_error
from mindful.courses.service import CourseError

from .dependencies import EnrollmentServiceDep, handle_enrollment_error
from .exceptions import EnrollmentError
from .models import EnrollmentStatus
from .schemas import (
    AddNoteRequest,
    CertificateResponse,
    CourseEnrollmentStatsResponse,
    EnrollmentListResponse,
    EnrollmentProgressResponse,
    EnrollmentResponse,
    EnrollmentSummaryResponse,
    EnrollRequest,
    InternalEnrollRequest,
    IssueCertificateRequest,
    LessonNoteResponse,
    LessonUpdateResponse,
    MarkLessonCompleteRequest,
    QuizSubmissionResponse,
    RateCourseRequest,
    RatingResponse,
    SettingsResponse,
    SubmitQuizRequest,
    UpdateLessonProgressRequest,
    UpdateSettingsRequest,
)


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])
internal_router = APIRouter(prefix="/v1/internal/enrollments", tags=["internal"])
course_enrollments_router = APIRouter(prefix="/v1/courses", tags=["enrollments"])

LESSON_PATH = "/{course_id}/modules/{module_id}/lessons/{lesson_id}"


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a free course",
)
async def enroll(
    data: EnrollRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll the current user in a free, published course.

    Paid courses are enrolled by the payment service after payment.
    """
    set_course_id(str(data.course_id))
    try:
        enrollment = await enrollment_service.enroll(user.id, data.course_id)
        return EnrollmentResponse.from_entity(enrollment)
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
    status_filter: EnrollmentStatus | None = Query(None, alias="status"),
) -> EnrollmentListResponse:
    """List current user's enrollments, most recently accessed first."""
    summaries = await enrollment_service.list_user_enrollments(user.id, status_filter)
    return EnrollmentListResponse(
        items=[EnrollmentSummaryResponse.from_summary(s) for s in summaries],
        total=len(summaries),
    )


@router.get(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Get the full enrollment with its module and lesson progress."""
    set_course_id(str(course_id))
    try:
        enrollment = await enrollment_service.get_enrollment(user.id, course_id)
        return EnrollmentResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.get(
    "/{course_id}/progress",
    response_model=EnrollmentProgressResponse,
    summary="Get course progress",
)
async def get_progress(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentProgressResponse:
    """Get progress percentage, status and resume position."""
    set_course_id(str(course_id))
    try:
        enrollment = await enrollment_service.get_enrollment(user.id, course_id)
        return EnrollmentProgressResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Lesson Progress Endpoints
# ==============================================================================


@router.put(
    f"{LESSON_PATH}/progress",
    response_model=LessonUpdateResponse,
    summary="Update lesson progress",
)
async def update_lesson_progress(
    course_id: UUID,
    module_id: UUID,
    lesson_id: UUID,
    data: UpdateLessonProgressRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> LessonUpdateResponse:
    """Save playback position and watch time.

    Called periodically by the player. With ``completed=true`` the lesson
    is also marked complete in the same write.
    """
    set_course_id(str(course_id))
    try:
        enrollment = await enrollment_service.update_lesson_progress(
            user_id=user.id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            position=data.position,
            watch_time=data.watch_time,
            completed=data.completed,
        )
        return LessonUpdateResponse.from_entity(enrollment, module_id, lesson_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    f"{LESSON_PATH}/complete",
    response_model=LessonUpdateResponse,
    summary="Mark lesson as complete",
)
async def mark_lesson_complete(
    course_id: UUID,
    module_id: UUID,
    lesson_id: UUID,
    data: MarkLessonCompleteRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> LessonUpdateResponse:
    """Mark a lesson as complete. Quiz lessons complete by passing the quiz."""
    set_course_id(str(course_id))
    try:
        enrollment = await enrollment_service.mark_lesson_complete(
            user_id=user.id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            watch_time=data.watch_time,
        )
        return LessonUpdateResponse.from_entity(enrollment, module_id, lesson_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    f"{LESSON_PATH}/quiz",
    response_model=QuizSubmissionResponse,
    summary="Submit quiz answers",
)
async def submit_quiz(
    course_id: UUID,
    module_id: UUID,
    lesson_id: UUID,
    data: SubmitQuizRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> QuizSubmissionResponse:
    """Grade answers and record the attempt. A passing attempt completes the lesson."""
    set_course_id(str(course_id))
    try:
        enrollment, result = await enrollment_service.grade_and_submit_quiz(
            user_id=user.id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            answers=data.answers,
        )
        return QuizSubmissionResponse.from_result(
            result, enrollment, enrollment.find_lesson(module_id, lesson_id)
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    f"{LESSON_PATH}/notes",
    response_model=LessonNoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a lesson note",
)
async def add_note(
    course_id: UUID,
    module_id: UUID,
    lesson_id: UUID,
    data: AddNoteRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> LessonNoteResponse:
    set_course_id(str(course_id))
    try:
        note = await enrollment_service.add_note(
            user_id=user.id,
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            timestamp=data.timestamp,
            content=data.content,
        )
        return LessonNoteResponse.from_entity(note)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Rating, Settings and Drop
# ==============================================================================


@router.put(
    "/{course_id}/rating",
    response_model=RatingResponse,
    summary="Rate course",
)
async def rate_course(
    course_id: UUID,
    data: RateCourseRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> RatingResponse:
    """Rate the course from 1 to 5. Rating again replaces the previous rating."""
    set_course_id(str(course_id))
    try:
        rating = await enrollment_service.rate_course(
            user.id, course_id, data.score, data.review
        )
        return RatingResponse.model_validate(rating)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.patch(
    "/{course_id}/settings",
    response_model=SettingsResponse,
    summary="Update playback settings",
)
async def update_settings(
    course_id: UUID,
    data: UpdateSettingsRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> SettingsResponse:
    set_course_id(str(course_id))
    try:
        settings = await enrollment_service.update_settings(
            user.id, course_id, **data.model_dump(exclude_none=True)
        )
        return SettingsResponse.from_entity(settings)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.post(
    "/{course_id}/drop",
    response_model=EnrollmentProgressResponse,
    summary="Drop course",
)
async def drop_enrollment(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentProgressResponse:
    """Leave the course. Progress is kept but can no longer change."""
    set_course_id(str(course_id))
    try:
        enrollment = await enrollment_service.drop(user.id, course_id)
        return EnrollmentProgressResponse.from_entity(enrollment)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Internal Endpoints (X-API-Key)
# ==============================================================================


@internal_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll user after payment",
)
async def enroll_paid(
    data: InternalEnrollRequest,
    enrollment_service: EnrollmentServiceDep,
    _api_key: MasterApiKey,
) -> EnrollmentResponse:
    """Enroll a user once the payment service has verified the payment."""
    set_course_id(str(data.course_id))
    try:
        enrollment = await enrollment_service.enroll(
            data.user_id, data.course_id, payment_info=data.payment.to_entity()
        )
        return EnrollmentResponse.from_entity(enrollment)
    except CourseError as e:
        raise handle_course_error(e) from e
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@internal_router.post(
    "/{course_id}/{user_id}/certificate",
    response_model=CertificateResponse,
    summary="Issue completion certificate",
)
async def issue_certificate(
    course_id: UUID,
    user_id: UUID,
    data: IssueCertificateRequest,
    enrollment_service: EnrollmentServiceDep,
    _api_key: MasterApiKey,
) -> CertificateResponse:
    set_course_id(str(course_id))
    try:
        certificate = await enrollment_service.issue_certificate(
            user_id, course_id, data.certificate_id, data.download_url
        )
        return CertificateResponse.from_entity(certificate)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


# ==============================================================================
# Course Enrollment Endpoints (Teacher/Admin)
# ==============================================================================


@course_enrollments_router.get(
    "/{course_id}/enrollments",
    response_model=EnrollmentListResponse,
    summary="List course enrollments",
)
async def list_course_enrollments(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    _user: TeacherUser,
    status_filter: EnrollmentStatus | None = Query(None, alias="status"),
) -> EnrollmentListResponse:
    """List enrollments of a course, newest first."""
    set_course_id(str(course_id))
    enrollments = await enrollment_service.list_course_enrollments(
        course_id, status_filter
    )
    return EnrollmentListResponse(
        items=[EnrollmentSummaryResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@course_enrollments_router.get(
    "/{course_id}/enrollments/stats",
    response_model=CourseEnrollmentStatsResponse,
    summary="Course enrollment statistics",
)
async def get_course_stats(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    _user: TeacherUser,
) -> CourseEnrollmentStatsResponse:
    """Counts, average progress and watch time per status, plus ratings."""
    set_course_id(str(course_id))
    stats = await enrollment_service.get_course_stats(course_id)
    return CourseEnrollmentStatsResponse.from_entity(stats)
