"""FastAPI dependencies for the course catalog."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from mindful.courses.service import CourseError, CurriculumService


async def get_curriculum_service(request: Request) -> CurriculumService:
    """Get curriculum service from app state."""
    app_state = request.app.state
    service = getattr(app_state, "curriculum_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Curriculum service not available",
        )
    return service


CurriculumServiceDep = Annotated[CurriculumService, Depends(get_curriculum_service)]


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "quiz_not_found": status.HTTP_404_NOT_FOUND,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(status_code=status_code, detail=error.message)
