"""FastAPI dependencies for enrollments.

Provides dependency injection for:
- Enrollment service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .exceptions import EnrollmentError
from .service import EnrollmentService


async def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get enrollment service from app state.

    Args:
        request: FastAPI request

    Returns:
        EnrollmentService instance
    """
    app_state = request.app.state
    service = getattr(app_state, "enrollment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return service


# Type alias for dependency injection
EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]


ERROR_STATUS_MAP = {
    "not_enrolled": status.HTTP_404_NOT_FOUND,
    "module_not_found": status.HTTP_404_NOT_FOUND,
    "lesson_not_found": status.HTTP_404_NOT_FOUND,
    "already_enrolled": status.HTTP_409_CONFLICT,
    "invalid_state": status.HTTP_409_CONFLICT,
    "concurrent_update": status.HTTP_409_CONFLICT,
    "invalid_input": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "payment_required": status.HTTP_402_PAYMENT_REQUIRED,
}


def handle_enrollment_error(error: EnrollmentError) -> HTTPException:
    """Convert enrollment errors to HTTP exceptions.

    Args:
        error: Enrollment error

    Returns:
        HTTPException with appropriate status code
    """
    status_code = ERROR_STATUS_MAP.get(
        error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
