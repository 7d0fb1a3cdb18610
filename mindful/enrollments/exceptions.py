"""Enrollment domain errors.

Every error carries a human readable ``message`` and a stable ``code``
used by the HTTP layer to pick a status code.
"""


class EnrollmentError(Exception):
    """Base enrollment error."""

    def __init__(self, message: str, code: str = "enrollment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class EnrollmentNotFoundError(EnrollmentError):
    """User not enrolled in course."""

    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class ModuleProgressNotFoundError(EnrollmentError):
    """Module is not part of the enrollment's curriculum snapshot."""

    def __init__(self, message: str = "Module not found in enrollment"):
        super().__init__(message, "module_not_found")


class LessonProgressNotFoundError(EnrollmentError):
    """Lesson is not part of the module's curriculum snapshot."""

    def __init__(self, message: str = "Lesson not found in module"):
        super().__init__(message, "lesson_not_found")


class DuplicateEnrollmentError(EnrollmentError):
    """User already enrolled."""

    def __init__(self, message: str = "User is already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class InvalidEnrollmentStateError(EnrollmentError):
    """Operation not allowed in the enrollment's current status."""

    def __init__(self, message: str = "Operation not allowed for this enrollment"):
        super().__init__(message, "invalid_state")


class InvalidProgressInputError(EnrollmentError):
    """Malformed input rejected before any mutation."""

    def __init__(self, message: str = "Invalid progress input"):
        super().__init__(message, "invalid_input")


class ConcurrentUpdateError(EnrollmentError):
    """Write retries exhausted against concurrent writers."""

    def __init__(self, message: str = "Enrollment was modified concurrently, retry"):
        super().__init__(message, "concurrent_update")


class PaymentRequiredError(EnrollmentError):
    """Paid course enrollment attempted without payment."""

    def __init__(self, message: str = "Payment is required to enroll in this course"):
        super().__init__(message, "payment_required")
