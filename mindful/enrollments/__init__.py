"""Course enrollment and progress tracking module.

Provides:
- Module and lesson progress tree per enrollment
- Bottom-up progress aggregation and status transitions
- Quiz attempts, notes, rating, settings and certificates
- Conditional writes with retry against concurrent updates
"""

from .aggregate import Enrollment
from .engine import recompute
from .exceptions import (
    ConcurrentUpdateError,
    DuplicateEnrollmentError,
    EnrollmentError,
    EnrollmentNotFoundError,
    InvalidEnrollmentStateError,
    InvalidProgressInputError,
    LessonProgressNotFoundError,
    ModuleProgressNotFoundError,
    PaymentRequiredError,
)
from .models import (
    ENROLLMENTS_TABLES_CQL,
    EnrollmentStatus,
    LessonProgress,
    ModuleProgress,
    ProgressSnapshot,
)


__all__ = [
    "ENROLLMENTS_TABLES_CQL",
    "ConcurrentUpdateError",
    "DuplicateEnrollmentError",
    "Enrollment",
    "EnrollmentError",
    "EnrollmentNotFoundError",
    "EnrollmentStatus",
    "InvalidEnrollmentStateError",
    "InvalidProgressInputError",
    "LessonProgress",
    "LessonProgressNotFoundError",
    "ModuleProgress",
    "ModuleProgressNotFoundError",
    "PaymentRequiredError",
    "ProgressSnapshot",
    "recompute",
]
