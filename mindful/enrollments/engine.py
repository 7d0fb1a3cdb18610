"""Progress aggregation for an enrollment.

``recompute`` rebuilds every derived field of the tree bottom-up
(lesson -> module -> course) and then derives the enrollment status.
It always recomputes in full from lesson state; nothing is patched
incrementally. Given unchanged lesson data a second run changes nothing,
timestamps included.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from mindful.utils import percent_of

from .models import EnrollmentStatus, ModuleProgress, ProgressSnapshot


if TYPE_CHECKING:
    from .aggregate import Enrollment


def recompute_module(module: ModuleProgress, now: datetime) -> tuple[int, int, int]:
    """Refresh a module's derived fields.

    Returns:
        (completed lessons, total lessons, watch time) for the module
    """
    total = len(module.lessons_progress)
    done = sum(1 for lesson in module.lessons_progress if lesson.completed)
    watch_time = sum(lesson.watch_time for lesson in module.lessons_progress)

    # An empty module stays at 0% and never completes
    module.progress_percentage = percent_of(done, total)
    if module.progress_percentage == 100 and not module.completed:
        module.completed = True
        if module.completed_at is None:
            module.completed_at = now

    return done, total, watch_time


def recompute(enrollment: "Enrollment", now: datetime) -> "Enrollment":
    """Recompute module and course progress, then derive status.

    Args:
        enrollment: Aggregate to refresh in place
        now: Timestamp applied to any field set for the first time

    Returns:
        The same enrollment, for chaining
    """
    completed_lessons = 0
    total_lessons = 0
    total_watch_time = 0

    for module in enrollment.modules_progress:
        done, total, watch_time = recompute_module(module, now)
        completed_lessons += done
        total_lessons += total
        total_watch_time += watch_time

    enrollment.progress = ProgressSnapshot(
        percentage=percent_of(completed_lessons, total_lessons),
        completed_lessons=completed_lessons,
        total_lessons=total_lessons,
        completed_modules=sum(1 for m in enrollment.modules_progress if m.completed),
        total_modules=len(enrollment.modules_progress),
        total_watch_time=total_watch_time,
    )

    derive_status(enrollment, now)
    return enrollment


def derive_status(enrollment: "Enrollment", now: datetime) -> None:
    """Advance the status from the current progress snapshot.

    Dropped is left alone and completed is never moved back.
    """
    status = enrollment.status
    if status == EnrollmentStatus.DROPPED.value:
        return

    percentage = enrollment.progress.percentage

    if percentage > 0 and enrollment.started_at is None:
        enrollment.started_at = now

    if percentage == 100 and status != EnrollmentStatus.COMPLETED.value:
        enrollment.status = EnrollmentStatus.COMPLETED.value
        if enrollment.completed_at is None:
            enrollment.completed_at = now
    elif percentage > 0 and status == EnrollmentStatus.ENROLLED.value:
        enrollment.status = EnrollmentStatus.IN_PROGRESS.value
